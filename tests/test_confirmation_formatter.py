"""
Unit tests for ConfirmationFormatter texts and keyboards.
"""

from confirmation_formatter import ConfirmationFormatter


def callback_data(markup):
    return [button["callback_data"] for row in markup["inline_keyboard"] for button in row]


class TestConfirmationFormatter:

    def test_proposal(self):
        text = ConfirmationFormatter.proposal_text("Movies/X/X.mkv")
        assert text.startswith("📁 **File Processing Confirmation**")
        assert "**Proposed Path:** `Movies/X/X.mkv`" in text
        assert callback_data(ConfirmationFormatter.proposal_keyboard("7")) == ["accept:7", "change:7", "copy:7"]

    def test_custom_request_mentions_base_and_cancel(self):
        text = ConfirmationFormatter.custom_path_request_text("/media-server", "General/a.mp4", "a.mp4")
        assert "`/media-server/`" in text
        assert "Movies/Action/MyFolder/a.mp4" in text
        assert callback_data(ConfirmationFormatter.custom_path_request_keyboard("7")) == ["change:7"]

    def test_custom_path_set_keyboard(self):
        assert callback_data(ConfirmationFormatter.custom_path_set_keyboard("7")) == ["accept:7", "change:7", "copy:7"]

    def test_button_labels(self):
        row = ConfirmationFormatter.updated_path_keyboard("7")["inline_keyboard"][0]
        assert [b["text"] for b in row] == ["✅ Accept Path", "📝 Change Path"]

    def test_terminal_messages(self):
        assert ConfirmationFormatter.success_text("Shows/S/S01E01.mkv").endswith("`Shows/S/S01E01.mkv`")
        assert ConfirmationFormatter.failure_text() == (
            "Sorry, there was an error processing your video. Please try again later."
        )
        assert "Path Confirmed" in ConfirmationFormatter.confirmed_text("a.mp4")
