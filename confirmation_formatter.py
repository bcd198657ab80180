from typing import Any, Dict, List

from chat_providers.base import inline_keyboard
from infrastructure.webhook_events import CallbackAction, CallbackActionType, PathType


class ConfirmationFormatter:
    """
    Formatter for the path-confirmation conversation.
    Builds the Markdown texts and inline keyboards shown while a pending job
    waits for the user to accept, change or type its destination path.
    """

    PARSE_MODE = "Markdown"

    STRINGS = {
        "accept": "✅ Accept Path",
        "change": "📝 Change Path",
        "copy": "📋 Copy Path",
        "movies": "🎬 Movies",
        "shows": "📺 Shows",
        "general": "📁 General",
        "custom": "✏️ Custom Path",
        "back": "🔙 Back",
        "cancel": "🔙 Cancel",
        "proposal_header": "📁 **File Processing Confirmation**",
        "options_header": "📁 **Choose Alternative Path**",
        "updated_header": "📁 **Updated Path Selection**",
        "custom_request_header": "✏️ **Custom Path Input**",
        "custom_set_header": "📁 **Custom Path Set**",
        "confirmed_header": "✅ **Path Confirmed!**",
        "confirm_prompt": "Please confirm if you want to save the file to this path, or choose to change it.",
        "processing_started": "📥 Your video is being processed...",
        "failure": "Sorry, there was an error processing your video. Please try again later.",
    }

    @staticmethod
    def _button(label_key: str, action: CallbackAction) -> Dict[str, str]:
        return {"text": ConfirmationFormatter.STRINGS[label_key], "callback_data": action.encode()}

    @staticmethod
    def _accept_change_row(job_id: str) -> List[Dict[str, str]]:
        return [
            ConfirmationFormatter._button("accept", CallbackAction(CallbackActionType.ACCEPT, job_id)),
            ConfirmationFormatter._button("change", CallbackAction(CallbackActionType.CHANGE, job_id)),
        ]

    @staticmethod
    def _copy_button(job_id: str) -> Dict[str, str]:
        return ConfirmationFormatter._button("copy", CallbackAction(CallbackActionType.COPY, job_id))

    # --- Proposal prompt (accept / change / copy) ---

    @staticmethod
    def proposal_text(relative_path: str) -> str:
        s = ConfirmationFormatter.STRINGS
        return (
            f"{s['proposal_header']}\n\n"
            f"**Proposed Path:** `{relative_path}`\n\n"
            f"{s['confirm_prompt']}"
        )

    @staticmethod
    def proposal_keyboard(job_id: str) -> Dict[str, Any]:
        return inline_keyboard([
            ConfirmationFormatter._accept_change_row(job_id),
            [ConfirmationFormatter._copy_button(job_id)],
        ])

    # --- Alternative path options ---

    @staticmethod
    def path_options_text(relative_path: str) -> str:
        return (
            f"{ConfirmationFormatter.STRINGS['options_header']}\n\n"
            f"**Current Path:** `{relative_path}`\n\n"
            "Select where you want to save this file:"
        )

    @staticmethod
    def path_options_keyboard(job_id: str) -> Dict[str, Any]:
        f = ConfirmationFormatter
        return inline_keyboard([
            [
                f._button("movies", CallbackAction(CallbackActionType.PATH, job_id, PathType.MOVIES)),
                f._button("shows", CallbackAction(CallbackActionType.PATH, job_id, PathType.SHOWS)),
            ],
            [
                f._button("general", CallbackAction(CallbackActionType.PATH, job_id, PathType.GENERAL)),
                f._button("custom", CallbackAction(CallbackActionType.CUSTOM, job_id)),
            ],
            [
                f._copy_button(job_id),
                f._button("back", CallbackAction(CallbackActionType.BACK, job_id)),
            ],
        ])

    # --- After a path:<type> selection ---

    @staticmethod
    def updated_path_text(relative_path: str) -> str:
        return (
            f"{ConfirmationFormatter.STRINGS['updated_header']}\n\n"
            f"**Selected Path:** `{relative_path}`\n\n"
            f"💡 **Copyable path:** `{relative_path}`\n\n"
            "Please confirm if you want to save the file to this path, or choose to change it again."
        )

    @staticmethod
    def updated_path_keyboard(job_id: str) -> Dict[str, Any]:
        return inline_keyboard([ConfirmationFormatter._accept_change_row(job_id)])

    # --- Custom path entry ---

    @staticmethod
    def custom_path_request_text(media_root: str, relative_path: str, file_name: str) -> str:
        base = media_root.rstrip("/") + "/"
        return (
            f"{ConfirmationFormatter.STRINGS['custom_request_header']}\n\n"
            f"**Base Path (Fixed):** `{base}`\n\n"
            f"**Current Relative Path:** `{relative_path}`\n\n"
            f"Please send your custom path **after** `{base}`\n"
            f"Example: `Movies/Action/MyFolder/{file_name}`\n"
            "Or: `Shows/Season 1/episode.mp4`\n\n"
            "💡 **Tip:** Click to copy current path:\n"
            f"`{relative_path}`\n\n"
            "⚠️ Send the **complete file path** including filename and extension."
        )

    @staticmethod
    def custom_path_request_keyboard(job_id: str) -> Dict[str, Any]:
        return inline_keyboard([
            [ConfirmationFormatter._button("cancel", CallbackAction(CallbackActionType.CHANGE, job_id))]
        ])

    @staticmethod
    def custom_path_set_text(relative_path: str) -> str:
        s = ConfirmationFormatter.STRINGS
        return (
            f"{s['custom_set_header']}\n\n"
            f"**Custom Path:** `{relative_path}`\n\n"
            f"💡 **Copyable path:** `{relative_path}`\n\n"
            f"{s['confirm_prompt']}"
        )

    @staticmethod
    def custom_path_set_keyboard(job_id: str) -> Dict[str, Any]:
        return ConfirmationFormatter.proposal_keyboard(job_id)

    @staticmethod
    def custom_path_ack_text(relative_path: str) -> str:
        return (
            "✅ **Custom path set successfully!**\n\n"
            f"**Path:** `{relative_path}`\n\n"
            f"💡 **Next step:** Click \"{ConfirmationFormatter.STRINGS['accept']}\" above to start processing your video."
        )

    @staticmethod
    def invalid_path_text(file_name: str) -> str:
        return (
            "❌ **Invalid Path**\n\nPlease include the complete filename with extension.\n"
            f"Example: `Movies/Action/{file_name}`"
        )

    # --- Terminal messages ---

    @staticmethod
    def confirmed_text(relative_path: str) -> str:
        return (
            f"{ConfirmationFormatter.STRINGS['confirmed_header']}\n\n"
            f"**Path:** `{relative_path}`\n\n"
            "Your video is now being processed..."
        )

    @staticmethod
    def processing_started_text() -> str:
        return ConfirmationFormatter.STRINGS["processing_started"]

    @staticmethod
    def success_text(relative_path: str) -> str:
        return f"✅ Your video has been processed successfully and saved to:\n`{relative_path}`"

    @staticmethod
    def failure_text() -> str:
        return ConfirmationFormatter.STRINGS["failure"]
