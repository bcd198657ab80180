"""
Unit tests for TelegramBotApiClient against a mocked Bot API.

Note: Uses asyncio.run() instead of pytest-asyncio to avoid external dependency.
"""

import asyncio
import json

import httpx
import pytest

from chat_providers.telegram_bot_api import TelegramBotApiClient
from config_models import TelegramConfig
from infrastructure.exceptions import ChatPlatformError, ChatPlatformMessageError, ConfigurationError


class RecordingBotApi:
    """Collects requests and answers with queued responses per method."""

    def __init__(self):
        self.calls = []
        self.responses = {}

    def handler(self, request: httpx.Request):
        method = request.url.path.rsplit("/", 1)[-1]
        body = json.loads(request.content or b"{}")
        self.calls.append((method, body))
        queued = self.responses.get(method) or [{"ok": True, "result": True}]
        answer = queued.pop(0) if len(queued) > 1 else queued[0]
        return httpx.Response(200, json=answer)


class TestTelegramBotApiClient:

    def setup_method(self):
        self.api = RecordingBotApi()
        self.client = TelegramBotApiClient(
            TelegramConfig(bot_token="123:abc", api_url="https://bot.test"),
            transport=httpx.MockTransport(self.api.handler),
        )

    def test_requires_token(self):
        with pytest.raises(ConfigurationError):
            TelegramBotApiClient(TelegramConfig(bot_token=""))

    def test_send_message_returns_id(self):
        self.api.responses["sendMessage"] = [{"ok": True, "result": {"message_id": 555}}]

        message_id = asyncio.run(self.client.send_message(
            100, "hello", reply_to_message_id=10, reply_markup={"inline_keyboard": []}, parse_mode="Markdown"
        ))

        assert message_id == 555
        method, body = self.api.calls[0]
        assert method == "sendMessage"
        assert body["chat_id"] == 100
        assert body["reply_to_message_id"] == 10
        assert body["allow_sending_without_reply"] is True
        assert body["parse_mode"] == "Markdown"

    def test_parse_error_retries_without_parse_mode(self):
        self.api.responses["sendMessage"] = [
            {"ok": False, "description": "Bad Request: can't parse entities: unmatched"},
            {"ok": True, "result": {"message_id": 556}},
        ]

        message_id = asyncio.run(self.client.send_message(100, "bad *markdown", parse_mode="Markdown"))

        assert message_id == 556
        assert len(self.api.calls) == 2
        assert "parse_mode" in self.api.calls[0][1]
        assert "parse_mode" not in self.api.calls[1][1]

    def test_other_errors_are_not_retried(self):
        self.api.responses["editMessageText"] = [{"ok": False, "description": "Bad Request: message not found"}]

        with pytest.raises(ChatPlatformMessageError):
            asyncio.run(self.client.edit_message_text(100, 1, "x", parse_mode="Markdown"))
        assert len(self.api.calls) == 1

    def test_get_file_and_url(self):
        self.api.responses["getFile"] = [{"ok": True, "result": {"file_id": "f", "file_path": "videos/file_1.mp4", "file_size": 10}}]

        descriptor = asyncio.run(self.client.get_file("f"))

        assert descriptor.file_path == "videos/file_1.mp4"
        assert descriptor.file_size == 10
        assert self.client.build_file_url(descriptor.file_path) == "https://bot.test/file/bot123:abc/videos/file_1.mp4"

    def test_get_file_without_path(self):
        self.api.responses["getFile"] = [{"ok": True, "result": {"file_id": "f"}}]
        with pytest.raises(ChatPlatformError):
            asyncio.run(self.client.get_file("f"))

    def test_non_json_response(self):
        client = TelegramBotApiClient(
            TelegramConfig(bot_token="t"),
            transport=httpx.MockTransport(lambda r: httpx.Response(502, text="bad gateway")),
        )
        with pytest.raises(ChatPlatformError):
            asyncio.run(client.answer_callback_query("cb", "hi"))

    def test_set_webhook_only_when_different(self):
        self.api.responses["getWebhookInfo"] = [{"ok": True, "result": {"url": "https://me.test/webhook"}}]
        assert asyncio.run(self.client.set_webhook_if_needed("https://me.test/webhook")) is False
        assert [c[0] for c in self.api.calls] == ["getWebhookInfo"]

        assert asyncio.run(self.client.set_webhook_if_needed("https://new.test/webhook")) is True
        assert self.api.calls[-1] == ("setWebhook", {"url": "https://new.test/webhook"})
