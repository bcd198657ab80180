"""
Unit tests for NotificationService.

Note: Uses asyncio.run() instead of pytest-asyncio to avoid external dependency.
"""

import asyncio
from unittest.mock import AsyncMock

from chat_providers.dummy import DummyChatClient
from infrastructure.models import IngestionTask, NotificationInstruction, TaskResult
from services.notification_service import NotificationService


def make_task():
    return IngestionTask(task_id="8", kind="ingest-confirmed", payload={"chat_id": 100, "message_id": 10})


class TestNotificationService:

    def setup_method(self):
        self.chat = DummyChatClient()
        self.service = NotificationService(self.chat)

    def test_completed_sends_embedded_notification(self):
        result = TaskResult(
            success=True,
            notification=NotificationInstruction(chat_id=100, text="done", reply_to_message_id=10, parse_mode="Markdown"),
        )

        asyncio.run(self.service.on_task_completed(make_task(), result))

        sent = self.chat.sent_messages[-1]
        assert sent["text"] == "done"
        assert sent["reply_to_message_id"] == 10
        assert sent["parse_mode"] == "Markdown"

    def test_completed_without_notification_sends_nothing(self):
        asyncio.run(self.service.on_task_completed(make_task(), TaskResult(success=False, pending=True)))
        assert self.chat.sent_messages == []

    def test_failed_sends_generic_message(self):
        asyncio.run(self.service.on_task_failed(make_task(), "disk full"))

        sent = self.chat.sent_messages[-1]
        assert sent["text"] == "Sorry, there was an error processing your video. Please try again later."
        assert sent["chat_id"] == 100
        assert sent["reply_to_message_id"] == 10

    def test_delivery_errors_are_swallowed(self):
        self.chat.fail_sends = True
        result = TaskResult(success=True, notification=NotificationInstruction(chat_id=100, text="done"))

        asyncio.run(self.service.on_task_completed(make_task(), result))
        asyncio.run(self.service.on_task_failed(make_task(), "boom"))

    def test_failed_without_chat_is_skipped(self):
        self.chat.send_message = AsyncMock()
        task = IngestionTask(task_id="9", kind="ingest-new", payload={})
        asyncio.run(self.service.on_task_failed(task, "boom"))
        self.chat.send_message.assert_not_awaited()
