import logging
from typing import Any, Dict, List, Optional

from infrastructure.exceptions import ChatPlatformError
from infrastructure.models import ChatId, FileDescriptor
from .base import BaseChatClient


class DummyChatClient(BaseChatClient):
    """
    An in-memory chat client. Records every outbound call instead of talking to a
    platform, and resolves file handles from a dict registered with add_file().
    Used when no bot token is configured and throughout the test suite.
    """

    def __init__(self, download_base_url: str = "http://dummy-chat.local/files"):
        self.download_base_url = download_base_url.rstrip("/")
        self.sent_messages: List[Dict[str, Any]] = []
        self.edited_messages: List[Dict[str, Any]] = []
        self.callback_answers: List[Dict[str, Any]] = []
        self.files: Dict[str, str] = {}
        self.fail_sends = False
        self._next_message_id = 1000
        logging.info("Initialized DummyChatClient")

    def add_file(self, file_id: str, file_path: str):
        self.files[file_id] = file_path

    async def send_message(
        self,
        chat_id: ChatId,
        text: str,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
        parse_mode: Optional[str] = None,
    ) -> Optional[int]:
        if self.fail_sends:
            raise ChatPlatformError("DummyChatClient configured to fail sends")
        self._next_message_id += 1
        self.sent_messages.append({
            "message_id": self._next_message_id,
            "chat_id": chat_id,
            "text": text,
            "reply_to_message_id": reply_to_message_id,
            "reply_markup": reply_markup,
            "parse_mode": parse_mode,
        })
        logging.info(f"DUMMY CHAT: sent message {self._next_message_id} to {chat_id}")
        return self._next_message_id

    async def edit_message_text(
        self,
        chat_id: ChatId,
        message_id: int,
        text: str,
        reply_markup: Optional[Dict[str, Any]] = None,
        parse_mode: Optional[str] = None,
    ) -> None:
        if self.fail_sends:
            raise ChatPlatformError("DummyChatClient configured to fail edits")
        self.edited_messages.append({
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "reply_markup": reply_markup,
            "parse_mode": parse_mode,
        })

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> None:
        self.callback_answers.append({"callback_query_id": callback_query_id, "text": text})

    async def get_file(self, file_id: str) -> FileDescriptor:
        if file_id not in self.files:
            raise ChatPlatformError(f"Unknown file_id: {file_id}")
        return FileDescriptor(file_id=file_id, file_path=self.files[file_id])

    def build_file_url(self, file_path: str) -> str:
        return f"{self.download_base_url}/{file_path.lstrip('/')}"
