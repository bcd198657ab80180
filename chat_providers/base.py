from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from infrastructure.models import ChatId, FileDescriptor

InlineKeyboard = List[List[Dict[str, str]]]


class BaseChatClient(ABC):
    """
    Abstract base class for the outbound side of a chat platform.
    It defines the operations the ingestion pipeline needs to talk to users.
    """

    @abstractmethod
    async def send_message(
        self,
        chat_id: ChatId,
        text: str,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
        parse_mode: Optional[str] = None,
    ) -> Optional[int]:
        """
        Sends a message and returns the platform message id of the sent message.
        """
        pass

    @abstractmethod
    async def edit_message_text(
        self,
        chat_id: ChatId,
        message_id: int,
        text: str,
        reply_markup: Optional[Dict[str, Any]] = None,
        parse_mode: Optional[str] = None,
    ) -> None:
        """
        Replaces the text (and optionally the inline keyboard) of an existing message.
        """
        pass

    @abstractmethod
    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> None:
        """
        Acknowledges a button press, optionally showing a short toast.
        """
        pass

    @abstractmethod
    async def get_file(self, file_id: str) -> FileDescriptor:
        """
        Resolves a file handle to a transfer descriptor.
        """
        pass

    @abstractmethod
    def build_file_url(self, file_path: str) -> str:
        """
        Returns the download URL for a relative file path returned by get_file.
        """
        pass


def inline_keyboard(rows: InlineKeyboard) -> Dict[str, Any]:
    return {"inline_keyboard": rows}
