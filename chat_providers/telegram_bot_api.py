import logging
from typing import Any, Dict, Optional

import httpx

from config_models import TelegramConfig
from infrastructure.exceptions import ChatPlatformError, ChatPlatformMessageError, ConfigurationError
from infrastructure.models import ChatId, FileDescriptor
from .base import BaseChatClient

logger = logging.getLogger(__name__)


class TelegramBotApiClient(BaseChatClient):
    """
    Thin Bot API client over httpx. Works against api.telegram.org or a local
    telegram-bot-api server (which returns absolute file paths from getFile).
    """

    def __init__(self, config: TelegramConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not config.bot_token:
            raise ConfigurationError("TELEGRAM_BOT_TOKEN not set")
        self.config = config
        self.base_url = f"{config.api_url.rstrip('/')}/bot{config.bot_token}"
        self._transport = transport

    async def _call(self, method: str, payload: Dict[str, Any]) -> Any:
        url = f"{self.base_url}/{method}"
        try:
            async with httpx.AsyncClient(timeout=self.config.request_timeout_seconds, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.RequestError as e:
            raise ChatPlatformError(f"Bot API request {method} failed: {e}", original_error=e)

        try:
            body = response.json()
        except ValueError as e:
            raise ChatPlatformError(
                f"Bot API {method} returned non-JSON response (HTTP {response.status_code})", original_error=e
            )

        if not body.get("ok"):
            description = body.get("description") or f"HTTP {response.status_code}"
            raise ChatPlatformMessageError(f"Bot API {method} failed: {description}", description=description)
        return body.get("result")

    async def _call_with_parse_fallback(self, method: str, payload: Dict[str, Any]) -> Any:
        try:
            return await self._call(method, payload)
        except ChatPlatformMessageError as e:
            if not (e.is_parse_error and payload.get("parse_mode")):
                raise
            logger.warning(f"TELEGRAM: Retrying {method} without parse_mode due to parsing error: {e.description}")
            fallback = dict(payload)
            fallback.pop("parse_mode", None)
            return await self._call(method, fallback)

    async def send_message(
        self,
        chat_id: ChatId,
        text: str,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Dict[str, Any]] = None,
        parse_mode: Optional[str] = None,
    ) -> Optional[int]:
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_to_message_id is not None:
            payload["reply_to_message_id"] = reply_to_message_id
            payload["allow_sending_without_reply"] = True
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        if parse_mode:
            payload["parse_mode"] = parse_mode

        result = await self._call_with_parse_fallback("sendMessage", payload)
        return result.get("message_id") if isinstance(result, dict) else None

    async def edit_message_text(
        self,
        chat_id: ChatId,
        message_id: int,
        text: str,
        reply_markup: Optional[Dict[str, Any]] = None,
        parse_mode: Optional[str] = None,
    ) -> None:
        payload: Dict[str, Any] = {"chat_id": chat_id, "message_id": message_id, "text": text}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        if parse_mode:
            payload["parse_mode"] = parse_mode
        await self._call_with_parse_fallback("editMessageText", payload)

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> None:
        payload: Dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        await self._call("answerCallbackQuery", payload)

    async def get_file(self, file_id: str) -> FileDescriptor:
        result = await self._call("getFile", {"file_id": file_id})
        file_path = (result or {}).get("file_path")
        if not file_path:
            raise ChatPlatformError(f"Bot API getFile returned no file_path for {file_id}")
        logger.info(f"TELEGRAM: File path for {file_id}: {file_path}")
        return FileDescriptor(file_id=file_id, file_path=file_path, file_size=result.get("file_size"))

    def build_file_url(self, file_path: str) -> str:
        return f"{self.config.api_url.rstrip('/')}/file/bot{self.config.bot_token}/{file_path.lstrip('/')}"

    async def set_webhook_if_needed(self, webhook_url: str) -> bool:
        """
        Points the bot at webhook_url unless it already is. Returns True when a change was made.
        """
        info = await self._call("getWebhookInfo", {})
        current = (info or {}).get("url") or ""
        logger.info(f"TELEGRAM: Current webhook URL: {current or 'Not set'}")
        if current == webhook_url:
            logger.info(f"TELEGRAM: Webhook already set to: {webhook_url}")
            return False

        await self._call("setWebhook", {"url": webhook_url})
        logger.info(f"TELEGRAM: Webhook successfully set to: {webhook_url}")
        return True
