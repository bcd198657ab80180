"""
Boundary decoding of Telegram webhook updates.

The loosely-typed update JSON is turned into one of four event variants before
any pipeline logic runs: NewVideoEvent, CallbackActionEvent, TextReplyEvent or
OtherEvent. Callback button data ("action:jobId[:param]") is decoded into a
CallbackAction here as well, so nothing downstream branches on raw strings.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from infrastructure.models import ChatId, VideoInfo
from utils.path_utils import sanitize_file_name


VIDEO_MIME_TYPES = {
    "video/mp4",
    "video/mpeg",
    "video/quicktime",
    "video/x-msvideo",
    "video/x-flv",
    "video/webm",
    "video/x-matroska",
}

MIME_EXTENSIONS = {
    "video/mp4": "mp4",
    "video/mpeg": "mpeg",
    "video/quicktime": "mov",
    "video/x-msvideo": "avi",
    "video/x-flv": "flv",
    "video/webm": "webm",
    "video/x-matroska": "mkv",
}


class CallbackActionType(str, Enum):
    ACCEPT = "accept"
    CHANGE = "change"
    PATH = "path"
    CUSTOM = "custom"
    COPY = "copy"
    BACK = "back"


class PathType(str, Enum):
    MOVIES = "movies"
    SHOWS = "shows"
    GENERAL = "general"


@dataclass(frozen=True)
class CallbackAction:
    action: CallbackActionType
    job_id: str
    path_type: Optional[PathType] = None

    def encode(self) -> str:
        parts = [self.action.value, self.job_id]
        if self.path_type is not None:
            parts.append(self.path_type.value)
        return ":".join(parts)


class CallbackDataError(ValueError):
    pass


def parse_callback_data(data: str) -> CallbackAction:
    """Decodes "action:jobId[:param]". Raises CallbackDataError for anything else."""
    parts = (data or "").split(":")
    if len(parts) < 2 or not parts[1]:
        raise CallbackDataError(f"Malformed callback data: {data!r}")

    try:
        action = CallbackActionType(parts[0])
    except ValueError:
        raise CallbackDataError(f"Unknown callback action: {parts[0]!r}")

    path_type = None
    if action == CallbackActionType.PATH:
        if len(parts) < 3:
            raise CallbackDataError(f"Missing path type in callback data: {data!r}")
        try:
            path_type = PathType(parts[2])
        except ValueError:
            raise CallbackDataError(f"Invalid path type: {parts[2]!r}")

    return CallbackAction(action=action, job_id=parts[1], path_type=path_type)


@dataclass
class NewVideoEvent:
    video: VideoInfo


@dataclass
class CallbackActionEvent:
    callback_query_id: str
    chat_id: Optional[ChatId]
    message_id: Optional[int]
    user_id: Optional[int]
    raw_data: str
    action: Optional[CallbackAction] = None
    error: Optional[str] = None


@dataclass
class TextReplyEvent:
    chat_id: ChatId
    user_id: int
    message_id: int
    text: str


@dataclass
class OtherEvent:
    reason: str = "unhandled update"


WebhookEvent = Union[NewVideoEvent, CallbackActionEvent, TextReplyEvent, OtherEvent]


def is_video_document(document: Dict[str, Any]) -> bool:
    return document.get("mime_type") in VIDEO_MIME_TYPES


def infer_extension(mime_type: Optional[str]) -> str:
    if not mime_type:
        return "mp4"
    if mime_type in MIME_EXTENSIONS:
        return MIME_EXTENSIONS[mime_type]
    return mime_type.split("/")[-1] or "mp4"


def resolve_file_name(media: Dict[str, Any], caption: Optional[str], now_ms: Optional[int] = None) -> str:
    """
    Declared file name, else caption + extension inferred from the MIME type,
    else a timestamp-based synthetic name.
    """
    declared = (media.get("file_name") or "").strip()
    if declared:
        return declared

    if caption and caption.strip():
        base = sanitize_file_name(" ".join(caption.split()))
        if base:
            return f"{base}.{infer_extension(media.get('mime_type'))}"

    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"video_{stamp}.mp4"


def _decode_callback(callback: Dict[str, Any]) -> CallbackActionEvent:
    message = callback.get("message") or {}
    chat = message.get("chat") or {}
    sender = callback.get("from") or {}
    raw_data = callback.get("data") or ""

    event = CallbackActionEvent(
        callback_query_id=str(callback.get("id", "")),
        chat_id=chat.get("id"),
        message_id=message.get("message_id"),
        user_id=sender.get("id"),
        raw_data=raw_data,
    )
    try:
        event.action = parse_callback_data(raw_data)
    except CallbackDataError as e:
        event.error = str(e)
    return event


def decode_update(update: Dict[str, Any]) -> WebhookEvent:
    if not isinstance(update, dict):
        return OtherEvent("update is not an object")

    callback = update.get("callback_query")
    if isinstance(callback, dict):
        return _decode_callback(callback)

    message = update.get("message")
    if not isinstance(message, dict):
        return OtherEvent("no message")

    chat_id = (message.get("chat") or {}).get("id")
    user_id = (message.get("from") or {}).get("id")
    message_id = message.get("message_id")
    if chat_id is None or user_id is None:
        return OtherEvent("message without chat or sender")

    video = message.get("video")
    document = message.get("document")
    text = message.get("text")

    if isinstance(text, str) and not video and not document:
        return TextReplyEvent(chat_id=chat_id, user_id=user_id, message_id=message_id, text=text)

    media = None
    if isinstance(video, dict):
        media = video
    elif isinstance(document, dict) and is_video_document(document):
        media = document

    if not media or not media.get("file_id"):
        return OtherEvent("message carries no video")

    caption = message.get("caption")
    return NewVideoEvent(
        video=VideoInfo(
            file_id=media["file_id"],
            file_name=resolve_file_name(media, caption),
            chat_id=chat_id,
            user_id=user_id,
            message_id=message_id,
            caption=caption,
        )
    )
