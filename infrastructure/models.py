import time
from dataclasses import asdict, dataclass, field, fields
from datetime import datetime
from typing import Any, Dict, Optional, Union


ChatId = Union[int, str]


@dataclass
class VideoInfo:
    file_id: str
    file_name: str
    chat_id: ChatId
    user_id: int
    message_id: int
    caption: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "VideoInfo":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in payload.items() if key in known})

    def to_payload(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ConfirmedVideoInfo(VideoInfo):
    target_file_path: str = ""


@dataclass
class VideoJob:
    """
    A video waiting for the user to confirm (or override) its destination path.
    Owned by the PendingJobStore; everything else works on snapshots.
    """
    job_id: str
    file_id: str
    file_name: str
    chat_id: ChatId
    user_id: int
    message_id: int
    proposed_path: str
    caption: Optional[str] = None
    confirmation_message_id: Optional[int] = None
    waiting_for_custom_path: bool = False
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    @classmethod
    def from_video_info(cls, job_id: str, info: VideoInfo, proposed_path: str) -> "VideoJob":
        return cls(
            job_id=job_id,
            file_id=info.file_id,
            file_name=info.file_name,
            chat_id=info.chat_id,
            user_id=info.user_id,
            message_id=info.message_id,
            caption=info.caption,
            proposed_path=proposed_path,
        )

    def to_confirmed_info(self) -> ConfirmedVideoInfo:
        return ConfirmedVideoInfo(
            file_id=self.file_id,
            file_name=self.file_name,
            chat_id=self.chat_id,
            user_id=self.user_id,
            message_id=self.message_id,
            caption=self.caption,
            target_file_path=self.proposed_path,
        )


@dataclass
class IngestionTask:
    task_id: str
    kind: str
    payload: Dict[str, Any]
    attempts: int = 0
    max_attempts: int = 3
    created_at: Optional[datetime] = None
    last_error: Optional[str] = None


@dataclass
class NotificationInstruction:
    chat_id: ChatId
    text: str
    reply_to_message_id: Optional[int] = None
    parse_mode: Optional[str] = None


@dataclass
class TaskResult:
    success: bool
    pending: bool = False
    path: Optional[str] = None
    message: Optional[str] = None
    notification: Optional[NotificationInstruction] = None


@dataclass
class FileDescriptor:
    file_id: str
    file_path: str
    file_size: Optional[int] = None
