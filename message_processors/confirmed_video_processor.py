import logging

from confirmation_formatter import ConfirmationFormatter
from infrastructure.models import ConfirmedVideoInfo, IngestionTask, NotificationInstruction, TaskResult
from message_processors.base import BaseTaskProcessor
from services.materializer import Materializer
from utils.path_utils import relative_display_path

logger = logging.getLogger(__name__)

class ConfirmedVideoProcessor(BaseTaskProcessor):
    """ingest-confirmed: writes the file to the accepted path and hands back a success notice."""

    def __init__(self, materializer: Materializer, media_root: str):
        self.materializer = materializer
        self.media_root = media_root

    async def process(self, task: IngestionTask) -> TaskResult:
        info = ConfirmedVideoInfo.from_payload(task.payload)
        await self.materializer.materialize(info.file_id, info.target_file_path)

        relative_path = relative_display_path(info.target_file_path, self.media_root)
        return TaskResult(
            success=True,
            path=info.target_file_path,
            message="Video processed successfully",
            notification=NotificationInstruction(
                chat_id=info.chat_id,
                text=ConfirmationFormatter.success_text(relative_path),
                reply_to_message_id=info.message_id,
                parse_mode=ConfirmationFormatter.PARSE_MODE,
            ),
        )
