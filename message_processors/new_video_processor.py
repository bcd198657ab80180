import logging

from chat_providers.base import BaseChatClient
from confirmation_formatter import ConfirmationFormatter
from infrastructure.models import IngestionTask, TaskResult, VideoInfo, VideoJob
from message_processors.base import BaseTaskProcessor
from services.pending_job_store import PendingJobStore
from services.video_classifier import VideoClassifier
from utils.path_utils import relative_display_path

logger = logging.getLogger(__name__)

class NewVideoProcessor(BaseTaskProcessor):
    """
    ingest-new: proposes a path, parks the video as a pending job keyed by the
    task id and asks the user to confirm. The file is not touched here.
    """

    def __init__(self, classifier: VideoClassifier, store: PendingJobStore, chat_client: BaseChatClient, media_root: str):
        self.classifier = classifier
        self.store = store
        self.chat_client = chat_client
        self.media_root = media_root

    async def process(self, task: IngestionTask) -> TaskResult:
        info = VideoInfo.from_payload(task.payload)
        logger.info(f"INGEST_QUEUE: Classifying \"{info.file_name}\" for task {task.task_id}")

        proposed_path = await self.classifier.classify(info.file_name, info.caption)
        self.store.put(VideoJob.from_video_info(task.task_id, info, proposed_path))

        relative_path = relative_display_path(proposed_path, self.media_root)
        try:
            confirmation_message_id = await self.chat_client.send_message(
                info.chat_id,
                ConfirmationFormatter.proposal_text(relative_path),
                reply_to_message_id=info.message_id,
                reply_markup=ConfirmationFormatter.proposal_keyboard(task.task_id),
                parse_mode=ConfirmationFormatter.PARSE_MODE,
            )
        except Exception:
            # Without a prompt the user has no buttons to act on; the retry creates a fresh job.
            self.store.remove(task.task_id)
            raise

        if confirmation_message_id is not None:
            self.store.set_confirmation_message_id(task.task_id, confirmation_message_id)

        return TaskResult(
            success=False,
            pending=True,
            path=proposed_path,
            message="Waiting for user path confirmation",
        )
