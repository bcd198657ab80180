import logging

from chat_providers.base import BaseChatClient
from confirmation_formatter import ConfirmationFormatter
from infrastructure.models import IngestionTask, TaskResult

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Tells users how their queued task ended. Registered as a completed/failed
    listener on the ingestion queue. Delivery is best effort: errors are logged
    and never propagate back into the queue.
    """

    def __init__(self, chat_client: BaseChatClient):
        self.chat_client = chat_client

    async def on_task_completed(self, task: IngestionTask, result: TaskResult):
        logger.info(f"NOTIFY: Task {task.task_id} completed (success={result.success}, pending={result.pending})")
        notification = result.notification
        if not notification:
            return

        try:
            await self.chat_client.send_message(
                notification.chat_id,
                notification.text,
                reply_to_message_id=notification.reply_to_message_id,
                parse_mode=notification.parse_mode,
            )
            logger.info(f"NOTIFY: Notification sent to chat {notification.chat_id}")
        except Exception as e:
            logger.error(f"NOTIFY: Failed to send notification for task {task.task_id}: {e}")

    async def on_task_failed(self, task: IngestionTask, error: str):
        logger.error(f"NOTIFY: Task {task.task_id} failed with error: {error}")
        chat_id = task.payload.get("chat_id")
        if chat_id is None:
            logger.warning(f"NOTIFY: Task {task.task_id} has no chat to notify.")
            return

        try:
            await self.chat_client.send_message(
                chat_id,
                ConfirmationFormatter.failure_text(),
                reply_to_message_id=task.payload.get("message_id"),
            )
        except Exception as e:
            logger.error(f"NOTIFY: Failed to send error notification for task {task.task_id}: {e}")
