import logging
import os
import time
from typing import Any, Callable, Dict, Optional

from chat_providers.base import BaseChatClient
from config_models import MediaPathsConfig
from confirmation_formatter import ConfirmationFormatter
from infrastructure.exceptions import InvalidCustomPathError
from infrastructure.models import ChatId, VideoJob
from infrastructure.webhook_events import (
    CallbackActionEvent,
    CallbackActionType,
    NewVideoEvent,
    OtherEvent,
    PathType,
    TextReplyEvent,
    WebhookEvent,
)
from queue_message_types import IngestionTaskKind
from services.ingestion_queue_manager import IngestionQueueManager
from services.pending_job_store import PendingJobStore
from utils.path_utils import has_file_extension, relative_display_path

logger = logging.getLogger(__name__)

NOT_FOUND_TOAST = "Job not found or expired"
UNKNOWN_ACTION_TOAST = "Unknown action"


class PathConfirmationService:
    """
    Drives the per-job confirmation conversation.

    A pending job moves between "awaiting confirmation" and "awaiting custom
    path" until the user accepts it, at which point it leaves the store and an
    ingest-confirmed task is queued. Every outbound chat call is best effort.
    """

    def __init__(
        self,
        store: PendingJobStore,
        queue_manager: IngestionQueueManager,
        chat_client: BaseChatClient,
        paths: MediaPathsConfig,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.queue_manager = queue_manager
        self.chat_client = chat_client
        self.paths = paths
        self.clock = clock
        self._callback_handlers = {
            CallbackActionType.ACCEPT: self._handle_accept,
            CallbackActionType.CHANGE: self._handle_change,
            CallbackActionType.PATH: self._handle_path_selection,
            CallbackActionType.CUSTOM: self._handle_custom_request,
            CallbackActionType.COPY: self._handle_copy,
            CallbackActionType.BACK: self._handle_back,
        }

    async def dispatch(self, event: WebhookEvent):
        if isinstance(event, CallbackActionEvent):
            await self.handle_callback(event)
        elif isinstance(event, TextReplyEvent):
            handled = await self.handle_text_reply(event)
            if not handled:
                logger.debug(f"WEBHOOK: Ignoring text from user {event.user_id}, no job awaits a custom path.")
        elif isinstance(event, NewVideoEvent):
            await self.handle_new_video(event)
        elif isinstance(event, OtherEvent):
            logger.debug(f"WEBHOOK: Ignoring update: {event.reason}")

    def display_path(self, path: str) -> str:
        return relative_display_path(path, self.paths.media_root)

    # --- Callback actions ---

    async def handle_callback(self, event: CallbackActionEvent):
        if event.action is None:
            logger.warning(f"WEBHOOK: Unrecognized callback data {event.raw_data!r}: {event.error}")
            await self._answer(event.callback_query_id, UNKNOWN_ACTION_TOAST)
            return

        job_id = event.action.job_id
        logger.info(f"WEBHOOK: Callback {event.action.action.value} for job {job_id}")

        # accept claims the job by removing it, so a double tap cannot queue it twice.
        if event.action.action == CallbackActionType.ACCEPT:
            job = self.store.remove(job_id)
        else:
            job = self.store.get(job_id)

        if not job:
            await self._answer(event.callback_query_id, NOT_FOUND_TOAST)
            return

        handler = self._callback_handlers[event.action.action]
        await handler(event, job)

    async def _handle_accept(self, event: CallbackActionEvent, job: VideoJob):
        try:
            task_id = await self.queue_manager.enqueue(
                IngestionTaskKind.INGEST_CONFIRMED, job.to_confirmed_info().to_payload()
            )
        except Exception as e:
            logger.error(f"WEBHOOK: Error accepting path for job {job.job_id}: {e}")
            self.store.put(job)
            await self._answer(event.callback_query_id, "Error starting processing")
            return

        logger.info(f"WEBHOOK: Job {job.job_id} accepted with path {job.proposed_path}, queued as task {task_id}")
        await self._edit(
            event.chat_id or job.chat_id,
            event.message_id or job.confirmation_message_id,
            ConfirmationFormatter.confirmed_text(self.display_path(job.proposed_path)),
        )
        await self._answer(event.callback_query_id, "Processing started!")

    async def _handle_change(self, event: CallbackActionEvent, job: VideoJob):
        # Reached from the options button and from "Cancel" on the custom path prompt.
        self.store.clear_waiting_for_custom_path(job.job_id)
        await self._edit(
            event.chat_id or job.chat_id,
            event.message_id or job.confirmation_message_id,
            ConfirmationFormatter.path_options_text(self.display_path(job.proposed_path)),
            ConfirmationFormatter.path_options_keyboard(job.job_id),
        )
        await self._answer(event.callback_query_id, "Choose a new path")

    async def _handle_path_selection(self, event: CallbackActionEvent, job: VideoJob):
        path_type = event.action.path_type
        new_path = self.path_for_type(path_type, job.file_name)
        self.store.update_path(job.job_id, new_path)
        logger.info(f"WEBHOOK: Job {job.job_id} path set to {path_type.value}: {new_path}")

        await self._edit(
            event.chat_id or job.chat_id,
            event.message_id or job.confirmation_message_id,
            ConfirmationFormatter.updated_path_text(self.display_path(new_path)),
            ConfirmationFormatter.updated_path_keyboard(job.job_id),
        )
        await self._answer(event.callback_query_id, f"Path updated to {path_type.value}")

    def path_for_type(self, path_type: PathType, file_name: str) -> str:
        root = self.paths.root_for(path_type.value)
        if path_type == PathType.GENERAL:
            file_name = f"{int(self.clock() * 1000)}_{file_name}"
        return os.path.join(root, file_name)

    async def _handle_custom_request(self, event: CallbackActionEvent, job: VideoJob):
        self.store.set_waiting_for_custom_path(job.job_id)
        await self._edit(
            event.chat_id or job.chat_id,
            event.message_id or job.confirmation_message_id,
            ConfirmationFormatter.custom_path_request_text(
                self.paths.media_root, self.display_path(job.proposed_path), job.file_name
            ),
            ConfirmationFormatter.custom_path_request_keyboard(job.job_id),
        )
        await self._answer(event.callback_query_id, f"Send path after {self.paths.media_root.rstrip('/')}/")

    async def _handle_copy(self, event: CallbackActionEvent, job: VideoJob):
        sent = await self._send(
            event.chat_id or job.chat_id,
            self.display_path(job.proposed_path),
            reply_to_message_id=event.message_id,
        )
        await self._answer(event.callback_query_id, "Path copied!" if sent else "Error copying path")

    async def _handle_back(self, event: CallbackActionEvent, job: VideoJob):
        self.store.clear_waiting_for_custom_path(job.job_id)
        await self._edit(
            event.chat_id or job.chat_id,
            event.message_id or job.confirmation_message_id,
            ConfirmationFormatter.proposal_text(self.display_path(job.proposed_path)),
            ConfirmationFormatter.proposal_keyboard(job.job_id),
        )
        await self._answer(event.callback_query_id)

    # --- Free-text custom path ---

    async def handle_text_reply(self, event: TextReplyEvent) -> bool:
        """
        Treats the text as a custom path when the sender has a job awaiting one.
        Returns False when no such job exists.
        """
        job = self.store.find_waiting_for_custom_path(event.chat_id, event.user_id)
        if not job:
            return False

        logger.info(f"WEBHOOK: Processing custom path input: \"{event.text}\" for job {job.job_id}")
        try:
            full_path = self.resolve_custom_path(event.text)
        except InvalidCustomPathError as e:
            logger.info(f"WEBHOOK: Rejected custom path for job {job.job_id}: {e}")
            await self._send(
                event.chat_id,
                ConfirmationFormatter.invalid_path_text(job.file_name),
                reply_to_message_id=event.message_id,
                parse_mode=ConfirmationFormatter.PARSE_MODE,
            )
            return True

        self.store.update_path(job.job_id, full_path)
        self.store.clear_waiting_for_custom_path(job.job_id)
        logger.info(f"WEBHOOK: Updated job {job.job_id} with custom path: {full_path}")

        relative_path = self.display_path(full_path)
        if job.confirmation_message_id:
            await self._edit(
                event.chat_id,
                job.confirmation_message_id,
                ConfirmationFormatter.custom_path_set_text(relative_path),
                ConfirmationFormatter.custom_path_set_keyboard(job.job_id),
            )
        await self._send(
            event.chat_id,
            ConfirmationFormatter.custom_path_ack_text(relative_path),
            reply_to_message_id=event.message_id,
            parse_mode=ConfirmationFormatter.PARSE_MODE,
        )
        return True

    def resolve_custom_path(self, text: str) -> str:
        """
        Turns user input into an absolute path under the media root.
        Raises InvalidCustomPathError when the input is not a complete file path.
        """
        relative_path = (text or "").strip()
        if relative_path.startswith("/"):
            relative_path = relative_path[1:]

        for prefix in (self.paths.custom_path_strip_prefix, self.paths.media_root):
            if not prefix:
                continue
            bare_prefix = prefix.strip("/") + "/"
            if bare_prefix != "/" and relative_path.startswith(bare_prefix):
                relative_path = relative_path[len(bare_prefix):]

        if not relative_path or not has_file_extension(relative_path):
            raise InvalidCustomPathError(f"Path has no file extension: {relative_path!r}")
        if ".." in relative_path.split("/"):
            raise InvalidCustomPathError(f"Path escapes the media root: {relative_path!r}")

        return os.path.join(self.paths.media_root, relative_path)

    # --- New videos ---

    async def handle_new_video(self, event: NewVideoEvent):
        video = event.video
        logger.info(f"WEBHOOK: Received video \"{video.file_name}\" from user {video.user_id} in chat {video.chat_id}")
        try:
            task_id = await self.queue_manager.enqueue(IngestionTaskKind.INGEST_NEW, video.to_payload())
        except Exception as e:
            logger.error(f"WEBHOOK: Failed to queue video {video.file_id}: {e}")
            await self._send(video.chat_id, ConfirmationFormatter.failure_text(), reply_to_message_id=video.message_id)
            return

        logger.info(f"WEBHOOK: Video queued as task {task_id}")
        await self._send(
            video.chat_id,
            ConfirmationFormatter.processing_started_text(),
            reply_to_message_id=video.message_id,
        )

    # --- Best-effort outbound calls ---

    async def _send(
        self,
        chat_id: ChatId,
        text: str,
        reply_to_message_id: Optional[int] = None,
        parse_mode: Optional[str] = None,
    ) -> bool:
        try:
            await self.chat_client.send_message(
                chat_id, text, reply_to_message_id=reply_to_message_id, parse_mode=parse_mode
            )
            return True
        except Exception as e:
            logger.error(f"WEBHOOK: Failed to send message to chat {chat_id}: {e}")
            return False

    async def _edit(
        self,
        chat_id: Optional[ChatId],
        message_id: Optional[int],
        text: str,
        reply_markup: Optional[Dict[str, Any]] = None,
    ) -> bool:
        if chat_id is None or message_id is None:
            logger.warning("WEBHOOK: No message to edit.")
            return False
        try:
            await self.chat_client.edit_message_text(
                chat_id,
                message_id,
                text,
                reply_markup=reply_markup,
                parse_mode=ConfirmationFormatter.PARSE_MODE,
            )
            return True
        except Exception as e:
            logger.error(f"WEBHOOK: Failed to edit message {message_id} in chat {chat_id}: {e}")
            return False

    async def _answer(self, callback_query_id: str, text: Optional[str] = None):
        try:
            await self.chat_client.answer_callback_query(callback_query_id, text)
        except Exception as e:
            logger.error(f"WEBHOOK: Failed to answer callback {callback_query_id}: {e}")
