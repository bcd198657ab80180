import logging
import threading
import time
from dataclasses import replace
from typing import Dict, List, Optional

from infrastructure.models import ChatId, VideoJob

logger = logging.getLogger(__name__)


class PendingJobStore:
    """
    In-memory registry of videos awaiting path confirmation, keyed by job id.

    Webhook handlers and queue workers share one instance; every operation runs
    under a single lock and hands out copies, so callers never mutate stored jobs.
    Only one job per (chat, user) may wait for a free-text path at a time:
    flagging a job clears the flag on that user's other jobs.
    """

    def __init__(self, lock: Optional[threading.Lock] = None):
        self._jobs: Dict[str, VideoJob] = {}
        self._lock = lock or threading.Lock()

    def put(self, job: VideoJob) -> None:
        with self._lock:
            stored = replace(job, job_id=str(job.job_id), updated_at=time.time())
            self._jobs[stored.job_id] = stored
        logger.info(f"PENDING_JOBS: Stored pending job {job.job_id} for user confirmation")

    def get(self, job_id: str) -> Optional[VideoJob]:
        with self._lock:
            job = self._jobs.get(str(job_id))
            return replace(job) if job else None

    def remove(self, job_id: str) -> Optional[VideoJob]:
        with self._lock:
            job = self._jobs.pop(str(job_id), None)
        if job:
            logger.info(f"PENDING_JOBS: Removed pending job {job_id}")
        return job

    def list_jobs(self) -> List[VideoJob]:
        with self._lock:
            return [replace(job) for job in self._jobs.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def update_path(self, job_id: str, new_path: str) -> bool:
        with self._lock:
            job = self._jobs.get(str(job_id))
            if not job:
                return False
            job.proposed_path = new_path
            job.updated_at = time.time()
        logger.info(f"PENDING_JOBS: Updated path for job {job_id} to: {new_path}")
        return True

    def set_confirmation_message_id(self, job_id: str, confirmation_message_id: int) -> bool:
        with self._lock:
            job = self._jobs.get(str(job_id))
            if not job:
                return False
            job.confirmation_message_id = confirmation_message_id
            job.updated_at = time.time()
            return True

    def set_waiting_for_custom_path(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.get(str(job_id))
            if not job:
                return False
            for other in self._jobs.values():
                if other is job or not other.waiting_for_custom_path:
                    continue
                if str(other.chat_id) == str(job.chat_id) and str(other.user_id) == str(job.user_id):
                    other.waiting_for_custom_path = False
                    logger.info(
                        f"PENDING_JOBS: Job {other.job_id} stopped waiting for custom path, superseded by job {job.job_id}"
                    )
            job.waiting_for_custom_path = True
            job.updated_at = time.time()
        logger.info(f"PENDING_JOBS: Job {job_id} is now waiting for custom path input")
        return True

    def clear_waiting_for_custom_path(self, job_id: str) -> bool:
        with self._lock:
            job = self._jobs.get(str(job_id))
            if not job:
                return False
            job.waiting_for_custom_path = False
            job.updated_at = time.time()
        logger.info(f"PENDING_JOBS: Job {job_id} is no longer waiting for custom path input")
        return True

    def find_waiting_for_custom_path(self, chat_id: ChatId, user_id: int) -> Optional[VideoJob]:
        with self._lock:
            for job in self._jobs.values():
                if (
                    job.waiting_for_custom_path
                    and str(job.chat_id) == str(chat_id)
                    and str(job.user_id) == str(user_id)
                ):
                    return replace(job)
        return None

    def expire_older_than(self, ttl_seconds: float, now: Optional[float] = None) -> List[str]:
        """Drops jobs untouched for longer than ttl_seconds. Returns the dropped ids."""
        cutoff = (now if now is not None else time.time()) - ttl_seconds
        with self._lock:
            expired = [job_id for job_id, job in self._jobs.items() if job.updated_at < cutoff]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            logger.info(f"PENDING_JOBS: Abandoned {len(expired)} expired pending job(s): {expired}")
        return expired
