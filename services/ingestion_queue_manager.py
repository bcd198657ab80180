import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from infrastructure.db_schema import (
    COLLECTION_COUNTERS,
    COLLECTION_INGESTION_TASKS_ACTIVE,
    COLLECTION_INGESTION_TASKS_FAILED,
    COUNTER_INGESTION_TASK_ID,
    COUNTER_INGESTION_TASKS_COMPLETED,
)
from infrastructure.exceptions import UnknownTaskKindError
from infrastructure.models import IngestionTask, TaskResult
from message_processors.factory import TaskProcessorFactory
from queue_message_types import IngestionTaskKind

CompletedListener = Callable[[IngestionTask, TaskResult], Awaitable[None]]
FailedListener = Callable[[IngestionTask, str], Awaitable[None]]


@dataclass
class RetryPolicy:
    """
    Exponential backoff applied by the queue around each processor invocation.
    Attempt N (1-based) that fails is retried after initial_delay * multiplier^(N-1).
    """
    max_attempts: int = 3
    initial_delay_seconds: float = 3.0
    multiplier: float = 2.0

    def backoff_delay(self, attempt: int) -> float:
        return self.initial_delay_seconds * (self.multiplier ** max(attempt - 1, 0))

    def should_retry(self, attempt: int, max_attempts: Optional[int] = None) -> bool:
        limit = max_attempts if max_attempts is not None else self.max_attempts
        return attempt < limit


class IngestionQueueManager:
    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        processor_factory: TaskProcessorFactory,
        retry_policy: Optional[RetryPolicy] = None,
        worker_count: int = 2,
        poll_interval_seconds: float = 0.5,
    ):
        self.db = db

        # Collections
        self.active_collection = self.db[COLLECTION_INGESTION_TASKS_ACTIVE]
        self.failed_collection = self.db[COLLECTION_INGESTION_TASKS_FAILED]
        self.counters_collection = self.db[COLLECTION_COUNTERS]

        self.processor_factory = processor_factory
        self.retry_policy = retry_policy or RetryPolicy()
        self.worker_count = max(1, worker_count)
        self.poll_interval_seconds = poll_interval_seconds

        self.running = False
        self.worker_tasks: List[asyncio.Task] = []
        self._completed_listeners: List[CompletedListener] = []
        self._failed_listeners: List[FailedListener] = []

    def add_completed_listener(self, listener: CompletedListener):
        self._completed_listeners.append(listener)

    def add_failed_listener(self, listener: FailedListener):
        self._failed_listeners.append(listener)

    async def start(self):
        if self.running:
            return
        await self._startup_recovery()
        self.running = True
        for worker_index in range(self.worker_count):
            worker_id = f"ingest-worker-{worker_index}"
            self.worker_tasks.append(asyncio.create_task(self._worker_loop(worker_id)))
        logging.info(f"INGEST_QUEUE: started with {self.worker_count} workers.")

    async def stop(self):
        self.running = False
        for task in self.worker_tasks:
            task.cancel()
        for task in self.worker_tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.worker_tasks.clear()
        logging.info("INGEST_QUEUE: stopped.")

    async def enqueue(self, kind: IngestionTaskKind, payload: Dict[str, Any]) -> str:
        """
        Adds a task to the active queue and returns its id.
        Insert failures propagate so callers can report them to the user.
        """
        task_id = await self._next_task_id()
        now = datetime.utcnow()
        doc = {
            "task_id": task_id,
            "kind": kind.value,
            "payload": payload,
            "status": "pending",
            "attempts": 0,
            "max_attempts": self.retry_policy.max_attempts,
            "created_at": now,
            "next_attempt_at": now,
            "last_error": None,
        }
        await self.active_collection.insert_one(doc)
        logging.info(f"INGEST_QUEUE: Added task {task_id} ({kind.value}) for chat {payload.get('chat_id')}")
        return task_id

    async def _next_task_id(self) -> str:
        counter = await self.counters_collection.find_one_and_update(
            {"_id": COUNTER_INGESTION_TASK_ID},
            {"$inc": {"seq": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return str(counter["seq"])

    async def _startup_recovery(self):
        # Tasks claimed by a worker of a previous process never concluded; make them claimable again.
        result = await self.active_collection.update_many(
            {"status": "processing"},
            {"$set": {"status": "pending", "worker_id": None}},
        )
        if result.modified_count:
            logging.info(f"INGEST_QUEUE: Startup: Reset {result.modified_count} interrupted tasks to pending.")

    async def _worker_loop(self, worker_id: str):
        while self.running:
            try:
                doc = await self._claim_task(worker_id)
                if not doc:
                    await asyncio.sleep(self.poll_interval_seconds)
                    continue
                await self._run_task(doc)
            except asyncio.CancelledError:
                break
            except Exception:
                logging.exception(f"INGEST_QUEUE: {worker_id} loop failure")
                await asyncio.sleep(1)

    async def _claim_task(self, worker_id: str) -> Optional[Dict[str, Any]]:
        now = datetime.utcnow()
        return await self.active_collection.find_one_and_update(
            {"status": "pending", "next_attempt_at": {"$lte": now}},
            {
                "$set": {"status": "processing", "worker_id": worker_id, "started_at": now},
                "$inc": {"attempts": 1},
            },
            sort=[("next_attempt_at", 1), ("created_at", 1)],
            return_document=ReturnDocument.AFTER,
        )

    def _doc_to_task(self, doc: Dict[str, Any]) -> IngestionTask:
        return IngestionTask(
            task_id=doc["task_id"],
            kind=doc["kind"],
            payload=doc.get("payload") or {},
            attempts=doc.get("attempts", 0),
            max_attempts=doc.get("max_attempts", self.retry_policy.max_attempts),
            created_at=doc.get("created_at"),
            last_error=doc.get("last_error"),
        )

    async def _run_task(self, doc: Dict[str, Any]):
        task = self._doc_to_task(doc)
        logging.info(
            f"INGEST_QUEUE: Processing task {task.task_id} ({task.kind}) attempt {task.attempts}/{task.max_attempts}"
        )

        try:
            processor = self.processor_factory.get_processor(task.kind)
        except UnknownTaskKindError as e:
            logging.error(f"INGEST_QUEUE: {e}. Moving task {task.task_id} to FAILED queue.")
            await self._archive_failed(doc, str(e))
            await self._emit_failed(task, str(e))
            return

        try:
            result = await processor.process(task)
        except Exception as e:
            try:
                await self._handle_failure(doc, task, e)
            except Exception as bookkeeping_error:
                logging.error(f"INGEST_QUEUE: Could not record failure of task {task.task_id}: {bookkeeping_error}")
                await self._release_task(task.task_id, str(e) or e.__class__.__name__)
            return

        try:
            await self.active_collection.delete_one({"task_id": task.task_id})
        except Exception as e:
            logging.error(f"INGEST_QUEUE: Could not remove completed task {task.task_id}: {e}")
            await self._release_task(task.task_id, f"Completion bookkeeping failed: {e}")
            return

        try:
            await self.counters_collection.update_one(
                {"_id": COUNTER_INGESTION_TASKS_COMPLETED}, {"$inc": {"seq": 1}}, upsert=True
            )
        except Exception as e:
            logging.error(f"INGEST_QUEUE: Could not bump completed counter for task {task.task_id}: {e}")
        logging.info(f"INGEST_QUEUE: Task {task.task_id} completed. Removed from queue.")
        await self._emit_completed(task, result)

    async def _release_task(self, task_id: str, error_text: str):
        # Hands a task stuck in "processing" back to the workers.
        try:
            await self.active_collection.update_one(
                {"task_id": task_id, "status": "processing"},
                {
                    "$set": {
                        "status": "pending",
                        "worker_id": None,
                        "last_error": error_text,
                        "next_attempt_at": datetime.utcnow(),
                    }
                },
            )
            logging.warning(f"INGEST_QUEUE: Task {task_id} released back to pending.")
        except Exception as e:
            logging.error(f"INGEST_QUEUE: Could not release task {task_id}, it stays processing until restart: {e}")

    async def _handle_failure(self, doc: Dict[str, Any], task: IngestionTask, error: Exception):
        error_text = str(error) or error.__class__.__name__
        if self.retry_policy.should_retry(task.attempts, task.max_attempts):
            delay = self.retry_policy.backoff_delay(task.attempts)
            logging.warning(
                f"INGEST_QUEUE: Task {task.task_id} failed (attempt {task.attempts}/{task.max_attempts}): "
                f"{error_text}. Retrying in {delay:.1f}s."
            )
            await self.active_collection.update_one(
                {"task_id": task.task_id},
                {
                    "$set": {
                        "status": "pending",
                        "worker_id": None,
                        "last_error": error_text,
                        "next_attempt_at": datetime.utcnow() + timedelta(seconds=delay),
                    }
                },
            )
            return

        logging.error(
            f"INGEST_QUEUE: Task {task.task_id} reached max attempts ({task.max_attempts}): {error_text}. "
            "Moving to FAILED queue."
        )
        task.last_error = error_text
        await self._archive_failed(doc, error_text)
        await self._emit_failed(task, error_text)

    async def _archive_failed(self, doc: Dict[str, Any], error: str):
        failed_doc = dict(doc)
        failed_doc.pop("_id", None)
        failed_doc["status"] = "failed"
        failed_doc["last_error"] = error
        failed_doc["failed_at"] = datetime.utcnow()
        await self.failed_collection.insert_one(failed_doc)
        await self.active_collection.delete_one({"task_id": doc["task_id"]})

    async def _emit_completed(self, task: IngestionTask, result: TaskResult):
        for listener in self._completed_listeners:
            try:
                await listener(task, result)
            except Exception:
                logging.exception(f"INGEST_QUEUE: completed listener failed for task {task.task_id}")

    async def _emit_failed(self, task: IngestionTask, error: str):
        for listener in self._failed_listeners:
            try:
                await listener(task, error)
            except Exception:
                logging.exception(f"INGEST_QUEUE: failed listener failed for task {task.task_id}")

    # --- Inspection ---

    def _get_collection(self, queue_type: str):
        if queue_type == "active":
            return self.active_collection
        elif queue_type == "failed":
            return self.failed_collection
        raise ValueError(f"Invalid queue_type: {queue_type}")

    async def get_status(self) -> Dict[str, int]:
        now = datetime.utcnow()
        waiting = await self.active_collection.count_documents({"status": "pending", "next_attempt_at": {"$lte": now}})
        delayed = await self.active_collection.count_documents({"status": "pending", "next_attempt_at": {"$gt": now}})
        active = await self.active_collection.count_documents({"status": "processing"})
        failed = await self.failed_collection.count_documents({})
        counter = await self.counters_collection.find_one({"_id": COUNTER_INGESTION_TASKS_COMPLETED})
        completed = counter.get("seq", 0) if counter else 0
        return {
            "active": active,
            "completed": completed,
            "failed": failed,
            "delayed": delayed,
            "waiting": waiting,
            "total": active + completed + failed + delayed + waiting,
        }

    async def get_tasks(self, queue_type: str) -> List[Dict[str, Any]]:
        collection = self._get_collection(queue_type)
        items = []
        async for item in collection.find({}, {"_id": 0}).sort("created_at", 1):
            items.append(item)
        return items

    async def delete_task(self, queue_type: str, task_id: str) -> bool:
        """
        Deletes a specific task by task_id from the specified queue.
        Returns True if deleted, False if not found.
        """
        collection = self._get_collection(queue_type)
        result = await collection.delete_one({"task_id": task_id})
        if result.deleted_count > 0:
            logging.info(f"INGEST_QUEUE: Deleted task {task_id} from {queue_type} queue.")
            return True
        logging.warning(f"INGEST_QUEUE: Task {task_id} not found in {queue_type} queue for deletion.")
        return False

    async def clear_active(self) -> int:
        """Drops tasks that are not currently being processed."""
        result = await self.active_collection.delete_many({"status": "pending"})
        logging.info(f"INGEST_QUEUE: Cleared {result.deleted_count} pending tasks.")
        return result.deleted_count
