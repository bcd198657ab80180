import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

# --- Collection Constants ---
COLLECTION_INGESTION_TASKS_ACTIVE = "ingestion_tasks_active"
COLLECTION_INGESTION_TASKS_FAILED = "ingestion_tasks_failed"
COLLECTION_COUNTERS = "counters"

COUNTER_INGESTION_TASK_ID = "ingestion_task_id"
COUNTER_INGESTION_TASKS_COMPLETED = "ingestion_tasks_completed"

# --- Index Definitions ---

async def create_indexes(db: AsyncIOMotorDatabase):
    """
    Creates all required indexes for the ingestion queue using Motor (Async).
    Called once on startup.
    """
    logger = logging.getLogger("api.schema")

    # 1. Active tasks: claimed by status + due time, looked up by task_id
    try:
        await db[COLLECTION_INGESTION_TASKS_ACTIVE].create_index([("task_id", ASCENDING)], unique=True)
        await db[COLLECTION_INGESTION_TASKS_ACTIVE].create_index(
            [("status", ASCENDING), ("next_attempt_at", ASCENDING), ("created_at", ASCENDING)]
        )
        logger.info(f"Ensured indexes for '{COLLECTION_INGESTION_TASKS_ACTIVE}'.")
    except Exception as e:
        logger.warning(f"Could not create index for {COLLECTION_INGESTION_TASKS_ACTIVE}: {e}")

    # 2. Failed tasks: kept for inspection, looked up by task_id
    try:
        await db[COLLECTION_INGESTION_TASKS_FAILED].create_index([("task_id", ASCENDING)])
        await db[COLLECTION_INGESTION_TASKS_FAILED].create_index([("failed_at", ASCENDING)])
        logger.info(f"Ensured indexes for '{COLLECTION_INGESTION_TASKS_FAILED}'.")
    except Exception as e:
        logger.warning(f"Could not create index for {COLLECTION_INGESTION_TASKS_FAILED}: {e}")
