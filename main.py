import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from chat_providers.base import BaseChatClient
from chat_providers.dummy import DummyChatClient
from chat_providers.telegram_bot_api import TelegramBotApiClient
from config_models import AppConfig
from dependencies import GlobalStateManager, global_state
from infrastructure.db_schema import create_indexes
from message_processors.confirmed_video_processor import ConfirmedVideoProcessor
from message_processors.factory import TaskProcessorFactory
from message_processors.new_video_processor import NewVideoProcessor
from queue_message_types import IngestionTaskKind
from routers import ingestion_queue, webhook
from services.ingestion_queue_manager import IngestionQueueManager, RetryPolicy
from services.materializer import Materializer
from services.notification_service import NotificationService
from services.path_confirmation_service import PathConfirmationService
from services.title_lookup import TitleLookupService
from services.video_classifier import VideoClassifier

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Suppress the default uvicorn access logger; requests are logged by the middleware below.
access_logger = logging.getLogger("uvicorn.access")
access_logger.disabled = True

logger = logging.getLogger(__name__)

PENDING_JOB_SWEEP_INTERVAL_SECONDS = 300

# Background task handles
pending_job_sweep_task: Optional[asyncio.Task] = None
shutdown_event = asyncio.Event()


def create_chat_client(config: AppConfig) -> BaseChatClient:
    if config.telegram.bot_token:
        return TelegramBotApiClient(config.telegram)
    logger.warning("API: TELEGRAM_BOT_TOKEN not set, using DummyChatClient.")
    return DummyChatClient()


def build_services(state: GlobalStateManager, config: AppConfig, chat_client: BaseChatClient):
    """
    Wires the ingestion pipeline onto the global state. Requires state.db.
    """
    state.config = config
    state.chat_client = chat_client

    title_lookup = TitleLookupService(
        config.classifier.tmdb_api_token,
        base_url=config.classifier.tmdb_api_url,
        timeout=config.classifier.lookup_timeout_seconds,
    )
    state.video_classifier = VideoClassifier(config.paths, config.classifier, title_lookup)
    materializer = Materializer(chat_client, config.materializer)

    processor_factory = TaskProcessorFactory()
    processor_factory.register(
        IngestionTaskKind.INGEST_NEW,
        NewVideoProcessor(state.video_classifier, state.pending_job_store, chat_client, config.paths.media_root),
    )
    processor_factory.register(
        IngestionTaskKind.INGEST_CONFIRMED,
        ConfirmedVideoProcessor(materializer, config.paths.media_root),
    )

    state.ingestion_queue_manager = IngestionQueueManager(
        state.db,
        processor_factory,
        retry_policy=RetryPolicy(
            max_attempts=config.queue.max_attempts,
            initial_delay_seconds=config.queue.backoff_seconds,
        ),
        worker_count=config.queue.worker_count,
        poll_interval_seconds=config.queue.poll_interval_seconds,
    )

    state.notification_service = NotificationService(chat_client)
    state.ingestion_queue_manager.add_completed_listener(state.notification_service.on_task_completed)
    state.ingestion_queue_manager.add_failed_listener(state.notification_service.on_task_failed)

    state.path_confirmation_service = PathConfirmationService(
        state.pending_job_store,
        state.ingestion_queue_manager,
        chat_client,
        config.paths,
    )


async def sweep_pending_jobs(state: GlobalStateManager):
    """
    Background task abandoning pending jobs nobody answered.

    Runs every 5 minutes.
    """
    while not shutdown_event.is_set():
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=PENDING_JOB_SWEEP_INTERVAL_SECONDS)
        except asyncio.TimeoutError:
            try:
                expired = state.pending_job_store.expire_older_than(state.config.pending_job_ttl_seconds)
                if expired:
                    logger.info(f"PENDING_JOBS: Abandoned {len(expired)} expired pending jobs")
            except Exception as e:
                logger.error(f"PENDING_JOBS: Error during sweep: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup:
    1. Load configuration and connect to MongoDB
    2. Ensure indexes
    3. Wire services and register the webhook
    4. Start queue workers and the pending-job sweep

    Shutdown stops the workers and closes MongoDB.
    """
    global pending_job_sweep_task

    logger.info("API: Starting up...")
    config = AppConfig.from_env()

    await global_state.initialize_mongodb(config.mongodb_url, config.mongodb_database)
    await create_indexes(global_state.db)

    chat_client = create_chat_client(config)
    build_services(global_state, config, chat_client)

    if config.telegram.webhook_url and isinstance(chat_client, TelegramBotApiClient):
        try:
            await chat_client.set_webhook_if_needed(config.telegram.webhook_url)
        except Exception as e:
            logger.error(f"TELEGRAM: Failed to set webhook: {e}")

    await global_state.ingestion_queue_manager.start()
    shutdown_event.clear()
    pending_job_sweep_task = asyncio.create_task(sweep_pending_jobs(global_state))

    logger.info("API: Initialization complete")

    yield

    logger.info("API: Shutting down...")
    shutdown_event.set()
    if pending_job_sweep_task:
        pending_job_sweep_task.cancel()
    await global_state.shutdown()
    logger.info("API: Shutdown complete")


app = FastAPI(title="Media Ingest Bot", lifespan=lifespan)

app.include_router(webhook.router)
app.include_router(ingestion_queue.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Logs incoming requests in a format similar to uvicorn's access log.
    """
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000
    client = f"{request.client.host}:{request.client.port}" if request.client else "-"
    logger.info(f'{client} - "{request.method} {request.url.path}" {response.status_code} ({process_time:.2f}ms)')
    return response


@app.get("/")
async def root():
    return {"service": "media-ingest-bot", "status": "running"}


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "mongodb": global_state.db is not None,
        "pending_jobs": len(global_state.pending_job_store),
    }
