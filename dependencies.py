import logging
from typing import Optional, TYPE_CHECKING

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from config_models import AppConfig
from services.pending_job_store import PendingJobStore

if TYPE_CHECKING:
    from chat_providers.base import BaseChatClient
    from services.ingestion_queue_manager import IngestionQueueManager
    from services.notification_service import NotificationService
    from services.path_confirmation_service import PathConfirmationService
    from services.video_classifier import VideoClassifier

class GlobalStateManager:
    _instance = None

    def __init__(self):
        self.config: AppConfig = AppConfig()

        # MongoDB
        self.mongo_client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

        # State storage
        self.pending_job_store: PendingJobStore = PendingJobStore()

        # Services
        self.chat_client: Optional['BaseChatClient'] = None
        self.video_classifier: Optional['VideoClassifier'] = None
        self.ingestion_queue_manager: Optional['IngestionQueueManager'] = None
        self.notification_service: Optional['NotificationService'] = None
        self.path_confirmation_service: Optional['PathConfirmationService'] = None

    @classmethod
    def get_instance(cls):
        if cls._instance is None:
            cls._instance = GlobalStateManager()
        return cls._instance

    async def initialize_mongodb(self, mongodb_url: str, database_name: str):
        logging.info(f"API: Connecting to MongoDB at {mongodb_url}")
        self.mongo_client = AsyncIOMotorClient(mongodb_url, serverSelectionTimeoutMS=5000)
        # Force connection check
        await self.mongo_client.admin.command('ping')
        self.db = self.mongo_client[database_name]
        logging.info("API: Successfully connected to MongoDB.")

    async def shutdown(self):
        """Cleanup resources on shutdown."""
        if self.ingestion_queue_manager:
            await self.ingestion_queue_manager.stop()

        if self.mongo_client:
            self.mongo_client.close()
            logging.info("API: MongoDB connection closed.")

# Singleton accessor
global_state = GlobalStateManager.get_instance()

def get_global_state() -> GlobalStateManager:
    return GlobalStateManager.get_instance()
