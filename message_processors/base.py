from abc import ABC, abstractmethod
import logging

from infrastructure.models import IngestionTask, TaskResult

logger = logging.getLogger(__name__)

class BaseTaskProcessor(ABC):
    """
    Abstract base class for handling the different kinds of queued ingestion tasks.
    """

    @abstractmethod
    async def process(self, task: IngestionTask) -> TaskResult:
        """
        Process a claimed task.

        Args:
            task: The task claimed from the ingestion queue.

        Returns:
            The TaskResult handed to the queue's completed listeners.

        Raises:
            Exception: Any failure. The queue applies its retry policy.
        """
        pass
