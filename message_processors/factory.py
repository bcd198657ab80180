import logging
from typing import Dict, Optional

from infrastructure.exceptions import UnknownTaskKindError
from message_processors.base import BaseTaskProcessor
from queue_message_types import IngestionTaskKind

logger = logging.getLogger(__name__)

class TaskProcessorFactory:
    def __init__(self, processors: Optional[Dict[str, BaseTaskProcessor]] = None):
        self._processors: Dict[str, BaseTaskProcessor] = dict(processors or {})

    def register(self, kind: IngestionTaskKind, processor: BaseTaskProcessor):
        self._processors[kind.value] = processor

    def get_processor(self, kind: str) -> BaseTaskProcessor:
        """
        Returns the processor registered for the given task kind.
        Raises UnknownTaskKindError if the kind is unknown.
        """
        processor = self._processors.get(kind)
        if not processor:
            raise UnknownTaskKindError(f"No processor found for task kind: {kind}")
        return processor
