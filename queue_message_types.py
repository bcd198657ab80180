from enum import Enum

class IngestionTaskKind(str, Enum):
    INGEST_NEW = "ingest-new"
    INGEST_CONFIRMED = "ingest-confirmed"
