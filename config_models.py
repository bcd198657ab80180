import os
from pydantic import BaseModel, Field
from typing import Optional, Dict


def _env(environ: Dict[str, str], name: str, default: str = "") -> str:
    return (environ.get(name) or default).strip()


def _env_int(environ: Dict[str, str], name: str, default: int) -> int:
    try:
        return int(_env(environ, name, str(default)))
    except ValueError:
        return default


class TelegramConfig(BaseModel):
    bot_token: str = ""
    api_url: str = "https://api.telegram.org"
    webhook_url: Optional[str] = None
    request_timeout_seconds: float = 30.0

class MediaPathsConfig(BaseModel):
    """
    Storage roots. The classifier composes paths under movies_root/shows_root/general_root;
    the path:<type> buttons use the *_override roots when configured.
    """
    media_root: str = "/media-server"
    movies_folder: str = "Movies"
    shows_folder: str = "Shows"
    general_folder: str = "General"
    movies_override: Optional[str] = None
    shows_override: Optional[str] = None
    general_override: Optional[str] = None
    custom_path_strip_prefix: Optional[str] = None

    @property
    def movies_root(self) -> str:
        return os.path.join(self.media_root, self.movies_folder)

    @property
    def shows_root(self) -> str:
        return os.path.join(self.media_root, self.shows_folder)

    @property
    def general_root(self) -> str:
        return os.path.join(self.media_root, self.general_folder)

    def root_for(self, path_type: str) -> str:
        roots = {
            "movies": self.movies_override or self.movies_root,
            "shows": self.shows_override or self.shows_root,
            "general": self.general_override or self.general_root,
        }
        if path_type not in roots:
            raise ValueError(f"Invalid path type: {path_type}")
        return roots[path_type]

class ClassifierConfig(BaseModel):
    enabled: bool = False
    tmdb_api_token: Optional[str] = None
    tmdb_api_url: str = "https://api.themoviedb.org/3"
    lookup_timeout_seconds: float = 10.0
    english_title_threshold: float = 0.7

class IngestionQueueConfig(BaseModel):
    max_attempts: int = 3
    backoff_seconds: float = 3.0
    worker_count: int = 2
    poll_interval_seconds: float = 0.5

class MaterializerConfig(BaseModel):
    shared_source_prefix: str = "/var/lib/telegram-bot-api"
    shared_local_prefix: str = "/app/telegram-server/shared"
    chunk_size: int = 1024 * 1024
    download_timeout_seconds: float = 300.0

class AppConfig(BaseModel):
    mongodb_url: str = "mongodb://mongodb:27017/"
    mongodb_database: str = "media_ingest"
    pending_job_ttl_seconds: int = 3600
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    paths: MediaPathsConfig = Field(default_factory=MediaPathsConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    queue: IngestionQueueConfig = Field(default_factory=IngestionQueueConfig)
    materializer: MaterializerConfig = Field(default_factory=MaterializerConfig)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "AppConfig":
        env = os.environ if environ is None else environ
        return cls(
            mongodb_url=_env(env, "MONGODB_URL", "mongodb://mongodb:27017/"),
            mongodb_database=_env(env, "MONGODB_DATABASE", "media_ingest"),
            pending_job_ttl_seconds=_env_int(env, "PENDING_JOB_TTL_SECONDS", 3600),
            telegram=TelegramConfig(
                bot_token=_env(env, "TELEGRAM_BOT_TOKEN"),
                api_url=_env(env, "TELEGRAM_API_URL", "https://api.telegram.org").rstrip("/"),
                webhook_url=_env(env, "WEBHOOK_URL") or None,
            ),
            paths=MediaPathsConfig(
                media_root=_env(env, "MEDIA_ROOT", "/media-server").rstrip("/") or "/",
                movies_folder=_env(env, "MOVIES_FOLDER", "Movies"),
                shows_folder=_env(env, "SHOWS_FOLDER", "Shows"),
                general_folder=_env(env, "GENERAL_FOLDER", "General"),
                movies_override=_env(env, "MOVIES_PATH") or None,
                shows_override=_env(env, "SHOWS_PATH") or None,
                general_override=_env(env, "GENERAL_PATH") or None,
                custom_path_strip_prefix=_env(env, "CUSTOM_PATH_STRIP_PREFIX") or None,
            ),
            classifier=ClassifierConfig(
                enabled=_env(env, "USE_VIDEO_CLASSIFIER").upper() == "TRUE",
                tmdb_api_token=_env(env, "TMDB_API_TOKEN") or None,
            ),
            queue=IngestionQueueConfig(
                max_attempts=_env_int(env, "QUEUE_MAX_ATTEMPTS", 3),
                backoff_seconds=float(_env_int(env, "QUEUE_BACKOFF_SECONDS", 3)),
                worker_count=_env_int(env, "QUEUE_WORKERS", 2),
            ),
            materializer=MaterializerConfig(
                shared_source_prefix=_env(env, "TELEGRAM_SHARED_SOURCE_PREFIX", "/var/lib/telegram-bot-api"),
                shared_local_prefix=_env(env, "TELEGRAM_SHARED_LOCAL_PREFIX", "/app/telegram-server/shared"),
            ),
        )
