import pytest

from config_models import AppConfig, MediaPathsConfig


def test_defaults_from_empty_environment():
    config = AppConfig.from_env({})

    assert config.mongodb_url == "mongodb://mongodb:27017/"
    assert config.paths.movies_root == "/media-server/Movies"
    assert config.paths.shows_root == "/media-server/Shows"
    assert config.paths.general_root == "/media-server/General"
    assert config.classifier.enabled is False
    assert config.queue.max_attempts == 3
    assert config.queue.backoff_seconds == 3.0
    assert config.pending_job_ttl_seconds == 3600
    assert config.telegram.webhook_url is None


def test_environment_overrides():
    config = AppConfig.from_env({
        "TELEGRAM_BOT_TOKEN": "123:abc",
        "MEDIA_ROOT": "/data/",
        "MOVIES_FOLDER": "Films",
        "SHOWS_PATH": "/mnt/tv",
        "USE_VIDEO_CLASSIFIER": "true",
        "TMDB_API_TOKEN": "tmdb",
        "QUEUE_MAX_ATTEMPTS": "5",
        "QUEUE_WORKERS": "not-a-number",
    })

    assert config.telegram.bot_token == "123:abc"
    assert config.paths.movies_root == "/data/Films"
    assert config.paths.root_for("movies") == "/data/Films"
    assert config.paths.root_for("shows") == "/mnt/tv"
    assert config.classifier.enabled is True
    assert config.classifier.tmdb_api_token == "tmdb"
    assert config.queue.max_attempts == 5
    assert config.queue.worker_count == 2


def test_root_for_rejects_unknown_type():
    with pytest.raises(ValueError):
        MediaPathsConfig().root_for("music")
