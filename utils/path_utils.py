import os
import re

_ILLEGAL_PATH_CHARS = re.compile(r'[/\\?%*:|"<>]')
_PERIOD_RUNS = re.compile(r"\.{2,}")


def sanitize_file_name(name: str) -> str:
    """Strips characters illegal in file paths and collapses runs of periods."""
    cleaned = _ILLEGAL_PATH_CHARS.sub("", name)
    cleaned = _PERIOD_RUNS.sub(".", cleaned)
    return cleaned.strip()


def relative_display_path(path: str, media_root: str) -> str:
    """Path as shown to users: the media root prefix is hidden."""
    root = media_root.rstrip("/") + "/"
    if path.startswith(root):
        return path[len(root):]
    return path


def has_file_extension(path: str) -> bool:
    return bool(os.path.splitext(os.path.basename(path))[1])
