import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from fastapi.concurrency import run_in_threadpool
from guessit import guessit

from config_models import ClassifierConfig, MediaPathsConfig
from services.title_lookup import TitleLookupService
from utils.path_utils import sanitize_file_name

logger = logging.getLogger(__name__)

# Longer markers first so that e.g. "עונות" is not consumed as "ע" + "ונות".
HEBREW_MARKERS = [
    ("פרקים", "episodes"),
    ("עונות", "seasons"),
    ("עונה", "season"),
    ("עונת", "season"),
    ("פרק", "episode"),
    ("ע", "season"),
    ("פ", "episode"),
]

_NOT_AFTER_LETTER = r"(?<![^\W\d_])"


def _marker_replacement(english: str, separator: str):
    def replace(match):
        # "ע1פ3": keep the episode token apart from the preceding season number
        start = match.start()
        lead = " " if start > 0 and match.string[start - 1].isdigit() else ""
        return f"{lead}{english}{separator}{match.group(1)}"
    return replace


@dataclass
class MediaGuess:
    media_type: Optional[str]
    title: Optional[str]
    year: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None

    @property
    def resolved(self) -> bool:
        return self.media_type in ("movie", "episode") and bool(self.title and self.title.strip())


def normalize_release_name(text: str) -> str:
    """
    Rewrites Hebrew season/episode markers to English tokens, collapses whitespace
    and, when both a season and an episode are present, cuts everything after the
    episode number (release groups, quality tags).
    """
    processed = text
    for marker, english in HEBREW_MARKERS:
        processed = re.sub(rf"{_NOT_AFTER_LETTER}{marker}\s+(\d+)", _marker_replacement(english, " "), processed)
        processed = re.sub(rf"{_NOT_AFTER_LETTER}{marker}(\d+)", _marker_replacement(english, ""), processed)

    processed = re.sub(r"\s{2,}", " ", processed).strip()

    lowered = processed.lower()
    if "season" in lowered and "episode" in lowered:
        match = re.match(r"(.*?episode\s*\d+)", processed, re.IGNORECASE)
        if match:
            processed = match.group(1).strip()
    return processed


def latin_fraction(title: str) -> float:
    non_space = re.sub(r"\s", "", title)
    if not non_space:
        return 0.0
    latin = re.findall(r"[a-zA-Z]", title)
    return len(latin) / len(non_space)


def _first_int(value: Any) -> Optional[int]:
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def guess_from_guessit(text: str) -> MediaGuess:
    data: Dict[str, Any] = dict(guessit(text))
    title = data.get("title")
    if isinstance(title, (list, tuple)):
        title = " ".join(str(part) for part in title)
    return MediaGuess(
        media_type=data.get("type"),
        title=str(title) if title else None,
        year=_first_int(data.get("year")),
        season=_first_int(data.get("season")),
        episode=_first_int(data.get("episode")),
    )


class VideoClassifier:
    """
    Proposes a destination path for an incoming video.

    classify() never raises: any parse, lookup or unexpected failure falls back
    to general_root/<file name>.
    """

    def __init__(
        self,
        paths: MediaPathsConfig,
        config: ClassifierConfig,
        title_lookup: Optional[TitleLookupService] = None,
        parser: Callable[[str], MediaGuess] = guess_from_guessit,
    ):
        self.paths = paths
        self.config = config
        self.title_lookup = title_lookup
        self.parser = parser

    def default_path(self, file_name: str) -> str:
        return os.path.join(self.paths.general_root, file_name)

    async def classify(self, file_name: str, caption: Optional[str] = None) -> str:
        if not self.config.enabled:
            return self.default_path(file_name)

        try:
            return await self._classify(file_name, caption)
        except Exception:
            logger.exception(f"CLASSIFIER: Error classifying \"{file_name}\", using general path")
            return self.default_path(file_name)

    async def _classify(self, file_name: str, caption: Optional[str]) -> str:
        guess = await self._guess(file_name)
        if not guess.resolved and caption and caption.strip():
            logger.info(f"CLASSIFIER: Filename unresolved, trying caption \"{caption}\"")
            guess = await self._guess(caption)

        if not guess.resolved:
            logger.info(f"CLASSIFIER: Could not classify \"{file_name}\", using general path")
            return self.default_path(file_name)

        title = await self._english_title(guess)
        safe_title = sanitize_file_name(title)
        if not safe_title:
            return self.default_path(file_name)

        extension = os.path.splitext(file_name)[1]
        folder = f"{safe_title} ({guess.year})" if guess.year else safe_title

        if guess.media_type == "movie":
            return os.path.join(self.paths.movies_root, folder, f"{folder}{extension}")

        season = guess.season if guess.season is not None else 1
        padded_season = f"{season:02d}"
        episode = f"E{guess.episode:02d}" if guess.episode is not None else ""
        return os.path.join(
            self.paths.shows_root,
            folder,
            f"Season {padded_season}",
            f"{safe_title} S{padded_season}{episode}{extension}",
        )

    async def _guess(self, text: str) -> MediaGuess:
        processed = normalize_release_name(text)
        logger.info(f"CLASSIFIER: Original: {text} | Processed: {processed}")
        guess = await run_in_threadpool(self.parser, processed)
        logger.info(f"CLASSIFIER: Parsed {guess}")
        return guess

    async def _english_title(self, guess: MediaGuess) -> str:
        title = guess.title.strip()
        if latin_fraction(title) > self.config.english_title_threshold:
            return title
        if not self.title_lookup:
            return title

        logger.info(f"CLASSIFIER: Title \"{title}\" appears to be non-English, searching title catalog...")
        if guess.media_type == "movie":
            english = await self.title_lookup.find_movie_title(title, guess.year)
        else:
            english = await self.title_lookup.find_show_title(title, guess.year)

        if english:
            logger.info(f"CLASSIFIER: Found English title: \"{english}\"")
            return english
        logger.info(f"CLASSIFIER: No English title found, using original: \"{title}\"")
        return title
