"""
Unit tests for VideoClassifier and the release-name helpers.

Note: Uses asyncio.run() instead of pytest-asyncio to avoid external dependency.
"""

import asyncio
import pytest
from unittest.mock import AsyncMock, MagicMock

from config_models import ClassifierConfig, MediaPathsConfig
from services.video_classifier import (
    MediaGuess,
    VideoClassifier,
    latin_fraction,
    normalize_release_name,
)
from utils.path_utils import sanitize_file_name


def stub_parser(guess: MediaGuess):
    return lambda text: guess


class TestVideoClassifier:

    def setup_method(self):
        self.paths = MediaPathsConfig()
        self.enabled = ClassifierConfig(enabled=True)

    def test_movie_with_year(self):
        classifier = VideoClassifier(self.paths, self.enabled)
        path = asyncio.run(classifier.classify("The.Matrix.1999.mkv"))
        assert path == "/media-server/Movies/The Matrix (1999)/The Matrix (1999).mkv"

    def test_episode_without_year(self):
        classifier = VideoClassifier(self.paths, self.enabled)
        path = asyncio.run(classifier.classify("Show.S01E03.mkv"))
        assert path == "/media-server/Shows/Show/Season 01/Show S01E03.mkv"

    def test_episode_number_omitted_when_absent(self):
        guess = MediaGuess(media_type="episode", title="Show", year=2020, season=2)
        classifier = VideoClassifier(self.paths, self.enabled, parser=stub_parser(guess))
        path = asyncio.run(classifier.classify("whatever.mp4"))
        assert path == "/media-server/Shows/Show (2020)/Season 02/Show S02.mp4"

    def test_season_defaults_to_one(self):
        guess = MediaGuess(media_type="episode", title="Show", episode=7)
        classifier = VideoClassifier(self.paths, self.enabled, parser=stub_parser(guess))
        path = asyncio.run(classifier.classify("whatever.mkv"))
        assert path == "/media-server/Shows/Show/Season 01/Show S01E07.mkv"

    def test_disabled_returns_general_path_verbatim(self):
        parser = MagicMock()
        classifier = VideoClassifier(self.paths, ClassifierConfig(enabled=False), parser=parser)
        path = asyncio.run(classifier.classify("The.Matrix.1999.mkv"))
        assert path == "/media-server/General/The.Matrix.1999.mkv"
        parser.assert_not_called()

    def test_unresolved_guess_falls_back_to_general(self):
        guess = MediaGuess(media_type=None, title=None)
        classifier = VideoClassifier(self.paths, self.enabled, parser=stub_parser(guess))
        assert asyncio.run(classifier.classify("clip.mp4")) == "/media-server/General/clip.mp4"

    def test_caption_used_when_file_name_unresolved(self):
        results = {
            "video_1700000000000.mp4": MediaGuess(media_type=None, title=None),
            "Inception 2010": MediaGuess(media_type="movie", title="Inception", year=2010),
        }
        classifier = VideoClassifier(self.paths, self.enabled, parser=lambda text: results[text])
        path = asyncio.run(classifier.classify("video_1700000000000.mp4", caption="Inception 2010"))
        assert path == "/media-server/Movies/Inception (2010)/Inception (2010).mp4"

    def test_parser_error_is_absorbed(self):
        def broken(text):
            raise RuntimeError("parser crashed")

        classifier = VideoClassifier(self.paths, self.enabled, parser=broken)
        assert asyncio.run(classifier.classify("anything.mkv")) == "/media-server/General/anything.mkv"

    def test_lookup_error_is_absorbed(self):
        guess = MediaGuess(media_type="movie", title="המטריקס", year=1999)
        lookup = MagicMock()
        lookup.find_movie_title = AsyncMock(side_effect=RuntimeError("boom"))
        classifier = VideoClassifier(self.paths, self.enabled, title_lookup=lookup, parser=stub_parser(guess))
        assert asyncio.run(classifier.classify("x.mkv")) == "/media-server/General/x.mkv"

    def test_non_english_title_is_looked_up(self):
        guess = MediaGuess(media_type="movie", title="המטריקס", year=1999)
        lookup = MagicMock()
        lookup.find_movie_title = AsyncMock(return_value="The Matrix")
        classifier = VideoClassifier(self.paths, self.enabled, title_lookup=lookup, parser=stub_parser(guess))

        path = asyncio.run(classifier.classify("x.mkv"))

        assert path == "/media-server/Movies/The Matrix (1999)/The Matrix (1999).mkv"
        lookup.find_movie_title.assert_awaited_once_with("המטריקס", 1999)

    def test_show_lookup_uses_show_catalog(self):
        guess = MediaGuess(media_type="episode", title="הבורר", season=2, episode=5)
        lookup = MagicMock()
        lookup.find_show_title = AsyncMock(return_value=None)
        lookup.find_movie_title = AsyncMock()
        classifier = VideoClassifier(self.paths, self.enabled, title_lookup=lookup, parser=stub_parser(guess))

        path = asyncio.run(classifier.classify("x.mkv"))

        assert path == "/media-server/Shows/הבורר/Season 02/הבורר S02E05.mkv"
        lookup.find_movie_title.assert_not_called()

    def test_english_title_skips_lookup(self):
        guess = MediaGuess(media_type="movie", title="Heat", year=1995)
        lookup = MagicMock()
        lookup.find_movie_title = AsyncMock()
        classifier = VideoClassifier(self.paths, self.enabled, title_lookup=lookup, parser=stub_parser(guess))
        asyncio.run(classifier.classify("Heat.1995.mkv"))
        lookup.find_movie_title.assert_not_called()

    def test_title_is_sanitized(self):
        guess = MediaGuess(media_type="movie", title="Mission: Impossible", year=1996)
        classifier = VideoClassifier(self.paths, self.enabled, parser=stub_parser(guess))
        path = asyncio.run(classifier.classify("mi.mkv"))
        assert path == "/media-server/Movies/Mission Impossible (1996)/Mission Impossible (1996).mkv"

    @pytest.mark.parametrize("file_name", ["", "...", "???.mkv", "a" * 300, "Season 1 Episode", "ע 1 פ 2"])
    def test_classify_is_total(self, file_name):
        classifier = VideoClassifier(self.paths, self.enabled)
        path = asyncio.run(classifier.classify(file_name))
        assert isinstance(path, str) and path

    def test_compact_hebrew_episode_lands_under_shows(self):
        classifier = VideoClassifier(self.paths, self.enabled)
        path = asyncio.run(classifier.classify("Hashoter ע1פ3 720p.mkv"))
        assert path.startswith(self.paths.shows_root)
        assert path.endswith(".mkv")

    def test_file_without_markers_never_lands_under_shows(self):
        classifier = VideoClassifier(self.paths, self.enabled)
        for name in ["Heat.1995.mkv", "holiday_clip.mp4", "Random Movie Name.avi"]:
            path = asyncio.run(classifier.classify(name))
            assert not path.startswith(self.paths.shows_root)


class TestReleaseNameHelpers:

    def test_hebrew_markers_become_english_and_tail_is_cut(self):
        assert normalize_release_name("הבורר עונה 2 פרק 5 720p HDTV") == "הבורר season 2 episode 5"

    def test_compact_marker(self):
        assert normalize_release_name("הבורר ע3 פרק 1") == "הבורר season3 episode 1"

    def test_compact_season_and_episode_markers(self):
        assert normalize_release_name("Hashoter ע1פ3 720p") == "Hashoter season1 episode3"
        assert normalize_release_name("Hashoter ע1.פ3 720p") == "Hashoter season1.episode3"

    def test_marker_after_word_letter_is_left_alone(self):
        assert normalize_release_name("שבוע 3") == "שבוע 3"

    def test_marker_inside_word_is_left_alone(self):
        # a marker letter preceded by another letter is part of a word
        assert normalize_release_name("כפ 4") == "כפ 4"

    def test_whitespace_collapsed(self):
        assert normalize_release_name("The   Matrix  1999") == "The Matrix 1999"

    @pytest.mark.parametrize("name", ["a/b\\c?d%e*f:g|h\"i<j>k", "Dots...Here..mkv", "  spaced  ", "plain"])
    def test_sanitize_is_idempotent(self, name):
        once = sanitize_file_name(name)
        assert sanitize_file_name(once) == once

    def test_sanitize_removes_illegal_characters(self):
        assert sanitize_file_name('What? A "Movie": Part 1/2') == "What A Movie Part 12"

    def test_latin_fraction(self):
        assert latin_fraction("Heat") == 1.0
        assert latin_fraction("הבורר") == 0.0
        assert latin_fraction("   ") == 0.0
