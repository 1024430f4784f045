"""
Shared test fixtures and configuration for openani-cli test suite.

This module provides:
- Temporary data directory, history store and settings
- Sample data fixtures (watch records, catalog responses)
- Fake catalog, player and presence collaborators for the continuity engine
"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from loguru import logger

from models.config import AppSettings, HistorySettings, PlayerSettings
from models.models import AnimeDetail, Episode, EpisodeDetail, WatchRecord
from services.history_service import HistoryStore
from utils.presence import Presence
from utils.video_player import PlaybackResult


# ========== File I/O Fixtures ==========


@pytest.fixture
def temp_data_dir():
    """Temporary data directory for testing."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def history_file(temp_data_dir):
    """Path of a (not yet existing) history file."""
    return temp_data_dir / "watch-history.json"


@pytest.fixture
def history(history_file):
    """Empty history store in the temporary data directory."""
    return HistoryStore(history_file)


# ========== Logging Fixtures ==========


@pytest.fixture
def log_messages():
    """Messages logged through loguru while the test runs."""
    messages = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


# ========== Configuration Fixtures ==========


@pytest.fixture
def app_settings(temp_data_dir):
    """Settings pointing every file at the temporary data directory."""
    return AppSettings(
        player=PlayerSettings(snapshot_file=temp_data_dir / "temp_progress.json"),
        history=HistorySettings(history_file=temp_data_dir / "watch-history.json"),
    )


# ========== Sample Data Fixtures ==========


@pytest.fixture
def make_record():
    """Factory for watch records with sensible defaults."""

    def factory(**overrides) -> WatchRecord:
        values = {
            "anime_id": "101",
            "anime_title": "Frieren",
            "anime_slug": "frieren",
            "season_number": 1,
            "episode_number": 1,
            "episode_title": "Episode 1",
            "fansub_name": "SubGroup",
            "watched_at": datetime(2024, 5, 1, 18, 0, tzinfo=timezone.utc),
        }
        values.update(overrides)
        return WatchRecord(**values)

    return factory


@pytest.fixture
def anime_detail_payload():
    """Realistic catalog anime detail response."""
    return {
        "id": 101,
        "slug": "frieren",
        "type": "TV",
        "english": "Frieren: Beyond Journey's End",
        "turkish": "Frieren",
        "romaji": "Sousou no Frieren",
        "summary": "An elf mage outlives her party.",
        "pictures": {"avatar": "https://img.example/frieren.jpg", "banner": None},
        "numberOfSeasons": 1,
        "numberOfEpisodes": 3,
        "seasons": [
            {"season_number": 1, "name": "Season 1", "episode_count": 3, "hasEpisode": True},
        ],
    }


def episode_detail_payload(episode_number: int, has_next: bool = True, fansubs=None) -> dict:
    """Catalog episode detail response for one episode."""
    fansubs = fansubs if fansubs is not None else [
        {"id": 7, "name": "SubGroup", "secureName": "subgroup", "contributors": "Alice"},
        {"id": 9, "name": "OtherSubs", "secureName": "othersubs", "contributors": "Bob"},
    ]
    return {
        "episodeData": {
            "episodeNumber": episode_number,
            "name": f"Episode {episode_number}",
            "airDate": "2023-09-29",
            "fansub": fansubs[0] if fansubs else None,
            "resolutions": [480, 1080],
            "files": [
                {"resolution": 480, "file": f"{episode_number}-480p.mp4"},
                {"resolution": 1080, "file": f"{episode_number}-1080p.mp4"},
            ],
            "hasNextEpisode": has_next,
            "hasPrevEpisode": episode_number > 1,
        },
        "fansubs": fansubs,
    }


@pytest.fixture
def episode_detail_factory():
    return episode_detail_payload


# ========== Fake Collaborators ==========


class FakeCatalog:
    """In-memory catalog with one anime ("frieren") of episode_count episodes."""

    def __init__(self, anime_payload: dict, episode_count: int = 3) -> None:
        self.anime = AnimeDetail.model_validate(anime_payload)
        self.slug = self.anime.slug
        self.episode_count = episode_count
        self.video_requests: list[tuple] = []

    def get_anime_detail(self, slug):
        return self.anime if slug == self.slug else None

    def get_anime_episodes(self, slug, season_number):
        if slug != self.slug or season_number != 1:
            return []
        return [
            Episode(title=f"Episode {n}", season_number=1, episode_number=n)
            for n in range(1, self.episode_count + 1)
        ]

    def get_episode_detail(self, slug, season_number, episode_number):
        if slug != self.slug or not 1 <= episode_number <= self.episode_count:
            return None
        return EpisodeDetail.model_validate(
            episode_detail_payload(episode_number, has_next=episode_number < self.episode_count)
        )

    def build_video_url(self, slug, season_number, episode_number, detail, fansub_id=None):
        fansub = detail.get_fansub(fansub_id) or detail.episode_data.fansub
        self.video_requests.append((episode_number, fansub.id))
        return f"https://video.example/{slug}/{season_number}/{episode_number}-{fansub.id}.mp4"


class FakePlayer:
    """play_video stand-in returning scripted results in order."""

    def __init__(self, *results: PlaybackResult, interrupt_with: PlaybackResult | None = None) -> None:
        self.results = list(results)
        self.interrupt_with = interrupt_with
        self.calls: list[tuple] = []
        self.history_snapshots: list = []
        self.history: HistoryStore | None = None

    def __call__(self, url, options=None, debug=False, **kwargs):
        self.calls.append((url, options))
        if self.history is not None:
            self.history_snapshots.append(self.history.get_history())
        if self.interrupt_with is not None:
            from utils.exceptions import PlaybackInterrupted

            raise PlaybackInterrupted(self.interrupt_with)
        return self.results.pop(0) if self.results else PlaybackResult()


class RecordingPresence(Presence):
    """Presence that remembers every update."""

    name = "recording-presence"

    def __init__(self) -> None:
        super().__init__()
        self.events: list[tuple] = []

    def _send(self, details, state=None, **extra):
        self.events.append(("update", details, state))

    def _clear(self):
        self.events.append(("clear",))

    def _close(self):
        self.events.append(("disconnect",))


@pytest.fixture
def fake_catalog(anime_detail_payload):
    return FakeCatalog(anime_detail_payload)


@pytest.fixture
def presence():
    return RecordingPresence()


@pytest.fixture
def old_timestamps():
    """Distinct, increasing timestamps for ordering tests."""
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return [base + timedelta(minutes=i) for i in range(100)]


@pytest.fixture
def make_player(history):
    """Factory for fake players that also capture the history seen at launch."""

    def factory(*results, interrupt_with=None) -> FakePlayer:
        player = FakePlayer(*results, interrupt_with=interrupt_with)
        player.history = history
        return player

    return factory


@pytest.fixture
def make_engine(fake_catalog, history, app_settings, presence):
    """Factory for a continuity engine wired to the fakes."""
    from services.continuity_service import ContinuityEngine

    def factory(player=None, **overrides) -> ContinuityEngine:
        return ContinuityEngine(
            catalog=overrides.get("catalog", fake_catalog),
            history=overrides.get("history", history),
            app_settings=overrides.get("app_settings", app_settings),
            presence=overrides.get("presence", presence),
            player=player or FakePlayer(),
        )

    return factory
