"""Data models and configuration.

Pydantic models and configuration:
- models: Watch history, progress snapshot and catalog data models
- config: Centralized configuration (Pydantic Settings)
"""

from models.models import (
    AnimeDetail,
    AnimeResult,
    Episode,
    EpisodeDetail,
    Fansub,
    PlaybackOptions,
    ProgressSnapshot,
    SnapshotStatus,
    WatchRecord,
)
from models.config import settings, get_data_path

__all__ = [
    "AnimeDetail",
    "AnimeResult",
    "Episode",
    "EpisodeDetail",
    "Fansub",
    "PlaybackOptions",
    "ProgressSnapshot",
    "SnapshotStatus",
    "WatchRecord",
    "settings",
    "get_data_path",
]
