"""Pydantic data models for structured data transfer.

Defines DTOs (Data Transfer Objects) for:
- WatchRecord: One persisted watch history row
- ProgressSnapshot: Progress reported by the external player
- PlaybackOptions: Start offset and session identity for one playback
- AnimeResult / AnimeDetail / Season: Catalog search and detail responses
- Episode / EpisodeDetail / Fansub / VideoFile: Episode listings and releases
"""

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

# Type aliases for common patterns
AnimeId: TypeAlias = str
AnimeSlug: TypeAlias = str
RecordKey: TypeAlias = tuple[str, int, int]  # (anime_id, season_number, episode_number)
Seconds: TypeAlias = int


def compute_progress(time_pos: float, duration: float) -> int:
    """Percentage watched, rounded half up and clamped to [0, 100].

    Returns 0 unless both values are positive.
    """
    if time_pos <= 0 or duration <= 0:
        return 0
    return max(0, min(100, math.floor(time_pos / duration * 100 + 0.5)))


def _non_negative_int(value: Any) -> int:
    """Coerce JSON numbers (possibly floats or null) to non-negative ints."""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError):
        return 0


class WatchRecord(BaseModel):
    """Last known watch state for one (anime, season, episode).

    Serialized with camelCase keys (animeId, timePos, watchedAt, ...) since
    the player-side progress script reads and writes the same file.

    Attributes:
        anime_id: Stable catalog identifier
        anime_title: Display title of the anime
        anime_slug: Catalog path segment
        season_number: Season number (1-based)
        episode_number: Episode number (1-based)
        episode_title: Display title of the episode
        fansub_name: Release group label
        watched_at: Last update time (UTC)
        progress: Percentage watched, 0-100
        time_pos: Seconds watched
        duration: Total seconds
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    anime_id: str = Field(..., min_length=1, description="Catalog anime ID")
    anime_title: str = Field("", description="Anime title")
    anime_slug: str = Field("", description="Catalog slug")
    season_number: int = Field(..., ge=1, description="Season number")
    episode_number: int = Field(..., ge=1, description="Episode number")
    episode_title: str = Field("", description="Episode title")
    fansub_name: str = Field("Unknown", description="Release group name")
    watched_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Last update timestamp",
    )
    progress: int = Field(0, ge=0, le=100, description="Percentage watched")
    time_pos: int = Field(0, ge=0, description="Seconds watched")
    duration: int = Field(0, ge=0, description="Total seconds")

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, v: Any) -> int:
        """Clamp progress to [0, 100]."""
        if v is None or isinstance(v, bool):
            return 0
        try:
            return max(0, min(100, math.floor(float(v) + 0.5)))
        except (TypeError, ValueError):
            return 0

    @field_validator("time_pos", "duration", mode="before")
    @classmethod
    def clamp_seconds(cls, v: Any) -> int:
        """Clamp seconds to >= 0 (missing values in old files become 0)."""
        return _non_negative_int(v)

    @field_validator("watched_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC so records stay comparable."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def sync_progress(self) -> "WatchRecord":
        """Keep progress consistent with time_pos/duration."""
        if self.time_pos > 0 and self.duration > 0:
            self.progress = compute_progress(self.time_pos, self.duration)
        return self

    @property
    def key(self) -> RecordKey:
        """Unique identity of the record."""
        return (self.anime_id, self.season_number, self.episode_number)

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize with the on-disk camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class SnapshotStatus(str, Enum):
    """Lifecycle status reported in a progress snapshot."""

    STARTED = "started"
    PLAYING = "playing"
    RESTARTED = "restarted"
    FINISHED = "finished"
    METADATA_READY = "metadata_ready"
    DURATION_DETECTED = "duration_detected"


class ProgressSnapshot(BaseModel):
    """Progress snapshot exchanged with the player process.

    Attributes:
        timestamp: Epoch seconds when the snapshot was written
        time_pos: Seconds played
        duration: Total seconds (0 while unknown)
        percent_pos: Percentage played (estimated when duration is unknown)
        status: Lifecycle status
        estimated: True when percent_pos was derived from an assumed episode length
    """

    timestamp: int = Field(0, ge=0, description="Epoch seconds")
    time_pos: int = Field(0, ge=0, description="Seconds played")
    duration: int = Field(0, ge=0, description="Total seconds")
    percent_pos: int = Field(0, ge=0, le=100, description="Percentage played")
    status: SnapshotStatus = Field(SnapshotStatus.PLAYING, description="Lifecycle status")
    estimated: bool = Field(False, description="Percent derived from assumed length")

    @field_validator("timestamp", "time_pos", "duration", mode="before")
    @classmethod
    def floor_numbers(cls, v: Any) -> int:
        """Players report floats; the snapshot contract uses whole seconds."""
        return _non_negative_int(v)

    @field_validator("percent_pos", mode="before")
    @classmethod
    def clamp_percent(cls, v: Any) -> int:
        """Clamp percentage to [0, 100]."""
        return min(100, _non_negative_int(v))


class PlaybackOptions(BaseModel):
    """Start offset and session identity handed to the player.

    The identity fields are only used by the progress bridge to attribute
    live progress to the right history record.
    """

    start_time: int | None = Field(None, ge=0, description="Resume offset in seconds")
    anime_id: str = Field("", description="Catalog anime ID")
    anime_title: str = Field("", description="Anime title")
    anime_slug: str = Field("", description="Catalog slug")
    season_number: int = Field(0, ge=0, description="Season number")
    episode_number: int = Field(0, ge=0, description="Episode number")
    episode_title: str = Field("", description="Episode title")
    fansub_name: str = Field("", description="Release group name")

    @property
    def has_identity(self) -> bool:
        """True when enough identity is present to write history live."""
        return bool(self.anime_id) and self.season_number > 0 and self.episode_number > 0


class Pictures(BaseModel):
    """Artwork URLs of an anime."""

    banner: str | None = None
    avatar: str | None = None


class AnimeResult(BaseModel):
    """Anime search result from the catalog.

    Attributes:
        id: Catalog anime ID
        slug: URL slug used by every other catalog endpoint
        type: TV, Movie, OVA, ...
        english / turkish / romaji: Localized titles (any may be empty)
        summary: Synopsis
        pictures: Artwork URLs
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Catalog anime ID")
    slug: str = Field(..., min_length=1, description="Catalog slug")
    type: str | None = Field(None, description="Media type")
    english: str | None = Field(None, description="English title")
    turkish: str | None = Field(None, description="Turkish title")
    romaji: str | None = Field(None, description="Romaji title")
    summary: str | None = Field(None, description="Synopsis")
    pictures: Pictures | None = Field(None, description="Artwork")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        """Some endpoints return numeric IDs."""
        if isinstance(v, int):
            return str(v)
        return v

    @property
    def display_title(self) -> str:
        """Best available title: english, then turkish, then romaji."""
        return self.english or self.turkish or self.romaji or self.slug


class Season(BaseModel):
    """One season of an anime."""

    model_config = ConfigDict(populate_by_name=True)

    season_number: int = Field(..., ge=0, description="Season number")
    name: str = Field("", description="Season name")
    episode_count: int = Field(0, ge=0, description="Number of episodes")
    air_date: str | None = Field(None, description="First air date")
    has_episode: bool = Field(True, alias="hasEpisode", description="Whether episodes are available")


class AnimeDetail(AnimeResult):
    """Anime detail with its seasons."""

    seasons: list[Season] = Field(default_factory=list, description="Seasons")
    number_of_seasons: int = Field(0, alias="numberOfSeasons", ge=0)
    number_of_episodes: int = Field(0, alias="numberOfEpisodes", ge=0)

    def get_season(self, season_number: int) -> Season | None:
        """Find a season by number."""
        return next((s for s in self.seasons if s.season_number == season_number), None)


class Episode(BaseModel):
    """Episode listing entry."""

    title: str = Field(..., description="Episode title")
    season_number: int = Field(..., ge=1, description="Season number")
    episode_number: int = Field(..., ge=1, description="Episode number")
    url: str = Field("", description="Catalog web page of the episode")


class Fansub(BaseModel):
    """Release group providing an episode encode."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Fansub ID")
    name: str = Field("Unknown", description="Fansub name")
    secure_name: str | None = Field(None, alias="secureName")
    contributors: str | None = Field(None, description="Contributor names")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        if isinstance(v, int):
            return str(v)
        return v


class VideoFile(BaseModel):
    """One encoded file of an episode."""

    resolution: int = Field(..., ge=0, description="Vertical resolution")
    file: str = Field("", description="File name on storage")
    size: int | None = Field(None, ge=0, description="Size in bytes")


class EpisodeInfo(BaseModel):
    """Per-episode data inside an episode detail response."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    episode_number: int = Field(..., ge=1)
    name: str = ""
    summary: str | None = None
    air_date: str | None = None
    fansub: Fansub | None = None
    resolutions: list[int] = Field(default_factory=list)
    files: list[VideoFile] = Field(default_factory=list)
    has_next_episode: bool = False
    has_prev_episode: bool = False


class EpisodeDetail(BaseModel):
    """Episode detail including the fansub releases that carry it."""

    model_config = ConfigDict(populate_by_name=True)

    episode_data: EpisodeInfo = Field(..., alias="episodeData")
    fansubs: list[Fansub] = Field(default_factory=list)

    def get_fansub(self, fansub_id: str | None) -> Fansub | None:
        """Find a fansub by ID."""
        if not fansub_id:
            return None
        return next((f for f in self.fansubs if f.id == fansub_id), None)

    def best_file(self) -> VideoFile | None:
        """Highest resolution file, if any."""
        if not self.episode_data.files:
            return None
        return max(self.episode_data.files, key=lambda f: f.resolution)
