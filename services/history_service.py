"""History management service.

This module provides the watch history store:
- Listing records (most recent first) with soft failure on missing/corrupt files
- Upserting one record per (anime, season, episode), capped at the most recent 50
- Continue-watching suggestions (latest episode per anime)
- Clearing the whole history

File format (shared with the player-side progress script):
    [{"animeId": ..., "animeTitle": ..., "animeSlug": ..., "seasonNumber": 1,
      "episodeNumber": 2, "episodeTitle": ..., "fansubName": ...,
      "watchedAt": "2024-05-01T18:00:00Z", "progress": 42, "timePos": 605,
      "duration": 1440}, ...]

Used by: services/continuity_service.py, commands/anime.py
"""

from pathlib import Path

from pydantic import ValidationError

from models.config import settings
from models.models import WatchRecord
from utils.exceptions import PersistenceError, StoreUnavailable
from utils.logging import get_logger
from utils.persistence import JSONStore

logger = get_logger(__name__)

MAX_HISTORY_ENTRIES = 50
MAX_SUGGESTIONS = 5


class HistoryStore:
    """Watch history backed by a JSON file.

    The CLI process is the only writer; every write is an atomic replace so
    a killed process never leaves a torn file.
    """

    def __init__(self, file_path: Path, max_entries: int = MAX_HISTORY_ENTRIES) -> None:
        self._store = JSONStore(file_path)
        self.max_entries = max_entries

    @property
    def file_path(self) -> Path:
        return self._store.file_path

    def _load_records(self) -> list[WatchRecord]:
        """Read and validate every row, skipping the ones that don't parse.

        Raises:
            StoreUnavailable: File unreadable or not a JSON list
        """
        if not self._store.exists():
            logger.debug(f"No watch history at {self.file_path}, starting empty")
            return []

        try:
            data = self._store.load([])
        except PersistenceError as e:
            raise StoreUnavailable(str(e)) from e

        if not isinstance(data, list):
            raise StoreUnavailable(f"Unexpected history format in {self.file_path}")

        records = []
        for row in data:
            try:
                records.append(WatchRecord.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping invalid history entry: {e.error_count()} error(s)")
        return records

    def get_history(self, limit: int | None = None) -> list[WatchRecord]:
        """Load history sorted by watched_at (newest first).

        Args:
            limit: Maximum number of records to return

        Returns:
            Records, or an empty list if the file is missing or corrupt
        """
        try:
            records = self._load_records()
        except StoreUnavailable as e:
            logger.error(f"Watch history unavailable, treating as empty: {e}")
            return []

        records.sort(key=lambda r: r.watched_at, reverse=True)
        return records[:limit] if limit is not None else records

    def upsert(self, record: WatchRecord) -> bool:
        """Insert or replace the record with the same (anime, season, episode).

        The new record goes to the front and the collection is trimmed to the
        most recent max_entries.

        Returns:
            True if the history was written
        """
        history = [r for r in self.get_history() if r.key != record.key]
        history.insert(0, record)
        history = history[: self.max_entries]

        try:
            self._store.save([r.to_json_dict() for r in history])
        except PersistenceError as e:
            logger.error(f"Failed to save watch history: {e}")
            return False

        logger.debug(
            f"Saved history for {record.anime_title} S{record.season_number}E{record.episode_number} "
            f"({record.progress}%, {record.time_pos}s/{record.duration}s)"
        )
        return True

    def most_recent(self) -> WatchRecord | None:
        """Last watched record, if any."""
        history = self.get_history(1)
        return history[0] if history else None

    def by_anime(self, anime_id: str) -> list[WatchRecord]:
        """All records of one anime, newest first."""
        return [r for r in self.get_history() if r.anime_id == anime_id]

    def clear(self) -> bool:
        """Delete the history file.

        Returns:
            True if a file was deleted, False if there was nothing to clear
        """
        try:
            removed = self._store.remove()
        except PersistenceError as e:
            logger.error(f"Failed to clear watch history: {e}")
            return False

        if removed:
            logger.info("Watch history cleared")
        return removed

    def continue_watching_suggestions(self, limit: int = MAX_SUGGESTIONS) -> list[WatchRecord]:
        """Most recent episode of each anime, newest first."""
        latest: dict[str, WatchRecord] = {}
        for record in self.get_history():
            latest.setdefault(record.anime_id, record)
        return list(latest.values())[:limit]


def format_time(seconds: int) -> str:
    """Format seconds as m:ss."""
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


def format_history_entry(record: WatchRecord) -> str:
    """One-line description used by the history menu.

    Example:
        "Frieren - S1E3: Killing Magic [12:05/24:00 - 50%] (2024-05-01 18:00)"
    """
    progress_info = ""
    if record.time_pos and record.duration:
        progress_info = (
            f" [{format_time(record.time_pos)}/{format_time(record.duration)} - {record.progress}%]"
        )
    elif record.progress > 0:
        progress_info = f" [{record.progress}%]"

    watched_at = record.watched_at.astimezone().strftime("%Y-%m-%d %H:%M")
    return (
        f"{record.anime_title} - S{record.season_number}E{record.episode_number}: "
        f"{record.episode_title}{progress_info} ({watched_at})"
    )


history_store = HistoryStore(settings.history.history_file, settings.history.max_entries)
