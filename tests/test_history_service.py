"""
Tests for history_service.py

Coverage:
- Upsert keeps one record per (anime, season, episode)
- Ordering and the 50 record cap
- Continue-watching suggestions
- Missing/corrupt file handling and clear()
- History entry formatting
"""

import json

from services.history_service import (
    MAX_HISTORY_ENTRIES,
    HistoryStore,
    format_history_entry,
    format_time,
)


class TestHistoryUpsert:
    """Test upsert semantics."""

    def test_same_key_keeps_latest_values(self, history, make_record):
        """Should keep exactly one record per key with the newest values."""
        history.upsert(make_record(progress=10))
        history.upsert(make_record(progress=80))

        records = history.get_history()
        assert len(records) == 1
        assert records[0].progress == 80

    def test_different_episodes_are_separate(self, history, make_record):
        """Should keep one record per episode."""
        history.upsert(make_record(episode_number=1))
        history.upsert(make_record(episode_number=2))

        assert len(history.get_history()) == 2

    def test_writes_camel_case_file(self, history, history_file, make_record):
        """Should write the camelCase format shared with the player script."""
        history.upsert(make_record(time_pos=720, duration=1440))

        data = json.loads(history_file.read_text(encoding="utf-8"))
        assert data[0]["animeId"] == "101"
        assert data[0]["timePos"] == 720
        assert data[0]["duration"] == 1440
        assert data[0]["progress"] == 50
        assert "watchedAt" in data[0]

    def test_cap_evicts_oldest(self, history, make_record, old_timestamps):
        """Should never keep more than 50 records, dropping the oldest."""
        for number in range(1, MAX_HISTORY_ENTRIES + 2):
            history.upsert(make_record(episode_number=number, watched_at=old_timestamps[number]))

        records = history.get_history()
        assert len(records) == MAX_HISTORY_ENTRIES
        assert all(r.episode_number != 1 for r in records)
        assert records[0].episode_number == MAX_HISTORY_ENTRIES + 1

    def test_custom_max_entries(self, history_file, make_record, old_timestamps):
        """Should honor a smaller cap."""
        store = HistoryStore(history_file, max_entries=3)
        for number in range(1, 6):
            store.upsert(make_record(episode_number=number, watched_at=old_timestamps[number]))

        assert [r.episode_number for r in store.get_history()] == [5, 4, 3]


class TestHistoryRead:
    """Test listing and lookups."""

    def test_sorted_newest_first(self, history, make_record, old_timestamps):
        """Should sort by watched_at descending regardless of file order."""
        history.upsert(make_record(episode_number=2, watched_at=old_timestamps[5]))
        history.upsert(make_record(episode_number=1, watched_at=old_timestamps[1]))

        assert [r.episode_number for r in history.get_history()] == [2, 1]

    def test_limit(self, history, make_record, old_timestamps):
        """Should truncate to the requested number of records."""
        for number in range(1, 5):
            history.upsert(make_record(episode_number=number, watched_at=old_timestamps[number]))

        assert len(history.get_history(2)) == 2

    def test_zero_limit_returns_nothing(self, history, make_record):
        """Should treat limit=0 as an empty page, not as no limit."""
        history.upsert(make_record())

        assert history.get_history(0) == []
        assert len(history.get_history(None)) == 1

    def test_missing_file_is_empty(self, history, log_messages):
        """Should treat a missing file as an empty history and log it."""
        assert history.get_history() == []
        assert history.most_recent() is None
        assert any("No watch history" in m for m in log_messages)

    def test_corrupt_file_is_empty(self, history, history_file):
        """Should treat unparseable JSON as an empty history."""
        history_file.write_text("[{not json", encoding="utf-8")
        assert history.get_history() == []

    def test_non_list_file_is_empty(self, history, history_file):
        """Should treat an unexpected JSON shape as an empty history."""
        history_file.write_text('{"animeId": "1"}', encoding="utf-8")
        assert history.get_history() == []

    def test_invalid_rows_are_skipped(self, history, history_file):
        """Should keep valid rows when some rows are invalid."""
        rows = [
            {"animeId": "1", "seasonNumber": 1, "episodeNumber": 3, "watchedAt": "2024-05-01T18:00:00Z"},
            {"animeTitle": "No id"},
        ]
        history_file.write_text(json.dumps(rows), encoding="utf-8")

        records = history.get_history()
        assert len(records) == 1
        assert records[0].episode_number == 3

    def test_old_rows_without_position(self, history, history_file):
        """Should default timePos/duration to 0 for rows written before they existed."""
        rows = [
            {
                "animeId": "1",
                "seasonNumber": 1,
                "episodeNumber": 2,
                "progress": 100,
                "watchedAt": "2024-05-01T18:00:00.000Z",
            }
        ]
        history_file.write_text(json.dumps(rows), encoding="utf-8")

        record = history.most_recent()
        assert record.time_pos == 0
        assert record.duration == 0
        assert record.progress == 100

    def test_by_anime(self, history, make_record):
        """Should return only the records of one anime."""
        history.upsert(make_record(anime_id="1"))
        history.upsert(make_record(anime_id="2"))

        assert [r.anime_id for r in history.by_anime("2")] == ["2"]


class TestContinueWatchingSuggestions:
    """Test suggestion selection."""

    def test_one_record_per_anime(self, history, make_record, old_timestamps):
        """Should never suggest the same anime twice."""
        history.upsert(make_record(anime_id="1", episode_number=1, watched_at=old_timestamps[1]))
        history.upsert(make_record(anime_id="1", episode_number=2, watched_at=old_timestamps[2]))
        history.upsert(make_record(anime_id="2", episode_number=1, watched_at=old_timestamps[3]))

        suggestions = history.continue_watching_suggestions()
        assert [r.anime_id for r in suggestions] == ["2", "1"]
        assert suggestions[1].episode_number == 2

    def test_at_most_five(self, history, make_record, old_timestamps):
        """Should return at most 5 suggestions."""
        for index in range(8):
            history.upsert(make_record(anime_id=str(index), watched_at=old_timestamps[index]))

        suggestions = history.continue_watching_suggestions()
        assert len(suggestions) == 5
        assert len({r.anime_id for r in suggestions}) == 5


class TestHistoryClear:
    """Test clearing the history."""

    def test_clear_removes_file(self, history, history_file, make_record):
        """Should delete the history file."""
        history.upsert(make_record())

        assert history.clear() is True
        assert not history_file.exists()
        assert history.get_history() == []

    def test_clear_absent_store_is_noop(self, history):
        """Should succeed quietly when there is nothing to clear."""
        assert history.clear() is False
        assert history.clear() is False


class TestFormatting:
    """Test display helpers."""

    def test_format_time(self):
        assert format_time(0) == "0:00"
        assert format_time(605) == "10:05"
        assert format_time(1440) == "24:00"

    def test_entry_with_position(self, make_record):
        """Should show position, duration and percentage."""
        entry = format_history_entry(
            make_record(episode_number=3, episode_title="Killing Magic", time_pos=720, duration=1440)
        )
        assert entry.startswith("Frieren - S1E3: Killing Magic [12:00/24:00 - 50%]")

    def test_entry_with_progress_only(self, make_record):
        """Should show only the percentage when no position is stored."""
        entry = format_history_entry(make_record(progress=100))
        assert "[100%]" in entry

    def test_entry_without_progress(self, make_record):
        """Should omit the progress block for unwatched records."""
        entry = format_history_entry(make_record(episode_title="Pilot"))
        assert "[" not in entry
