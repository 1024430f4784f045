"""Continuity service - decides what to watch next from the watch history.

This module contains the session logic between the menus and the player:
- Deriving the continuity state from the most recent history record
- Building the continue menu actions (resume, next, rewatch, choose)
- Resolving those actions to a catalog episode (with manual fallback)
- Playing an episode with its two history writes (before and after playback)
- Chaining into the next episode automatically when the last one was finished

Used by: commands/anime.py
"""

from collections.abc import Callable
from enum import Enum
from typing import NamedTuple

from models.config import AppSettings, settings
from models.models import Episode, PlaybackOptions, WatchRecord
from services.catalog_service import CatalogClient, catalog_client
from services.history_service import HistoryStore, history_store
from utils.exceptions import EpisodeLookupFailure, PlaybackInterrupted
from utils.logging import get_logger
from utils.presence import NullPresence, Presence
from utils.video_player import PlaybackResult, play_video

logger = get_logger(__name__)

# A record below this is offered "resume" in the continue menu
COMPLETED_THRESHOLD = 90
# A playback at or above this chains into the next episode
AUTO_ADVANCE_THRESHOLD = 85


class ContinuityState(Enum):
    NO_HISTORY = "no_history"
    HAS_CONTINUABLE = "has_continuable"
    HAS_COMPLETED = "has_completed"
    IN_PLAYBACK = "in_playback"
    POST_PLAYBACK = "post_playback"


class ContinueAction(str, Enum):
    RESUME = "resume"
    NEXT = "next"
    REWATCH = "rewatch"
    CHOOSE = "choose"


class WatchTarget(NamedTuple):
    """Episode to play and where to start it."""

    episode: Episode
    start_time: int | None = None


class SessionOutcome(NamedTuple):
    """Result of playing one episode.

    Attributes:
        episode: Episode that was played
        fansub_id: Release that was played (None if the episode had none listed)
        result: Reconciled playback result
        next_episode: Episode number + 1 in the same season, if the catalog lists it
    """

    episode: Episode
    fansub_id: str | None
    result: PlaybackResult
    next_episode: Episode | None = None


class ContinuityEngine:
    """Watch session state machine.

    Collaborators are injected so the engine can run against fakes:
    catalog (CatalogClient), history (HistoryStore), presence (Presence)
    and player (a play_video compatible callable).
    """

    def __init__(
        self,
        catalog: CatalogClient | None = None,
        history: HistoryStore | None = None,
        app_settings: AppSettings | None = None,
        presence: Presence | None = None,
        player: Callable[..., PlaybackResult] | None = None,
        debug: bool = False,
    ) -> None:
        self.catalog = catalog or catalog_client
        self.history = history or history_store
        self.settings = app_settings or settings
        self.presence = presence or NullPresence()
        self.player = player or play_video
        self.debug = debug
        self.phase: ContinuityState | None = None

    @property
    def history_enabled(self) -> bool:
        return self.settings.history.enable_history

    def state(self, record: WatchRecord | None = None) -> ContinuityState:
        """Current state, derived from the most recent record unless one is given."""
        if self.phase is not None:
            return self.phase

        if not self.history_enabled:
            return ContinuityState.NO_HISTORY

        record = record or self.history.most_recent()
        if record is None:
            return ContinuityState.NO_HISTORY
        if record.progress < COMPLETED_THRESHOLD:
            return ContinuityState.HAS_CONTINUABLE
        return ContinuityState.HAS_COMPLETED

    def continue_actions(self, record: WatchRecord) -> list[ContinueAction]:
        """Actions offered for a history record, in menu order.

        Resume needs a known position and duration and an unfinished episode.
        """
        actions = []
        if record.time_pos and record.duration and record.progress < COMPLETED_THRESHOLD:
            actions.append(ContinueAction.RESUME)
        actions.extend([ContinueAction.NEXT, ContinueAction.REWATCH, ContinueAction.CHOOSE])
        return actions

    def find_episode(self, slug: str, season_number: int, episode_number: int) -> Episode | None:
        """Exact episode number match in the season's episode list."""
        for episode in self.catalog.get_anime_episodes(slug, season_number):
            if episode.episode_number == episode_number:
                return episode
        return None

    def find_next_episode(self, slug: str, season_number: int, episode_number: int) -> Episode | None:
        return self.find_episode(slug, season_number, episode_number + 1)

    def resolve_action(self, record: WatchRecord, action: ContinueAction) -> WatchTarget | None:
        """Map a continue action to the episode to play.

        Returns:
            WatchTarget, or None when the caller should fall back to manual
            episode selection in the record's season
        """
        if action == ContinueAction.CHOOSE:
            return None

        if action == ContinueAction.NEXT:
            number = record.episode_number + 1
        else:
            number = record.episode_number

        episode = self.find_episode(record.anime_slug, record.season_number, number)
        if episode is None:
            failure = EpisodeLookupFailure(
                f"Episode {number} of {record.anime_slug} season {record.season_number} not found"
            )
            logger.warning(f"{failure}, falling back to episode selection")
            return None

        if action == ContinueAction.RESUME:
            return WatchTarget(episode, record.time_pos or None)
        return WatchTarget(episode)

    def should_auto_advance(self, result: PlaybackResult, has_next: bool) -> bool:
        return (
            self.settings.playback.auto_play_next_episode
            and result.progress >= AUTO_ADVANCE_THRESHOLD
            and has_next
        )

    def save_progress(self, record: WatchRecord) -> bool:
        """Upsert a record unless history is disabled."""
        if not self.history_enabled:
            return False
        return self.history.upsert(record)

    def _build_record(
        self,
        slug: str,
        episode: Episode,
        fansub_id: str | None,
        progress: int = 0,
        time_pos: int = 0,
        duration: int = 0,
    ) -> WatchRecord | None:
        anime = self.catalog.get_anime_detail(slug)
        if anime is None:
            logger.warning(f"No anime detail for '{slug}', history not updated")
            return None

        detail = self.catalog.get_episode_detail(slug, episode.season_number, episode.episode_number)
        fansub = detail.get_fansub(fansub_id) if detail else None

        return WatchRecord(
            anime_id=anime.id,
            anime_title=anime.display_title,
            anime_slug=slug,
            season_number=episode.season_number,
            episode_number=episode.episode_number,
            episode_title=episode.title,
            fansub_name=fansub.name if fansub else "Unknown",
            progress=progress,
            time_pos=time_pos,
            duration=duration,
        )

    def _save_result(self, slug: str, episode: Episode, fansub_id: str | None, result: PlaybackResult) -> None:
        record = self._build_record(
            slug, episode, fansub_id, result.progress, result.time_pos, result.duration
        )
        if record and self.save_progress(record):
            if record.time_pos and record.duration:
                print(f"✅ Saved to watch history: {record.progress}% progress")
            else:
                logger.debug(f"Saved to watch history with {record.progress}% progress")

    def save_external(self, slug: str, episode: Episode, fansub_id: str | None = None) -> bool:
        """Record an episode handed to another program (URL copied or opened in a browser).

        The episode is assumed watched: progress 100 with no position.
        """
        record = self._build_record(slug, episode, fansub_id, progress=100)
        return bool(record) and self.save_progress(record)

    def play_episode(
        self,
        slug: str,
        episode: Episode,
        fansub_id: str | None = None,
        start_time: int | None = None,
    ) -> SessionOutcome | None:
        """Play one episode and record it in the history.

        Writes the history twice: a zero-progress record right before the
        player starts and the reconciled result once it exits.

        Returns:
            SessionOutcome, or None if the episode could not be resolved

        Raises:
            KeyboardInterrupt: User interrupted playback (progress already saved)
        """
        detail = self.catalog.get_episode_detail(slug, episode.season_number, episode.episode_number)
        if detail is None:
            print("❌ Could not get episode details.")
            return None

        video_url = self.catalog.build_video_url(
            slug, episode.season_number, episode.episode_number, detail, fansub_id
        )
        if not video_url:
            print("❌ Could not get video URL.")
            return None

        fansub = detail.get_fansub(fansub_id) or detail.episode_data.fansub
        fansub_id = fansub.id if fansub else None

        record = self._build_record(slug, episode, fansub_id)
        options = PlaybackOptions(start_time=start_time)
        if record:
            options = PlaybackOptions(
                start_time=start_time,
                anime_id=record.anime_id,
                anime_title=record.anime_title,
                anime_slug=slug,
                season_number=episode.season_number,
                episode_number=episode.episode_number,
                episode_title=episode.title,
                fansub_name=record.fansub_name,
            )
            anime = self.catalog.get_anime_detail(slug)
            self.presence.update_watching(
                record.anime_title,
                f"S{episode.season_number}E{episode.episode_number}",
                episode_url=f"anime/{slug}/{episode.season_number}/{episode.episode_number}",
                image_url=anime.pictures.avatar if anime and anime.pictures else None,
            )
            self.save_progress(record)

        if start_time:
            minutes, seconds = divmod(start_time, 60)
            print(f"🔄 Resuming from: {minutes}:{seconds:02d}")

        self.phase = ContinuityState.IN_PLAYBACK
        history_file = self.history.file_path if self.history_enabled else None
        try:
            result = self.player(
                video_url,
                options,
                debug=self.debug,
                player_settings=self.settings.player,
                history_file=history_file,
            )
        except PlaybackInterrupted as e:
            self.phase = None
            self._save_result(slug, episode, fansub_id, e.result)
            self.presence.clear()
            raise KeyboardInterrupt from e

        self.phase = ContinuityState.POST_PLAYBACK
        self._save_result(slug, episode, fansub_id, result)

        next_episode = self.find_next_episode(slug, episode.season_number, episode.episode_number)
        return SessionOutcome(episode, fansub_id, result, next_episode)

    def watch(
        self,
        slug: str,
        episode: Episode,
        fansub_id: str | None = None,
        start_time: int | None = None,
    ) -> SessionOutcome | None:
        """Play an episode, then keep playing the following ones while they are finished.

        The next episode reuses the previous release when it is listed for
        that episode, otherwise its default release.

        Returns:
            Outcome of the last episode played, or None if nothing played
        """
        last = None
        try:
            outcome = self.play_episode(slug, episode, fansub_id, start_time)
            while outcome is not None:
                last = outcome
                has_next = outcome.next_episode is not None
                if not self.should_auto_advance(outcome.result, has_next):
                    break

                print("\n✅ Episode completed! Moving to next episode...")
                print(f"🔄 Automatically playing next episode: {outcome.next_episode.title}")
                logger.info(
                    f"Auto-advancing {slug} to S{outcome.next_episode.season_number}"
                    f"E{outcome.next_episode.episode_number}"
                )
                outcome = self.play_episode(slug, outcome.next_episode, outcome.fansub_id)
        finally:
            self.phase = None
        return last
