"""Catalog API client for openani.me.

REST client for searching anime and listing seasons, episodes, fansub
releases and video files. The catalog is treated as an opaque data source:
every public method degrades to an empty result (and a log line) when the
API is unreachable or returns something unexpected.
"""

from urllib.parse import quote

import requests
from pydantic import ValidationError

from models.config import CatalogSettings, settings
from models.models import AnimeDetail, AnimeResult, Episode, EpisodeDetail
from utils.cache_manager import cache_catalog_response
from utils.exceptions import CatalogError
from utils.logging import get_logger

logger = get_logger(__name__)

WEB_URL = "https://openani.me"


class CatalogClient:
    """REST client for the anime catalog."""

    def __init__(self, catalog_settings: CatalogSettings | None = None) -> None:
        """Initialize the catalog client.

        Args:
            catalog_settings: Endpoints and timeouts, defaults to global settings
        """
        self.settings = catalog_settings or settings.catalog
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": self.settings.user_agent})

    def _get(self, path: str, params: dict | None = None):
        """GET a catalog endpoint and decode its JSON body.

        Raises:
            CatalogError: Network failure, non-200 status or invalid JSON
        """
        url = f"{self.settings.api_url.rstrip('/')}/{path.lstrip('/')}"
        try:
            response = self.session.get(url, params=params, timeout=self.settings.timeout_seconds)
        except requests.RequestException as e:
            raise CatalogError(f"Request to {url} failed: {e}") from e

        if response.status_code != 200:
            raise CatalogError(f"Request to {url} failed with status {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise CatalogError(f"Invalid JSON from {url}") from e

    @cache_catalog_response("anime")
    def _fetch_anime_detail(self, slug: str) -> dict | None:
        return self._get(f"anime/{quote(slug)}")

    @cache_catalog_response("episode")
    def _fetch_episode_detail(self, slug: str, season_number: int, episode_number: int) -> dict | None:
        return self._get(f"anime/{quote(slug)}/season/{season_number}/episode/{episode_number}")

    def search(self, query: str) -> list[AnimeResult]:
        """Search anime by free text."""
        try:
            data = self._get("anime/search", params={"q": query})
        except CatalogError as e:
            logger.error(f"Error searching anime: {e}")
            return []

        if not isinstance(data, list):
            logger.error(f"Unexpected search response for '{query}'")
            return []

        results = []
        for item in data:
            try:
                results.append(AnimeResult.model_validate(item))
            except ValidationError:
                logger.debug(f"Skipping malformed search result: {item!r:.120}")
        return results

    def get_anime_detail(self, slug: str) -> AnimeDetail | None:
        """Get anime details including seasons."""
        try:
            return AnimeDetail.model_validate(self._fetch_anime_detail(slug))
        except (CatalogError, ValidationError) as e:
            logger.error(f"Error getting anime detail for '{slug}': {e}")
            return None

    def get_anime_episodes(self, slug: str, season_number: int) -> list[Episode]:
        """List the episodes of one season.

        The catalog only reports episode counts, so entries are numbered
        1..episode_count.
        """
        detail = self.get_anime_detail(slug)
        if not detail:
            return []

        season = detail.get_season(season_number)
        if not season or not season.has_episode:
            return []

        return [
            Episode(
                title=f"Episode {number}",
                season_number=season_number,
                episode_number=number,
                url=f"{WEB_URL}/anime/{slug}/{season_number}/{number}",
            )
            for number in range(1, season.episode_count + 1)
        ]

    def get_episode_detail(self, slug: str, season_number: int, episode_number: int) -> EpisodeDetail | None:
        """Get episode details including fansub releases and files."""
        try:
            data = self._fetch_episode_detail(slug, season_number, episode_number)
            return EpisodeDetail.model_validate(data)
        except (CatalogError, ValidationError) as e:
            logger.error(
                f"Error getting episode detail for '{slug}' S{season_number}E{episode_number}: {e}"
            )
            return None

    def build_video_url(
        self,
        slug: str,
        season_number: int,
        episode_number: int,
        detail: EpisodeDetail,
        fansub_id: str | None = None,
    ) -> str | None:
        """Direct video URL of the highest resolution file.

        The fansub segment falls back to the episode's default release when
        fansub_id is not one of the releases listed for the episode.
        """
        best = detail.best_file()
        if best is None:
            return None

        fansub = detail.get_fansub(fansub_id) or detail.episode_data.fansub
        if fansub is None:
            return None

        base_url = self.settings.video_base_url.rstrip("/")
        return (
            f"{base_url}/animes/{slug}/{season_number}/"
            f"{episode_number}-{fansub.id}-{best.resolution}p.mp4?big=1"
        )

    def get_video_url(
        self,
        slug: str,
        season_number: int,
        episode_number: int,
        fansub_id: str | None = None,
    ) -> str | None:
        """Resolve the playable URL of an episode."""
        detail = self.get_episode_detail(slug, season_number, episode_number)
        if not detail:
            return None
        return self.build_video_url(slug, season_number, episode_number, detail, fansub_id)


catalog_client = CatalogClient()
