"""
Tests for catalog_service.py

Coverage:
- Search result parsing (skipping malformed items)
- Anime/episode detail parsing and caching
- Episode listing built from season episode counts
- Video URL construction (highest resolution, fansub fallback)
- Degradation to empty results on HTTP/network errors
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from models.config import CatalogSettings
from models.models import EpisodeDetail
from services.catalog_service import CatalogClient


class FakeCache:
    """Dict-backed stand-in for the diskcache FanoutCache."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, expire=None):
        self.data[key] = value


def response(payload, status=200):
    mock = MagicMock()
    mock.status_code = status
    mock.json.return_value = payload
    return mock


@pytest.fixture
def cache():
    fake = FakeCache()
    with patch("utils.cache_manager.get_cache", return_value=fake):
        yield fake


@pytest.fixture
def client(cache):
    return CatalogClient(
        CatalogSettings(api_url="https://api.example", video_base_url="https://cdn.example/")
    )


class TestSearch:
    """Test anime search."""

    def test_parses_results(self, client):
        payload = [
            {"id": 101, "slug": "frieren", "english": "Frieren", "type": "TV"},
            {"id": 102, "slug": "dandadan", "romaji": "Dandadan"},
        ]
        with patch.object(client.session, "get", return_value=response(payload)) as mock_get:
            results = client.search("fri")

        assert [r.slug for r in results] == ["frieren", "dandadan"]
        assert results[0].id == "101"
        assert results[1].display_title == "Dandadan"
        assert mock_get.call_args.kwargs["params"] == {"q": "fri"}
        assert mock_get.call_args.args[0] == "https://api.example/anime/search"

    def test_skips_malformed_items(self, client):
        payload = [{"id": 101, "slug": "frieren"}, {"english": "no slug"}]
        with patch.object(client.session, "get", return_value=response(payload)):
            assert len(client.search("x")) == 1

    def test_http_error_returns_empty(self, client):
        with patch.object(client.session, "get", return_value=response(None, status=503)):
            assert client.search("x") == []

    def test_network_error_returns_empty(self, client):
        with patch.object(client.session, "get", side_effect=requests.ConnectionError("offline")):
            assert client.search("x") == []

    def test_invalid_json_returns_empty(self, client):
        bad = response(None)
        bad.json.side_effect = ValueError("not json")
        with patch.object(client.session, "get", return_value=bad):
            assert client.search("x") == []


class TestAnimeDetail:
    """Test anime detail and episode listing."""

    def test_detail_is_cached(self, client, cache, anime_detail_payload):
        with patch.object(client.session, "get", return_value=response(anime_detail_payload)) as mock_get:
            first = client.get_anime_detail("frieren")
            second = client.get_anime_detail("frieren")

        assert first.id == "101"
        assert second.number_of_episodes == 3
        assert mock_get.call_count == 1
        assert "anime:frieren" in cache.data

    def test_episode_listing(self, client, anime_detail_payload):
        with patch.object(client.session, "get", return_value=response(anime_detail_payload)):
            episodes = client.get_anime_episodes("frieren", 1)

        assert [e.episode_number for e in episodes] == [1, 2, 3]
        assert episodes[0].url == "https://openani.me/anime/frieren/1/1"

    def test_unknown_season_lists_nothing(self, client, anime_detail_payload):
        with patch.object(client.session, "get", return_value=response(anime_detail_payload)):
            assert client.get_anime_episodes("frieren", 4) == []

    def test_failed_detail_is_not_cached(self, client, cache):
        with patch.object(client.session, "get", return_value=response(None, status=404)):
            assert client.get_anime_detail("missing") is None
        assert cache.data == {}


class TestVideoUrl:
    """Test playable URL resolution."""

    def test_highest_resolution_and_selected_fansub(self, client, episode_detail_factory):
        with patch.object(client.session, "get", return_value=response(episode_detail_factory(3))):
            url = client.get_video_url("frieren", 1, 3, fansub_id="9")

        assert url == "https://cdn.example/animes/frieren/1/3-9-1080p.mp4?big=1"

    def test_unknown_fansub_falls_back_to_default(self, client, episode_detail_factory):
        detail = EpisodeDetail.model_validate(episode_detail_factory(3))
        url = client.build_video_url("frieren", 1, 3, detail, fansub_id="404")

        assert url == "https://cdn.example/animes/frieren/1/3-7-1080p.mp4?big=1"

    def test_no_files(self, client, episode_detail_factory):
        payload = episode_detail_factory(1)
        payload["episodeData"]["files"] = []
        detail = EpisodeDetail.model_validate(payload)

        assert client.build_video_url("frieren", 1, 1, detail) is None

    def test_episode_detail_failure(self, client):
        with patch.object(client.session, "get", return_value=response(None, status=500)):
            assert client.get_video_url("frieren", 1, 1) is None
