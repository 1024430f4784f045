"""Tests for commands/anime.py flows (prompts mocked)."""

import importlib
from unittest.mock import patch

from models.models import Episode
from services.continuity_service import ContinueAction

# commands/__init__ re-exports the anime() handler under the module name
commands = importlib.import_module("commands.anime")


class TestContinueFlow:
    """Test the continue menu wiring."""

    def test_resume_goes_to_episode_with_offset(self, make_engine, make_record):
        record = make_record(episode_number=2, time_pos=605, duration=1440)
        with patch.object(commands, "select_value", return_value=ContinueAction.RESUME), patch.object(
            commands, "episode_flow"
        ) as episode_flow:
            commands.continue_flow(make_engine(), record)

        _, slug, episode, start_time = episode_flow.call_args[0]
        assert slug == "frieren"
        assert episode.episode_number == 2
        assert start_time == 605

    def test_missing_next_falls_back_to_season(self, make_engine, make_record):
        record = make_record(episode_number=3)
        with patch.object(commands, "select_value", return_value=ContinueAction.NEXT), patch.object(
            commands, "season_flow"
        ) as season_flow, patch.object(commands, "episode_flow") as episode_flow:
            commands.continue_flow(make_engine(), record)

        season_flow.assert_called_once()
        assert season_flow.call_args[0][1:] == ("frieren", 1)
        episode_flow.assert_not_called()

    def test_back_does_nothing(self, make_engine, make_record):
        with patch.object(commands, "select_value", return_value=None), patch.object(
            commands, "season_flow"
        ) as season_flow:
            commands.continue_flow(make_engine(), make_record())

        season_flow.assert_not_called()


class TestActionFlow:
    """Test the episode action menu."""

    def test_copy_marks_watched(self, make_engine, history, fake_catalog, capsys):
        fake_catalog.get_video_url = lambda slug, s, e, fansub_id=None: "https://video.example/1.mp4"
        episode = Episode(title="Episode 1", season_number=1, episode_number=1)

        with patch.object(commands, "select_value", return_value="copy"):
            commands.action_flow(make_engine(), "frieren", episode, "7")

        assert "https://video.example/1.mp4" in capsys.readouterr().out
        assert history.most_recent().progress == 100

    def test_play_runs_watch(self, make_engine, make_player, fake_catalog):
        fake_catalog.get_video_url = lambda slug, s, e, fansub_id=None: "https://video.example/1.mp4"
        player = make_player()
        episode = Episode(title="Episode 1", season_number=1, episode_number=1)

        with patch.object(commands, "select_value", return_value="play"):
            commands.action_flow(make_engine(player=player), "frieren", episode, "7")

        assert len(player.calls) == 1
