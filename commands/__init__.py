"""Command handlers for openani-cli.

Each module handles a specific user interaction flow:
- anime.py: Anime search, selection, playback and watch history
- config.py: Showing and resetting the configuration file
"""

from commands.anime import anime
from commands.config import config_command

__all__ = ["anime", "config_command"]
