"""Utilities and helper functions.

- video_player: mpv playback session (launch, wait, read final progress)
- progress_bridge: Progress snapshot contract and the mpv IPC monitor
- persistence: Atomic JSON file storage
- cache_manager: Catalog response cache (diskcache)
- downloader: yt-dlp / curl episode downloads
- presence: Status broadcasting capability
- logging / exceptions: Ambient logging and error taxonomy

Key exports from video_player:
- play_video(): Blocking playback returning a PlaybackResult
- PlaybackResult: NamedTuple with progress, position and duration
"""

from utils.video_player import PlaybackResult, play_video

__all__ = [
    "PlaybackResult",
    "play_video",
]
