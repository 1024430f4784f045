"""Application configuration using Pydantic v2.

Centralized settings for openani-cli including:
- External player and progress bridge settings
- Playback behaviour (auto-play next episode)
- Watch history location and limits
- Catalog API endpoints
- Cache, download and presence settings
- OS-specific data paths

Configuration can be overridden via environment variables:
    OPENANI__PLAYBACK__AUTO_PLAY_NEXT_EPISODE=false
    OPENANI__HISTORY__ENABLE_HISTORY=false
    OPENANI__PLAYER__BINARY=/usr/local/bin/mpv

or persisted in <data path>/config.json (see save_settings()).
"""

import json
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


def get_data_path() -> Path:
    """Get OS-specific data directory for openani-cli.

    Returns:
        Path: ~/.local/state/openani-cli (Linux/macOS) or %APPDATA%\\openani-cli (Windows)
    """
    if os.name == "nt":
        return Path(os.environ.get("APPDATA", Path.home())) / "openani-cli"
    return Path.home() / ".local" / "state" / "openani-cli"


def get_config_file() -> Path:
    """Path of the optional JSON config file."""
    return get_data_path() / "config.json"


class PlayerSettings(BaseModel):
    """External video player configuration."""

    binary: str = Field(
        "mpv",
        min_length=1,
        description="Player executable name or absolute path",
    )
    progress_bridge: Literal["ipc", "script"] = Field(
        "ipc",
        description="How progress is reported back: mpv JSON IPC socket or the bundled Lua script",
    )
    snapshot_file: Path = Field(
        default_factory=lambda: get_data_path() / "temp_progress.json",
        description="Where the player-side progress snapshot is written",
    )
    cache_args: list[str] = Field(
        default_factory=lambda: [
            "--cache=yes",
            "--demuxer-max-bytes=50M",
            "--demuxer-max-back-bytes=25M",
        ],
        description="Streaming cache flags passed to the player",
    )
    extra_args: list[str] = Field(
        default_factory=list,
        description="Additional player arguments (e.g. ['--fullscreen=yes'])",
    )


class PlaybackSettings(BaseModel):
    """Playback behaviour."""

    auto_play_next_episode: bool = Field(
        True,
        description="Automatically play the next episode after finishing one",
    )


class HistorySettings(BaseModel):
    """Watch history persistence."""

    enable_history: bool = Field(
        True,
        description="Record watch history and offer continue/resume options",
    )
    history_file: Path = Field(
        default_factory=lambda: get_data_path() / "watch-history.json",
        description="Path to the watch history JSON file",
    )
    max_entries: int = Field(
        50,
        ge=1,
        le=50,
        description="Maximum number of history records kept (oldest evicted first), at most 50",
    )


class CatalogSettings(BaseModel):
    """Remote catalog API configuration."""

    api_url: str = Field(
        "https://api.openani.me",
        description="Catalog API base URL",
    )
    video_base_url: str = Field(
        "https://do7---ha-k8y3jyfa-8gcx.zyapbot.eu.org",
        description="Base URL of the video file storage",
    )
    user_agent: str = Field(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
        description="User-Agent header sent to the catalog",
    )
    timeout_seconds: float = Field(
        15.0,
        gt=0,
        le=120,
        description="HTTP request timeout",
    )


class CacheSettings(BaseModel):
    """Catalog response cache configuration (SQLite via diskcache)."""

    duration_hours: int = Field(
        6,
        ge=1,
        le=720,
        description="Cache validity duration in hours",
    )
    cache_dir: Path = Field(
        default_factory=lambda: get_data_path() / "cache",
        description="Path to SQLite cache directory (diskcache)",
    )


class DownloadSettings(BaseModel):
    """Episode download configuration."""

    download_path: Path = Field(
        default_factory=lambda: get_data_path() / "downloads",
        description="Where downloaded episodes are saved",
    )


class PresenceSettings(BaseModel):
    """Status broadcasting integration."""

    enable_presence: bool = Field(
        True,
        description="Broadcast what is being watched through the presence integration",
    )
    discord_client_id: str = Field(
        "",
        description="Discord application id for Rich Presence (empty: log updates only)",
    )


class AppSettings(BaseSettings):
    """Root application settings with environment variable support.

    Environment variables use the prefix OPENANI__ with nested delimiters:
    - OPENANI__PLAYBACK__AUTO_PLAY_NEXT_EPISODE=false
    - OPENANI__HISTORY__MAX_ENTRIES=30

    Can also be configured via .env file in project root, or the JSON file
    returned by get_config_file() (lowest priority).
    """

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="OPENANI__",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    player: PlayerSettings = Field(default_factory=PlayerSettings)
    playback: PlaybackSettings = Field(default_factory=PlaybackSettings)
    history: HistorySettings = Field(default_factory=HistorySettings)
    catalog: CatalogSettings = Field(default_factory=CatalogSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    download: DownloadSettings = Field(default_factory=DownloadSettings)
    presence: PresenceSettings = Field(default_factory=PresenceSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources = [init_settings, env_settings, dotenv_settings]
        config_file = get_config_file()
        if _is_readable_json(config_file):
            sources.append(JsonConfigSettingsSource(settings_cls, json_file=config_file))
        return tuple(sources)


def _is_readable_json(path: Path) -> bool:
    """A broken config file must not prevent the CLI from starting."""
    try:
        with path.open(encoding="utf-8") as f:
            return isinstance(json.load(f), dict)
    except (OSError, ValueError):
        return False


def save_settings(app_settings: AppSettings) -> Path:
    """Persist settings to the JSON config file.

    Returns:
        Path of the written config file

    Raises:
        ConfigError: The config file could not be written
    """
    from utils.exceptions import ConfigError, PersistenceError
    from utils.persistence import JSONStore

    config_file = get_config_file()
    try:
        JSONStore(config_file).save(app_settings.model_dump(mode="json"))
    except PersistenceError as e:
        raise ConfigError(f"Could not save configuration: {e}") from e
    return config_file


def reset_settings() -> AppSettings:
    """Delete the JSON config file and return fresh defaults."""
    get_config_file().unlink(missing_ok=True)
    return AppSettings()


# Singleton instance - import and use throughout the app
settings = AppSettings()
