"""Custom exception hierarchy for openani-cli.

Provides specific exception types for the failure scenarios of the
watch-session layer, making error handling more precise and testable.
Most of these never reach the user: the service layer catches them,
logs them and falls back to a safe default (empty history, zero progress,
manual episode selection).
"""


class OpenAniError(Exception):
    """Base exception for all openani-cli errors."""

    pass


class PersistenceError(OpenAniError):
    """Raised when JSON file I/O operations fail."""

    pass


class StoreUnavailable(PersistenceError):
    """Raised when the watch history file is missing or corrupt."""

    pass


class SnapshotUnreadable(OpenAniError):
    """Raised when the progress snapshot is missing or unparseable."""

    pass


class PlayerUnavailable(OpenAniError):
    """Raised when the external video player binary cannot be found."""

    pass


class PlayerProcessFailure(OpenAniError):
    """Raised when the player exits non-zero or cannot be spawned."""

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class PlaybackInterrupted(OpenAniError):
    """Raised when the user interrupts playback from the terminal (Ctrl+C).

    Carries the best-effort playback result collected before the player
    was torn down, so the caller can still persist it.
    """

    def __init__(self, result) -> None:
        super().__init__("Playback interrupted by user")
        self.result = result


class EpisodeLookupFailure(OpenAniError):
    """Raised when a target episode is not present in the catalog listing."""

    pass


class CatalogError(OpenAniError):
    """Raised when catalog API requests fail or return unexpected data."""

    pass


class DownloadError(OpenAniError):
    """Raised when every available downloader fails."""

    pass


class ConfigError(OpenAniError):
    """Raised when configuration is invalid or cannot be saved."""

    pass
