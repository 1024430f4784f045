"""Logging configuration for openani-cli using loguru.

Provides centralized logging setup with file rotation (max 50MB per file).
Use get_logger() to get a logger instance for any module.
"""

import sys

from loguru import logger as _base_logger

from models.config import get_data_path

# Store configuration state to prevent re-initialization
_initialized = False


def configure_logging(debug: bool = False, force: bool = False) -> None:
    """Configure loguru for the entire application.

    Args:
        debug: If True, set console logging to DEBUG level instead of WARNING
        force: Reconfigure even if logging was already set up (used by --debug,
            which is parsed after the first module-level get_logger() call)
    """
    global _initialized

    if _initialized and not force:
        return

    # Remove default handler (and ours, when forced)
    _base_logger.remove()

    # Console handler (WARNING by default, DEBUG if debug=True)
    console_level = "DEBUG" if debug else "WARNING"
    _base_logger.add(
        sys.stderr,
        format="<level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=console_level,
    )

    # File handler with rotation (50MB per file, keep last 10 files)
    log_dir = get_data_path()
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        _base_logger.add(
            log_dir / "openani-cli.log",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
            level="DEBUG",
            rotation="50 MB",
            retention=10,
            compression="zip",
        )
    except OSError as e:
        # Read-only home directories still get console logging
        _base_logger.bind(name=__name__).warning(f"File logging disabled: {e}")

    _initialized = True


def get_logger(name: str):
    """Get a configured logger instance for a module.

    Automatically configures logging if not already done.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured loguru logger instance
    """
    if not _initialized:
        configure_logging()

    return _base_logger.bind(name=name)
