"""JSON file persistence utilities.

Provides a unified interface for loading/saving JSON data files
with consistent error handling, directory creation and atomic writes.
"""

import os
import tempfile
from json import dump, load
from pathlib import Path
from typing import Any

from utils.exceptions import PersistenceError
from utils.logging import get_logger

logger = get_logger(__name__)


class JSONStore:
    """Manages JSON file persistence with automatic directory creation and error handling.

    Writes go to a temporary file in the same directory which is then renamed
    over the target, so a crash mid-write never leaves a torn file behind.
    """

    def __init__(self, file_path: Path) -> None:
        """Initialize JSONStore with a file path.

        Args:
            file_path: Path to the JSON file to manage
        """
        self.file_path = Path(file_path)

    def load(self, default: Any = None) -> Any:
        """Load JSON data from file.

        Args:
            default: Value to return if file doesn't exist or is invalid.
                    Defaults to empty dict.

        Returns:
            Loaded JSON data, or default value if file doesn't exist/is invalid

        Raises:
            PersistenceError: On permission errors (won't auto-create file)
        """
        if default is None:
            default = {}

        try:
            with self.file_path.open(encoding="utf-8") as f:
                return load(f)
        except FileNotFoundError:
            return default
        except ValueError as e:
            # JSON decode error (also covers a truncated file)
            logger.warning(f"Ignoring corrupt JSON file {self.file_path}: {e}")
            return default
        except PermissionError as e:
            raise PersistenceError(f"Permission denied reading {self.file_path}") from e

    def save(self, data: Any, *, indent: int = 2) -> None:
        """Atomically save JSON data to file.

        Creates parent directories if they don't exist.

        Args:
            data: Data to serialize to JSON
            indent: JSON indentation level (default 2)

        Raises:
            PersistenceError: On serialization or permission errors. The
                previous file content is left untouched.
        """
        tmp_path = None
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.file_path.parent,
                prefix=f".{self.file_path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_path = Path(f.name)
                dump(data, f, indent=indent, ensure_ascii=False)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.file_path)
        except TypeError as e:
            raise PersistenceError(f"Cannot serialize data: {e}") from e
        except PermissionError as e:
            raise PersistenceError(f"Permission denied writing {self.file_path}") from e
        except OSError as e:
            raise PersistenceError(f"Failed to write {self.file_path}: {e}") from e
        finally:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink(missing_ok=True)

    def remove(self) -> bool:
        """Delete the JSON file.

        Returns:
            True if a file was deleted, False if it was already absent

        Raises:
            PersistenceError: On permission errors
        """
        try:
            self.file_path.unlink()
            return True
        except FileNotFoundError:
            return False
        except PermissionError as e:
            raise PersistenceError(f"Permission denied deleting {self.file_path}") from e

    def exists(self) -> bool:
        """Check if JSON file exists.

        Returns:
            True if file exists
        """
        return self.file_path.exists()
