"""Key-value stores that hold the serialized reminder lists.

A store maps a storage key to a single string value. The storage layer takes a
store instance explicitly, so tests can hand it a MemoryStore and the CLI a
FileStore rooted at the configured data directory.
"""

import logging
import os
import re
from pathlib import Path
from typing import Protocol

from remindlist.config import get_settings

logger = logging.getLogger(__name__)

# Keys become file names, so restrict them to a safe character set
_SAFE_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_\-.]+$")
_MAX_KEY_LENGTH = 200


class StoreError(Exception):
    """Raised when a store cannot read or write a value."""


class QuotaExceededError(StoreError):
    """Raised when writing a value would exceed the store's capacity."""


class KeyValueStore(Protocol):
    """Minimal string key-value store interface."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


def _value_size(value: str) -> int:
    return len(value.encode("utf-8"))


class MemoryStore:
    """In-process store backed by a dict.

    ``max_bytes`` caps the combined UTF-8 size of all values, mirroring the
    fixed quota of browser storage.
    """

    def __init__(self, max_bytes: int | None = None) -> None:
        self._values: dict[str, str] = {}
        self.max_bytes = max_bytes

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        if self.max_bytes is not None:
            used = sum(_value_size(v) for k, v in self._values.items() if k != key)
            if used + _value_size(value) > self.max_bytes:
                raise QuotaExceededError(
                    f"Writing {key!r} would exceed the {self.max_bytes} byte quota"
                )
        self._values[key] = value

    def delete(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._values)


class FileStore:
    """Store that keeps each value in ``<directory>/<key>.json``.

    Writes go to a temporary file that is then renamed over the old one, so a
    value is never left half-written.
    """

    def __init__(self, directory: Path, max_bytes: int | None = None) -> None:
        self.directory = Path(directory).expanduser()
        self.max_bytes = max_bytes

    def _path(self, key: str) -> Path:
        if len(key) > _MAX_KEY_LENGTH:
            raise StoreError(f"Storage key is too long (max {_MAX_KEY_LENGTH} characters)")
        if not _SAFE_KEY_PATTERN.match(key) or key.startswith("."):
            raise StoreError(f"Invalid storage key {key!r}: contains disallowed characters")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise StoreError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        if self.max_bytes is not None and _value_size(value) > self.max_bytes:
            raise QuotaExceededError(
                f"Value for {key!r} exceeds the {self.max_bytes} byte quota"
            )

        tmp = path.with_name(path.name + ".tmp")
        try:
            # Owner-only permissions on the data directory and files
            self.directory.mkdir(parents=True, exist_ok=True, mode=0o700)
            with open(tmp, "w", encoding="utf-8") as f:
                f.write(value)
            os.chmod(tmp, 0o600)
            os.replace(tmp, path)
        except OSError as e:
            raise StoreError(f"Failed to write {path}: {e}") from e

        logger.debug("Wrote %d bytes to %s", _value_size(value), path)

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"Failed to delete {path}: {e}") from e


def get_default_store() -> FileStore:
    """Build the file store configured by settings."""
    settings = get_settings()
    return FileStore(settings.data_dir, max_bytes=settings.store_max_bytes)
