"""Key/value storage backends used for save slots."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Dict, List, Protocol

from gamebook import config

logger = logging.getLogger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class StorageError(Exception):
    """Base exception for storage backends."""


class StorageQuotaExceededError(StorageError):
    """Raised when a write would exceed the available storage."""


class StorageAccessError(StorageError):
    """Raised when storage is present but not accessible (e.g. private browsing)."""


class StorageProvider(Protocol):
    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> List[str]: ...


class InMemoryStorageProvider:
    """Dict-backed provider for tests and headless runs.

    ``quota_bytes`` caps the total encoded size of all values and
    ``access_denied`` makes every call fail as if storage were blocked.
    """

    def __init__(self, *, quota_bytes: int | None = None, access_denied: bool = False) -> None:
        self._items: Dict[str, str] = {}
        self.quota_bytes = quota_bytes
        self.access_denied = access_denied

    def get_item(self, key: str) -> str | None:
        self._check_access()
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._check_access()
        if self.quota_bytes is not None:
            used = sum(len(item.encode("utf-8")) for name, item in self._items.items() if name != key)
            if used + len(value.encode("utf-8")) > self.quota_bytes:
                raise StorageQuotaExceededError(f"Storage quota of {self.quota_bytes} bytes exceeded")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._check_access()
        self._items.pop(key, None)

    def keys(self) -> List[str]:
        self._check_access()
        return list(self._items)

    def _check_access(self) -> None:
        if self.access_denied:
            raise StorageAccessError("Storage access denied")


class FileStorageProvider:
    """Stores each key as ``<key>.json`` inside a directory."""

    def __init__(self, base_dir: Path | str | None = None) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else config.get_save_dir()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(value, encoding="utf-8")
        logger.debug("Wrote %s", self._path(key))

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            return

    def keys(self) -> List[str]:
        if not self._base_dir.exists():
            return []
        return sorted(path.stem for path in self._base_dir.glob("*.json"))

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self._base_dir / f"{key}.json"
