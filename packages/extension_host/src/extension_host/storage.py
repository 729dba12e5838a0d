"""Durable key/value store shared by every hosted extension.

Three logical prefixes coexist in one flat namespace: emulated filesystem
paths (``sc-fs:``), extension user storage (``sc-ext-``), and cached hook
state (``sc-cache-``). No directory structure is materialized.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Protocol

from extension_host.errors import StoreQuotaError

logger = logging.getLogger(__name__)

FS_PREFIX = "sc-fs:"
EXTENSION_STORAGE_PREFIX = "sc-ext-"
CACHE_PREFIX = "sc-cache-"


class KeyValueStore(Protocol):
    """String-to-string store with prefix listing."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> list[str]: ...


class MemoryStore:
    """Process-local store; lost on restart."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return [key for key in self._data if key.startswith(prefix)]


class JsonFileStore:
    """Store persisted as a single JSON object on disk.

    Writes that would grow the file past ``quota_bytes`` raise
    :class:`StoreQuotaError` and leave the stored data untouched.
    """

    def __init__(self, path: str | Path, quota_bytes: int = 5 * 1024 * 1024) -> None:
        self._path = Path(path)
        self._quota_bytes = quota_bytes
        self._lock = threading.Lock()
        self._data = self._read()
        self._size = self._measure(self._data)

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable state file %s", self._path)
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(key): str(value) for key, value in raw.items()}

    @staticmethod
    def _measure(data: dict[str, str]) -> int:
        return sum(len(key) + len(value) for key, value in data.items())

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._data, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(self._path)

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            previous = self._data.get(key)
            delta = len(value) - (len(previous) if previous is not None else -len(key))
            if self._size + delta > self._quota_bytes:
                msg = f"Storage quota of {self._quota_bytes} bytes exceeded writing {key!r}"
                raise StoreQuotaError(msg)
            self._data[key] = value
            self._size += delta
            self._flush()

    def delete(self, key: str) -> None:
        with self._lock:
            previous = self._data.pop(key, None)
            if previous is None:
                return
            self._size -= len(key) + len(previous)
            self._flush()

    def keys(self, prefix: str = "") -> list[str]:
        return [key for key in self._data if key.startswith(prefix)]
