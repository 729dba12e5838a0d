"""Clipboard, LocalStorage and Cache surfaces for one extension."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from extension_host.storage import EXTENSION_STORAGE_PREFIX

if TYPE_CHECKING:
    from collections.abc import Callable

    from extension_host.bridge.protocol import PrivilegedBridge
    from extension_host.storage import KeyValueStore

logger = logging.getLogger(__name__)


def _clipboard_text(content: Any) -> str:
    if isinstance(content, dict):
        for key in ("text", "html", "file"):
            value = content.get(key)
            if value is not None:
                return str(value)
        return ""
    return "" if content is None else str(content)


class Clipboard:
    """Clipboard access delegated to the bridge."""

    def __init__(self, bridge: PrivilegedBridge) -> None:
        self._bridge = bridge
        self.pasted: list[str] = []

    async def copy(self, content: Any, options: dict[str, Any] | None = None) -> None:
        text = _clipboard_text(content)
        self._bridge.clipboard_write(text)
        if options and options.get("concealed"):
            logger.debug("Copied concealed clipboard content")

    async def paste(self, content: Any) -> None:
        text = _clipboard_text(content)
        self._bridge.clipboard_write(text)
        self.pasted.append(text)

    async def read_text(self, options: dict[str, Any] | None = None) -> str | None:
        text = self._bridge.clipboard_read()
        return text or None

    async def read(self, options: dict[str, Any] | None = None) -> dict[str, Any]:
        return {"text": self._bridge.clipboard_read()}

    async def clear(self) -> None:
        self._bridge.clipboard_write("")


class LocalStorage:
    """Per-extension key/value storage kept in the shared durable store.

    Values round-trip through JSON so numbers and booleans keep their type.
    """

    def __init__(self, store: KeyValueStore, extension_name: str) -> None:
        self._store = store
        self._prefix = f"{EXTENSION_STORAGE_PREFIX}{extension_name}:"

    @property
    def prefix(self) -> str:
        return self._prefix

    async def get_item(self, key: str) -> Any:
        raw = self._store.get(self._prefix + key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw

    async def set_item(self, key: str, value: Any) -> None:
        self._store.set(self._prefix + key, json.dumps(value))

    async def remove_item(self, key: str) -> None:
        self._store.delete(self._prefix + key)

    async def all_items(self) -> dict[str, Any]:
        items: dict[str, Any] = {}
        for full_key in self._store.keys(self._prefix):
            key = full_key[len(self._prefix) :]
            items[key] = await self.get_item(key)
        return items

    async def clear(self) -> None:
        for full_key in self._store.keys(self._prefix):
            self._store.delete(full_key)


class Cache:
    """Synchronous in-memory cache with change subscribers."""

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        self.namespace = (options or {}).get("namespace")
        self._data: dict[str, str] = {}
        self._subscribers: list[Callable[[str | None, str | None], None]] = []

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def has(self, key: str) -> bool:
        return key in self._data

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._notify(key, value)

    def remove(self, key: str) -> bool:
        existed = self._data.pop(key, None) is not None
        if existed:
            self._notify(key, None)
        return existed

    def clear(self, options: dict[str, Any] | None = None) -> None:
        self._data.clear()
        if (options or {}).get("notify_subscribers", True):
            self._notify(None, None)

    @property
    def is_empty(self) -> bool:
        return not self._data

    def subscribe(self, subscriber: Callable[[str | None, str | None], None]) -> Callable[[], None]:
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def _notify(self, key: str | None, value: str | None) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(key, value)
            except Exception:  # noqa: BLE001 - defensive isolation
                logger.exception("Cache subscriber failed for key %s", key)
