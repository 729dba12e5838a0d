"""Minimal event emitter used by streams, child processes, and requests."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Synchronous listener registry keyed by event name.

    Listener failures are logged and isolated so one faulty listener cannot
    stop delivery to the others.
    """

    default_max_listeners = 10

    def __init__(self) -> None:
        self._listeners: dict[str, list[tuple[Listener, bool]]] = defaultdict(list)

    def on(self, event: str, listener: Listener) -> EventEmitter:
        self._listeners[event].append((listener, False))
        return self

    add_listener = on

    def once(self, event: str, listener: Listener) -> EventEmitter:
        self._listeners[event].append((listener, True))
        return self

    def prepend_listener(self, event: str, listener: Listener) -> EventEmitter:
        self._listeners[event].insert(0, (listener, False))
        return self

    def prepend_once_listener(self, event: str, listener: Listener) -> EventEmitter:
        self._listeners[event].insert(0, (listener, True))
        return self

    def off(self, event: str, listener: Listener) -> EventEmitter:
        entries = self._listeners.get(event, [])
        for index, (registered, _) in enumerate(entries):
            if registered is listener:
                del entries[index]
                break
        return self

    remove_listener = off

    def remove_all_listeners(self, event: str | None = None) -> EventEmitter:
        if event is None:
            self._listeners.clear()
        else:
            self._listeners.pop(event, None)
        return self

    def emit(self, event: str, *args: Any) -> bool:
        entries = list(self._listeners.get(event, []))
        if not entries:
            return False
        for listener, once in entries:
            if once:
                self.off(event, listener)
            try:
                listener(*args)
            except Exception:  # noqa: BLE001 - defensive isolation
                logger.exception("Listener for %r failed", event)
        return True

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    def listeners(self, event: str) -> list[Listener]:
        return [listener for listener, _ in self._listeners.get(event, [])]

    def event_names(self) -> list[str]:
        return [name for name, entries in self._listeners.items() if entries]

    def set_max_listeners(self, count: int) -> EventEmitter:
        return self
