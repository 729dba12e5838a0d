"""Cooperative cancellation tokens."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from extension_host.errors import AbortError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class AbortSignal:
    """Trips once; listeners registered before or after are notified exactly once."""

    def __init__(self) -> None:
        self.aborted = False
        self.reason: Any = None
        self._listeners: list[Callable[..., Any]] = []

    @classmethod
    def abort(cls, reason: Any = None) -> AbortSignal:
        """Return an already tripped signal."""
        signal = cls()
        signal._trip(reason)
        return signal

    def add_event_listener(self, event: str, listener: Callable[..., Any], options: Any = None) -> None:
        if event != "abort":
            return
        if self.aborted:
            listener()
            return
        self._listeners.append(listener)

    def remove_event_listener(self, event: str, listener: Callable[..., Any]) -> None:
        if event == "abort" and listener in self._listeners:
            self._listeners.remove(listener)

    def throw_if_aborted(self) -> None:
        if self.aborted:
            raise self.reason if isinstance(self.reason, BaseException) else AbortError()

    def _trip(self, reason: Any) -> None:
        if self.aborted:
            return
        self.aborted = True
        self.reason = reason if reason is not None else AbortError()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            try:
                listener()
            except Exception:  # noqa: BLE001 - defensive isolation
                logger.exception("Abort listener failed")


class AbortController:
    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: Any = None) -> None:
        self.signal._trip(reason)
