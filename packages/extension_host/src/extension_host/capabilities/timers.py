"""Timer functions scheduled on the running event loop."""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import AsyncIterator, Callable
from typing import Any


class Timers:
    """Per-sandbox timers; ``cancel_all`` runs when the owning view closes."""

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self._handles: dict[int, asyncio.TimerHandle | asyncio.Handle] = {}

    @property
    def pending(self) -> int:
        return len(self._handles)

    def set_timeout(self, callback: Callable[..., Any], delay_ms: float = 0, *args: Any) -> int:
        timer_id = next(self._ids)
        loop = asyncio.get_running_loop()

        def fire() -> None:
            self._handles.pop(timer_id, None)
            callback(*args)

        self._handles[timer_id] = loop.call_later(max(delay_ms, 0) / 1000, fire)
        return timer_id

    def set_interval(self, callback: Callable[..., Any], delay_ms: float = 0, *args: Any) -> int:
        timer_id = next(self._ids)
        loop = asyncio.get_running_loop()
        period = max(delay_ms, 1) / 1000

        def fire() -> None:
            self._handles[timer_id] = loop.call_later(period, fire)
            callback(*args)

        self._handles[timer_id] = loop.call_later(period, fire)
        return timer_id

    def set_immediate(self, callback: Callable[..., Any], *args: Any) -> int:
        timer_id = next(self._ids)

        def fire() -> None:
            self._handles.pop(timer_id, None)
            callback(*args)

        self._handles[timer_id] = asyncio.get_running_loop().call_soon(fire)
        return timer_id

    def clear(self, timer_id: int | None) -> None:
        if timer_id is None:
            return
        handle = self._handles.pop(timer_id, None)
        if handle is not None:
            handle.cancel()

    clear_timeout = clear
    clear_interval = clear
    clear_immediate = clear

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()


class TimerPromises:
    """Awaitable timers."""

    async def set_timeout(self, delay_ms: float = 0, value: Any = None) -> Any:
        await asyncio.sleep(max(delay_ms, 0) / 1000)
        return value

    async def set_immediate(self, value: Any = None) -> Any:
        await asyncio.sleep(0)
        return value

    async def set_interval(self, delay_ms: float = 0, value: Any = None) -> AsyncIterator[Any]:
        while True:
            await asyncio.sleep(max(delay_ms, 1) / 1000)
            yield value

    async def wait(self, delay_ms: float) -> None:
        await asyncio.sleep(max(delay_ms, 0) / 1000)
