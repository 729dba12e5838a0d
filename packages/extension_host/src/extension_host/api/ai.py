"""Streaming AI requests correlated by request id.

Each ``ask`` mints an id, registers a pending entry and returns a handle that
is awaitable for the full text and also delivers chunks to ``on("data")``
listeners. Completion, error and abort are terminal: each removes the entry
exactly once, and later events for that id are ignored.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from extension_host.errors import AbortError

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

    from extension_host.bridge.models import AiEvent
    from extension_host.bridge.protocol import PrivilegedBridge
    from extension_host.capabilities.abort import AbortSignal

logger = logging.getLogger(__name__)

AI_UNAVAILABLE_MESSAGE = "AI is not available"
DEFAULT_CREATIVITY = 0.7
CREATIVITY_LEVELS = {"none": 0.0, "low": 0.3, "medium": 0.7, "high": 1.2, "maximum": 2.0}

AI_MODELS = {
    "OpenAI_GPT4o": "openai-gpt-4o",
    "OpenAI_GPT4o-mini": "openai-gpt-4o-mini",
    "OpenAI_GPT4-turbo": "openai-gpt-4-turbo",
    "OpenAI_GPT3.5-turbo": "openai-gpt-3.5-turbo",
    "OpenAI_o1": "openai-o1",
    "OpenAI_o1-mini": "openai-o1-mini",
    "OpenAI_o3-mini": "openai-o3-mini",
    "Anthropic_Claude_Opus": "anthropic-claude-opus",
    "Anthropic_Claude_Sonnet": "anthropic-claude-sonnet",
    "Anthropic_Claude_Haiku": "anthropic-claude-haiku",
}


def resolve_creativity(creativity: str | float | None) -> float:
    """Map a named level or number to a temperature in ``[0, 2]``."""
    if creativity is None:
        return DEFAULT_CREATIVITY
    if isinstance(creativity, (int, float)) and not isinstance(creativity, bool):
        return max(0.0, min(2.0, float(creativity)))
    return CREATIVITY_LEVELS.get(str(creativity).lower(), DEFAULT_CREATIVITY)


class StreamingRequest:
    """Awaitable handle for one streaming request."""

    def __init__(self, request_id: str, loop: asyncio.AbstractEventLoop) -> None:
        self.request_id = request_id
        self._future: asyncio.Future[str] = loop.create_future()
        self._listeners: list[Callable[[str], Any]] = []
        self._chunks: list[str] = []

    def on(self, event: str, listener: Callable[[str], Any]) -> StreamingRequest:
        if event == "data":
            self._listeners.append(listener)
        return self

    @property
    def text(self) -> str:
        """Text accumulated so far."""
        return "".join(self._chunks)

    @property
    def done(self) -> bool:
        return self._future.done()

    def __await__(self) -> Generator[Any, None, str]:
        return self._future.__await__()

    def _emit(self, chunk: str) -> None:
        self._chunks.append(chunk)
        for listener in list(self._listeners):
            try:
                listener(chunk)
            except Exception:  # noqa: BLE001 - defensive isolation
                logger.exception("Stream listener failed for %s", self.request_id)

    def _complete(self) -> None:
        if not self._future.done():
            self._future.set_result(self.text)

    def _fail(self, exc: BaseException) -> None:
        if not self._future.done():
            self._future.set_exception(exc)


@dataclass
class _Pending:
    handle: StreamingRequest
    signal: AbortSignal | None = None
    on_abort: Callable[[], None] | None = field(default=None, repr=False)


class AIRequestBroker:
    """Routes bridge AI events to pending requests by id."""

    def __init__(self, bridge: PrivilegedBridge, *, clock: Callable[[], float] = time.time) -> None:
        self._bridge = bridge
        self._clock = clock
        self._counter = itertools.count(1)
        self._pending: dict[str, _Pending] = {}
        self._unsubscribe: Callable[[], None] | None = None
        self._tasks: set[asyncio.Future[Any]] = set()

    @property
    def pending_ids(self) -> list[str]:
        return list(self._pending)

    def next_request_id(self) -> str:
        return f"ai-req-{next(self._counter)}-{int(self._clock() * 1000)}"

    def available(self) -> bool:
        return bool(self._bridge.ai_available())

    def _ensure_subscribed(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._bridge.subscribe_ai(self.handle_event)

    def ask(
        self,
        prompt: str,
        *,
        model: str | None = None,
        creativity: str | float | None = None,
        signal: AbortSignal | None = None,
    ) -> StreamingRequest:
        loop = asyncio.get_running_loop()
        request_id = self.next_request_id()
        handle = StreamingRequest(request_id, loop)
        if not self.available():
            loop.call_soon(handle._fail, RuntimeError(AI_UNAVAILABLE_MESSAGE))
            return handle
        if signal is not None and signal.aborted:
            handle._fail(AbortError())
            return handle

        self._ensure_subscribed()
        pending = _Pending(handle=handle, signal=signal)
        self._pending[request_id] = pending
        if signal is not None:
            pending.on_abort = lambda: self.abort(request_id)
            signal.add_event_listener("abort", pending.on_abort)

        options = {"model": AI_MODELS.get(model, model) if model else None, "creativity": resolve_creativity(creativity)}
        task = asyncio.ensure_future(self._bridge.ai_ask(request_id, prompt, options))
        self._tasks.add(task)

        def started(future: asyncio.Future[Any]) -> None:
            self._tasks.discard(future)
            if future.cancelled():
                return
            exc = future.exception()
            if exc is not None:
                self._settle(request_id, exc)

        task.add_done_callback(started)
        logger.debug("AI request %s issued", request_id)
        return handle

    def handle_event(self, event: AiEvent) -> None:
        if event.kind == "chunk":
            pending = self._pending.get(event.request_id)
            if pending is not None:
                pending.handle._emit(event.data)
        elif event.kind == "done":
            self._settle(event.request_id, None)
        elif event.kind == "error":
            self._settle(event.request_id, RuntimeError(event.data or "AI request failed"))

    def abort(self, request_id: str) -> None:
        if request_id not in self._pending:
            return
        self._bridge.ai_cancel(request_id)
        self._settle(request_id, AbortError())

    def _settle(self, request_id: str, exc: BaseException | None) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None:
            return
        if pending.signal is not None and pending.on_abort is not None:
            pending.signal.remove_event_listener("abort", pending.on_abort)
        if exc is None:
            pending.handle._complete()
        else:
            logger.debug("AI request %s ended: %s", request_id, exc)
            pending.handle._fail(exc)

    def close(self) -> None:
        """Abort every outstanding request and stop listening to the bridge."""
        for request_id in list(self._pending):
            self.abort(request_id)
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None


class _Models:
    def __getattr__(self, name: str) -> str:
        if name.startswith("__"):
            raise AttributeError(name)
        return AI_MODELS.get(name, name)

    def __getitem__(self, name: str) -> str:
        return AI_MODELS.get(name, name)


class _Creativity:
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    MAXIMUM = "maximum"


class AINamespace:
    """``AI`` object exposed to one extension."""

    Model = _Models()
    Creativity = _Creativity

    def __init__(self, broker: AIRequestBroker) -> None:
        self._broker = broker

    def ask(self, prompt: str, options: dict[str, Any] | None = None, **kwargs: Any) -> StreamingRequest:
        merged = {**(options or {}), **kwargs}
        return self._broker.ask(
            prompt,
            model=merged.get("model"),
            creativity=merged.get("creativity"),
            signal=merged.get("signal"),
        )
