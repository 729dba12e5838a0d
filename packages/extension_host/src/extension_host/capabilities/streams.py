"""Readable, writable, and transform stream primitives.

Streams deliver chunks through ``data`` events. ``pipe`` forwards ``data``
into the next stage's ``write`` and ``end`` into its ``end``.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterable, AsyncIterator, Callable, Iterable
from typing import Any

from extension_host.capabilities.buffer import Buffer, decode_bytes
from extension_host.capabilities.events import EventEmitter

ChunkCallback = Callable[..., None]
_END = object()


def schedule_soon(callback: Callable[[], Any]) -> None:
    """Run ``callback`` on the next loop iteration, or now without a loop."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        callback()
        return
    loop.call_soon(callback)


def _as_error(err: Any) -> BaseException:
    return err if isinstance(err, BaseException) else RuntimeError(str(err))


class Readable(EventEmitter):
    """Push-based readable stream."""

    def __init__(self, read: Callable[[int], Any] | None = None, *, object_mode: bool = False) -> None:
        super().__init__()
        self._read_impl = read
        self.object_mode = object_mode
        self.readable = True
        self.readable_ended = False
        self.destroyed = False
        self._encoding: str | None = None
        self._buffered: list[Any] = []

    @classmethod
    def from_iterable(cls, iterable: Iterable[Any] | AsyncIterable[Any]) -> Readable:
        """Build a readable that emits each item of ``iterable``."""
        stream = cls(object_mode=True)

        async def drain_async() -> None:
            try:
                async for item in iterable:  # type: ignore[union-attr]
                    stream.push(item)
            except Exception as exc:  # noqa: BLE001 - surfaced as stream error
                stream.destroy(exc)
                return
            stream.push(None)

        def drain() -> None:
            if isinstance(iterable, AsyncIterable):
                asyncio.ensure_future(drain_async())
                return
            if isinstance(iterable, (str, bytes, bytearray)):
                stream.push(iterable)
            else:
                try:
                    for item in iterable:
                        stream.push(item)
                except Exception as exc:  # noqa: BLE001 - surfaced as stream error
                    stream.destroy(exc)
                    return
            stream.push(None)

        schedule_soon(drain)
        return stream

    def set_encoding(self, encoding: str) -> Readable:
        self._encoding = encoding
        return self

    def _decode(self, chunk: Any) -> Any:
        if self._encoding and isinstance(chunk, (bytes, bytearray)):
            return decode_bytes(bytes(chunk), self._encoding)
        return chunk

    def push(self, chunk: Any) -> bool:
        """Deliver ``chunk``; ``None`` signals the end of the stream."""
        if self.readable_ended or self.destroyed:
            return False
        if chunk is None:
            self.readable_ended = True
            self.readable = False
            self.emit("end")
            self.emit("close")
            return False
        chunk = self._decode(chunk)
        if self.listener_count("data") == 0:
            self._buffered.append(chunk)
        else:
            self.emit("data", chunk)
        return True

    def on(self, event: str, listener: Callable[..., Any]) -> Readable:
        super().on(event, listener)
        if event == "data" and self._buffered:
            pending, self._buffered = self._buffered, []
            for chunk in pending:
                self.emit("data", chunk)
        return self

    def read(self, size: int | None = None) -> Any:
        if self._read_impl is not None:
            self._read_impl(size or 16384)
        if not self._buffered:
            return None
        return self._buffered.pop(0)

    def pipe(self, destination: Writable) -> Writable:
        self.on("data", lambda chunk: destination.write(chunk))
        self.once("end", lambda *_: destination.end())
        self.once("error", lambda err: destination.emit("error", err))
        return destination

    def unpipe(self, destination: Writable | None = None) -> Readable:
        self.remove_all_listeners("data")
        return self

    def pause(self) -> Readable:
        return self

    def resume(self) -> Readable:
        return self

    def destroy(self, error: Any = None) -> Readable:
        if self.destroyed:
            return self
        self.destroyed = True
        if error is not None:
            self.emit("error", _as_error(error))
        self.emit("close")
        return self

    async def __aiter__(self) -> AsyncIterator[Any]:
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self.on("data", queue.put_nowait)
        self.once("end", lambda *_: queue.put_nowait(_END))
        self.once("error", lambda err: queue.put_nowait(_as_error(err)))
        if self.readable_ended:
            queue.put_nowait(_END)
        while True:
            item = await queue.get()
            if item is _END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


class _WritableMixin:
    """Write-side behavior shared by writable and duplex streams."""

    def _init_writable(self, write: ChunkCallback | None, final: Callable[[Callable[..., None]], None] | None) -> None:
        self._write_impl = write
        self._final_impl = final
        self.writable = True
        self.writable_ended = False
        self.writable_finished = False
        self.chunks: list[Any] = []

    def _write_chunk(self, chunk: Any, encoding: str | None, callback: Callable[..., None]) -> None:
        if self._write_impl is None:
            self.chunks.append(chunk)
            callback()
            return
        self._write_impl(chunk, encoding, callback)

    def write(self, chunk: Any, encoding: str | None = None, callback: Callable[..., None] | None = None) -> bool:
        if self.writable_ended:
            self.emit("error", RuntimeError("write after end"))  # type: ignore[attr-defined]
            return False

        def done(err: Any = None, *_: Any) -> None:
            if err is not None:
                self.emit("error", _as_error(err))  # type: ignore[attr-defined]
            if callback is not None:
                callback(err)

        self._write_chunk(chunk, encoding, done)
        return True

    def _finish(self) -> None:
        self.writable_finished = True
        self.emit("finish")  # type: ignore[attr-defined]
        self.emit("close")  # type: ignore[attr-defined]

    def end(self, chunk: Any = None, callback: Callable[..., None] | None = None) -> Any:
        if self.writable_ended:
            return self
        if chunk is not None and not callable(chunk):
            self.write(chunk)
        elif callable(chunk):
            callback = chunk
        self.writable_ended = True
        self.writable = False
        if callback is not None:
            self.once("finish", lambda *_: callback())  # type: ignore[attr-defined]
        if self._final_impl is not None:
            self._final_impl(lambda err=None: self.emit("error", _as_error(err)) if err else self._finish())  # type: ignore[attr-defined]
        else:
            self._finish()
        return self

    def cork(self) -> None:
        return None

    def uncork(self) -> None:
        return None

    def text(self) -> str:
        """Return the collected chunks joined as text."""
        parts = [bytes(c).decode("utf-8", errors="replace") if isinstance(c, (bytes, bytearray)) else str(c) for c in self.chunks]
        return "".join(parts)


class Writable(_WritableMixin, EventEmitter):
    """Sink stream; without a ``write`` callback, chunks are collected."""

    def __init__(
        self,
        write: ChunkCallback | None = None,
        final: Callable[[Callable[..., None]], None] | None = None,
    ) -> None:
        EventEmitter.__init__(self)
        self._init_writable(write, final)
        self.destroyed = False

    def destroy(self, error: Any = None) -> Writable:
        if self.destroyed:
            return self
        self.destroyed = True
        if error is not None:
            self.emit("error", _as_error(error))
        self.emit("close")
        return self


class Duplex(_WritableMixin, Readable):
    """Stream that is both readable and writable."""

    def __init__(
        self,
        read: Callable[[int], Any] | None = None,
        write: ChunkCallback | None = None,
        final: Callable[[Callable[..., None]], None] | None = None,
        *,
        object_mode: bool = False,
    ) -> None:
        Readable.__init__(self, read, object_mode=object_mode)
        self._init_writable(write, final)


class Transform(Duplex):
    """Duplex whose readable side is computed from written chunks."""

    def __init__(
        self,
        transform: Callable[[Any, str | None, Callable[..., None]], None] | None = None,
        flush: Callable[[Callable[..., None]], None] | None = None,
        *,
        object_mode: bool = False,
    ) -> None:
        super().__init__(object_mode=object_mode)
        self._transform_impl = transform
        self._flush_impl = flush

    def _write_chunk(self, chunk: Any, encoding: str | None, callback: Callable[..., None]) -> None:
        def done(err: Any = None, data: Any = None) -> None:
            if err is None and data is not None:
                self.push(data)
            callback(err)

        if self._transform_impl is None:
            done(None, chunk)
        else:
            self._transform_impl(chunk, encoding, done)

    def _finish(self) -> None:
        def flushed(err: Any = None, data: Any = None) -> None:
            if err is not None:
                self.emit("error", _as_error(err))
                return
            if data is not None:
                self.push(data)
            self.writable_finished = True
            self.emit("finish")
            self.push(None)

        if self._flush_impl is None:
            flushed()
        else:
            self._flush_impl(flushed)


class PassThrough(Transform):
    """Transform that forwards chunks unchanged."""


async def pipeline(*stages: Any, callback: Callable[[BaseException | None], None] | None = None) -> None:
    """Drain the first stage through every following stage into the last.

    ``stages[0]`` may be a readable, a sync iterable, or an async iterable.
    Completes after the sink emits ``finish``; the first error from any stage
    is raised (or passed to ``callback`` when one is given).
    """
    parts = list(stages)
    if callback is None and parts and callable(parts[-1]) and not isinstance(parts[-1], EventEmitter):
        callback = parts.pop()
    if len(parts) < 2:  # noqa: PLR2004
        msg = "pipeline requires a source and a destination"
        raise ValueError(msg)

    loop = asyncio.get_running_loop()
    done: asyncio.Future[None] = loop.create_future()

    def fail(err: Any = None) -> None:
        if not done.done():
            done.set_exception(_as_error(err))

    def finish(*_: Any) -> None:
        if not done.done():
            done.set_result(None)

    source, *sinks = parts
    for stage in parts:
        if isinstance(stage, EventEmitter):
            stage.on("error", fail)
    sinks[-1].once("finish", finish)
    for upstream, downstream in zip(sinks, sinks[1:], strict=False):
        upstream.pipe(downstream)

    if isinstance(source, Readable):
        source.pipe(sinks[0])
    else:
        try:
            if isinstance(source, AsyncIterable):
                async for chunk in source:
                    sinks[0].write(chunk)
            else:
                for chunk in source:
                    result = sinks[0].write(chunk)
                    if inspect.isawaitable(result):
                        await result
            sinks[0].end()
        except Exception as exc:  # noqa: BLE001 - forwarded to the pipeline result
            fail(exc)

    error: BaseException | None = None
    try:
        await done
    except Exception as exc:  # noqa: BLE001 - reported through callback or re-raised
        error = exc
    if callback is not None:
        callback(error)
    elif error is not None:
        raise error


async def finished(stream: EventEmitter) -> None:
    """Wait until ``stream`` ends, finishes, or errors."""
    if getattr(stream, "readable_ended", False) or getattr(stream, "writable_finished", False):
        return
    loop = asyncio.get_running_loop()
    done: asyncio.Future[None] = loop.create_future()

    def settle(*_: Any) -> None:
        if not done.done():
            done.set_result(None)

    def fail(err: Any = None) -> None:
        if not done.done():
            done.set_exception(_as_error(err))

    stream.once("end", settle)
    stream.once("finish", settle)
    stream.once("error", fail)
    await done


def readable_from_text(text: str | bytes) -> Readable:
    """Readable emitting one Buffer chunk followed by end."""
    data = text.encode("utf-8") if isinstance(text, str) else text
    return Readable.from_iterable([Buffer(data)])
