"""Filesystem emulation over the shared key/value store.

Every access first normalizes its path (``file://`` URLs, percent-encoding,
bare command names, relative paths) so equivalent spellings share one key.
Reads that miss the store fall back to the bridge's read-only view of the
disk before raising ``ENOENT``.
"""

from __future__ import annotations

import base64
import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from extension_host.capabilities.buffer import Buffer, decode_bytes, to_bytes
from extension_host.capabilities.events import EventEmitter
from extension_host.capabilities.streams import Readable, Writable, schedule_soon
from extension_host.errors import FsError, StoreQuotaError
from extension_host.storage import FS_PREFIX

if TYPE_CHECKING:
    from collections.abc import Callable

    from extension_host.bridge.protocol import PrivilegedBridge
    from extension_host.capabilities.paths import CommandResolver
    from extension_host.capabilities.process import ProcessInfo
    from extension_host.storage import KeyValueStore

logger = logging.getLogger(__name__)

_BINARY_MARKER = "\x00b64:"

F_OK = 0
R_OK = 4
W_OK = 2
X_OK = 1


class FileStore:
    """Text content keyed by canonical path, with a memory-first write path.

    A quota failure in the durable store switches this store to memory-only
    persistence for the rest of the session instead of losing the write.
    """

    def __init__(self, durable: KeyValueStore) -> None:
        self._durable = durable
        self._memory: dict[str, str] = {}
        self._deleted: set[str] = set()
        self.memory_only = False

    def get(self, path: str) -> str | None:
        if path in self._memory:
            return self._memory[path]
        if path in self._deleted:
            return None
        return self._durable.get(FS_PREFIX + path)

    def set(self, path: str, text: str) -> None:
        self._memory[path] = text
        self._deleted.discard(path)
        if self.memory_only:
            return
        try:
            self._durable.set(FS_PREFIX + path, text)
        except StoreQuotaError:
            logger.warning("Durable storage full; keeping %s and later writes in memory", path)
            self.memory_only = True

    def delete(self, path: str) -> bool:
        existed = self.get(path) is not None
        self._memory.pop(path, None)
        self._deleted.add(path)
        self._durable.delete(FS_PREFIX + path)
        return existed

    def paths(self, prefix: str = "") -> list[str]:
        durable = [key.removeprefix(FS_PREFIX) for key in self._durable.keys(FS_PREFIX + prefix)]
        seen = dict.fromkeys(
            path for path in [*self._memory, *durable] if path.startswith(prefix) and path not in self._deleted
        )
        return list(seen)


def _encode_content(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return _BINARY_MARKER + base64.b64encode(data).decode("ascii")


def _decode_content(text: str) -> bytes:
    if text.startswith(_BINARY_MARKER):
        return base64.b64decode(text.removeprefix(_BINARY_MARKER))
    return text.encode("utf-8")


def _encoding_of(options: Any) -> str | None:
    if isinstance(options, str):
        return options
    if isinstance(options, dict):
        return options.get("encoding")
    return None


@dataclass(frozen=True)
class Stats:
    """Stat result; ownership and mode are fixed placeholders."""

    size: int
    directory: bool = False
    mode: int = 0o644
    uid: int = 501
    gid: int = 20
    mtime: datetime = field(default_factory=lambda: datetime.now(UTC))

    def is_file(self) -> bool:
        return not self.directory

    def is_directory(self) -> bool:
        return self.directory

    def is_symbolic_link(self) -> bool:
        return False

    def is_block_device(self) -> bool:
        return False

    def is_character_device(self) -> bool:
        return False

    def is_fifo(self) -> bool:
        return False

    def is_socket(self) -> bool:
        return False

    @property
    def mtime_ms(self) -> float:
        return self.mtime.timestamp() * 1000

    @property
    def atime(self) -> datetime:
        return self.mtime

    @property
    def ctime(self) -> datetime:
        return self.mtime

    @property
    def birthtime(self) -> datetime:
        return self.mtime


@dataclass(frozen=True)
class Dirent:
    name: str
    directory: bool = False

    def is_file(self) -> bool:
        return not self.directory

    def is_directory(self) -> bool:
        return self.directory


class EmulatedFs:
    """Synchronous, callback, and promise filesystem surfaces."""

    constants = {"F_OK": F_OK, "R_OK": R_OK, "W_OK": W_OK, "X_OK": X_OK}

    def __init__(
        self,
        files: FileStore,
        bridge: PrivilegedBridge,
        resolver: CommandResolver,
        process: ProcessInfo,
    ) -> None:
        self._files = files
        self._bridge = bridge
        self._resolver = resolver
        self._process = process
        self.promises = FsPromises(self)

    def key(self, path: Any) -> str:
        """Return the canonical storage key for ``path``."""
        return self._resolver.lookup_path(path, self._process.cwd())

    def _read_bytes(self, path: Any, syscall: str = "open") -> bytes:
        key = self.key(path)
        stored = self._files.get(key)
        if stored is not None:
            return _decode_content(stored)
        fallback = self._bridge.read_file_bytes(key)
        if fallback is not None:
            return fallback
        raise FsError.not_found(syscall, key)

    def _is_directory(self, key: str) -> bool:
        prefix = key.rstrip("/") + "/"
        if self._files.paths(prefix):
            return True
        info = self._bridge.stat(key)
        return info is not None and info.is_directory

    # Synchronous API

    def exists_sync(self, path: Any) -> bool:
        key = self.key(path)
        if not key:
            return False
        if self._files.get(key) is not None:
            return True
        return self._bridge.file_exists(key) or self._is_directory(key)

    def read_file_sync(self, path: Any, options: Any = None) -> str | Buffer:
        data = self._read_bytes(path)
        encoding = _encoding_of(options)
        if encoding:
            return decode_bytes(data, encoding)
        return Buffer(data)

    def write_file_sync(self, path: Any, data: Any, options: Any = None) -> None:
        key = self.key(path)
        self._files.set(key, _encode_content(to_bytes(data, _encoding_of(options) or "utf8")))

    def append_file_sync(self, path: Any, data: Any, options: Any = None) -> None:
        key = self.key(path)
        stored = self._files.get(key)
        existing = _decode_content(stored) if stored is not None else b""
        self._files.set(key, _encode_content(existing + to_bytes(data, _encoding_of(options) or "utf8")))

    def mkdir_sync(self, path: Any, options: Any = None) -> str | None:
        return None

    def mkdtemp_sync(self, prefix: str) -> str:
        return f"{prefix}{secrets.token_hex(3)}"

    def readdir_sync(self, path: Any, options: Any = None) -> list[Any]:
        key = self.key(path).rstrip("/") or "/"
        prefix = "/" if key == "/" else key + "/"
        names: dict[str, bool] = {}
        for stored in self._files.paths(prefix):
            remainder = stored[len(prefix) :]
            if not remainder:
                continue
            head, _, tail = remainder.partition("/")
            names[head] = names.get(head, False) or bool(tail)
        for name in self._bridge.list_dir(key):
            names.setdefault(name, False)
        if not names and not self._is_directory(key):
            raise FsError.not_found("scandir", key)
        if isinstance(options, dict) and options.get("with_file_types"):
            return [Dirent(name=name, directory=is_dir) for name, is_dir in names.items()]
        return list(names)

    def stat_sync(self, path: Any, options: Any = None) -> Stats:
        key = self.key(path)
        stored = self._files.get(key)
        if stored is not None:
            return Stats(size=len(_decode_content(stored)))
        if self._files.paths(key.rstrip("/") + "/"):
            return Stats(size=0, directory=True, mode=0o755)
        info = self._bridge.stat(key)
        if info is not None:
            mtime = datetime.fromtimestamp(info.mtime or time.time(), tz=UTC)
            return Stats(size=info.size, directory=info.is_directory, mtime=mtime)
        raise FsError.not_found("stat", key)

    def lstat_sync(self, path: Any, options: Any = None) -> Stats:
        return self.stat_sync(path, options)

    def realpath_sync(self, path: Any, options: Any = None) -> str:
        return self.key(path)

    def access_sync(self, path: Any, mode: int = F_OK) -> None:
        if not self.exists_sync(path):
            raise FsError.not_found("access", self.key(path))

    def unlink_sync(self, path: Any) -> None:
        key = self.key(path)
        if not self._files.delete(key):
            raise FsError.not_found("unlink", key)

    def rm_sync(self, path: Any, options: Any = None) -> None:
        opts = options if isinstance(options, dict) else {}
        key = self.key(path)
        removed = self._files.delete(key)
        if opts.get("recursive"):
            for child in self._files.paths(key.rstrip("/") + "/"):
                self._files.delete(child)
                removed = True
        if not removed and not opts.get("force"):
            raise FsError.not_found("rm", key)

    def rmdir_sync(self, path: Any, options: Any = None) -> None:
        self.rm_sync(path, {"recursive": True, "force": True})

    def rename_sync(self, old_path: Any, new_path: Any) -> None:
        data = self._read_bytes(old_path, "rename")
        self._files.set(self.key(new_path), _encode_content(data))
        self._files.delete(self.key(old_path))

    def copy_file_sync(self, source: Any, destination: Any, mode: int = 0) -> None:
        data = self._read_bytes(source, "copyfile")
        self._files.set(self.key(destination), _encode_content(data))

    def create_read_stream(self, path: Any, options: Any = None) -> Readable:
        stream = Readable()
        encoding = _encoding_of(options)

        def deliver() -> None:
            try:
                data = self._read_bytes(path)
            except FsError as exc:
                stream.destroy(exc)
                return
            stream.emit("open")
            stream.push(decode_bytes(data, encoding) if encoding else Buffer(data))
            stream.push(None)

        schedule_soon(deliver)
        return stream

    def create_write_stream(self, path: Any, options: Any = None) -> Writable:
        append = isinstance(options, dict) and options.get("flags", "w").startswith("a")
        stream = Writable()

        def store(*_: Any) -> None:
            payload = b"".join(to_bytes(chunk) for chunk in stream.chunks)
            if append:
                self.append_file_sync(path, payload)
            else:
                self.write_file_sync(path, payload)

        stream.prepend_listener("finish", store)
        return stream

    def watch(self, path: Any, *args: Any) -> Any:
        watcher = EventEmitter()
        watcher.close = lambda: None  # type: ignore[attr-defined]
        return watcher

    # Callback API

    def _callback(self, operation: Callable[[], Any], callback: Callable[..., Any] | None) -> None:
        if callback is None:
            return
        try:
            result = operation()
        except (FsError, OSError) as exc:
            schedule_soon(lambda: callback(exc))
            return
        schedule_soon(lambda: callback(None, result))

    @staticmethod
    def _split(options: Any, callback: Any) -> tuple[Any, Any]:
        if callable(options) and callback is None:
            return None, options
        return options, callback

    def read_file(self, path: Any, options: Any = None, callback: Any = None) -> None:
        options, callback = self._split(options, callback)
        self._callback(lambda: self.read_file_sync(path, options), callback)

    def write_file(self, path: Any, data: Any, options: Any = None, callback: Any = None) -> None:
        options, callback = self._split(options, callback)
        self._callback(lambda: self.write_file_sync(path, data, options), callback)

    def append_file(self, path: Any, data: Any, options: Any = None, callback: Any = None) -> None:
        options, callback = self._split(options, callback)
        self._callback(lambda: self.append_file_sync(path, data, options), callback)

    def stat(self, path: Any, options: Any = None, callback: Any = None) -> None:
        options, callback = self._split(options, callback)
        self._callback(lambda: self.stat_sync(path), callback)

    lstat = stat

    def access(self, path: Any, mode: Any = None, callback: Any = None) -> None:
        mode, callback = self._split(mode, callback)
        self._callback(lambda: self.access_sync(path), callback)

    def readdir(self, path: Any, options: Any = None, callback: Any = None) -> None:
        options, callback = self._split(options, callback)
        self._callback(lambda: self.readdir_sync(path, options), callback)

    def unlink(self, path: Any, callback: Any = None) -> None:
        self._callback(lambda: self.unlink_sync(path), callback)

    def rm(self, path: Any, options: Any = None, callback: Any = None) -> None:
        options, callback = self._split(options, callback)
        self._callback(lambda: self.rm_sync(path, options), callback)

    def rename(self, old_path: Any, new_path: Any, callback: Any = None) -> None:
        self._callback(lambda: self.rename_sync(old_path, new_path), callback)

    def copy_file(self, source: Any, destination: Any, callback: Any = None) -> None:
        self._callback(lambda: self.copy_file_sync(source, destination), callback)

    def mkdir(self, path: Any, options: Any = None, callback: Any = None) -> None:
        options, callback = self._split(options, callback)
        self._callback(lambda: self.mkdir_sync(path, options), callback)

    def exists(self, path: Any, callback: Callable[[bool], Any]) -> None:
        result = self.exists_sync(path)
        schedule_soon(lambda: callback(result))


class FsPromises:
    """Awaitable filesystem surface."""

    def __init__(self, fs: EmulatedFs) -> None:
        self._fs = fs
        self.constants = fs.constants

    async def read_file(self, path: Any, options: Any = None) -> str | Buffer:
        return self._fs.read_file_sync(path, options)

    async def write_file(self, path: Any, data: Any, options: Any = None) -> None:
        self._fs.write_file_sync(path, data, options)

    async def append_file(self, path: Any, data: Any, options: Any = None) -> None:
        self._fs.append_file_sync(path, data, options)

    async def stat(self, path: Any, options: Any = None) -> Stats:
        return self._fs.stat_sync(path)

    async def lstat(self, path: Any, options: Any = None) -> Stats:
        return self._fs.lstat_sync(path)

    async def access(self, path: Any, mode: int = F_OK) -> None:
        self._fs.access_sync(path, mode)

    async def readdir(self, path: Any, options: Any = None) -> list[Any]:
        return self._fs.readdir_sync(path, options)

    async def unlink(self, path: Any) -> None:
        self._fs.unlink_sync(path)

    async def rm(self, path: Any, options: Any = None) -> None:
        self._fs.rm_sync(path, options)

    async def rename(self, old_path: Any, new_path: Any) -> None:
        self._fs.rename_sync(old_path, new_path)

    async def copy_file(self, source: Any, destination: Any) -> None:
        self._fs.copy_file_sync(source, destination)

    async def mkdir(self, path: Any, options: Any = None) -> None:
        self._fs.mkdir_sync(path, options)

    async def mkdtemp(self, prefix: str) -> str:
        return self._fs.mkdtemp_sync(prefix)

    async def realpath(self, path: Any) -> str:
        return self._fs.realpath_sync(path)
