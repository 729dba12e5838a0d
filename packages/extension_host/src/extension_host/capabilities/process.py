"""Static process, os, and path descriptors for sandboxed bundles."""

from __future__ import annotations

import logging
import posixpath
import time
from typing import Any

from extension_host.capabilities.events import EventEmitter
from extension_host.capabilities.streams import Writable, schedule_soon

logger = logging.getLogger(__name__)

NODE_VERSION = "v20.0.0"
PLATFORM = "darwin"

ERRNO = {
    "E2BIG": 7,
    "EACCES": 13,
    "EADDRINUSE": 48,
    "EAGAIN": 35,
    "EBADF": 9,
    "EBUSY": 16,
    "ECONNREFUSED": 61,
    "ECONNRESET": 54,
    "EEXIST": 17,
    "EINTR": 4,
    "EINVAL": 22,
    "EIO": 5,
    "EISDIR": 21,
    "EMFILE": 24,
    "ENOENT": 2,
    "ENOSPC": 28,
    "ENOTDIR": 20,
    "ENOTEMPTY": 66,
    "EPERM": 1,
    "EPIPE": 32,
    "ETIMEDOUT": 60,
}

SIGNALS = {
    "SIGHUP": 1,
    "SIGINT": 2,
    "SIGQUIT": 3,
    "SIGKILL": 9,
    "SIGUSR1": 30,
    "SIGUSR2": 31,
    "SIGPIPE": 13,
    "SIGALRM": 14,
    "SIGTERM": 15,
    "SIGCHLD": 20,
    "SIGSTOP": 17,
}

PRIORITY = {
    "PRIORITY_LOW": 19,
    "PRIORITY_BELOW_NORMAL": 10,
    "PRIORITY_NORMAL": 0,
    "PRIORITY_ABOVE_NORMAL": -7,
    "PRIORITY_HIGH": -14,
    "PRIORITY_HIGHEST": -20,
}


class _LogStream(Writable):
    """Standard stream stand-in that forwards writes to a logger."""

    def __init__(self, name: str) -> None:
        super().__init__(write=self._log)
        self._name = name
        self.is_tty = False

    def _log(self, chunk: Any, encoding: str | None, callback: Any) -> None:
        text = chunk.decode("utf-8", errors="replace") if isinstance(chunk, (bytes, bytearray)) else str(chunk)
        logger.debug("[%s] %s", self._name, text.rstrip("\n"))
        callback()


class ProcessInfo(EventEmitter):
    """Process descriptor; ``env["PATH"]`` and ``env["HOME"]`` are writable."""

    def __init__(self, *, home_dir: str, system_path: str, user: str = "user") -> None:
        super().__init__()
        self.env: dict[str, str] = {
            "NODE_ENV": "production",
            "HOME": home_dir,
            "PATH": system_path,
            "USER": user,
            "TMPDIR": "/tmp",
            "LANG": "en_US.UTF-8",
        }
        self.platform = PLATFORM
        self.version = NODE_VERSION
        self.versions = {"node": NODE_VERSION.removeprefix("v"), "v8": "11.3.244.8", "uv": "1.44.2"}
        self.arch = "arm64"
        self.pid = 1
        self.ppid = 0
        self.argv = ["node", "extension"]
        self.exec_path = "/usr/local/bin/node"
        self.exit_code: int | None = None
        self.stdout = _LogStream("stdout")
        self.stderr = _LogStream("stderr")
        self._cwd = "/"
        self._started = time.monotonic()

    def cwd(self) -> str:
        return self._cwd

    def chdir(self, directory: str) -> None:
        self._cwd = posixpath.normpath(posixpath.join(self._cwd, directory))

    def hrtime(self, previous: tuple[int, int] | None = None) -> tuple[int, int]:
        now = time.monotonic_ns()
        seconds, nanos = divmod(now, 1_000_000_000)
        if previous is not None:
            delta = now - (previous[0] * 1_000_000_000 + previous[1])
            seconds, nanos = divmod(delta, 1_000_000_000)
        return seconds, nanos

    def hrtime_bigint(self) -> int:
        return time.monotonic_ns()

    def uptime(self) -> float:
        return time.monotonic() - self._started

    def memory_usage(self) -> dict[str, int]:
        return {"rss": 0, "heapTotal": 0, "heapUsed": 0, "external": 0}

    def next_tick(self, callback: Any, *args: Any) -> None:
        schedule_soon(lambda: callback(*args))

    def exit(self, code: int = 0) -> None:
        logger.info("Bundle requested process exit with code %s; ignored", code)
        self.exit_code = code

    def kill(self, pid: int, signal: str = "SIGTERM") -> bool:
        logger.debug("Ignoring kill(%s, %s) from bundle", pid, signal)
        return True


class OsModule:
    """POSIX-shaped host description."""

    EOL = "\n"
    constants = {"errno": ERRNO, "signals": SIGNALS, "priority": PRIORITY}

    def __init__(self, process: ProcessInfo) -> None:
        self._process = process

    def homedir(self) -> str:
        return self._process.env.get("HOME", "/")

    def tmpdir(self) -> str:
        return self._process.env.get("TMPDIR", "/tmp").rstrip("/") or "/tmp"

    def platform(self) -> str:
        return PLATFORM

    def type(self) -> str:
        return "Darwin"

    def release(self) -> str:
        return "23.0.0"

    def arch(self) -> str:
        return self._process.arch

    def hostname(self) -> str:
        return "localhost"

    def cpus(self) -> list[dict[str, Any]]:
        return []

    def totalmem(self) -> int:
        return 8 * 1024**3

    def freemem(self) -> int:
        return 4 * 1024**3

    def loadavg(self) -> list[float]:
        return [0.0, 0.0, 0.0]

    def uptime(self) -> float:
        return self._process.uptime()

    def network_interfaces(self) -> dict[str, Any]:
        return {}

    def user_info(self) -> dict[str, Any]:
        user = self._process.env.get("USER", "user")
        return {"username": user, "uid": 501, "gid": 20, "shell": "/bin/zsh", "homedir": self.homedir()}


class PathModule:
    """POSIX path helpers; relative resolution uses the process cwd."""

    sep = "/"
    delimiter = ":"

    def __init__(self, process: ProcessInfo) -> None:
        self._process = process
        self.posix = self

    def join(self, *parts: str) -> str:
        joined = "/".join(part for part in parts if part)
        return posixpath.normpath(joined) if joined else "."

    def resolve(self, *parts: str) -> str:
        resolved = self._process.cwd()
        for part in parts:
            if not part:
                continue
            resolved = part if part.startswith("/") else posixpath.join(resolved, part)
        return posixpath.normpath(resolved)

    def normalize(self, path: str) -> str:
        return posixpath.normpath(path) if path else "."

    def is_absolute(self, path: str) -> bool:
        return path.startswith("/")

    def dirname(self, path: str) -> str:
        stripped = path.rstrip("/") or "/"
        return posixpath.dirname(stripped) or "."

    def basename(self, path: str, ext: str = "") -> str:
        base = posixpath.basename(path.rstrip("/"))
        if ext and base.endswith(ext) and base != ext:
            return base[: -len(ext)]
        return base

    def extname(self, path: str) -> str:
        base = self.basename(path)
        _, ext = posixpath.splitext(base)
        return ext

    def relative(self, start: str, target: str) -> str:
        return posixpath.relpath(self.resolve(target), self.resolve(start))

    def parse(self, path: str) -> dict[str, str]:
        base = self.basename(path)
        ext = self.extname(path)
        root = "/" if path.startswith("/") else ""
        return {"root": root, "dir": self.dirname(path), "base": base, "ext": ext, "name": base[: len(base) - len(ext)]}

    def format(self, parts: dict[str, str]) -> str:
        directory = parts.get("dir") or parts.get("root", "")
        base = parts.get("base") or f"{parts.get('name', '')}{parts.get('ext', '')}"
        if not directory:
            return base
        return directory + base if directory.endswith("/") else f"{directory}/{base}"

    def to_namespaced_path(self, path: str) -> str:
        return path
