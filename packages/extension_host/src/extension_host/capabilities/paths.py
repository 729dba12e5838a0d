"""Path normalization and command lookup for the emulated runtime."""

from __future__ import annotations

import logging
import os
import posixpath
import re
import shlex
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote, urlparse

from extension_host.bridge.models import ExecRequest

if TYPE_CHECKING:
    from collections.abc import Sequence

    from extension_host.bridge.protocol import PrivilegedBridge

logger = logging.getLogger(__name__)

_BARE_COMMAND = re.compile(r"^[A-Za-z0-9._+-]+$")
_FIRST_TOKEN = re.compile(r"^\s*(?:\"([^\"]+)\"|'([^']+)'|(\S+))(.*)$", re.DOTALL)


def _maybe_unquote(value: str) -> str:
    return unquote(value) if "%" in value else value


def normalize_fs_path(value: Any) -> str:
    """Collapse ``file://`` URLs, percent-encoding, and path-likes to a path string."""
    if value is None or value == "":
        return ""
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("utf-8", errors="replace")
    elif isinstance(value, os.PathLike):
        value = os.fspath(value)
    elif not isinstance(value, str):
        href = getattr(value, "href", None)
        value = href if isinstance(href, str) else str(value)
    if value.startswith("file://"):
        return _maybe_unquote(urlparse(value).path or value.removeprefix("file://"))
    return _maybe_unquote(value)


def is_bare_command_path(path: str) -> bool:
    """Return True for names like ``git`` that carry no directory part."""
    if not path or "/" in path or "\\" in path or path.startswith("."):
        return False
    return bool(_BARE_COMMAND.match(path))


class CommandResolver:
    """Resolve bare command names to absolute paths through the bridge.

    Results, including misses, are cached for the life of the resolver. One
    resolver is shared by every extension of a host.
    """

    def __init__(
        self,
        bridge: PrivilegedBridge,
        *,
        shell: str = "/bin/zsh",
        common_dirs: Sequence[str] = ("/opt/homebrew/bin", "/usr/local/bin", "/usr/bin", "/bin"),
    ) -> None:
        self._bridge = bridge
        self._shell = shell
        self._common_dirs = tuple(common_dirs)
        self._cache: dict[str, str | None] = {}

    def clear(self) -> None:
        self._cache.clear()

    def cached(self, command: str) -> bool:
        return command in self._cache

    def resolve(self, command: str) -> str | None:
        """Return the absolute path of ``command`` or None when not found."""
        if not is_bare_command_path(command):
            return None
        if command in self._cache:
            return self._cache[command]
        resolved = self._lookup(command)
        self._cache[command] = resolved
        return resolved

    def _lookup(self, command: str) -> str | None:
        probe = f"command -v -- {shlex.quote(command)} 2>/dev/null || true"
        result = self._bridge.exec_sync(ExecRequest(file=self._shell, args=("-lc", probe)))
        candidate = result.stdout.strip().splitlines()[0] if result.stdout.strip() else ""
        if "/" in candidate:
            return candidate
        for directory in self._common_dirs:
            path = f"{directory}/{command}"
            if self._bridge.file_exists(path):
                return path
        logger.debug("Command %s not found on PATH", command)
        return None

    def resolve_executable(self, value: Any) -> str:
        """Map a bare or stale absolute executable path to one that exists."""
        raw = value if isinstance(value, str) else str(value or "")
        if not raw:
            return raw
        bare = self.resolve(raw)
        if bare:
            return bare
        if raw.startswith("/") and not self._bridge.file_exists(raw):
            base = raw.rstrip("/").rsplit("/", 1)[-1]
            if base:
                alternative = self.resolve(base)
                if alternative:
                    return alternative
        return raw

    def rewrite_shell_command(self, command: str) -> str:
        """Replace a missing first token with its resolved absolute path."""
        if not command:
            return command
        match = _FIRST_TOKEN.match(command)
        if match is None:
            return command
        first = match.group(1) or match.group(2) or match.group(3) or ""
        rest = match.group(4) or ""
        resolved = self.resolve_executable(first)
        if not resolved or resolved == first:
            return command
        return f"{shlex.quote(resolved)}{rest}"

    def lookup_path(self, value: Any, cwd: str = "/") -> str:
        """Canonical key for filesystem access to ``value``."""
        path = normalize_fs_path(value)
        if not path:
            return path
        resolved = self.resolve(path)
        if resolved:
            return resolved
        if not path.startswith("/"):
            path = posixpath.join(cwd or "/", path)
        return posixpath.normpath(path)
