"""Error types surfaced by the extension host."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

FaultPhase = Literal["load", "render", "effect", "action", "command", "stream"]


@dataclass(frozen=True)
class ExtensionFault:
    """Captured failure raised by extension code."""

    ext_id: str
    phase: FaultPhase
    message: str


class ExtensionLoadError(RuntimeError):
    """Bundle evaluation failed or produced no usable entry point."""


class FsError(OSError):
    """Filesystem failure shaped like a POSIX runtime error."""

    def __init__(self, code: str, errno_value: int, syscall: str, path: str, detail: str) -> None:
        message = f"{code}: {detail}, {syscall} '{path}'"
        super().__init__(errno_value, message)
        self.code = code
        self.errno = errno_value
        self.syscall = syscall
        self.path = path
        self.message = message

    def __str__(self) -> str:
        return self.message

    @classmethod
    def not_found(cls, syscall: str, path: str) -> FsError:
        """Build the missing-entry error."""
        return cls("ENOENT", -2, syscall, path, "no such file or directory")


class ExecError(RuntimeError):
    """A mediated process exited unsuccessfully."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        stdout: str = "",
        stderr: str = "",
        cmd: str = "",
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status = code
        self.stdout = stdout
        self.stderr = stderr
        self.cmd = cmd
        self.message = message


class FetchError(RuntimeError):
    """An HTTP request proxied through the bridge failed to complete."""


class AbortError(RuntimeError):
    """A cancellable operation was aborted."""

    def __init__(self, message: str = "Request aborted") -> None:
        super().__init__(message)
        self.message = message


class StoreQuotaError(RuntimeError):
    """The durable key/value store refused a write."""


def error_message(exc: BaseException, default: str) -> str:
    """Return the exception message, or ``default`` when it is empty."""
    text = str(exc).strip()
    return text or default
