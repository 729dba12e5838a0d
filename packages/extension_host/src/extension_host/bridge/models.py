"""Payloads exchanged with the privileged bridge."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

AiEventKind = Literal["chunk", "done", "error"]


@dataclass(frozen=True)
class ExecRequest:
    """One mediated process execution."""

    file: str
    args: tuple[str, ...] = ()
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    input: str | None = None

    def command_line(self) -> str:
        return " ".join([self.file, *self.args])


@dataclass(frozen=True)
class ExecResult:
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0


@dataclass(frozen=True)
class FileStat:
    size: int
    is_file: bool = True
    is_directory: bool = False
    mtime: float = 0.0


@dataclass(frozen=True)
class HttpRequest:
    url: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: str | bytes | None = None


@dataclass(frozen=True)
class HttpResponse:
    """Proxied response; ``status`` 0 marks a transport failure."""

    status: int
    status_text: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    body_text: str = ""
    url: str = ""


@dataclass(frozen=True)
class Application:
    name: str
    path: str = ""
    bundle_id: str | None = None


@dataclass(frozen=True)
class AiEvent:
    """Incremental delivery for one streaming AI request."""

    request_id: str
    kind: AiEventKind
    data: str = ""


@dataclass(frozen=True)
class TrayUpdate:
    """Serialized menu-bar state pushed to the native tray."""

    ext_id: str
    title: str = ""
    tooltip: str = ""
    icon_path: str | None = None
    icon_emoji: str | None = None
    items: tuple[dict[str, Any], ...] = ()
