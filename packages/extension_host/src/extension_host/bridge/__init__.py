"""Privileged bridge boundary and implementations."""

from extension_host.bridge.local import LocalBridge
from extension_host.bridge.models import (
    AiEvent,
    Application,
    ExecRequest,
    ExecResult,
    FileStat,
    HttpRequest,
    HttpResponse,
    TrayUpdate,
)
from extension_host.bridge.protocol import PrivilegedBridge

__all__ = [
    "AiEvent",
    "Application",
    "ExecRequest",
    "ExecResult",
    "FileStat",
    "HttpRequest",
    "HttpResponse",
    "LocalBridge",
    "PrivilegedBridge",
    "TrayUpdate",
]
