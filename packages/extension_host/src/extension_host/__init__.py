from extension_host.api.ai import AIRequestBroker, StreamingRequest
from extension_host.bridge import LocalBridge, PrivilegedBridge
from extension_host.config import Settings, load_settings
from extension_host.context import ExecutionContext, LaunchOptions
from extension_host.errors import (
    AbortError,
    ExecError,
    ExtensionFault,
    ExtensionLoadError,
    FetchError,
    FsError,
    StoreQuotaError,
)
from extension_host.host import ExtensionHost
from extension_host.loader.sandbox import Sandbox, load_extension_export
from extension_host.logging_utils import install_extension_log_filter
from extension_host.services import ExtensionServices
from extension_host.storage import JsonFileStore, KeyValueStore, MemoryStore
from extension_host.view import ExtensionView, ViewStatus

__all__ = [
    "AIRequestBroker",
    "AbortError",
    "ExecError",
    "ExecutionContext",
    "ExtensionFault",
    "ExtensionHost",
    "ExtensionLoadError",
    "ExtensionServices",
    "ExtensionView",
    "FetchError",
    "FsError",
    "JsonFileStore",
    "KeyValueStore",
    "LaunchOptions",
    "LocalBridge",
    "MemoryStore",
    "PrivilegedBridge",
    "Sandbox",
    "Settings",
    "StoreQuotaError",
    "StreamingRequest",
    "ViewStatus",
    "install_extension_log_filter",
    "load_extension_export",
    "load_settings",
]
