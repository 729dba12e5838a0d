"""Evaluation sandbox for one extension bundle."""

from __future__ import annotations

import logging
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

from extension_host.api.namespace import build_api_module, build_utils_module
from extension_host.capabilities.abort import AbortController, AbortSignal
from extension_host.capabilities.buffer import Buffer
from extension_host.capabilities.child_process import ChildProcessModule
from extension_host.capabilities.crypto import CryptoModule
from extension_host.capabilities.fs import EmulatedFs
from extension_host.capabilities.process import OsModule, PathModule, ProcessInfo
from extension_host.capabilities.timers import Timers
from extension_host.capabilities.util import Url, format_message
from extension_host.errors import error_message
from extension_host.loader.providers import IDENTITY_MODULES, ProviderRegistry, builtin_modules
from extension_host.loader.shims import third_party_modules
from extension_host.logging_utils import extension_log_scope, extension_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from extension_host.api.environment import Environment
    from extension_host.capabilities.fs import FileStore
    from extension_host.capabilities.paths import CommandResolver
    from extension_host.config.settings import Settings
    from extension_host.services import ExtensionServices
    from extension_host.ui.navigation import Navigation

logger = logging.getLogger(__name__)

API_MODULE = "@raycast/api"
UTILS_MODULE = "@raycast/utils"
DEFAULT_BUNDLE_FILENAME = "<extension bundle>"

_PRIMITIVES = (str, bytes, int, float, bool)


class Console:
    """``console`` object forwarding to the extension's logger."""

    def __init__(self, ext_id: str) -> None:
        self._logger = extension_logger(ext_id)

    def _emit(self, level: int, args: tuple[Any, ...]) -> None:
        self._logger.log(level, "%s", format_message(*args) if args else "")

    def log(self, *args: Any) -> None:
        self._emit(logging.INFO, args)

    info = log

    def debug(self, *args: Any) -> None:
        self._emit(logging.DEBUG, args)

    trace = debug

    def warn(self, *args: Any) -> None:
        self._emit(logging.WARNING, args)

    def error(self, *args: Any) -> None:
        self._emit(logging.ERROR, args)


class Sandbox:
    """Capabilities and module providers for one running extension.

    Built once per view; ``require`` resolves against a registry filled here
    and never changes afterwards.
    """

    def __init__(
        self,
        services: ExtensionServices,
        navigation: Navigation,
        *,
        files: FileStore,
        resolver: CommandResolver,
        settings: Settings,
        environment: Environment,
    ) -> None:
        self.services = services
        self.settings = settings
        self.process = ProcessInfo(home_dir=settings.home_dir, system_path=settings.system_path)
        self.timers = Timers()
        self.fs = EmulatedFs(files, services.bridge, resolver, self.process)
        self.child_process = ChildProcessModule(services.bridge, resolver, self.process, shell=settings.shell)
        self.path = PathModule(self.process)
        self.os = OsModule(self.process)
        self.crypto = CryptoModule()
        self.console = Console(services.ext_id)

        self.modules = ProviderRegistry()
        self.modules.register_many(IDENTITY_MODULES)
        self.modules.register(API_MODULE, build_api_module(services, navigation, environment))
        self.modules.register(UTILS_MODULE, build_utils_module(services))
        self.modules.register_many(third_party_modules(services.fetch))
        self.modules.register_many(
            builtin_modules(
                process=self.process,
                fs=self.fs,
                path=self.path,
                os=self.os,
                child_process=self.child_process,
                crypto=self.crypto,
                timers=self.timers,
            ),
        )

    def require(self, name: str) -> Any:
        return self.modules.resolve(name)

    def prepend_extension_path(self, extension_path: str) -> None:
        """Put the extension's own binary directories ahead of the system path."""
        self.process.env["HOME"] = self.settings.home_dir
        if not extension_path:
            self.process.env["PATH"] = self.settings.system_path
            return
        root = extension_path.rstrip("/")
        self.process.env["PATH"] = f"{root}/node_modules/.bin:{root}/bin:{root}:{self.settings.system_path}"

    def globals(self, filename: str) -> dict[str, Any]:
        """Fresh namespace a bundle is executed in."""
        module = SimpleNamespace(exports=SimpleNamespace(), id=filename, filename=filename)
        return {
            "__name__": "__extension__",
            "__file__": filename,
            "require": self.require,
            "module": module,
            "exports": module.exports,
            "process": self.process,
            "Buffer": Buffer,
            "fetch": self.services.fetch,
            "console": self.console,
            "set_timeout": self.timers.set_timeout,
            "set_interval": self.timers.set_interval,
            "set_immediate": self.timers.set_immediate,
            "clear_timeout": self.timers.clear_timeout,
            "clear_interval": self.timers.clear_interval,
            "clear_immediate": self.timers.clear_immediate,
            "AbortController": AbortController,
            "AbortSignal": AbortSignal,
            "URL": Url,
        }

    def close(self) -> None:
        self.timers.cancel_all()


def _namespace_get(namespace: Any, name: str) -> Any:
    if isinstance(namespace, dict):
        return namespace.get(name)
    return getattr(namespace, name, None)


def _entry_point(namespace: dict[str, Any]) -> Callable[..., Any] | None:
    module = namespace.get("module")
    exports = _namespace_get(module, "exports") if module is not None else None
    default = _namespace_get(exports, "default")
    entry = default if default is not None else exports
    if isinstance(entry, SimpleNamespace) and not vars(entry):
        return None
    if isinstance(entry, dict) and not entry:
        return None
    if entry is None or isinstance(entry, _PRIMITIVES):
        return None
    if callable(entry):
        return entry

    def constant(**_: Any) -> Any:
        return entry

    return constant


def load_extension_export(
    code: str,
    sandbox: Sandbox,
    *,
    extension_path: str = "",
    filename: str = DEFAULT_BUNDLE_FILENAME,
) -> Callable[..., Any] | None:
    """Evaluate ``code`` and return its entry point, or ``None`` on failure."""
    sandbox.prepend_extension_path(extension_path)
    namespace = sandbox.globals(filename)
    ext_id = sandbox.services.ext_id
    try:
        with extension_log_scope(ext_id):
            compiled = compile(code, filename, "exec")
            exec(compiled, namespace)  # noqa: S102 - bundles run inside the sandbox namespace
            entry = _entry_point(namespace)
    except Exception as exc:  # noqa: BLE001 - load failures become a recoverable state
        logger.error("Failed to load extension %s: %s", ext_id, error_message(exc, type(exc).__name__))
        return None
    if entry is None:
        logger.warning("Extension %s exported no entry point", ext_id)
    elif sandbox.modules.unknown:
        logger.info("Extension %s loaded with inert modules: %s", ext_id, ", ".join(sandbox.modules.unknown))
    return entry
