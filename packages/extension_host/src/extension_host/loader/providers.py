"""Module providers resolved by a bundle's ``require``."""

from __future__ import annotations

import logging
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

from extension_host.capabilities.buffer import Buffer
from extension_host.capabilities.events import EventEmitter
from extension_host.capabilities.streams import (
    Duplex,
    PassThrough,
    Readable,
    Transform,
    Writable,
    finished,
    pipeline,
)
from extension_host.capabilities.timers import TimerPromises
from extension_host.capabilities.util import (
    QueryString,
    Url,
    callbackify,
    deprecate,
    file_url_to_path,
    format_message,
    inspect,
    is_deep_strict_equal,
    path_to_file_url,
    promisify,
)
from extension_host.ui import element, renderer

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from extension_host.capabilities.child_process import ChildProcessModule
    from extension_host.capabilities.crypto import CryptoModule
    from extension_host.capabilities.fs import EmulatedFs
    from extension_host.capabilities.process import OsModule, PathModule, ProcessInfo
    from extension_host.capabilities.timers import Timers

logger = logging.getLogger(__name__)

NODE_PREFIX = "node:"


def noop(*_: Any, **__: Any) -> None:
    return None


class InertModule:
    """Stand-in for a module nobody provides.

    Every attribute is a no-op callable, so importing never fails and only
    the calls a bundle actually makes do nothing.
    """

    def __init__(self, name: str) -> None:
        self._name = name

    def __getattr__(self, attribute: str) -> Any:
        if attribute.startswith("__") and attribute.endswith("__"):
            raise AttributeError(attribute)
        if attribute == "default":
            return InertModule(f"{self._name}.default")
        return noop

    def __getitem__(self, key: Any) -> Any:
        return noop

    def __call__(self, *_: Any, **__: Any) -> None:
        return None

    def __iter__(self) -> Iterator[Any]:
        return iter(())

    def __repr__(self) -> str:
        return f"<InertModule {self._name!r}>"


def _jsx(type_: Any, props: dict[str, Any] | None = None, key: Any = None) -> element.Element:
    attrs = dict(props or {})
    if key is not None:
        attrs["key"] = key
    return element.create_element(type_, attrs)


# One instance for the whole process: bundles and host components share the
# same element factory and hook dispatcher.
REACT = SimpleNamespace(
    create_element=element.create_element,
    clone_element=element.clone_element,
    is_valid_element=element.is_valid_element,
    create_context=element.create_context,
    Fragment=element.Fragment,
    use_state=renderer.use_state,
    use_reducer=renderer.use_reducer,
    use_ref=renderer.use_ref,
    use_memo=renderer.use_memo,
    use_callback=renderer.use_callback,
    use_effect=renderer.use_effect,
    use_layout_effect=renderer.use_layout_effect,
    use_context=renderer.use_context,
    use_id=renderer.use_id,
)
REACT.default = REACT
JSX_RUNTIME = SimpleNamespace(jsx=_jsx, jsxs=_jsx, jsx_dev=_jsx, Fragment=element.Fragment)
REACT_DOM = SimpleNamespace(create_root=noop, render=noop, create_portal=lambda child, *_: child)
IDENTITY_MODULES: dict[str, Any] = {
    "react": REACT,
    "react/jsx-runtime": JSX_RUNTIME,
    "react/jsx-dev-runtime": JSX_RUNTIME,
    "react-dom": REACT_DOM,
    "react-dom/client": REACT_DOM,
}


def _member(module: Any, name: str) -> Any:
    if isinstance(module, dict):
        return module.get(name)
    if isinstance(module, InertModule):
        return None
    return getattr(module, name.replace("-", "_"), None)


class ProviderRegistry:
    """Map of module names to the objects ``require`` returns.

    Filled once when a sandbox is built. Unknown names resolve to an
    :class:`InertModule` and are remembered in ``unknown``.
    """

    def __init__(self) -> None:
        self._providers: dict[str, Any] = {}
        self.unknown: list[str] = []

    def register(self, name: str, module: Any) -> None:
        key = name.removeprefix(NODE_PREFIX)
        if key in self._providers:
            msg = f"Module provider already registered: {key}"
            raise ValueError(msg)
        self._providers[key] = module

    def register_many(self, modules: dict[str, Any]) -> None:
        for name, module in modules.items():
            self.register(name, module)

    def get_provider(self, name: str) -> Any | None:
        return self._providers.get(name.removeprefix(NODE_PREFIX))

    def list_providers(self) -> list[str]:
        return list(self._providers)

    def __contains__(self, name: str) -> bool:
        return name.removeprefix(NODE_PREFIX) in self._providers

    def resolve(self, name: str) -> Any:
        """Return the module for ``name``; never raises."""
        key = str(name).removeprefix(NODE_PREFIX)
        provider = self._providers.get(key)
        if provider is not None:
            return provider
        base, _, sub = key.partition("/")
        if base.startswith("@") and sub:
            scope_name, _, sub = sub.partition("/")
            base = f"{base}/{scope_name}"
        provider = self._providers.get(base)
        if provider is not None and sub:
            member = _member(provider, sub.split("/")[-1])
            return member if member is not None else provider
        logger.warning("Bundle required unknown module %r; using an inert stand-in", name)
        self.unknown.append(str(name))
        return InertModule(str(name))


def builtin_modules(
    *,
    process: ProcessInfo,
    fs: EmulatedFs,
    path: PathModule,
    os: OsModule,
    child_process: ChildProcessModule,
    crypto: CryptoModule,
    timers: Timers,
    inert: Iterable[str] = ("http", "https", "net", "tls", "dns", "zlib", "tty", "worker_threads", "readline"),
) -> dict[str, Any]:
    """Capability modules keyed by their runtime names."""
    timer_promises = TimerPromises()
    stream_promises = SimpleNamespace(pipeline=pipeline, finished=finished)
    modules: dict[str, Any] = {
        "fs": fs,
        "fs/promises": fs.promises,
        "path": path,
        "os": os,
        "process": process,
        "child_process": child_process,
        "crypto": crypto,
        "buffer": SimpleNamespace(Buffer=Buffer),
        "events": SimpleNamespace(EventEmitter=EventEmitter, default=EventEmitter),
        "stream": SimpleNamespace(
            Readable=Readable,
            Writable=Writable,
            Duplex=Duplex,
            Transform=Transform,
            PassThrough=PassThrough,
            Stream=Readable,
            pipeline=pipeline,
            finished=finished,
            promises=stream_promises,
        ),
        "stream/promises": stream_promises,
        "timers": SimpleNamespace(
            set_timeout=timers.set_timeout,
            set_interval=timers.set_interval,
            set_immediate=timers.set_immediate,
            clear_timeout=timers.clear_timeout,
            clear_interval=timers.clear_interval,
            clear_immediate=timers.clear_immediate,
            promises=timer_promises,
        ),
        "timers/promises": timer_promises,
        "util": SimpleNamespace(
            promisify=promisify,
            callbackify=callbackify,
            inspect=inspect,
            format=format_message,
            deprecate=deprecate,
            is_deep_strict_equal=is_deep_strict_equal,
        ),
        "url": SimpleNamespace(
            URL=Url,
            file_url_to_path=file_url_to_path,
            path_to_file_url=path_to_file_url,
        ),
        "querystring": QueryString(),
    }
    for name in inert:
        modules[name] = InertModule(name)
    return modules
