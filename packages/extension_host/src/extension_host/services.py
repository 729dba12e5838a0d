"""Per-instance services handed to host components through context."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any

from extension_host.api.ai import AINamespace
from extension_host.api.storage import Clipboard, LocalStorage
from extension_host.capabilities.fetch import Fetch
from extension_host.errors import ExtensionFault, error_message
from extension_host.logging_utils import extension_log_scope
from extension_host.storage import MemoryStore
from extension_host.ui.feedback import AlertRecord, ToastCenter

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from extension_host.api.ai import AIRequestBroker
    from extension_host.bridge.protocol import PrivilegedBridge
    from extension_host.context import ExecutionContext
    from extension_host.errors import FaultPhase
    from extension_host.storage import KeyValueStore
    from extension_host.ui.menubar import MenuBarRouter

logger = logging.getLogger(__name__)


class ExtensionServices:
    """Bridge-backed services owned by one running extension.

    Every callback from extension code goes through :meth:`call` or
    :meth:`spawn` so failures become :class:`ExtensionFault` records instead
    of escaping into the host.
    """

    def __init__(
        self,
        context: ExecutionContext,
        bridge: PrivilegedBridge,
        *,
        store: KeyValueStore | None = None,
        on_fault: Callable[[ExtensionFault], None] | None = None,
        confirm: Callable[[AlertRecord], bool] | None = None,
        menu_bar_router: MenuBarRouter | None = None,
        ai_broker: AIRequestBroker | None = None,
    ) -> None:
        self.context = context
        self.bridge = bridge
        self.store = store if store is not None else MemoryStore()
        self.clipboard = Clipboard(bridge)
        self.local_storage = LocalStorage(self.store, context.extension_name)
        self.toasts = ToastCenter()
        self.alerts: list[AlertRecord] = []
        self.faults: list[ExtensionFault] = []
        self._on_fault = on_fault
        self._confirm = confirm
        self.menu_bar_router = menu_bar_router
        self.fetch = Fetch(bridge)
        self.ai = AINamespace(ai_broker) if ai_broker is not None else None
        self._tasks: set[asyncio.Future[Any]] = set()

    @property
    def ext_id(self) -> str:
        return self.context.ext_id

    def report(self, exc: BaseException, phase: FaultPhase) -> ExtensionFault:
        """Record ``exc`` as a fault of this extension."""
        fault = ExtensionFault(ext_id=self.ext_id, phase=phase, message=error_message(exc, type(exc).__name__))
        with extension_log_scope(self.ext_id):
            logger.error("Extension %s failed during %s: %s", self.ext_id, phase, fault.message)
        self.faults.append(fault)
        if self._on_fault is not None:
            self._on_fault(fault)
        return fault

    def spawn(self, awaitable: Awaitable[Any], *, phase: FaultPhase = "action") -> asyncio.Future[Any]:
        """Run ``awaitable`` as a tracked task whose failure is reported."""
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def done(future: asyncio.Future[Any]) -> None:
            self._tasks.discard(future)
            if future.cancelled():
                return
            exc = future.exception()
            if exc is not None:
                self.report(exc, phase)

        task.add_done_callback(done)
        return task

    def call(self, fn: Callable[..., Any] | None, *args: Any, phase: FaultPhase = "action") -> Any:
        """Invoke an extension callback, isolating its failure."""
        if fn is None:
            return None
        try:
            with extension_log_scope(self.ext_id):
                result = fn(*args)
        except Exception as exc:  # noqa: BLE001 - defensive isolation
            self.report(exc, phase)
            return None
        if inspect.isawaitable(result):
            return self.spawn(result, phase=phase)
        return result

    async def drain(self) -> None:
        """Wait until every tracked task has settled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel_all(self) -> None:
        for task in list(self._tasks):
            task.cancel()

    async def show_toast(self, options: dict[str, Any] | None = None, **kwargs: Any) -> Any:
        toast = self.toasts.create(options, **kwargs)
        await toast.show()
        return toast

    def show_hud(self, title: str) -> None:
        self.bridge.show_hud(title)

    def confirm_alert(self, record: AlertRecord) -> bool:
        self.alerts.append(record)
        if self._confirm is None:
            return True
        return bool(self._confirm(record))

    async def open(self, target: str, application: Any = None) -> None:
        app = application.get("path") if isinstance(application, dict) else application
        await self.bridge.open_url(str(target), app)

    async def trash(self, paths: str | list[str]) -> None:
        await self.bridge.trash([paths] if isinstance(paths, str) else list(paths))
