"""Lifecycle of one running extension command."""

from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from extension_host.api.environment import build_environment
from extension_host.capabilities.fs import FileStore
from extension_host.capabilities.paths import CommandResolver
from extension_host.config.settings import Settings
from extension_host.context import LaunchOptions
from extension_host.errors import ExtensionLoadError, error_message
from extension_host.loader.sandbox import Sandbox, load_extension_export
from extension_host.logging_utils import extension_log_scope
from extension_host.services import ExtensionServices
from extension_host.ui.contexts import KeyboardContext, NavigationContext, ServicesContext
from extension_host.ui.element import Fragment, create_element
from extension_host.ui.keyboard import KeyboardHub
from extension_host.ui.navigation import Navigation
from extension_host.ui.renderer import Renderer

if TYPE_CHECKING:
    from collections.abc import Callable

    from extension_host.api.ai import AIRequestBroker
    from extension_host.bridge.protocol import PrivilegedBridge
    from extension_host.context import ExecutionContext
    from extension_host.errors import FaultPhase
    from extension_host.storage import KeyValueStore
    from extension_host.ui.element import Element
    from extension_host.ui.feedback import AlertRecord
    from extension_host.ui.keyboard import KeyEvent
    from extension_host.ui.menubar import MenuBarRouter
    from extension_host.ui.renderer import HostNode

logger = logging.getLogger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load extension"
COMMAND_FAILED_MESSAGE = "Command failed"


class ViewStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


def accepted_props(entry: Callable[..., Any], props: dict[str, Any]) -> dict[str, Any]:
    """Keep only the launch props ``entry`` can take as keywords."""
    try:
        parameters = inspect.signature(entry).parameters.values()
    except (TypeError, ValueError):
        return dict(props)
    if any(param.kind is inspect.Parameter.VAR_KEYWORD for param in parameters):
        return dict(props)
    names = {
        param.name
        for param in parameters
        if param.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
    }
    return {name: value for name, value in props.items() if name in names}


class ExtensionView:
    """Loads one bundle and runs it as a view, menu-bar extra or no-view command.

    Owns the execution context, services, navigation stack, keyboard hub and
    renderer of exactly one extension instance. Nothing here is shared with
    other views except the process-wide store and command resolver passed in.
    """

    def __init__(
        self,
        code: str,
        context: ExecutionContext,
        bridge: PrivilegedBridge,
        *,
        launch: LaunchOptions | None = None,
        store: KeyValueStore | None = None,
        files: FileStore | None = None,
        resolver: CommandResolver | None = None,
        settings: Settings | None = None,
        menu_bar_router: MenuBarRouter | None = None,
        ai_broker: AIRequestBroker | None = None,
        confirm: Callable[[AlertRecord], bool] | None = None,
        on_close: Callable[[ExtensionView], None] | None = None,
    ) -> None:
        self.code = code
        self.context = context
        self.bridge = bridge
        self.launch = launch or LaunchOptions()
        self.settings = settings if settings is not None else Settings()
        if not context.support_path:
            context.support_path = self.settings.support_path
        self.status = ViewStatus.LOADING
        self.error: str | None = None
        self.closed = False
        self.entry: Callable[..., Any] | None = None
        self._on_close = on_close
        self._entry_props: dict[str, Any] = {}
        self._render_error: str | None = None
        self._command: asyncio.Future[Any] | None = None
        self._close_handle: asyncio.TimerHandle | None = None

        self.services = ExtensionServices(
            context,
            bridge,
            store=store,
            confirm=confirm,
            menu_bar_router=menu_bar_router,
            ai_broker=ai_broker,
        )
        self.renderer = Renderer(on_error=self._on_render_error)
        self.navigation = Navigation(on_change=self.renderer.schedule, on_close=self.close)
        self.keyboard = KeyboardHub()
        # Registered first so every container's own handling runs before it.
        self.keyboard.add_listener(self._on_escape)
        self.environment = build_environment(
            context,
            appearance=bridge.get_appearance(),
            launch_type=self.launch.launch_type,
            raycast_version=self.settings.raycast_version,
            ai_available=bridge.ai_available,
        )
        self.sandbox = Sandbox(
            self.services,
            self.navigation,
            files=files if files is not None else FileStore(self.services.store),
            resolver=resolver
            if resolver is not None
            else CommandResolver(bridge, shell=self.settings.shell, common_dirs=self.settings.common_bin_dirs),
            settings=self.settings,
            environment=self.environment,
        )

    @property
    def ext_id(self) -> str:
        return self.context.ext_id

    @property
    def tree(self) -> HostNode:
        return self.renderer.host_root

    @property
    def faults(self) -> list[Any]:
        return self.services.faults

    def start(self) -> ViewStatus:
        """Load the bundle and mount or run its entry point."""
        entry = load_extension_export(
            self.code,
            self.sandbox,
            extension_path=self.context.extension_path,
            filename=f"{self.context.extension_path or self.context.extension_name}/{self.context.command_name}.py",
        )
        if entry is None:
            self.status = ViewStatus.FAILED
            self.error = LOAD_FAILED_MESSAGE
            self.services.report(ExtensionLoadError(LOAD_FAILED_MESSAGE), "load")
            self._render()
            return self.status
        self.entry = entry
        self._entry_props = accepted_props(entry, self.launch.as_props())
        if self.context.command_mode == "no-view":
            self.status = ViewStatus.RUNNING
            self._render()
            self._command = asyncio.ensure_future(self._run_command())
            return self.status
        self.status = ViewStatus.READY
        self._render()
        return self.status

    async def _run_command(self) -> None:
        # Let the running indicator show before the command body starts.
        await asyncio.sleep(0)
        try:
            with extension_log_scope(self.ext_id):
                result = self.entry(**self._entry_props)
                if inspect.isawaitable(result):
                    await result
        except Exception as exc:  # noqa: BLE001 - command failures become the error status
            self.status = ViewStatus.ERROR
            self.error = error_message(exc, COMMAND_FAILED_MESSAGE)
            self.services.report(exc, "command")
            self._show_status()
            return
        self.status = ViewStatus.DONE
        logger.info("Command %s finished", self.ext_id)
        self._show_status()
        if not self.closed:
            self._close_handle = asyncio.get_running_loop().call_later(self.settings.settle_delay, self.close)

    def _root(self) -> Element:
        screen = create_element(self._screen, {})
        return create_element(
            ServicesContext.Provider,
            {"value": self.services},
            create_element(
                NavigationContext.Provider,
                {"value": self.navigation},
                create_element(KeyboardContext.Provider, {"value": self.keyboard}, screen),
            ),
        )

    def _screen(self, **_: Any) -> Element:
        if self._render_error is not None:
            return create_element("error-panel", {"message": self._render_error, "dismiss": self.close})
        if self.status is ViewStatus.FAILED or self.context.command_mode == "no-view":
            return self._command_status()
        top = self.navigation.top
        if top is not None:
            return create_element(Fragment, {"key": f"screen-{self.navigation.depth}"}, top)
        return create_element(self.entry, {"key": "root", **self._entry_props})

    def _command_status(self) -> Element:
        props: dict[str, Any] = {"state": self.status.value, "title": self.context.display_name}
        if self.status in (ViewStatus.ERROR, ViewStatus.FAILED):
            props["message"] = self.error
            props["dismiss"] = self.close
        return create_element("command-status", props)

    def _show_status(self) -> None:
        if not self.closed:
            self.renderer.schedule()

    def _render(self) -> None:
        try:
            self.renderer.render(self._root())
        except Exception as exc:  # noqa: BLE001 - render boundary
            self._on_render_error(exc, "render")

    def _flush(self) -> None:
        try:
            self.renderer.flush()
        except Exception as exc:  # noqa: BLE001 - render boundary
            self._on_render_error(exc, "render")

    def _on_render_error(self, exc: BaseException, phase: FaultPhase) -> None:
        self.services.report(exc, phase)
        if phase != "render" or self.closed:
            return
        self._render_error = error_message(exc, "Something went wrong")
        self.renderer.unmount()
        self.renderer.render(self._root())

    def _on_escape(self, event: KeyEvent) -> None:
        if event.default_prevented or event.normalized_key != "escape":
            return
        event.prevent_default()
        self.navigation.pop()

    def press(self, combo: str, *, repeat: bool = False) -> KeyEvent:
        """Deliver one key press and apply the resulting updates."""
        event = self.keyboard.press(combo, repeat=repeat)
        if not self.closed and self.renderer.pending:
            self._flush()
        return event

    async def settle(self, rounds: int = 20) -> HostNode:
        """Run queued callbacks, tasks and re-renders until the view is idle."""
        for _ in range(rounds):
            await asyncio.sleep(0)
            await self.renderer.drain()
            await self.services.drain()
            if self.closed:
                break
            if self.renderer.pending:
                self._flush()
                continue
            await asyncio.sleep(0)
            if not self.renderer.pending:
                break
        return self.tree

    async def finished(self) -> ViewStatus:
        """Wait for a no-view command to settle and return the final status."""
        if self._command is not None:
            await asyncio.shield(self._command)
        return self.status

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._close_handle is not None:
            self._close_handle.cancel()
        self.renderer.unmount()
        self.services.cancel_all()
        self.sandbox.close()
        if self.context.command_mode == "menu-bar":
            self.bridge.remove_menu_bar(self.ext_id)
        logger.debug("Closed %s", self.ext_id)
        if self._on_close is not None:
            self._on_close(self)
