"""Process-wide host that opens extension views.

The host owns the state shared by every running extension: the durable
store, the emulated filesystem, the command-path cache, the menu-bar click
router and the AI request broker. Each opened view gets its own context,
services and renderer on top of these.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from extension_host.api.ai import AIRequestBroker
from extension_host.capabilities.fs import FileStore
from extension_host.capabilities.paths import CommandResolver
from extension_host.config.settings import load_settings
from extension_host.logging_utils import install_extension_log_filter
from extension_host.storage import JsonFileStore, MemoryStore
from extension_host.ui.menubar import MenuBarRouter
from extension_host.view import ExtensionView

if TYPE_CHECKING:
    from collections.abc import Callable

    from extension_host.bridge.protocol import PrivilegedBridge
    from extension_host.config.settings import Settings
    from extension_host.context import ExecutionContext, LaunchOptions
    from extension_host.storage import KeyValueStore
    from extension_host.ui.feedback import AlertRecord

logger = logging.getLogger(__name__)


class ExtensionHost:
    """Facade that opens, tracks and closes extension views."""

    def __init__(
        self,
        bridge: PrivilegedBridge,
        *,
        settings: Settings | None = None,
        store: KeyValueStore | None = None,
        confirm: Callable[[AlertRecord], bool] | None = None,
    ) -> None:
        self.settings = settings if settings is not None else load_settings()
        self.bridge = bridge
        if store is not None:
            self.store = store
        elif self.settings.state_file:
            self.store = JsonFileStore(self.settings.state_file, quota_bytes=self.settings.store_quota_bytes)
        else:
            self.store = MemoryStore()
        self.files = FileStore(self.store)
        self.resolver = CommandResolver(
            bridge,
            shell=self.settings.shell,
            common_dirs=self.settings.common_bin_dirs,
        )
        self.menu_bar_router = MenuBarRouter(bridge)
        self.ai_broker = AIRequestBroker(bridge)
        self._confirm = confirm
        self._views: dict[str, ExtensionView] = {}
        install_extension_log_filter()
        logging.getLogger("extension_host").setLevel(self.settings.log_level)

    @property
    def views(self) -> list[ExtensionView]:
        return list(self._views.values())

    def get_view(self, ext_id: str) -> ExtensionView | None:
        return self._views.get(ext_id)

    def open_view(self, code: str, context: ExecutionContext, launch: LaunchOptions | None = None) -> ExtensionView:
        """Load ``code`` for ``context`` and start it.

        An already running view for the same command is closed first.
        """
        previous = self._views.get(context.ext_id)
        if previous is not None:
            previous.close()
        view = ExtensionView(
            code,
            context,
            self.bridge,
            launch=launch,
            store=self.store,
            files=self.files,
            resolver=self.resolver,
            settings=self.settings,
            menu_bar_router=self.menu_bar_router,
            ai_broker=self.ai_broker,
            confirm=self._confirm,
            on_close=self._forget,
        )
        self._views[context.ext_id] = view
        status = view.start()
        logger.info("Opened %s as %s (%s)", context.ext_id, context.command_mode, status.value)
        return view

    def _forget(self, view: ExtensionView) -> None:
        if self._views.get(view.ext_id) is view:
            del self._views[view.ext_id]

    def close(self) -> None:
        for view in list(self._views.values()):
            view.close()
        self.ai_broker.close()
        self.menu_bar_router.stop()
