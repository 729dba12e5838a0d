"""Per-instance ``@raycast/api`` and ``@raycast/utils`` module objects.

Both are built once per sandbox so every closure they hold points at the
owning extension's services, navigation stack and environment.
"""

from __future__ import annotations

import functools
import logging
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

from extension_host.api import hooks
from extension_host.api.environment import Color, Icon, Image, Keyboard, LaunchType
from extension_host.api.storage import Cache
from extension_host.ui.actions import Action, ActionPanel
from extension_host.ui.contexts import use_navigation
from extension_host.ui.detail import Detail
from extension_host.ui.feedback import Alert, Toast, ToastStyle, alert_record
from extension_host.ui.form import Form
from extension_host.ui.grid import Grid
from extension_host.ui.list import List
from extension_host.ui.menubar import MenuBarExtra

if TYPE_CHECKING:
    from extension_host.api.environment import Environment
    from extension_host.services import ExtensionServices
    from extension_host.ui.navigation import Navigation

logger = logging.getLogger(__name__)

FALLBACK_FRONTMOST_APPLICATION = {"name": "SuperCommand", "path": "", "bundle_id": "com.supercommand"}

_TOAST_STYLES = {style.value for style in ToastStyle}


def _inert_class(name: str) -> type:
    """Class whose instances accept any construction and do nothing."""

    def __init__(self: Any, *_: Any, **__: Any) -> None:
        logger.debug("%s is not supported inside the sandbox", name)

    async def _nothing(self: Any, *_: Any, **__: Any) -> None:
        return None

    members: dict[str, Any] = {"__init__": __init__}
    for method in ("authorize", "authorization_request", "get_tokens", "set_tokens", "remove_tokens"):
        members[method] = _nothing
    return type(name, (), members)


def _toast_options(options_or_style: Any, title: str | None, message: str | None) -> dict[str, Any]:
    if isinstance(options_or_style, dict):
        return dict(options_or_style)
    style = options_or_style.value if isinstance(options_or_style, ToastStyle) else options_or_style
    if style in _TOAST_STYLES:
        return {"style": style, "title": title or "", "message": message}
    # A bare title string behaves like the short positional form.
    return {"title": str(options_or_style or title or ""), "message": message}


def _application_dict(app: Any) -> dict[str, Any]:
    return {"name": app.name, "path": app.path, "bundle_id": app.bundle_id}


def build_api_module(services: ExtensionServices, navigation: Navigation, environment: Environment) -> SimpleNamespace:
    """Return the host API object one extension imports."""
    bridge = services.bridge
    context = services.context

    def get_preference_values() -> dict[str, Any]:
        return dict(context.preferences)

    async def close_main_window(options: dict[str, Any] | None = None) -> None:
        bridge.close_main_window()

    async def pop_to_root(options: dict[str, Any] | None = None) -> None:
        navigation.pop_to_root()

    async def launch_command(options: dict[str, Any] | None = None, **kwargs: Any) -> None:
        payload = {**(options or {}), **kwargs}
        payload.setdefault("extension_name", context.extension_name)
        logger.info("Extension %s launches command %s", services.ext_id, payload.get("name"))
        await bridge.launch_command(payload)

    async def get_selected_text() -> str:
        return await bridge.get_selected_text()

    async def get_applications(path: str | None = None) -> list[dict[str, Any]]:
        return [_application_dict(app) for app in await bridge.get_applications()]

    async def get_frontmost_application() -> dict[str, Any]:
        app = await bridge.get_frontmost_application()
        if app is None:
            return dict(FALLBACK_FRONTMOST_APPLICATION)
        return _application_dict(app)

    async def show_in_finder(path: str) -> None:
        await services.open(path, "Finder")

    async def update_command_metadata(metadata: dict[str, Any] | None = None, **kwargs: Any) -> None:
        logger.debug("Ignoring command metadata update for %s: %s", services.ext_id, {**(metadata or {}), **kwargs})

    async def show_toast(options_or_style: Any = None, title: str | None = None, message: str | None = None) -> Toast:
        return await services.show_toast(_toast_options(options_or_style, title, message))

    async def show_hud(title: str, options: dict[str, Any] | None = None) -> None:
        services.show_hud(title)

    async def confirm_alert(options: dict[str, Any] | None = None, **kwargs: Any) -> bool:
        return services.confirm_alert(alert_record(options, **kwargs))

    async def clear_search_bar(options: dict[str, Any] | None = None) -> None:
        logger.debug("Search bar cleared for %s", services.ext_id)

    oauth = SimpleNamespace(
        PKCEClient=_inert_class("PKCEClient"),
        RedirectMethod=SimpleNamespace(Web="web", App="app", AppURI="appURI"),
    )
    module = SimpleNamespace(
        environment=environment,
        get_preference_values=get_preference_values,
        open=services.open,
        close_main_window=close_main_window,
        pop_to_root=pop_to_root,
        launch_command=launch_command,
        get_selected_text=get_selected_text,
        get_applications=get_applications,
        get_frontmost_application=get_frontmost_application,
        show_in_finder=show_in_finder,
        trash=services.trash,
        update_command_metadata=update_command_metadata,
        Toast=Toast,
        show_toast=show_toast,
        show_hud=show_hud,
        confirm_alert=confirm_alert,
        Alert=Alert,
        clear_search_bar=clear_search_bar,
        Clipboard=services.clipboard,
        LocalStorage=services.local_storage,
        Cache=Cache,
        Icon=Icon,
        Color=Color,
        Image=Image,
        Keyboard=Keyboard,
        LaunchType=LaunchType,
        List=List,
        Grid=Grid,
        Form=Form,
        Detail=Detail,
        ActionPanel=ActionPanel,
        Action=Action,
        MenuBarExtra=MenuBarExtra,
        use_navigation=use_navigation,
        AI=services.ai,
        OAuth=oauth,
        WindowManagement=_inert_class("WindowManagement"),
        BrowserExtension=_inert_class("BrowserExtension"),
    )
    module.default = module
    return module


def build_utils_module(services: ExtensionServices) -> SimpleNamespace:
    """Return the utilities object one extension imports."""
    module = SimpleNamespace(
        use_promise=hooks.use_promise,
        use_fetch=hooks.use_fetch,
        use_cached_promise=hooks.use_cached_promise,
        use_cached_state=hooks.use_cached_state,
        use_local_storage=hooks.use_local_storage,
        use_form=hooks.use_form,
        use_exec=hooks.use_exec,
        use_sql=hooks.use_sql,
        use_stream_json=hooks.use_stream_json,
        use_ai=hooks.use_ai,
        use_frecency_sorting=hooks.use_frecency_sorting,
        get_favicon=hooks.get_favicon,
        run_apple_script=functools.partial(hooks.run_apple_script, services),
        show_failure_toast=functools.partial(hooks.show_failure_toast, services),
    )
    module.default = module
    return module
