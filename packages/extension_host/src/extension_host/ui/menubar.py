"""Menu-bar extras serialized to the native tray through the bridge."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any

from extension_host.bridge.models import TrayUpdate
from extension_host.ui.contexts import MenuBarRegistryContext, MenuBarSectionContext, ServicesContext
from extension_host.ui.element import Element, create_element
from extension_host.ui.registry import UNSET, Registration, Registry
from extension_host.ui.renderer import use_context, use_effect, use_force_update, use_ref

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable

    from extension_host.bridge.protocol import PrivilegedBridge

logger = logging.getLogger(__name__)

_IMAGE_FILE = re.compile(r"\.(svg|png|jpe?g|gif|webp|ico|tiff?)$", re.IGNORECASE)
_HAS_EXTENSION = re.compile(r"\.\w+$")


class MenuBarRouter:
    """Routes tray clicks to the owning extension's item callbacks.

    One router belongs to one host; it holds no process-wide state, so
    several menu-bar extensions can be active side by side.
    """

    def __init__(self, bridge: PrivilegedBridge) -> None:
        self._bridge = bridge
        self._actions: dict[str, dict[str, Callable[[], Any]]] = {}
        self._unsubscribe: Callable[[], None] | None = None

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self._bridge.subscribe_menu_bar_clicks(self.dispatch)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def set_actions(self, ext_id: str, actions: dict[str, Callable[[], Any]]) -> None:
        self.start()
        self._actions[ext_id] = actions

    def remove(self, ext_id: str) -> None:
        self._actions.pop(ext_id, None)

    def registered(self, ext_id: str) -> list[str]:
        return list(self._actions.get(ext_id, {}))

    def dispatch(self, ext_id: str, item_id: str) -> bool:
        action = self._actions.get(ext_id, {}).get(item_id)
        if action is None:
            logger.debug("No menu-bar action for %s/%s", ext_id, item_id)
            return False
        action()
        return True


def _is_emoji_or_symbol(text: str) -> bool:
    return 0 < len(text) <= 4 and any(ord(char) > 0x2000 for char in text)


def resolve_tray_icon(icon: Any, assets_path: str) -> tuple[str | None, str | None]:
    """Return ``(icon_path, icon_emoji)`` for an icon prop."""
    source: Any = None
    if isinstance(icon, dict):
        raw = icon.get("source", icon)
        source = (raw.get("dark") or raw.get("light")) if isinstance(raw, dict) else raw
        if isinstance(source, str) and _IMAGE_FILE.search(source) and assets_path:
            return f"{assets_path}/{source}", None
    elif isinstance(icon, str):
        source = icon
        if _HAS_EXTENSION.search(icon) and assets_path:
            return f"{assets_path}/{icon}", None
    if isinstance(source, str) and _is_emoji_or_symbol(source):
        return None, source
    return None, None


def menu_fingerprint(entry: Registration) -> Hashable:
    return (entry.id, entry.get("type"), entry.get("title"), entry.get("tooltip"), entry.section_id)


def serialize_menu(entries: list[Registration]) -> tuple[list[dict[str, Any]], dict[str, Callable[[], Any]]]:
    """Order items, insert separators between sections and collect callbacks."""
    serialized: list[dict[str, Any]] = []
    actions: dict[str, Callable[[], Any]] = {}
    previous: Any = UNSET
    for entry in entries:
        if previous is not UNSET and entry.section_id != previous:
            serialized.append({"type": "separator"})
        previous = entry.section_id
        if entry.get("type") == "separator":
            serialized.append({"type": "separator"})
            continue
        if entry.get("on_action") is not None:
            actions[entry.id] = entry.get("on_action")
        serialized.append({"type": "item", "id": entry.id, "title": entry.get("title") or "", "tooltip": entry.get("tooltip")})
    return serialized, actions


def _use_menu_registration(kind: str, props: dict[str, Any]) -> Registry | None:
    registry: Registry | None = use_context(MenuBarRegistryContext)
    section = use_context(MenuBarSectionContext)
    id_ref = use_ref(None)
    if id_ref.current is None and registry is not None:
        id_ref.current = registry.new_id()

    def unregister_on_unmount() -> Callable[[], None] | None:
        if registry is None:
            return None
        return lambda: registry.remove(id_ref.current)

    use_effect(unregister_on_unmount, (registry,))
    if registry is not None:
        payload = {"type": kind, **props}
        registry.upsert(Registration(id=id_ref.current, payload=payload, section_id=section, order=registry.next_order()))
    return registry


def MenuBarItem(  # noqa: N802 - component name
    title: str = "",
    icon: Any = None,
    on_action: Callable[[], Any] | None = None,
    tooltip: str | None = None,
    shortcut: Any = None,
    subtitle: str | None = None,
    **_: Any,
) -> None:
    _use_menu_registration("item", {"title": title, "icon": icon, "on_action": on_action, "tooltip": tooltip})


def MenuBarSection(children: Any = None, title: str | None = None, **_: Any) -> Element:  # noqa: N802 - component name
    registry: Registry | None = use_context(MenuBarRegistryContext)
    section_id = use_ref(None)
    if section_id.current is None:
        section_id.current = registry.new_id() if registry is not None else f"section:{title}"
    return create_element(MenuBarSectionContext.Provider, {"value": section_id.current}, children)


def MenuBarSeparator(**_: Any) -> None:  # noqa: N802 - component name
    _use_menu_registration("separator", {})


def MenuBarSubmenu(children: Any = None, title: str | None = None, icon: Any = None, **_: Any) -> Any:  # noqa: N802 - component name
    return children


def MenuBarExtra(  # noqa: N802 - component name
    children: Any = None,
    icon: Any = None,
    title: str | None = None,
    tooltip: str | None = None,
    is_loading: bool = False,
    **_: Any,
) -> Element:
    """Collect menu items and publish them to the tray in menu-bar mode.

    Outside menu-bar mode the same items render as an in-window list.
    """
    services = use_context(ServicesContext)
    force_update = use_force_update()
    registry_ref = use_ref(None)
    if registry_ref.current is None:
        registry_ref.current = Registry(menu_fingerprint, prefix="mbi")
    registry: Registry = registry_ref.current
    registry.begin_pass()
    use_effect(lambda: registry.subscribe(lambda _version: force_update()), ())

    context = services.context if services is not None else None
    ext_id = context.ext_id if context is not None else ""
    is_menu_bar = context is not None and context.command_mode == "menu-bar"
    serialized, actions = serialize_menu(registry.sorted_entries())

    def wrap(item_id: str) -> Callable[[], Any]:
        def run() -> Any:
            entry = registry.get(item_id)
            action = entry.get("on_action") if entry is not None else None
            if action is None:
                return None
            return services.call(action) if services is not None else action()

        return run

    def publish() -> None:
        if not is_menu_bar or services is None:
            return
        icon_path, icon_emoji = resolve_tray_icon(icon, context.assets_path)
        services.bridge.update_menu_bar(
            TrayUpdate(
                ext_id=ext_id,
                title=title or "",
                tooltip=tooltip or "",
                icon_path=icon_path,
                icon_emoji=icon_emoji,
                items=tuple(serialized),
            ),
        )
        if services.menu_bar_router is not None:
            services.menu_bar_router.set_actions(ext_id, {item_id: wrap(item_id) for item_id in actions})

    use_effect(publish, (registry.change_version, repr(icon), title, tooltip, ext_id, is_menu_bar))

    def forget_actions() -> Callable[[], None] | None:
        if services is None or services.menu_bar_router is None:
            return None
        router = services.menu_bar_router
        return lambda: router.remove(ext_id)

    use_effect(forget_actions, (ext_id,))

    provider = create_element(MenuBarRegistryContext.Provider, {"value": registry}, create_element("hidden", {}, children))
    if is_menu_bar:
        return provider
    return create_element(
        "menu-bar-extra",
        {
            "title": title,
            "tooltip": tooltip,
            "is_loading": is_loading,
            "items": serialized,
            "click": lambda item_id: wrap(item_id)(),
        },
        provider,
    )


MenuBarExtra.Item = MenuBarItem
MenuBarExtra.Section = MenuBarSection
MenuBarExtra.Separator = MenuBarSeparator
MenuBarExtra.Submenu = MenuBarSubmenu
