"""Action components, the action registry and the shortcut dispatcher.

Actions render nothing. Each one registers ``{title, icon, shortcut, style,
section, execute}`` with the nearest container's registry on every render,
so wrapper components written by the extension stay invisible. The owning
container resolves the primary action, the ``cmd+k`` overlay and modifier
shortcuts from whatever is currently registered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from extension_host.ui.contexts import (
    ActionRegistryContext,
    ActionSectionContext,
    FormContext,
    KeyboardContext,
    NavigationContext,
    ServicesContext,
)
from extension_host.ui.element import Element, create_element, is_valid_element
from extension_host.ui.keyboard import Shortcut, matches_shortcut
from extension_host.ui.registry import Registration, Registry, group_by_section
from extension_host.ui.renderer import use_context, use_effect, use_force_update, use_ref

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable

    from extension_host.services import ExtensionServices
    from extension_host.ui.keyboard import KeyEvent
    from extension_host.ui.navigation import Navigation

logger = logging.getLogger(__name__)

COPY_TOAST_TITLE = "Copied to clipboard"


class ActionStyle(str, Enum):
    REGULAR = "regular"
    DESTRUCTIVE = "destructive"

    Regular = "regular"
    Destructive = "destructive"


@dataclass(frozen=True)
class ActionEntry:
    """Resolved view of one registered action."""

    id: str
    title: str
    order: int
    execute: Callable[[], Any]
    icon: Any = None
    shortcut: Shortcut | None = None
    style: str = "regular"
    section_title: str | None = None

    @classmethod
    def from_registration(cls, entry: Registration) -> ActionEntry:
        return cls(
            id=entry.id,
            title=entry.get("title") or "Action",
            order=entry.order,
            execute=entry.get("execute") or (lambda: None),
            icon=entry.get("icon"),
            shortcut=entry.get("shortcut"),
            style=entry.get("style") or "regular",
            section_title=entry.section_id,
        )


def action_fingerprint(entry: Registration) -> Hashable:
    return (entry.id, entry.get("title"), entry.section_id)


def make_action_executor(
    props: dict[str, Any],
    *,
    services: ExtensionServices | None,
    navigation: Navigation | None = None,
    form: Any = None,
) -> Callable[[], Any]:
    """Build the callable run when an action fires.

    Exactly one behavior applies, in this precedence: ``on_action``,
    ``on_submit`` with the current form values, copying ``content``, opening
    ``url``, pushing ``target``, trashing ``paths``.
    """

    def run(fn: Callable[..., Any] | None, *args: Any) -> Any:
        if fn is None:
            return None
        if services is not None:
            return services.call(fn, *args)
        return fn(*args)

    def execute() -> Any:
        if props.get("on_action") is not None:
            return run(props["on_action"])
        if props.get("on_submit") is not None:
            values = form.values() if form is not None else {}
            return run(props["on_submit"], values)
        if props.get("content") is not None:
            content = props["content"]
            if services is not None:
                services.spawn(services.clipboard.copy(content))
                services.spawn(services.show_toast(title=COPY_TOAST_TITLE, style="success"))
            run(props.get("on_copy"), content)
            run(props.get("on_paste"), content)
            return None
        if props.get("url"):
            if services is not None:
                services.spawn(services.open(props["url"]))
            return run(props.get("on_open"), props["url"])
        target = props.get("target")
        if is_valid_element(target):
            if navigation is not None:
                navigation.push(target)
            return run(props.get("on_push"))
        if props.get("paths"):
            if services is not None:
                services.spawn(services.trash(props["paths"]))
            return run(props.get("on_trash"), props["paths"])
        logger.debug("Action %r has nothing to execute", props.get("title"))
        return None

    return execute


def use_action_registration(props: dict[str, Any]) -> None:
    """Register the calling component as an action with the nearest registry."""
    registry: Registry | None = use_context(ActionRegistryContext)
    section = use_context(ActionSectionContext)
    services = use_context(ServicesContext)
    navigation = use_context(NavigationContext)
    form = use_context(FormContext)
    id_ref = use_ref(None)
    if id_ref.current is None and registry is not None:
        id_ref.current = registry.new_id()

    def unregister_on_unmount() -> Callable[[], None] | None:
        if registry is None:
            return None
        return lambda: registry.remove(id_ref.current)

    use_effect(unregister_on_unmount, (registry,))
    if registry is None:
        return
    registry.upsert(
        Registration(
            id=id_ref.current,
            section_id=section,
            order=registry.next_order(),
            payload={
                "title": props.get("title") or "Action",
                "icon": props.get("icon"),
                "shortcut": Shortcut.parse(props.get("shortcut")),
                "style": props.get("style") or "regular",
                "execute": make_action_executor(props, services=services, navigation=navigation, form=form),
            },
        ),
    )


def _action_component(default_title: str | None = None, **fixed: Any) -> Callable[..., None]:
    def component(**props: Any) -> None:
        if default_title is not None and not props.get("title"):
            props["title"] = default_title
        use_action_registration({**fixed, **props})

    return component


def Action(**props: Any) -> None:  # noqa: N802 - component name
    use_action_registration(props)


def _open_with(path: str = "", application: Any = None, **props: Any) -> None:
    props.setdefault("title", "Open With")
    props.setdefault("url", path)
    use_action_registration(props)


def _show_in_finder(path: str = "", **props: Any) -> None:
    props.setdefault("title", "Show in Finder")
    services = use_context(ServicesContext)
    if props.get("on_action") is None and services is not None and path:
        props["on_action"] = lambda: services.spawn(services.open(path))
    use_action_registration(props)


Action.Style = ActionStyle
Action.CopyToClipboard = _action_component("Copy to Clipboard")
Action.Paste = _action_component("Paste")
Action.OpenInBrowser = _action_component("Open in Browser")
Action.Push = _action_component()
Action.SubmitForm = _action_component("Submit")
Action.ShowInFinder = _show_in_finder
Action.OpenWith = _open_with
Action.Trash = _action_component("Move to Trash", style="destructive")
Action.PickDate = _action_component("Pick Date")
Action.CreateSnippet = _action_component("Create Snippet")
Action.CreateQuicklink = _action_component("Create Quicklink")
Action.ToggleSidebar = _action_component("Toggle Sidebar")


def ActionPanel(children: Any = None, title: str | None = None, **_: Any) -> Any:  # noqa: N802 - component name
    """Render children only inside a collecting container."""
    if use_context(ActionRegistryContext) is None:
        return None
    return children


def _action_panel_section(children: Any = None, title: str | None = None, **_: Any) -> Any:
    if use_context(ActionRegistryContext) is None:
        return None
    return create_element(ActionSectionContext.Provider, {"value": title}, children)


ActionPanel.Section = _action_panel_section
ActionPanel.Submenu = _action_panel_section


class ActionOverlay:
    """Filterable, keyboard-navigable list of the registered actions."""

    def __init__(self, on_change: Callable[[], None] | None = None) -> None:
        self.is_open = False
        self.filter = ""
        self.selected_index = 0
        self._on_change = on_change

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    def open(self) -> None:
        self.is_open = True
        self.filter = ""
        self.selected_index = 0
        self._changed()

    def close(self) -> None:
        if not self.is_open:
            return
        self.is_open = False
        self._changed()

    def toggle(self) -> None:
        if self.is_open:
            self.close()
        else:
            self.open()

    def set_filter(self, text: str) -> None:
        self.filter = text
        self.selected_index = 0
        self._changed()

    def visible(self, actions: list[ActionEntry]) -> list[ActionEntry]:
        needle = self.filter.lower()
        if not needle:
            return actions
        return [action for action in actions if needle in action.title.lower()]

    def move(self, delta: int, count: int) -> None:
        if count == 0:
            return
        self.selected_index = max(0, min(self.selected_index + delta, count - 1))
        self._changed()


class ActionsController:
    """Owns one container's action registry and dispatches keys against it."""

    def __init__(self, services: ExtensionServices | None, on_change: Callable[[], None] | None = None) -> None:
        self.services = services
        self.registry = Registry(action_fingerprint, prefix="action")
        self.overlay = ActionOverlay(on_change)

    def actions(self) -> list[ActionEntry]:
        """Registered actions in declaration order."""
        return [ActionEntry.from_registration(entry) for entry in self.registry.sorted_entries()]

    @property
    def primary(self) -> ActionEntry | None:
        actions = self.actions()
        return actions[0] if actions else None

    def execute(self, action: ActionEntry) -> Any:
        self.overlay.close()
        logger.debug("Executing action %r", action.title)
        if self.services is not None:
            return self.services.call(action.execute)
        return action.execute()

    def run_primary(self) -> bool:
        action = self.primary
        if action is None:
            return False
        self.execute(action)
        return True

    def match(self, event: KeyEvent) -> ActionEntry | None:
        for action in self.actions():
            if action.shortcut is not None and matches_shortcut(event, action.shortcut):
                return action
        return None

    def handle_shortcut(self, event: KeyEvent) -> bool:
        """Run the first action whose shortcut matches a modifier key press."""
        if event.default_prevented or event.repeat or not event.has_command_modifier:
            return False
        if _is_toggle(event):
            return False
        action = self.match(event)
        if action is None:
            return False
        event.prevent_default()
        event.stop_propagation()
        event.handled_by.append(action.id)
        self.execute(action)
        return True

    def handle_capture(self, event: KeyEvent) -> None:
        """Capture-phase listener so shortcuts fire before focused inputs see the key."""
        self.handle_shortcut(event)

    def handle_key(self, event: KeyEvent, fallback: Callable[[KeyEvent], Any] | None = None) -> None:
        """Bubble-phase listener: toggle, shortcuts, overlay keys, then ``fallback``."""
        if event.default_prevented:
            return
        if _is_toggle(event):
            event.prevent_default()
            self.overlay.toggle()
            return
        if self.handle_shortcut(event):
            return
        if self.overlay.is_open:
            self._overlay_key(event)
            return
        if fallback is not None:
            fallback(event)

    def _overlay_key(self, event: KeyEvent) -> None:
        visible = self.overlay.visible(self.actions())
        key = event.normalized_key
        if key == "arrowdown":
            event.prevent_default()
            self.overlay.move(1, len(visible))
        elif key == "arrowup":
            event.prevent_default()
            self.overlay.move(-1, len(visible))
        elif key == "enter":
            event.prevent_default()
            if not event.repeat and 0 <= self.overlay.selected_index < len(visible):
                self.execute(visible[self.overlay.selected_index])
        elif key == "escape":
            event.prevent_default()
            event.stop_propagation()
            self.overlay.close()

    def view_model(self) -> dict[str, Any]:
        actions = self.actions()
        visible = self.overlay.visible(actions)
        registrations = [self.registry.get(action.id) for action in visible]
        groups = [
            {
                "title": section.section_id,
                "actions": [
                    {
                        "id": entry.id,
                        "title": entry.get("title"),
                        "style": entry.get("style"),
                        "shortcut": entry.get("shortcut").label() if entry.get("shortcut") else None,
                        "index": section.start + offset,
                    }
                    for offset, entry in enumerate(section.entries)
                ],
            }
            for section in group_by_section([entry for entry in registrations if entry is not None])
        ]
        return {
            "is_open": self.overlay.is_open,
            "filter": self.overlay.filter,
            "selected_index": self.overlay.selected_index,
            "groups": groups,
            "primary": actions[0].title if actions else None,
            "set_filter": self.overlay.set_filter,
            "execute_index": lambda index: self.execute(visible[index]) if 0 <= index < len(visible) else None,
        }


def _is_toggle(event: KeyEvent) -> bool:
    return event.meta and not (event.alt or event.ctrl or event.shift) and event.normalized_key == "k"


def use_actions_controller() -> ActionsController:
    """Create the container's controller and re-render when its actions change."""
    services = use_context(ServicesContext)
    force_update = use_force_update()
    controller_ref = use_ref(None)
    if controller_ref.current is None:
        controller_ref.current = ActionsController(services, on_change=force_update)
    controller: ActionsController = controller_ref.current
    controller.registry.begin_pass()
    use_effect(lambda: controller.registry.subscribe(lambda _version: force_update()), ())
    return controller


def render_active_actions(controller: ActionsController, actions: Element | None, key: str) -> Element:
    """Mount exactly one actions element under the controller's registry.

    Changing ``key`` remounts the subtree, so actions of a previously selected
    item unregister before the new ones hold any state.
    """
    return create_element(
        ActionRegistryContext.Provider,
        {"value": controller.registry},
        create_element("actions", {"key": key}, actions),
    )


def use_action_keys(controller: ActionsController, fallback: Callable[[KeyEvent], Any] | None = None) -> None:
    """Listen on the view's keyboard hub for the lifetime of the container.

    The capture listener fires modifier shortcuts before anything else; the
    bubble listener handles the overlay and hands other keys to ``fallback``.
    """
    keyboard = use_context(KeyboardContext)
    latest = use_ref(None)
    latest.current = fallback

    def listen() -> Callable[[], None] | None:
        if keyboard is None:
            return None
        remove_capture = keyboard.add_listener(controller.handle_capture, capture=True)
        remove_bubble = keyboard.add_listener(lambda event: controller.handle_key(event, latest.current))

        def remove() -> None:
            remove_capture()
            remove_bubble()

        return remove

    use_effect(listen, (keyboard,))
