"""Search, selection and action wiring shared by List and Grid."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from extension_host.ui.actions import ActionsController, render_active_actions, use_action_keys, use_actions_controller
from extension_host.ui.contexts import (
    ItemRegistryContext,
    ItemSectionContext,
    NavigationContext,
    ServicesContext,
)
from extension_host.ui.element import Element, create_element
from extension_host.ui.registry import (
    UNSET,
    Registration,
    Registry,
    group_by_section,
    matches_query,
    stabilize_selection,
)
from extension_host.ui.renderer import use_context, use_effect, use_force_update, use_ref, use_state

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable

    from extension_host.ui.keyboard import KeyEvent

logger = logging.getLogger(__name__)

CONTAINER_ACTIONS_KEY = "__container_actions"


def text_value(value: Any) -> str:
    """Plain text of a title that may be ``{"value": ..., "tooltip": ...}``."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return str(value.get("value") or "")
    return "" if value is None else str(value)


def _element_type_name(element: Any) -> str:
    element_type = getattr(element, "type", None)
    if element_type is None:
        return ""
    return getattr(element_type, "__name__", None) or type(element_type).__name__


def item_fingerprint(entry: Registration) -> Hashable:
    return (
        entry.id,
        text_value(entry.get("title")),
        entry.section_id,
        _element_type_name(entry.get("actions")),
    )


def filter_items(
    entries: list[Registration],
    search_text: str,
    *,
    filtering: bool | None,
    controlled: bool,
) -> list[Registration]:
    """Apply built-in filtering unless the extension filters on its own."""
    enabled = filtering if filtering is not None else not controlled
    if not enabled or not search_text.strip():
        return entries
    return [
        entry
        for entry in entries
        if matches_query(
            search_text,
            text_value(entry.get("title")),
            text_value(entry.get("subtitle")),
            keywords=entry.get("keywords"),
        )
    ]


def use_item_registration(props: dict[str, Any]) -> None:
    """Register a List/Grid item with the nearest collection."""
    registry: Registry | None = use_context(ItemRegistryContext)
    section = use_context(ItemSectionContext)
    id_ref = use_ref(None)
    if id_ref.current is None and registry is not None:
        id_ref.current = str(props["id"]) if props.get("id") is not None else registry.new_id()

    def unregister_on_unmount() -> Callable[[], None] | None:
        if registry is None:
            return None
        return lambda: registry.remove(id_ref.current)

    use_effect(unregister_on_unmount, (registry,))
    if registry is None:
        return
    registry.upsert(Registration(id=id_ref.current, payload=props, section_id=section, order=registry.next_order()))


def section_component(children: Any = None, title: str | None = None, **_: Any) -> Element:
    return create_element(ItemSectionContext.Provider, {"value": title}, children)


@dataclass
class Collection:
    """Derived state of one List or Grid for the current render."""

    items: list[Registration]
    selected_index: int
    search_text: str
    controller: ActionsController
    hidden: Element
    set_search_text: Callable[[str], None]
    select: Callable[[int], None]

    @property
    def selected(self) -> Registration | None:
        if 0 <= self.selected_index < len(self.items):
            return self.items[self.selected_index]
        return None

    def sections(self) -> list[dict[str, Any]]:
        return [
            {
                "title": section.section_id,
                "items": [
                    {
                        "id": entry.id,
                        "index": section.start + offset,
                        "title": text_value(entry.get("title")),
                        "subtitle": text_value(entry.get("subtitle")),
                        "icon": entry.get("icon") or entry.get("content"),
                        "accessories": entry.get("accessories") or [],
                        "selected": section.start + offset == self.selected_index,
                    }
                    for offset, entry in enumerate(section.entries)
                ],
            }
            for section in group_by_section(self.items)
        ]


def use_collection(
    *,
    children: Any,
    actions: Any,
    search_text: str | None,
    on_search_text_change: Callable[[str], Any] | None,
    filtering: bool | None,
    selected_item_id: str | None,
    on_selection_change: Callable[[str | None], Any] | None,
    is_loading: bool,
    pagination: dict[str, Any] | None,
    columns: int = 1,
) -> Collection:
    """Own an item registry and resolve search, selection and active actions."""
    services = use_context(ServicesContext)
    navigation = use_context(NavigationContext)
    force_update = use_force_update()

    registry_ref = use_ref(None)
    if registry_ref.current is None:
        registry_ref.current = Registry(item_fingerprint, prefix="item")
    registry: Registry = registry_ref.current
    registry.begin_pass()
    use_effect(lambda: registry.subscribe(lambda _version: force_update()), ())

    internal_search, set_internal_search = use_state("")
    current_search = search_text if search_text is not None else internal_search
    selected_index, set_selected_index = use_state(0)
    previous_section = use_ref(UNSET)
    seen_version = use_ref(0)
    load_requested = use_ref(-1)

    controller = use_actions_controller()
    items = filter_items(
        registry.sorted_entries(),
        current_search,
        filtering=filtering,
        controlled=on_search_text_change is not None,
    )
    index = min(selected_index, max(len(items) - 1, 0))
    selected = items[index] if items else None

    def call(fn: Callable[..., Any] | None, *args: Any) -> Any:
        if services is not None:
            return services.call(fn, *args)
        return fn(*args) if fn is not None else None

    def set_search(text: str) -> None:
        set_internal_search(text)
        call(on_search_text_change, text)
        set_selected_index(0)

    def select(new_index: int) -> None:
        if items:
            set_selected_index(max(0, min(new_index, len(items) - 1)))

    sections_key = tuple(entry.section_id for entry in items)

    def track_selection() -> None:
        if seen_version.current != registry.change_version:
            seen_version.current = registry.change_version
            new_index = stabilize_selection(sections_key, selected_index, previous_section.current)
            if new_index != selected_index:
                set_selected_index(new_index)
                return
        if 0 <= selected_index < len(items):
            previous_section.current = items[selected_index].section_id

    use_effect(track_selection, (registry.change_version, current_search, selected_index))

    def sync_controlled_selection() -> None:
        if selected_item_id is None:
            return
        for position, entry in enumerate(items):
            if entry.id == selected_item_id:
                set_selected_index(position)
                previous_section.current = entry.section_id
                return

    use_effect(sync_controlled_selection, (selected_item_id, registry.change_version))

    selected_id = selected.id if selected is not None else None

    def notify_selection() -> None:
        if on_selection_change is not None:
            call(on_selection_change, selected_id)

    use_effect(notify_selection, (selected_id,))

    def maybe_load_more() -> None:
        if not pagination or not pagination.get("has_more") or is_loading:
            return
        if items and index >= len(items) - columns and load_requested.current != len(items):
            load_requested.current = len(items)
            call(pagination.get("on_load_more"))

    use_effect(maybe_load_more, (index, len(items), is_loading))

    def navigate(event: KeyEvent) -> None:
        key = event.normalized_key
        step = {"arrowdown": columns, "arrowup": -columns}
        if columns > 1:
            step.update({"arrowright": 1, "arrowleft": -1})
        if key in step and items:
            event.prevent_default()
            select(index + step[key])
        elif key == "enter":
            event.prevent_default()
            if not event.repeat:
                controller.run_primary()
        elif key == "escape" and navigation is not None:
            event.prevent_default()
            event.stop_propagation()
            navigation.pop()

    use_action_keys(controller, navigate)

    active_actions = selected.get("actions") if selected is not None and selected.get("actions") else actions
    active_key = selected.id if selected is not None and selected.get("actions") else CONTAINER_ACTIONS_KEY
    hidden = create_element(
        "hidden",
        {},
        create_element(ItemRegistryContext.Provider, {"value": registry}, children),
        render_active_actions(controller, active_actions, active_key),
    )
    return Collection(
        items=items,
        selected_index=index,
        search_text=current_search,
        controller=controller,
        hidden=hidden,
        set_search_text=set_search,
        select=select,
    )
