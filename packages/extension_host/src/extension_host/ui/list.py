"""List container and its items."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from extension_host.ui.collection import section_component, use_collection, use_item_registration
from extension_host.ui.detail import ItemDetail
from extension_host.ui.dropdown import Dropdown
from extension_host.ui.element import Element, create_element

if TYPE_CHECKING:
    from collections.abc import Callable


def ListItem(**props: Any) -> None:  # noqa: N802 - component name
    """Register with the enclosing List; the List renders the row."""
    use_item_registration(props)


ListItem.Detail = ItemDetail


def EmptyView(  # noqa: N802 - component name
    title: str | None = None,
    description: str | None = None,
    icon: Any = None,
    actions: Element | None = None,
    **_: Any,
) -> Element:
    return create_element("empty-view", {"title": title, "description": description, "icon": icon})


def List(  # noqa: N802 - component name
    children: Any = None,
    actions: Element | None = None,
    search_text: str | None = None,
    on_search_text_change: Callable[[str], Any] | None = None,
    search_bar_placeholder: str | None = None,
    search_bar_accessory: Element | None = None,
    filtering: bool | None = None,
    is_loading: bool = False,
    is_showing_detail: bool = False,
    navigation_title: str | None = None,
    selected_item_id: str | None = None,
    on_selection_change: Callable[[str | None], Any] | None = None,
    pagination: dict[str, Any] | None = None,
    throttle: bool = False,
    **_: Any,
) -> Element:
    """Searchable, sectioned list.

    Items register themselves wherever they are declared; this component
    publishes the derived view model on its ``list`` host node.
    """
    collection = use_collection(
        children=children,
        actions=actions,
        search_text=search_text,
        on_search_text_change=on_search_text_change,
        filtering=filtering,
        selected_item_id=selected_item_id,
        on_selection_change=on_selection_change,
        is_loading=is_loading,
        pagination=pagination,
    )
    selected = collection.selected
    detail = selected.get("detail") if is_showing_detail and selected is not None else None
    return create_element(
        "list",
        {
            "search_text": collection.search_text,
            "search_bar_placeholder": search_bar_placeholder or "Search…",
            "navigation_title": navigation_title,
            "is_loading": is_loading,
            "is_showing_detail": is_showing_detail,
            "sections": collection.sections(),
            "selected_index": collection.selected_index,
            "selected_id": selected.id if selected is not None else None,
            "show_empty_view": not collection.items and not is_loading,
            "actions": collection.controller.view_model(),
            "set_search_text": collection.set_search_text,
            "select": collection.select,
        },
        collection.hidden,
        create_element("search-bar-accessory", {}, search_bar_accessory),
        create_element("list-detail", {"key": selected.id if detail is not None else None}, detail),
    )


List.Item = ListItem
List.Section = section_component
List.EmptyView = EmptyView
List.Dropdown = Dropdown
