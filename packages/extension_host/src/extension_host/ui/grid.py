"""Grid container; shares search, selection and actions with List."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from extension_host.ui.collection import section_component, use_collection, use_item_registration
from extension_host.ui.dropdown import Dropdown
from extension_host.ui.element import Element, create_element
from extension_host.ui.list import EmptyView

if TYPE_CHECKING:
    from collections.abc import Callable

DEFAULT_COLUMNS = 5


class GridInset(str, Enum):
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"

    Small = "small"
    Medium = "medium"
    Large = "large"


def GridItem(**props: Any) -> None:  # noqa: N802 - component name
    use_item_registration(props)


def Grid(  # noqa: N802 - component name
    children: Any = None,
    columns: int | None = None,
    inset: str | None = None,
    actions: Element | None = None,
    search_text: str | None = None,
    on_search_text_change: Callable[[str], Any] | None = None,
    search_bar_placeholder: str | None = None,
    search_bar_accessory: Element | None = None,
    filtering: bool | None = None,
    is_loading: bool = False,
    navigation_title: str | None = None,
    selected_item_id: str | None = None,
    on_selection_change: Callable[[str | None], Any] | None = None,
    pagination: dict[str, Any] | None = None,
    aspect_ratio: str | None = None,
    fit: str | None = None,
    **_: Any,
) -> Element:
    """Searchable grid; arrow keys move by cell horizontally and by row vertically."""
    cols = columns or DEFAULT_COLUMNS
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
        columns=cols,
    )
    selected = collection.selected
    return create_element(
        "grid",
        {
            "columns": cols,
            "inset": inset,
            "aspect_ratio": aspect_ratio,
            "fit": fit,
            "search_text": collection.search_text,
            "search_bar_placeholder": search_bar_placeholder or "Search…",
            "navigation_title": navigation_title,
            "is_loading": is_loading,
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
    )


Grid.Item = GridItem
Grid.Section = section_component
Grid.EmptyView = EmptyView
Grid.Dropdown = Dropdown
Grid.Inset = GridInset
