"""Dropdowns used as search-bar accessories and form fields."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from extension_host.ui.contexts import ServicesContext
from extension_host.ui.element import Element, create_element, flatten_children
from extension_host.ui.renderer import use_context, use_state

if TYPE_CHECKING:
    from collections.abc import Callable


def collect_options(children: Any, section: str | None = None) -> list[dict[str, Any]]:
    """Walk declared children for ``value``/``title`` pairs, keeping section titles."""
    options: list[dict[str, Any]] = []
    for child in flatten_children(children):
        if not isinstance(child, Element):
            continue
        props = child.props
        if props.get("value") is not None and props.get("title") is not None:
            options.append(
                {
                    "title": str(props["title"]),
                    "value": props["value"],
                    "icon": props.get("icon"),
                    "keywords": list(props.get("keywords") or []),
                    "section": section,
                },
            )
        if props.get("children") is not None:
            options.extend(collect_options(props["children"], props.get("title", section)))
    return options


def DropdownItem(**_: Any) -> None:  # noqa: N802 - component name
    return None


def DropdownSection(children: Any = None, **_: Any) -> Any:  # noqa: N802 - component name
    return None


def Dropdown(  # noqa: N802 - component name
    children: Any = None,
    tooltip: str | None = None,
    value: Any = None,
    default_value: Any = None,
    on_change: Callable[[Any], Any] | None = None,
    placeholder: str | None = None,
    store_value: bool = False,
    id: str | None = None,  # noqa: A002 - extension prop name
    **_: Any,
) -> Element:
    """Search-bar dropdown; uncontrolled unless ``value`` is given."""
    services = use_context(ServicesContext)
    options = collect_options(children)
    initial = default_value if default_value is not None else (options[0]["value"] if options else None)
    internal, set_internal = use_state(initial)
    current = value if value is not None else internal

    def select(new_value: Any) -> None:
        set_internal(new_value)
        if on_change is not None:
            if services is not None:
                services.call(on_change, new_value)
            else:
                on_change(new_value)

    return create_element(
        "dropdown",
        {"id": id, "tooltip": tooltip, "placeholder": placeholder, "value": current, "options": options, "select": select},
    )


Dropdown.Item = DropdownItem
Dropdown.Section = DropdownSection
