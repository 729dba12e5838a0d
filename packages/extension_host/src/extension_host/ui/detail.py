"""Detail panes and their metadata blocks."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from extension_host.ui.actions import render_active_actions, use_action_keys, use_actions_controller
from extension_host.ui.contexts import NavigationContext
from extension_host.ui.element import Element, create_element
from extension_host.ui.renderer import use_context

if TYPE_CHECKING:
    from extension_host.ui.keyboard import KeyEvent


def _label(title: str = "", text: Any = None, icon: Any = None, **_: Any) -> Element:
    value = text.get("value") if isinstance(text, dict) else text
    return create_element("metadata-label", {"title": title, "text": value, "icon": icon})


def _link(title: str = "", target: str = "", text: str = "", **_: Any) -> Element:
    return create_element("metadata-link", {"title": title, "target": target, "text": text})


def _separator(**_: Any) -> Element:
    return create_element("metadata-separator", {})


def _tag_list(title: str = "", children: Any = None, **_: Any) -> Element:
    return create_element("metadata-tag-list", {"title": title}, children)


def _tag(text: str = "", color: Any = None, icon: Any = None, on_action: Any = None, **_: Any) -> Element:
    return create_element("metadata-tag", {"text": text, "color": color, "icon": icon})


def Metadata(children: Any = None, **_: Any) -> Element:  # noqa: N802 - component name
    return create_element("metadata", {}, children)


_tag_list.Item = _tag
Metadata.Label = _label
Metadata.Link = _link
Metadata.Separator = _separator
Metadata.TagList = _tag_list


def ItemDetail(  # noqa: N802 - component name
    markdown: str | None = None,
    metadata: Element | None = None,
    is_loading: bool = False,
    **_: Any,
) -> Element:
    """Side pane shown next to a list item."""
    return create_element("detail", {"markdown": markdown or "", "is_loading": is_loading}, metadata)


ItemDetail.Metadata = Metadata


def Detail(  # noqa: N802 - component name
    markdown: str | None = None,
    metadata: Element | None = None,
    actions: Element | None = None,
    is_loading: bool = False,
    navigation_title: str | None = None,
    children: Any = None,
    **_: Any,
) -> Element:
    """Full-pane markdown view with optional metadata and actions."""
    navigation = use_context(NavigationContext)
    controller = use_actions_controller()

    def on_key(event: KeyEvent) -> None:
        key = event.normalized_key
        if key == "enter" and not event.repeat:
            event.prevent_default()
            controller.run_primary()
        elif key == "escape" and navigation is not None:
            event.prevent_default()
            event.stop_propagation()
            navigation.pop()

    use_action_keys(controller, on_key)
    return create_element(
        "detail",
        {
            "markdown": markdown or "",
            "is_loading": is_loading,
            "navigation_title": navigation_title,
            "actions": controller.view_model(),
        },
        create_element("hidden", {}, render_active_actions(controller, actions, "__detail_actions")),
        None if is_loading else metadata,
        None if is_loading else children,
    )


Detail.Metadata = Metadata
