from __future__ import annotations

import pytest

from extension_host.ui.menubar import resolve_tray_icon

TIMER_BUNDLE = """
React = require("react")
api = require("@raycast/api")
h = React.create_element
clicks = []


def Command(**_):
    return h(
        api.MenuBarExtra,
        {"icon": "🍅", "title": "12:00", "tooltip": "Timer"},
        h(api.MenuBarExtra.Item, {"title": "Start", "on_action": lambda: clicks.append("start")}),
        h(
            api.MenuBarExtra.Section,
            {"title": "More"},
            h(api.MenuBarExtra.Item, {"title": "Reset", "on_action": lambda: clicks.append("reset")}),
        ),
    )


module.exports = Command
"""


def _item_ids(items) -> dict[str, str]:
    return {item["title"]: item["id"] for item in items if item["type"] == "item"}


@pytest.mark.asyncio
async def test_menu_bar_mode_publishes_tray(bridge, make_view) -> None:
    view = make_view(TIMER_BUNDLE, mode="menu-bar")
    view.start()
    await view.settle()

    update = bridge.tray["demo/main"]
    assert update.title == "12:00"
    assert update.tooltip == "Timer"
    assert update.icon_emoji == "🍅"
    assert [item["type"] for item in update.items] == ["item", "separator", "item"]
    assert [item.get("title") for item in update.items if item["type"] == "item"] == ["Start", "Reset"]


@pytest.mark.asyncio
async def test_tray_click_routes_to_item_callback(bridge, make_view) -> None:
    view = make_view(TIMER_BUNDLE, mode="menu-bar")
    view.start()
    await view.settle()
    ids = _item_ids(bridge.tray["demo/main"].items)

    bridge.click_menu_bar("demo/main", ids["Reset"])
    bridge.click_menu_bar("other/command", ids["Start"])

    assert view.entry.__globals__["clicks"] == ["reset"]


@pytest.mark.asyncio
async def test_close_removes_tray_and_routes(bridge, make_view) -> None:
    view = make_view(TIMER_BUNDLE, mode="menu-bar")
    view.start()
    await view.settle()
    router = view.services.menu_bar_router
    assert router.registered("demo/main")

    view.close()

    assert bridge.tray_removed == ["demo/main"]
    assert "demo/main" not in bridge.tray
    assert router.registered("demo/main") == []


@pytest.mark.asyncio
async def test_view_mode_renders_menu_in_window(bridge, make_view) -> None:
    view = make_view(TIMER_BUNDLE)
    view.start()
    tree = await view.settle()

    node = tree.find("menu-bar-extra")
    ids = _item_ids(node.props["items"])
    node.props["click"](ids["Start"])

    assert list(ids) == ["Start", "Reset"]
    assert view.entry.__globals__["clicks"] == ["start"]
    assert bridge.tray == {}


def test_tray_icon_resolution() -> None:
    assert resolve_tray_icon("icon.png", "/ext/assets") == ("/ext/assets/icon.png", None)
    assert resolve_tray_icon({"source": {"light": "sun.svg", "dark": "moon.svg"}}, "/ext/assets") == (
        "/ext/assets/moon.svg",
        None,
    )
    assert resolve_tray_icon("⏱", "/ext/assets") == (None, "⏱")
    assert resolve_tray_icon(None, "/ext/assets") == (None, None)
