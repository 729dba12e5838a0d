from __future__ import annotations

import asyncio

import pytest

from extension_host.context import LaunchOptions
from extension_host.view import LOAD_FAILED_MESSAGE, ViewStatus

LIST_BUNDLE = """
React = require("react")
api = require("@raycast/api")
h = React.create_element
hits = []


def Inspect(**_):
    return h(api.Detail, {"markdown": "# Inspected"})


def Command(**_):
    panel = h(
        api.ActionPanel,
        {},
        h(api.Action, {"title": "Open", "on_action": lambda: hits.append("open")}),
        h(api.Action, {"title": "Inspect", "shortcut": "cmd+i", "on_action": lambda: hits.append("inspect")}),
        h(api.Action.Push, {"title": "Details", "shortcut": {"modifiers": ["cmd"], "key": "d"}, "target": h(Inspect, {})}),
    )
    return h(
        api.List,
        {"search_bar_placeholder": "Fruit"},
        h(api.List.Item, {"id": "apple", "title": "Apple", "actions": panel}),
        h(api.List.Item, {"id": "banana", "title": "Banana", "actions": panel}),
    )


module.exports = Command
"""


def _titles(tree) -> list[str]:
    sections = tree.find("list").props["sections"]
    return [item["title"] for section in sections for item in section["items"]]


def _hits(view) -> list[str]:
    return view.entry.__globals__["hits"]


@pytest.mark.asyncio
async def test_list_items_appear_after_settling(make_view) -> None:
    view = make_view(LIST_BUNDLE)

    assert view.start() is ViewStatus.READY
    tree = await view.settle()

    assert _titles(tree) == ["Apple", "Banana"]
    node = tree.find("list")
    assert node.props["selected_id"] == "apple"
    assert node.props["search_bar_placeholder"] == "Fruit"
    assert node.props["actions"]["primary"] == "Open"


@pytest.mark.asyncio
async def test_search_filters_items(make_view) -> None:
    view = make_view(LIST_BUNDLE)
    view.start()
    tree = await view.settle()

    tree.find("list").props["set_search_text"]("ban")
    tree = await view.settle()

    assert _titles(tree) == ["Banana"]


@pytest.mark.asyncio
async def test_shortcut_fires_once_per_press(make_view) -> None:
    view = make_view(LIST_BUNDLE)
    view.start()
    await view.settle()

    event = view.press("cmd+i")
    view.press("cmd+i", repeat=True)

    assert _hits(view) == ["inspect"]
    assert event.default_prevented
    assert len(event.handled_by) == 1

    view.press("cmd+i")
    assert _hits(view) == ["inspect", "inspect"]


@pytest.mark.asyncio
async def test_enter_runs_primary_action(make_view) -> None:
    view = make_view(LIST_BUNDLE)
    view.start()
    await view.settle()

    view.press("enter")
    view.press("enter", repeat=True)

    assert _hits(view) == ["open"]


@pytest.mark.asyncio
async def test_arrow_keys_move_selection(make_view) -> None:
    view = make_view(LIST_BUNDLE)
    view.start()
    await view.settle()

    view.press("arrowdown")
    tree = await view.settle()
    assert tree.find("list").props["selected_id"] == "banana"

    view.press("arrowdown")
    tree = await view.settle()
    assert tree.find("list").props["selected_id"] == "banana"


@pytest.mark.asyncio
async def test_action_overlay_toggles_and_escape_closes_it(make_view) -> None:
    view = make_view(LIST_BUNDLE)
    view.start()
    await view.settle()

    view.press("cmd+k")
    tree = await view.settle()
    overlay = tree.find("list").props["actions"]
    assert overlay["is_open"]
    assert [action["title"] for group in overlay["groups"] for action in group["actions"]] == [
        "Open",
        "Inspect",
        "Details",
    ]

    view.press("escape")
    tree = await view.settle()
    assert not tree.find("list").props["actions"]["is_open"]
    assert not view.closed


@pytest.mark.asyncio
async def test_push_then_escape_returns_to_list(make_view) -> None:
    view = make_view(LIST_BUNDLE)
    view.start()
    await view.settle()

    view.press("cmd+d")
    tree = await view.settle()
    assert view.navigation.depth == 1
    assert tree.find("list") is None
    assert tree.find("detail").props["markdown"] == "# Inspected"

    view.press("escape")
    tree = await view.settle()
    assert view.navigation.depth == 0
    assert _titles(tree) == ["Apple", "Banana"]
    assert not view.closed


@pytest.mark.asyncio
async def test_escape_at_root_closes_view(make_view) -> None:
    closed: list[object] = []
    view = make_view(LIST_BUNDLE, on_close=closed.append)
    view.start()
    await view.settle()

    view.press("escape")

    assert view.closed
    assert closed == [view]
    assert view.keyboard.listener_count() == 1


@pytest.mark.asyncio
async def test_render_error_shows_error_panel(make_view) -> None:
    code = """
React = require("react")
h = React.create_element


def Broken(**_):
    raise ValueError("kaboom")


def Command(**_):
    return h(Broken, {})


module.exports = Command
"""
    view = make_view(code)
    view.start()
    tree = await view.settle()

    panel = tree.find("error-panel")
    assert panel is not None
    assert panel.props["message"] == "kaboom"
    assert [fault.phase for fault in view.faults] == ["render"]

    panel.props["dismiss"]()
    assert view.closed


@pytest.mark.asyncio
async def test_async_effect_failure_is_reported_only(make_view) -> None:
    code = """
React = require("react")
api = require("@raycast/api")
h = React.create_element


def Command(**_):
    async def load():
        raise RuntimeError("effect broke")

    React.use_effect(load, ())
    return h(api.Detail, {"markdown": "still here"})


module.exports = Command
"""
    view = make_view(code)
    view.start()
    tree = await view.settle()

    assert tree.find("detail").props["markdown"] == "still here"
    assert [(fault.phase, fault.message) for fault in view.faults] == [("effect", "effect broke")]


@pytest.mark.asyncio
async def test_launch_arguments_reach_entry(make_view) -> None:
    code = """
React = require("react")
api = require("@raycast/api")


def Command(arguments=None):
    return React.create_element(api.Detail, {"markdown": arguments["query"]})


module.exports = Command
"""
    view = make_view(code, launch=LaunchOptions(arguments={"query": "hello"}))
    view.start()
    tree = await view.settle()

    assert tree.find("detail").props["markdown"] == "hello"


@pytest.mark.asyncio
async def test_no_view_command_completes_and_closes(make_view) -> None:
    code = """
calls = []


async def command(**_):
    calls.append("ran")


module.exports = command
"""
    closed: list[object] = []
    view = make_view(code, mode="no-view", on_close=closed.append)

    assert view.start() is ViewStatus.RUNNING
    assert await view.finished() is ViewStatus.DONE
    assert view.entry.__globals__["calls"] == ["ran"]

    await asyncio.sleep(0.05)
    assert closed == [view]


@pytest.mark.asyncio
async def test_no_view_command_failure_keeps_view_open(make_view) -> None:
    code = """
def command(**_):
    raise RuntimeError("nope")


module.exports = command
"""
    view = make_view(code, mode="no-view")
    view.start()

    assert await view.finished() is ViewStatus.ERROR
    assert view.error == "nope"
    assert [fault.phase for fault in view.faults] == ["command"]
    await asyncio.sleep(0.05)
    assert not view.closed


@pytest.mark.asyncio
async def test_load_failure_is_recoverable(make_view) -> None:
    view = make_view("raise ImportError('missing dependency')")

    assert view.start() is ViewStatus.FAILED
    assert view.error == LOAD_FAILED_MESSAGE
    assert [fault.phase for fault in view.faults] == ["load"]
    view.close()
    assert view.closed


SECTIONED_BUNDLE = """
React = require("react")
api = require("@raycast/api")
h = React.create_element
toggles = []


def Command(**_):
    show_last, set_show_last = React.use_state(True)
    toggles.append(set_show_last)
    return h(
        api.List,
        {},
        h(api.List.Section, {"title": "s1"}, h(api.List.Item, {"id": "a", "title": "A"})),
        h(api.List.Section, {"title": "s2"}, h(api.List.Item, {"id": "x", "title": "X"})),
        h(api.List.Section, {"title": "s1"}, h(api.List.Item, {"id": "b", "title": "B"}) if show_last else None),
    )


module.exports = Command
"""


@pytest.mark.asyncio
async def test_removing_selected_last_item_keeps_its_section(make_view) -> None:
    view = make_view(SECTIONED_BUNDLE)
    view.start()
    await view.settle()
    view.press("arrowdown")
    view.press("arrowdown")
    tree = await view.settle()
    assert tree.find("list").props["selected_id"] == "b"

    view.entry.__globals__["toggles"][-1](False)
    tree = await view.settle()

    assert _titles(tree) == ["A", "X"]
    assert tree.find("list").props["selected_id"] == "a"


@pytest.mark.asyncio
async def test_no_view_command_shows_running_then_error(make_view) -> None:
    code = """
async def command(**_):
    raise RuntimeError("boom")


module.exports = command
"""
    view = make_view(code, mode="no-view")
    view.start()
    assert view.tree.find("command-status").props["state"] == "running"

    await view.finished()
    tree = await view.settle()

    status = tree.find("command-status")
    assert status.props["state"] == "error"
    assert status.props["message"] == "boom"
    status.props["dismiss"]()
    assert view.closed


@pytest.mark.asyncio
async def test_load_failure_renders_failed_status(make_view) -> None:
    view = make_view("module.exports = None")

    view.start()

    status = view.tree.find("command-status")
    assert status.props["state"] == "failed"
    assert status.props["message"] == LOAD_FAILED_MESSAGE
