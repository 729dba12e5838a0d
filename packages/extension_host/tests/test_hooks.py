from __future__ import annotations

import json

import pytest

from extension_host.api.hooks import get_favicon
from extension_host.bridge.models import HttpResponse
from extension_host.storage import CACHE_PREFIX
from extension_host.ui.feedback import ToastStyle

PROMISE_BUNDLE = """
React = require("react")
api = require("@raycast/api")
utils = require("@raycast/utils")
h = React.create_element


async def greet(name):
    return f"hello {name}"


def Command(**_):
    state = utils.use_promise(greet, ["world"])
    return h(api.Detail, {"markdown": state.data or "", "is_loading": state.is_loading})


module.exports = Command
"""

FAILING_PROMISE_BUNDLE = """
React = require("react")
api = require("@raycast/api")
utils = require("@raycast/utils")
h = React.create_element


async def explode():
    raise ValueError("backend down")


def Command(**_):
    state = utils.use_promise(explode, failure_toast_options={"title": "Could not load"})
    return h(api.Detail, {"markdown": str(state.error) if state.error else "", "is_loading": state.is_loading})


module.exports = Command
"""

CACHED_STATE_BUNDLE = """
React = require("react")
api = require("@raycast/api")
utils = require("@raycast/utils")
h = React.create_element
setters = []


def Command(**_):
    count, set_count = utils.use_cached_state("count", 0)
    setters.append(set_count)
    return h(api.Detail, {"markdown": str(count)})


module.exports = Command
"""

FETCH_BUNDLE = """
React = require("react")
api = require("@raycast/api")
utils = require("@raycast/utils")
h = React.create_element


def Command(**_):
    state = utils.use_fetch("https://api.example.com/items")
    names = ", ".join(item["name"] for item in state.data or [])
    return h(api.Detail, {"markdown": names, "is_loading": state.is_loading})


module.exports = Command
"""


@pytest.mark.asyncio
async def test_use_promise_resolves_data(make_view) -> None:
    view = make_view(PROMISE_BUNDLE)
    view.start()
    assert view.tree.find("detail").props["is_loading"]

    tree = await view.settle()

    detail = tree.find("detail")
    assert detail.props["markdown"] == "hello world"
    assert not detail.props["is_loading"]
    assert view.faults == []


@pytest.mark.asyncio
async def test_use_promise_failure_sets_error_and_toasts(make_view) -> None:
    view = make_view(FAILING_PROMISE_BUNDLE)
    view.start()

    tree = await view.settle()

    assert tree.find("detail").props["markdown"] == "backend down"
    toast = view.services.toasts.history[-1]
    assert toast.style is ToastStyle.FAILURE
    assert toast.title == "Could not load"
    assert toast.message == "backend down"
    assert view.faults == []


@pytest.mark.asyncio
async def test_use_cached_state_persists_across_views(make_view, store) -> None:
    view = make_view(CACHED_STATE_BUNDLE)
    view.start()
    await view.settle()

    view.entry.__globals__["setters"][-1](lambda count: count + 5)
    tree = await view.settle()

    assert tree.find("detail").props["markdown"] == "5"
    assert store.get(f"{CACHE_PREFIX}count") == "5"

    view.close()
    reopened = make_view(CACHED_STATE_BUNDLE)
    reopened.start()
    assert reopened.tree.find("detail").props["markdown"] == "5"


@pytest.mark.asyncio
async def test_use_fetch_parses_json(bridge, make_view) -> None:
    url = "https://api.example.com/items"
    bridge.responses[url] = HttpResponse(
        status=200,
        status_text="OK",
        headers={"content-type": "application/json"},
        body_text=json.dumps([{"name": "alpha"}, {"name": "beta"}]),
        url=url,
    )
    view = make_view(FETCH_BUNDLE)
    view.start()

    tree = await view.settle()

    assert tree.find("detail").props["markdown"] == "alpha, beta"
    assert [request.url for request in bridge.http_requests] == [url]


@pytest.mark.asyncio
async def test_run_apple_script_and_failure_toast(make_view) -> None:
    view = make_view("")
    utils = view.sandbox.require("@raycast/utils")

    assert await utils.run_apple_script('display dialog "hi"') == 'ran:display dialog "hi"'
    toast = await utils.show_failure_toast(RuntimeError("disk full"), title="Export failed")
    assert toast.title == "Export failed"
    assert toast.message == "disk full"


def test_get_favicon() -> None:
    assert get_favicon("https://raycast.com/store") == "https://www.google.com/s2/favicons?domain=raycast.com&sz=64"
    assert get_favicon("not a url", {"fallback": "icon.png"}) == "icon.png"
