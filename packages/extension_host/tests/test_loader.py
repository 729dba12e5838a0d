from __future__ import annotations

import logging

import pytest

from extension_host.loader.providers import REACT, InertModule, ProviderRegistry
from extension_host.loader.sandbox import load_extension_export


@pytest.fixture
def sandbox(make_view):
    return make_view("").sandbox


def test_unknown_module_resolves_to_inert_stand_in(sandbox) -> None:
    module = sandbox.require("left-pad-pro")

    assert isinstance(module, InertModule)
    assert module.anything(1, 2) is None
    assert sandbox.modules.unknown == ["left-pad-pro"]


def test_node_prefix_and_identity_modules(sandbox) -> None:
    assert sandbox.require("node:fs") is sandbox.require("fs")
    assert sandbox.require("node:path") is sandbox.path
    assert sandbox.require("react") is REACT
    assert sandbox.require("react").default is REACT


def test_scoped_sub_path_resolves_member(sandbox) -> None:
    api = sandbox.require("@raycast/api")

    assert sandbox.require("@raycast/api/Clipboard") is api.Clipboard
    assert sandbox.require("stream/promises").pipeline is sandbox.require("stream").pipeline


def test_duplicate_registration_is_rejected() -> None:
    registry = ProviderRegistry()
    registry.register("node:fs", object())

    with pytest.raises(ValueError, match="already registered"):
        registry.register("fs", object())


def test_default_export_wins(sandbox) -> None:
    code = """
def helper(**_):
    return "helper"

def command(**_):
    return "command"

module.exports = {"default": command, "helper": helper}
"""
    entry = load_extension_export(code, sandbox)

    assert entry is not None
    assert entry() == "command"


def test_exports_object_used_when_no_default(sandbox) -> None:
    code = """
def command(**_):
    return "plain"

module.exports = command
"""
    entry = load_extension_export(code, sandbox)

    assert entry() == "plain"


def test_non_callable_export_is_wrapped(sandbox) -> None:
    code = 'module.exports = {"default": {"title": "static"}}'

    entry = load_extension_export(code, sandbox)

    assert entry() == {"title": "static"}


@pytest.mark.parametrize(
    "code",
    [
        "",
        "module.exports = {}",
        'module.exports = "just text"',
    ],
)
def test_missing_entry_point_returns_none(sandbox, code: str) -> None:
    assert load_extension_export(code, sandbox) is None


def test_syntax_error_returns_none(sandbox, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.ERROR, logger="extension_host.loader.sandbox"):
        assert load_extension_export("def broken(:\n", sandbox) is None

    assert "Failed to load extension demo/main" in caplog.text


def test_top_level_exception_returns_none(sandbox) -> None:
    assert load_extension_export("raise RuntimeError('boom')", sandbox) is None


def test_bundle_sees_prepended_path(sandbox, settings) -> None:
    code = """
seen = process.env["PATH"]

def command(**_):
    return seen

module.exports = command
"""
    entry = load_extension_export(code, sandbox, extension_path="/ext/demo/")

    assert entry() == f"/ext/demo/node_modules/.bin:/ext/demo/bin:/ext/demo:{settings.system_path}"
    assert sandbox.process.env["HOME"] == "/Users/tester"


def test_path_is_system_path_without_extension_dir(sandbox, settings) -> None:
    sandbox.prepend_extension_path("")

    assert sandbox.process.env["PATH"] == settings.system_path


def test_bundle_requires_unknown_module_and_still_loads(sandbox) -> None:
    code = """
analytics = require("some-analytics")
analytics.track("opened")

def command(**_):
    return "ok"

module.exports = command
"""
    entry = load_extension_export(code, sandbox)

    assert entry() == "ok"
    assert sandbox.modules.unknown == ["some-analytics"]


def test_third_party_regex_shim(sandbox) -> None:
    re2 = sandbox.require("re2").RE2("^a+$", "i")

    assert re2.test("AAA")
    assert not re2.test("b")
