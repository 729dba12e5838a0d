from __future__ import annotations

import logging

import pytest

from extension_host.config.settings import Settings
from extension_host.context import ExecutionContext
from extension_host.host import ExtensionHost
from extension_host.storage import JsonFileStore, MemoryStore
from extension_host.view import ViewStatus

DETAIL_BUNDLE = """
React = require("react")
api = require("@raycast/api")


def Command(**_):
    return React.create_element(api.Detail, {"markdown": "# Hi"})


module.exports = Command
"""


def _context(command: str = "main") -> ExecutionContext:
    return ExecutionContext(extension_name="demo", command_name=command, extension_path="/ext/demo")


@pytest.mark.asyncio
async def test_open_view_tracks_by_command(bridge, settings) -> None:
    host = ExtensionHost(bridge, settings=settings)

    view = host.open_view(DETAIL_BUNDLE, _context())
    await view.settle()

    assert view.status is ViewStatus.READY
    assert host.get_view("demo/main") is view
    assert view.tree.find("detail").props["markdown"] == "# Hi"


@pytest.mark.asyncio
async def test_reopening_command_replaces_previous_view(bridge, settings) -> None:
    host = ExtensionHost(bridge, settings=settings)
    first = host.open_view(DETAIL_BUNDLE, _context())

    second = host.open_view(DETAIL_BUNDLE, _context())

    assert first.closed
    assert host.views == [second]


@pytest.mark.asyncio
async def test_closing_view_forgets_it(bridge, settings) -> None:
    host = ExtensionHost(bridge, settings=settings)
    view = host.open_view(DETAIL_BUNDLE, _context())
    other = host.open_view(DETAIL_BUNDLE, _context("other"))

    view.close()
    assert host.views == [other]

    host.close()
    assert other.closed
    assert host.views == []


def test_store_follows_state_file(bridge, tmp_path) -> None:
    assert isinstance(ExtensionHost(bridge, settings=Settings()).store, MemoryStore)
    durable = ExtensionHost(bridge, settings=Settings(state_file=str(tmp_path / "state.json")))
    assert isinstance(durable.store, JsonFileStore)


@pytest.fixture
def host_logger():
    logger = logging.getLogger("extension_host")
    previous = logger.level
    yield logger
    logger.setLevel(previous)


def test_log_level_setting_applies_to_package_logger(bridge, host_logger) -> None:
    ExtensionHost(bridge, settings=Settings(log_level="DEBUG"))
    assert host_logger.level == logging.DEBUG

    ExtensionHost(bridge, settings=Settings(log_level="WARNING"))
    assert host_logger.level == logging.WARNING
    assert not logging.getLogger("extension_host.view").isEnabledFor(logging.INFO)


@pytest.mark.asyncio
async def test_support_path_defaults_from_settings(bridge) -> None:
    host = ExtensionHost(bridge, settings=Settings(support_path="/var/support", settle_delay_ms=10))

    view = host.open_view(DETAIL_BUNDLE, _context())
    explicit = ExecutionContext(extension_name="demo", command_name="other", support_path="/custom")
    other = host.open_view(DETAIL_BUNDLE, explicit)

    assert view.environment.support_path == "/var/support"
    assert other.environment.support_path == "/custom"
