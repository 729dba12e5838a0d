from __future__ import annotations

import json
import sys

import httpx
import pytest

from extension_host.bridge.local import LocalBridge
from extension_host.bridge.models import ExecRequest, HttpRequest, TrayUpdate


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/boom":
        msg = "connection reset"
        raise httpx.ConnectError(msg, request=request)
    payload = {"method": request.method, "body": request.content.decode() or None}
    return httpx.Response(200, json=payload)


@pytest.fixture
def local_bridge(tmp_path) -> LocalBridge:
    client = httpx.AsyncClient(transport=httpx.MockTransport(_handler))
    return LocalBridge(client=client, trash_dir=tmp_path / "Trash")


@pytest.mark.asyncio
async def test_http_request_round_trips_through_client(local_bridge: LocalBridge) -> None:
    response = await local_bridge.http_request(
        HttpRequest(url="https://example.com/echo", method="post", body='{"a": 1}'),
    )
    await local_bridge.close()

    assert response.status == 200
    assert json.loads(response.body_text) == {"method": "POST", "body": '{"a": 1}'}
    assert response.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_transport_failure_maps_to_status_zero(local_bridge: LocalBridge) -> None:
    response = await local_bridge.http_request(HttpRequest(url="https://example.com/boom"))
    await local_bridge.close()

    assert response.status == 0
    assert "connection reset" in response.status_text


def test_exec_sync_runs_process(local_bridge: LocalBridge) -> None:
    result = local_bridge.exec_sync(ExecRequest(file=sys.executable, args=("-c", "print('hi')")))

    assert result.exit_code == 0
    assert result.stdout.strip() == "hi"


def test_exec_sync_missing_binary(local_bridge: LocalBridge) -> None:
    result = local_bridge.exec_sync(ExecRequest(file="/nonexistent/tool"))

    assert result.exit_code == 127


@pytest.mark.asyncio
async def test_exec_passes_stdin_and_env(local_bridge: LocalBridge) -> None:
    script = "import os, sys; print(sys.stdin.read() + os.environ['GREETING'])"
    result = await local_bridge.exec(
        ExecRequest(file=sys.executable, args=("-c", script), env={"GREETING": "!"}, input="hello"),
    )

    assert result.stdout.strip() == "hello!"


@pytest.mark.asyncio
async def test_trash_moves_files(local_bridge: LocalBridge, tmp_path) -> None:
    doomed = tmp_path / "old.txt"
    doomed.write_text("bye", encoding="utf-8")

    await local_bridge.trash([str(doomed), str(tmp_path / "missing.txt")])

    assert not doomed.exists()
    assert (tmp_path / "Trash" / "old.txt").read_text(encoding="utf-8") == "bye"


def test_filesystem_reads(local_bridge: LocalBridge, tmp_path) -> None:
    (tmp_path / "a.txt").write_text("alpha", encoding="utf-8")

    assert local_bridge.read_file(str(tmp_path / "a.txt")) == "alpha"
    assert local_bridge.read_file(str(tmp_path / "none.txt")) is None
    assert local_bridge.stat(str(tmp_path)).is_directory
    assert local_bridge.list_dir(str(tmp_path)) == ["a.txt"]


def test_menu_bar_clicks_reach_subscribers(local_bridge: LocalBridge) -> None:
    clicks: list[tuple[str, str]] = []
    unsubscribe = local_bridge.subscribe_menu_bar_clicks(lambda ext, item: clicks.append((ext, item)))
    local_bridge.update_menu_bar(TrayUpdate(ext_id="demo/main", title="Hi"))

    local_bridge.click_menu_bar_item("demo/main", "mbi-1")
    unsubscribe()
    local_bridge.click_menu_bar_item("demo/main", "mbi-2")

    assert clicks == [("demo/main", "mbi-1")]
    assert local_bridge.menu_bar("demo/main").title == "Hi"
    local_bridge.remove_menu_bar("demo/main")
    assert local_bridge.menu_bar("demo/main") is None


@pytest.mark.asyncio
async def test_trash_keeps_files_with_the_same_name(local_bridge: LocalBridge, tmp_path) -> None:
    for folder, text in (("a", "first"), ("b", "second")):
        (tmp_path / folder).mkdir()
        (tmp_path / folder / "notes.txt").write_text(text, encoding="utf-8")
        await local_bridge.trash([str(tmp_path / folder / "notes.txt")])

    trash = tmp_path / "Trash"
    assert sorted(entry.name for entry in trash.iterdir()) == ["notes 2.txt", "notes.txt"]
    assert sorted(entry.read_text(encoding="utf-8") for entry in trash.iterdir()) == ["first", "second"]


def test_binary_files_are_read_as_bytes(local_bridge: LocalBridge, tmp_path) -> None:
    payload = b"\x89PNG\r\n\x1a\n\xff\x00"
    (tmp_path / "icon.png").write_bytes(payload)

    assert local_bridge.read_file_bytes(str(tmp_path / "icon.png")) == payload
    assert local_bridge.read_file_bytes(str(tmp_path / "missing.png")) is None
    with pytest.raises(UnicodeDecodeError):
        local_bridge.read_file(str(tmp_path / "icon.png"))
