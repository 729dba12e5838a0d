from __future__ import annotations

import pytest

from extension_host.bridge.models import FileStat
from extension_host.capabilities.buffer import Buffer
from extension_host.capabilities.fs import EmulatedFs, FileStore
from extension_host.capabilities.paths import CommandResolver
from extension_host.capabilities.process import ProcessInfo
from extension_host.errors import FsError
from extension_host.storage import FS_PREFIX, JsonFileStore, MemoryStore


@pytest.fixture
def process() -> ProcessInfo:
    return ProcessInfo(home_dir="/Users/tester", system_path="/usr/bin:/bin")


@pytest.fixture
def fs(bridge, store: MemoryStore, process: ProcessInfo) -> EmulatedFs:
    return EmulatedFs(FileStore(store), bridge, CommandResolver(bridge), process)


def test_equivalent_spellings_share_one_file(fs: EmulatedFs, process: ProcessInfo) -> None:
    fs.write_file_sync("/tmp/my notes.txt", "hi")

    assert fs.read_file_sync("file:///tmp/my%20notes.txt", "utf8") == "hi"
    assert fs.read_file_sync("/tmp/my%20notes.txt", {"encoding": "utf8"}) == "hi"
    process.chdir("/tmp")
    assert fs.read_file_sync("my notes.txt", "utf8") == "hi"
    assert fs.key("./my notes.txt") == "/tmp/my notes.txt"


def test_read_without_encoding_returns_buffer(fs: EmulatedFs) -> None:
    fs.write_file_sync("/tmp/data.bin", Buffer.from_([0, 255, 1]))

    data = fs.read_file_sync("/tmp/data.bin")

    assert isinstance(data, Buffer)
    assert list(data) == [0, 255, 1]


def test_missing_file_raises_enoent_with_attributes(fs: EmulatedFs) -> None:
    with pytest.raises(FsError) as excinfo:
        fs.read_file_sync("/tmp/missing.txt", "utf8")

    error = excinfo.value
    assert error.code == "ENOENT"
    assert error.errno == -2
    assert error.syscall == "open"
    assert error.path == "/tmp/missing.txt"
    assert str(error) == "ENOENT: no such file or directory, open '/tmp/missing.txt'"


def test_read_falls_back_to_bridge(bridge, fs: EmulatedFs) -> None:
    bridge.files["/etc/hosts"] = "127.0.0.1 localhost"

    assert fs.read_file_sync("/etc/hosts", "utf8") == "127.0.0.1 localhost"
    assert fs.exists_sync("/etc/hosts")
    assert fs.stat_sync("/etc/hosts").size == len("127.0.0.1 localhost")


def test_readdir_lists_stored_children(fs: EmulatedFs) -> None:
    fs.write_file_sync("/data/a.json", "{}")
    fs.write_file_sync("/data/nested/b.json", "{}")

    assert sorted(fs.readdir_sync("/data")) == ["a.json", "nested"]
    entries = {entry.name: entry.is_directory() for entry in fs.readdir_sync("/data", {"with_file_types": True})}
    assert entries == {"a.json": False, "nested": True}
    assert fs.stat_sync("/data/nested").is_directory()
    with pytest.raises(FsError) as excinfo:
        fs.readdir_sync("/nothing")
    assert excinfo.value.syscall == "scandir"


def test_unlink_and_rename(fs: EmulatedFs) -> None:
    fs.write_file_sync("/tmp/a.txt", "one")
    fs.rename_sync("/tmp/a.txt", "/tmp/b.txt")

    assert not fs.exists_sync("/tmp/a.txt")
    assert fs.read_file_sync("/tmp/b.txt", "utf8") == "one"
    fs.unlink_sync("/tmp/b.txt")
    with pytest.raises(FsError):
        fs.unlink_sync("/tmp/b.txt")


def test_directory_stat_from_bridge(bridge, fs: EmulatedFs) -> None:
    bridge.stat = lambda path: FileStat(size=0, is_file=False, is_directory=True) if path == "/Applications" else None

    assert fs.stat_sync("/Applications").is_directory()


@pytest.mark.asyncio
async def test_promise_api_matches_sync(fs: EmulatedFs) -> None:
    await fs.promises.write_file("/tmp/p.txt", "async")

    assert await fs.promises.read_file("/tmp/p.txt", "utf8") == "async"
    with pytest.raises(FsError):
        await fs.promises.stat("/tmp/nope")


def test_quota_failure_switches_to_memory(tmp_path) -> None:
    durable = JsonFileStore(tmp_path / "state.json", quota_bytes=64)
    files = FileStore(durable)

    files.set("/small", "ok")
    files.set("/big", "x" * 200)

    assert files.memory_only
    assert files.get("/big") == "x" * 200
    assert durable.get(FS_PREFIX + "/big") is None
    files.set("/later", "y")
    assert durable.get(FS_PREFIX + "/later") is None
    assert durable.get(FS_PREFIX + "/small") == "ok"


def test_durable_store_survives_reload(tmp_path) -> None:
    path = tmp_path / "state.json"
    FileStore(JsonFileStore(path)).set("/notes/today.md", "# Today")

    assert FileStore(JsonFileStore(path)).get("/notes/today.md") == "# Today"
