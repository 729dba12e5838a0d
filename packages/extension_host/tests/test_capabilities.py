from __future__ import annotations

import asyncio
import hashlib

import pytest

from extension_host.bridge.models import ExecRequest, ExecResult
from extension_host.capabilities.buffer import Buffer
from extension_host.capabilities.child_process import BenignFailurePolicy, ChildProcessModule
from extension_host.capabilities.crypto import CryptoModule
from extension_host.capabilities.events import EventEmitter
from extension_host.capabilities.paths import CommandResolver, is_bare_command_path, normalize_fs_path
from extension_host.capabilities.process import OsModule, PathModule, ProcessInfo
from extension_host.capabilities.streams import PassThrough, Readable, Transform, Writable, pipeline
from extension_host.capabilities.timers import Timers
from extension_host.capabilities.util import format_message, promisify
from extension_host.errors import ExecError


@pytest.fixture
def process() -> ProcessInfo:
    return ProcessInfo(home_dir="/Users/tester", system_path="/usr/bin:/bin")


@pytest.fixture
def child_process(bridge, process: ProcessInfo) -> ChildProcessModule:
    return ChildProcessModule(bridge, CommandResolver(bridge), process)


def test_buffer_text_conversions() -> None:
    buf = Buffer.from_("héllo")

    assert buf.to_string() == "héllo"
    assert Buffer.from_(buf.to_string("base64"), "base64").equals(buf)
    assert Buffer.from_("68656c6c6f", "hex").to_string() == "hello"
    assert buf.length == len("héllo".encode())


def test_buffer_concat_compare_and_reads() -> None:
    joined = Buffer.concat([Buffer.from_([1, 2]), Buffer.from_([3, 4])])

    assert list(joined) == [1, 2, 3, 4]
    assert joined.read_uint16_be(0) == 0x0102
    assert joined.read_uint16_le(2) == 0x0403
    assert Buffer.compare_buffers(b"a", b"b") == -1
    assert joined.slice(1, 3).to_json() == {"type": "Buffer", "data": [2, 3]}
    with pytest.raises(IndexError):
        joined.read_uint32_le(2)


def test_event_emitter_once_and_off() -> None:
    emitter = EventEmitter()
    seen: list[str] = []

    def first(value: int) -> None:
        seen.append(f"once:{value}")

    def every(value: int) -> None:
        seen.append(f"on:{value}")

    emitter.once("tick", first)
    emitter.on("tick", every)

    emitter.emit("tick", 1)
    emitter.emit("tick", 2)
    emitter.off("tick", every)
    emitter.emit("tick", 3)

    assert seen == ["once:1", "on:1", "on:2"]
    assert emitter.listener_count("tick") == 0


@pytest.mark.asyncio
async def test_pipeline_drains_source_through_transform() -> None:
    upper = Transform(lambda chunk, _encoding, done: done(None, str(chunk).upper()))
    sink = Writable()

    await pipeline(Readable.from_iterable(["a", "b", "c"]), upper, PassThrough(), sink)

    assert sink.text() == "ABC"


@pytest.mark.asyncio
async def test_pipeline_raises_first_error() -> None:
    def explode(chunk, _encoding, done) -> None:
        done(RuntimeError(f"bad chunk {chunk}"))

    with pytest.raises(RuntimeError, match="bad chunk x"):
        await pipeline(["x", "y"], Transform(explode), Writable())


@pytest.mark.asyncio
async def test_exec_resolves_stdout_and_stderr(bridge, child_process: ChildProcessModule) -> None:
    bridge.exec_handler = lambda request: ExecResult(stdout="hello\n", stderr="warn")

    result = await promisify(child_process.exec)("echo hello")

    assert result == {"stdout": "hello\n", "stderr": "warn"}
    request = bridge.exec_requests[-1]
    assert request.file == "/bin/zsh"
    assert request.args == ("-lc", "echo hello")


@pytest.mark.asyncio
async def test_exec_fails_only_without_stdout(bridge, child_process: ChildProcessModule) -> None:
    bridge.exec_handler = lambda request: ExecResult(stdout="partial", stderr="boom", exit_code=2)
    assert (await promisify(child_process.exec)("tool"))["stdout"] == "partial"

    bridge.exec_handler = lambda request: ExecResult(stderr="boom", exit_code=2)
    with pytest.raises(ExecError) as excinfo:
        await promisify(child_process.exec)("tool")
    assert excinfo.value.code == 2
    assert excinfo.value.stderr == "boom"


@pytest.mark.asyncio
async def test_exec_rewrites_missing_first_token(bridge, child_process: ChildProcessModule) -> None:
    bridge.commands["rg"] = "/opt/homebrew/bin/rg"

    await promisify(child_process.exec)("rg needle")

    assert bridge.exec_requests[-1].args == ("-lc", "/opt/homebrew/bin/rg needle")


def test_exec_sync_raises_with_status(bridge, child_process: ChildProcessModule) -> None:
    bridge.exec_handler = lambda request: ExecResult(stdout="out", stderr="nope", exit_code=1)

    with pytest.raises(ExecError) as excinfo:
        child_process.exec_sync("false")

    assert excinfo.value.status == 1
    assert excinfo.value.stdout == "out"


def test_benign_git_probe_failure_is_suppressed(bridge, child_process: ChildProcessModule) -> None:
    stderr = "fatal: ENOENT: no such file or directory, stat '/tmp/gone'"
    bridge.exec_handler = lambda request: ExecResult(stderr=stderr, exit_code=128)

    assert child_process.exec_sync("git status", {"encoding": "utf8"}) == ""
    with pytest.raises(ExecError):
        child_process.exec_sync("ls /tmp/gone")


def test_benign_policy_requires_syscall() -> None:
    policy = BenignFailurePolicy()

    assert policy.suppresses("/usr/bin/git", "ENOENT: no such file or directory, lstat 'x'")
    assert not policy.suppresses("/usr/bin/git", "ENOENT: no such file or directory, open 'x'")
    assert not policy.suppresses("svn", "ENOENT: no such file or directory, stat 'x'")


@pytest.mark.asyncio
async def test_spawn_emits_data_then_exit(bridge, child_process: ChildProcessModule) -> None:
    bridge.exec_handler = lambda request: ExecResult(stdout="line", exit_code=0)
    child = child_process.spawn("/bin/echo", ["line"])
    received: list[str] = []
    closed = asyncio.get_running_loop().create_future()
    child.stdout.on("data", lambda chunk: received.append(chunk.to_string()))
    child.on("close", lambda code, _signal: closed.set_result(code))

    assert await closed == 0
    assert received == ["line"]
    assert bridge.exec_requests[-1] == ExecRequest(
        file="/bin/echo",
        args=("line",),
        env=bridge.exec_requests[-1].env,
    )


def test_spawn_sync_shape(bridge, child_process: ChildProcessModule) -> None:
    bridge.exec_handler = lambda request: ExecResult(stdout="ok", exit_code=3)

    result = child_process.spawn_sync("/bin/thing", ["a"], {"encoding": "utf8"})

    assert result["status"] == 3
    assert result["stdout"] == "ok"
    assert set(result) == {"pid", "output", "stdout", "stderr", "status", "signal", "error"}


def test_command_resolution_is_cached_including_misses(bridge) -> None:
    resolver = CommandResolver(bridge)
    bridge.commands["jq"] = "/usr/local/bin/jq"

    assert resolver.resolve("jq") == "/usr/local/bin/jq"
    assert resolver.resolve("missing-tool") is None
    probes = len(bridge.exec_requests)
    resolver.resolve("jq")
    resolver.resolve("missing-tool")

    assert len(bridge.exec_requests) == probes


def test_command_resolution_falls_back_to_common_dirs(bridge) -> None:
    bridge.files["/opt/homebrew/bin/fd"] = ""

    assert CommandResolver(bridge).resolve("fd") == "/opt/homebrew/bin/fd"


def test_path_normalization() -> None:
    assert normalize_fs_path("file:///tmp/a%20b.txt") == "/tmp/a b.txt"
    assert normalize_fs_path("/tmp/a%20b.txt") == "/tmp/a b.txt"
    assert is_bare_command_path("git")
    assert not is_bare_command_path("./git")
    assert not is_bare_command_path("/usr/bin/git")


def test_crypto_hash_and_hmac() -> None:
    crypto = CryptoModule()

    assert crypto.create_hash("sha256").update("abc").digest("hex") == hashlib.sha256(b"abc").hexdigest()
    assert len(crypto.random_bytes(16)) == 16
    assert crypto.create_cipheriv("aes-256-cbc", b"k" * 32, b"i" * 16).final() == Buffer()


def test_process_path_and_os(process: ProcessInfo) -> None:
    path = PathModule(process)
    os_module = OsModule(process)

    assert process.platform == "darwin"
    assert process.env["HOME"] == "/Users/tester"
    assert path.join("/a", "b", "../c") == "/a/c"
    assert path.extname("notes.md") == ".md"
    assert os_module.homedir() == "/Users/tester"
    assert os_module.constants["errno"]["ENOENT"] == 2


def test_format_message_placeholders() -> None:
    assert format_message("%s has %d items", "cart", 3) == "cart has 3 items"
    assert format_message("plain", "extra") == "plain extra"


@pytest.mark.asyncio
async def test_timers_fire_and_cancel() -> None:
    timers = Timers()
    fired: list[str] = []
    timers.set_timeout(fired.append, 0, "a")
    cancelled = timers.set_timeout(fired.append, 0, "b")
    timers.clear_timeout(cancelled)

    await asyncio.sleep(0.01)

    assert fired == ["a"]
    assert timers.pending == 0
