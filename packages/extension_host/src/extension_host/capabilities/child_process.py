"""Process execution routed through the privileged bridge.

Every entry point turns into one :class:`ExecRequest` carrying the resolved
executable, its arguments, working directory, and environment. Command lines
run through a login shell so user PATH customizations apply.
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from extension_host.bridge.models import ExecRequest, ExecResult
from extension_host.capabilities.buffer import Buffer
from extension_host.capabilities.events import EventEmitter
from extension_host.capabilities.streams import Readable, Writable, schedule_soon
from extension_host.errors import ExecError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from extension_host.bridge.protocol import PrivilegedBridge
    from extension_host.capabilities.paths import CommandResolver
    from extension_host.capabilities.process import ProcessInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BenignFailurePolicy:
    """Heuristic for tool failures that are reported as success.

    The default matches git probing a path that vanished mid-run, which
    surfaces as an ENOENT from stat-like syscalls. The patterns are a tunable
    policy rather than a contract.
    """

    tool_pattern: str = r"\bgit(\s|$)"
    tool_suffix: str = "/git"
    required_fragments: tuple[str, ...] = ("enoent", "no such file or directory")
    syscall_pattern: str = r"\b(stat|lstat|access|scandir)\b"

    def matches_tool(self, command_or_file: str, args: Sequence[str] = ()) -> bool:
        target = (command_or_file or "").lower()
        joined = " ".join(args).lower()
        pattern = re.compile(self.tool_pattern)
        return bool(pattern.search(target)) or target.endswith(self.tool_suffix) or bool(pattern.search(joined))

    def matches_message(self, message: str) -> bool:
        lower = (message or "").lower()
        if not all(fragment in lower for fragment in self.required_fragments):
            return False
        return bool(re.search(self.syscall_pattern, lower))

    def suppresses(self, command_or_file: str, message: str, args: Sequence[str] = ()) -> bool:
        return self.matches_tool(command_or_file, args) and self.matches_message(message)


def _split_args(
    args: Any, options: Any, callback: Any
) -> tuple[list[str], dict[str, Any], Callable[..., Any] | None]:
    """Accept ``(args, options, callback)`` with any trailing part omitted."""
    parts = [args, options, callback]
    found_callback = next((part for part in reversed(parts) if callable(part)), None)
    arg_list: list[str] = []
    opts: dict[str, Any] = {}
    if isinstance(args, (list, tuple)):
        arg_list = [str(item) for item in args]
        if isinstance(options, dict):
            opts = options
    elif isinstance(args, dict):
        opts = args
    return arg_list, opts, found_callback


class ChildProcess(EventEmitter):
    """Handle returned by asynchronous execution entry points."""

    def __init__(self) -> None:
        super().__init__()
        self.stdin = Writable()
        self.stdout = Readable()
        self.stderr = Readable()
        self.pid = 0
        self.exit_code: int | None = None
        self.killed = False

    def kill(self, signal: str = "SIGTERM") -> bool:
        self.killed = True
        return True

    def ref(self) -> None:
        return None

    def unref(self) -> None:
        return None

    def disconnect(self) -> None:
        return None

    def _complete(self, result: ExecResult) -> None:
        if result.stdout:
            self.stdout.push(Buffer.from_(result.stdout))
        if result.stderr:
            self.stderr.push(Buffer.from_(result.stderr))
        self.stdout.push(None)
        self.stderr.push(None)
        self.exit_code = result.exit_code
        self.emit("exit", result.exit_code, None)
        self.emit("close", result.exit_code, None)


class ChildProcessModule:
    """Mediated replacement for the runtime's process-execution module."""

    def __init__(
        self,
        bridge: PrivilegedBridge,
        resolver: CommandResolver,
        process: ProcessInfo,
        *,
        shell: str = "/bin/zsh",
        policy: BenignFailurePolicy | None = None,
    ) -> None:
        self._bridge = bridge
        self._resolver = resolver
        self._process = process
        self._shell = shell
        self.policy = policy or BenignFailurePolicy()
        self._tasks: set[asyncio.Task[Any]] = set()

    def _request(self, file: str, args: Sequence[str], options: dict[str, Any]) -> ExecRequest:
        env = dict(self._process.env)
        env.update({str(k): str(v) for k, v in (options.get("env") or {}).items()})
        return ExecRequest(
            file=file,
            args=tuple(args),
            cwd=options.get("cwd"),
            env=env,
            input=options.get("input"),
        )

    def _shell_request(self, command: str, options: dict[str, Any]) -> ExecRequest:
        shell = options.get("shell") if isinstance(options.get("shell"), str) else self._shell
        return self._request(shell, ("-lc", self._resolver.rewrite_shell_command(command)), options)

    def _launch(self, request: ExecRequest, on_result: Callable[[ExecResult | None, BaseException | None], None]) -> None:
        async def run() -> None:
            try:
                result = await self._bridge.exec(request)
            except Exception as exc:  # noqa: BLE001 - delivered to the caller's callback
                on_result(None, exc)
                return
            on_result(result, None)

        task = asyncio.ensure_future(run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @staticmethod
    def _output(text: str, options: dict[str, Any]) -> str | Buffer:
        encoding = options.get("encoding")
        if encoding and encoding != "buffer":
            return text
        return Buffer.from_(text)

    def exec(self, command: str, options: Any = None, callback: Any = None) -> ChildProcess:
        """Run a command line; callback receives ``(error, stdout, stderr)``."""
        _, opts, cb = _split_args(None, options, callback)
        if isinstance(options, dict):
            opts = options
        child = ChildProcess()

        def settle(result: ExecResult | None, failure: BaseException | None) -> None:
            if failure is not None:
                if self.policy.suppresses(command, str(failure)):
                    result = ExecResult()
                else:
                    if cb is not None:
                        cb(failure, "", "")
                    child.emit("error", failure)
                    child._complete(ExecResult(stderr=str(failure), exit_code=1))
                    return
            result = result or ExecResult()
            if result.exit_code != 0 and self.policy.suppresses(command, result.stderr):
                result = ExecResult()
            error: ExecError | None = None
            if result.exit_code != 0 and not result.stdout:
                detail = result.stderr.strip() or f"exit code {result.exit_code}"
                error = ExecError(
                    f"Command failed: {command}\n{detail}",
                    code=result.exit_code,
                    stdout=result.stdout,
                    stderr=result.stderr,
                    cmd=command,
                )
            if cb is not None:
                cb(error, result.stdout, result.stderr)
            child._complete(result)

        self._launch(self._shell_request(command, opts), settle)
        return child

    def exec_sync(self, command: str, options: dict[str, Any] | None = None) -> str | Buffer:
        opts = options or {}
        result = self._bridge.exec_sync(self._shell_request(command, opts))
        if result.exit_code != 0:
            if self.policy.suppresses(command, result.stderr):
                return self._output("", opts)
            detail = result.stderr.strip() or f"exit code {result.exit_code}"
            raise ExecError(
                f"Command failed: {command}\n{detail}",
                code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
                cmd=command,
            )
        return self._output(result.stdout, opts)

    def exec_file(self, file: str, args: Any = None, options: Any = None, callback: Any = None) -> ChildProcess:
        """Run an executable with an argument list."""
        arg_list, opts, cb = _split_args(args, options, callback)
        resolved = self._resolver.resolve_executable(file)
        child = ChildProcess()

        def settle(result: ExecResult | None, failure: BaseException | None) -> None:
            if failure is not None:
                if self.policy.suppresses(resolved, str(failure), arg_list):
                    if cb is not None:
                        cb(None, "", "")
                    child._complete(ExecResult())
                    return
                if cb is not None:
                    cb(failure, "", "")
                child._complete(ExecResult(stderr=str(failure), exit_code=1))
                return
            result = result or ExecResult()
            if self.policy.suppresses(resolved, result.stderr, arg_list):
                if cb is not None:
                    cb(None, "", "")
                child._complete(ExecResult())
                return
            error: ExecError | None = None
            if result.exit_code != 0 and not result.stdout:
                error = ExecError(
                    result.stderr or f"Command failed with exit code {result.exit_code}",
                    code=result.exit_code,
                    stdout=result.stdout,
                    stderr=result.stderr,
                    cmd=" ".join([resolved, *arg_list]),
                )
            if cb is not None:
                cb(error, result.stdout, result.stderr)
            child._complete(result)

        self._launch(self._request(resolved, arg_list, opts), settle)
        return child

    def exec_file_sync(self, file: str, args: Any = None, options: Any = None) -> str | Buffer:
        arg_list, opts, _ = _split_args(args, options, None)
        resolved = self._resolver.resolve_executable(file)
        result = self._bridge.exec_sync(self._request(resolved, arg_list, opts))
        if result.exit_code != 0:
            if self.policy.suppresses(resolved, result.stderr, arg_list):
                return self._output("", opts)
            raise ExecError(
                result.stderr or f"Command failed with exit code {result.exit_code}",
                code=result.exit_code,
                stdout=result.stdout,
                stderr=result.stderr,
                cmd=" ".join([resolved, *arg_list]),
            )
        return self._output(result.stdout, opts)

    def spawn(self, command: str, args: Any = None, options: Any = None) -> ChildProcess:
        arg_list, opts, _ = _split_args(args, options, None)
        resolved = self._resolver.resolve_executable(command)
        child = ChildProcess()

        def settle(result: ExecResult | None, failure: BaseException | None) -> None:
            message = str(failure) if failure is not None else (result.stderr if result else "")
            if self.policy.suppresses(resolved, message, arg_list):
                child._complete(ExecResult())
                return
            if failure is not None:
                child._complete(ExecResult(stderr=str(failure) or "spawn failed", exit_code=1))
                return
            result = result or ExecResult()
            child._complete(result)

        if opts.get("shell"):
            request = self._shell_request(" ".join([command, *arg_list]), opts)
        else:
            request = self._request(resolved, arg_list, opts)
        self._launch(request, settle)
        return child

    def spawn_sync(self, command: str, args: Any = None, options: Any = None) -> dict[str, Any]:
        arg_list, opts, _ = _split_args(args, options, None)
        resolved = self._resolver.resolve_executable(command)
        result = self._bridge.exec_sync(self._request(resolved, arg_list, opts))
        if result.exit_code != 0 and self.policy.suppresses(resolved, result.stderr, arg_list):
            result = ExecResult()
        stdout = self._output(result.stdout, opts)
        stderr = self._output(result.stderr, opts)
        return {
            "pid": 0,
            "output": [None, stdout, stderr],
            "stdout": stdout,
            "stderr": stderr,
            "status": result.exit_code,
            "signal": None,
            "error": None,
        }

    def fork(self, *args: Any, **kwargs: Any) -> ChildProcess:
        logger.debug("fork() is not supported in the sandbox; returning an inert child")
        child = ChildProcess()
        schedule_soon(lambda: child._complete(ExecResult()))
        return child
