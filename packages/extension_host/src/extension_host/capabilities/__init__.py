"""Emulated runtime capabilities backed by the privileged bridge."""

from extension_host.capabilities.abort import AbortController, AbortSignal
from extension_host.capabilities.buffer import Buffer
from extension_host.capabilities.child_process import BenignFailurePolicy, ChildProcess, ChildProcessModule
from extension_host.capabilities.crypto import CryptoModule
from extension_host.capabilities.events import EventEmitter
from extension_host.capabilities.fetch import Fetch, FetchResponse
from extension_host.capabilities.fs import EmulatedFs, FileStore, Stats
from extension_host.capabilities.paths import CommandResolver, is_bare_command_path, normalize_fs_path
from extension_host.capabilities.process import OsModule, PathModule, ProcessInfo
from extension_host.capabilities.streams import Duplex, PassThrough, Readable, Transform, Writable, finished, pipeline
from extension_host.capabilities.timers import TimerPromises, Timers

__all__ = [
    "AbortController",
    "AbortSignal",
    "BenignFailurePolicy",
    "Buffer",
    "ChildProcess",
    "ChildProcessModule",
    "CommandResolver",
    "CryptoModule",
    "Duplex",
    "EmulatedFs",
    "EventEmitter",
    "Fetch",
    "FetchResponse",
    "FileStore",
    "OsModule",
    "PassThrough",
    "PathModule",
    "ProcessInfo",
    "Readable",
    "Stats",
    "TimerPromises",
    "Timers",
    "Transform",
    "Writable",
    "finished",
    "is_bare_command_path",
    "normalize_fs_path",
    "pipeline",
]
