"""Per-activation execution context for a hosted extension."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Literal

CommandMode = Literal["view", "no-view", "menu-bar"]
LaunchType = Literal["userInitiated", "background"]

COMMAND_MODES: tuple[str, ...] = ("view", "no-view", "menu-bar")


@dataclass
class ExecutionContext:
    """Identity, paths, and preferences of one running extension command.

    Created once per activation and owned by the view that runs it. Only the
    owning view mutates it; every other reader receives it explicitly.
    """

    extension_name: str
    command_name: str
    assets_path: str = ""
    support_path: str = ""
    owner: str = ""
    preferences: dict[str, Any] = field(default_factory=dict)
    command_mode: CommandMode = "view"
    extension_path: str = ""
    display_name: str = ""
    icon: str = ""

    def __post_init__(self) -> None:
        if not self.extension_name.strip():
            msg = "ExecutionContext.extension_name must be non-empty"
            raise ValueError(msg)
        if self.command_mode not in COMMAND_MODES:
            msg = f"Unknown command mode: {self.command_mode}"
            raise ValueError(msg)
        if not self.display_name:
            self.display_name = self.extension_name

    @property
    def ext_id(self) -> str:
        """Identifier shared with the bridge, e.g. for tray updates."""
        return f"{self.extension_name}/{self.command_name}"

    def with_mode(self, mode: CommandMode) -> ExecutionContext:
        """Return a copy running under another command mode."""
        return replace(self, command_mode=mode, preferences=dict(self.preferences))


@dataclass(frozen=True)
class LaunchOptions:
    """Arguments handed to a command entry point."""

    arguments: dict[str, Any] = field(default_factory=dict)
    launch_type: LaunchType = "userInitiated"
    launch_context: dict[str, Any] | None = None
    fallback_text: str | None = None

    def as_props(self) -> dict[str, Any]:
        """Return the keyword arguments passed to the entry point."""
        return {
            "arguments": dict(self.arguments),
            "launch_type": self.launch_type,
            "launch_context": self.launch_context,
            "fallback_text": self.fallback_text,
        }
