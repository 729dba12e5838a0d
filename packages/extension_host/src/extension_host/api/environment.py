"""Environment descriptor and the static Icon/Color/Image/Keyboard namespaces."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from extension_host.context import ExecutionContext

RAYCAST_VERSION = "1.80.0"

_ICON_GLYPHS = {
    "List": "☰",
    "MagnifyingGlass": "🔍",
    "Gear": "⚙️",
    "ArrowClockwise": "↻",
    "ArrowCounterClockwise": "↺",
    "Eraser": "⌫",
    "Megaphone": "📢",
    "ArrowNe": "↗",
    "ArrowRightCircle": "→",
    "Eye": "👁",
    "EyeDisabled": "🚫",
    "EyeSlash": "👁‍🗨",
    "Cog": "⚙️",
    "Bubble": "💬",
}

_COLORS = {
    "Red": "#FF6363",
    "Orange": "#FF9F43",
    "Yellow": "#FECA57",
    "Green": "#2ECC71",
    "Blue": "#54A0FF",
    "Purple": "#C56CF0",
    "Magenta": "#FF6B81",
    "PrimaryText": "#FFFFFF",
    "SecondaryText": "rgba(255,255,255,0.5)",
}


class _GlyphNamespace:
    """Attribute lookup that never fails; unknown names map to a fallback."""

    def __init__(self, values: dict[str, str], fallback: str) -> None:
        self._values = values
        self._fallback = fallback

    def __getattr__(self, name: str) -> str:
        if name.startswith("__"):
            raise AttributeError(name)
        return self._values.get(name, self._fallback)

    def __getitem__(self, name: str) -> str:
        return self._values.get(name, self._fallback)


Icon = _GlyphNamespace(_ICON_GLYPHS, "•")
Color = _GlyphNamespace(_COLORS, "#FFFFFF")


class ImageMask(str, Enum):
    CIRCLE = "circle"
    ROUNDED_RECTANGLE = "rounded"

    Circle = "circle"
    RoundedRectangle = "rounded"


class Image:
    Mask = ImageMask


def _shortcut(*modifiers: str, key: str) -> dict[str, Any]:
    return {"modifiers": list(modifiers), "key": key}


class _CommonShortcuts:
    Copy = _shortcut("cmd", key="c")
    Cut = _shortcut("cmd", key="x")
    Paste = _shortcut("cmd", key="v")
    Undo = _shortcut("cmd", key="z")
    Redo = _shortcut("cmd", "shift", key="z")
    SelectAll = _shortcut("cmd", key="a")
    New = _shortcut("cmd", key="n")
    Open = _shortcut("cmd", key="o")
    Save = _shortcut("cmd", key="s")
    Find = _shortcut("cmd", key="f")
    Refresh = _shortcut("cmd", key="r")
    Delete = _shortcut("ctrl", key="x")
    CopyPath = _shortcut("cmd", "opt", key="c")
    CopyName = _shortcut("cmd", "opt", key="n")
    Edit = _shortcut("cmd", key="e")
    ToggleQuickLook = _shortcut("cmd", key="y")
    MoveUp = _shortcut("cmd", "opt", key="arrowUp")
    MoveDown = _shortcut("cmd", "opt", key="arrowDown")
    Pin = _shortcut("cmd", "shift", key="p")


class _Shortcut:
    Common = _CommonShortcuts


class Keyboard:
    Shortcut = _Shortcut


class LaunchType(str, Enum):
    USER_INITIATED = "userInitiated"
    BACKGROUND = "background"

    UserInitiated = "userInitiated"
    Background = "background"


@dataclass
class Environment:
    """What an extension can learn about the host it runs in."""

    extension_name: str
    command_name: str
    command_mode: str
    assets_path: str
    support_path: str
    owner_or_author_name: str
    appearance: str = "dark"
    launch_type: str = LaunchType.USER_INITIATED.value
    raycast_version: str = RAYCAST_VERSION
    is_development: bool = False
    text_size: str = "medium"
    theme: dict[str, str] = field(default_factory=dict)
    ai_available: Callable[[], bool] | None = None

    def __post_init__(self) -> None:
        if not self.theme:
            self.theme = {"name": self.appearance}

    def can_access(self, resource: Any = None) -> bool:
        """AI access follows bridge availability; everything else is granted."""
        if resource is not None and hasattr(resource, "Model") and hasattr(resource, "ask"):
            return bool(self.ai_available()) if self.ai_available is not None else False
        return True


def build_environment(
    context: ExecutionContext,
    *,
    appearance: str = "dark",
    launch_type: str = LaunchType.USER_INITIATED.value,
    raycast_version: str = RAYCAST_VERSION,
    ai_available: Callable[[], bool] | None = None,
) -> Environment:
    return Environment(
        extension_name=context.extension_name,
        command_name=context.command_name,
        command_mode=context.command_mode,
        assets_path=context.assets_path,
        support_path=context.support_path,
        owner_or_author_name=context.owner,
        appearance=appearance,
        launch_type=launch_type,
        raycast_version=raycast_version,
        ai_available=ai_available,
    )
