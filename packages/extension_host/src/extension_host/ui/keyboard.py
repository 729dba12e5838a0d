"""Key events, shortcut matching and per-view listener dispatch."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

_MODIFIERS = {
    "cmd": "cmd",
    "command": "cmd",
    "meta": "cmd",
    "opt": "opt",
    "option": "opt",
    "alt": "opt",
    "shift": "shift",
    "ctrl": "ctrl",
    "control": "ctrl",
}

_KEY_ALIASES = {
    "return": "enter",
    "esc": "escape",
    "arrowup": "arrowup",
    "arrowdown": "arrowdown",
    "space": " ",
}


def _normalize_key(key: str) -> str:
    lowered = key.lower()
    return _KEY_ALIASES.get(lowered, lowered)


@dataclass(frozen=True)
class Shortcut:
    """Modifier set plus a key, e.g. ``cmd+shift+p``."""

    key: str
    modifiers: frozenset[str] = frozenset()

    @classmethod
    def parse(cls, value: Any) -> Shortcut | None:
        """Accept a Shortcut, a ``{"modifiers": [...], "key": ...}`` mapping or ``"cmd+k"``."""
        if value is None or isinstance(value, Shortcut):
            return value
        if isinstance(value, str):
            parts = [part.strip() for part in value.split("+") if part.strip()]
            if not parts:
                return None
            *mods, key = parts
            return cls(key=_normalize_key(key), modifiers=frozenset(_MODIFIERS.get(m.lower(), m.lower()) for m in mods))
        if isinstance(value, dict):
            key = value.get("key")
            if not isinstance(key, str) or not key:
                return None
            mods = value.get("modifiers") or ()
            return cls(key=_normalize_key(key), modifiers=frozenset(_MODIFIERS.get(str(m).lower(), str(m).lower()) for m in mods))
        return None

    def label(self) -> str:
        symbols = {"ctrl": "⌃", "opt": "⌥", "shift": "⇧", "cmd": "⌘"}
        prefix = "".join(symbols[m] for m in ("ctrl", "opt", "shift", "cmd") if m in self.modifiers)
        return prefix + self.key.upper()


@dataclass
class KeyEvent:
    """Keyboard event as delivered to view listeners."""

    key: str
    code: str = ""
    meta: bool = False
    alt: bool = False
    shift: bool = False
    ctrl: bool = False
    repeat: bool = False
    default_prevented: bool = False
    propagation_stopped: bool = False
    handled_by: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, combo: str, *, repeat: bool = False) -> KeyEvent:
        """Build an event from ``"cmd+shift+p"`` style text."""
        shortcut = Shortcut.parse(combo)
        if shortcut is None:
            msg = f"Invalid key combination: {combo!r}"
            raise ValueError(msg)
        key = shortcut.key
        raw = {"enter": "Enter", "escape": "Escape", "arrowup": "ArrowUp", "arrowdown": "ArrowDown"}.get(key, key)
        code = f"Key{key.upper()}" if len(key) == 1 and key.isalpha() else ""
        return cls(
            key=raw,
            code=code,
            meta="cmd" in shortcut.modifiers,
            alt="opt" in shortcut.modifiers,
            shift="shift" in shortcut.modifiers,
            ctrl="ctrl" in shortcut.modifiers,
            repeat=repeat,
        )

    @property
    def has_command_modifier(self) -> bool:
        return self.meta or self.alt or self.ctrl

    @property
    def normalized_key(self) -> str:
        return _normalize_key(self.key)

    def prevent_default(self) -> None:
        self.default_prevented = True

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


def matches_shortcut(event: KeyEvent, shortcut: Shortcut | dict[str, Any] | str | None) -> bool:
    """Exact modifier equality; letters also match on the physical key code."""
    parsed = Shortcut.parse(shortcut)
    if parsed is None:
        return False
    key = parsed.key
    key_match = event.normalized_key == key
    if not key_match and len(key) == 1 and key.isalpha():
        key_match = event.code == f"Key{key.upper()}"
    if not key_match:
        return False
    mods = parsed.modifiers
    return (
        ("cmd" in mods) == event.meta
        and ("opt" in mods) == event.alt
        and ("shift" in mods) == event.shift
        and ("ctrl" in mods) == event.ctrl
    )


class KeyboardHub:
    """Capture and bubble listeners for one view.

    Capture listeners run first in registration order. Bubble listeners run
    newest first, so the innermost container sees an event before the view
    that hosts it. A listener that stops propagation ends dispatch.
    """

    def __init__(self) -> None:
        self._capture: list[Callable[[KeyEvent], Any]] = []
        self._bubble: list[Callable[[KeyEvent], Any]] = []

    def add_listener(self, listener: Callable[[KeyEvent], Any], *, capture: bool = False) -> Callable[[], None]:
        bucket = self._capture if capture else self._bubble
        bucket.append(listener)

        def remove() -> None:
            if listener in bucket:
                bucket.remove(listener)

        return remove

    def listener_count(self) -> int:
        return len(self._capture) + len(self._bubble)

    def dispatch(self, event: KeyEvent) -> KeyEvent:
        for listener in [*self._capture, *reversed(self._bubble)]:
            if event.propagation_stopped:
                break
            try:
                listener(event)
            except Exception:  # noqa: BLE001 - defensive isolation
                logger.exception("Key listener failed for %s", event.key)
        return event

    def press(self, combo: str, *, repeat: bool = False) -> KeyEvent:
        return self.dispatch(KeyEvent.parse(combo, repeat=repeat))
