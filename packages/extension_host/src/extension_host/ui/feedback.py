"""Toasts, HUD messages and alerts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


class ToastStyle(str, Enum):
    ANIMATED = "animated"
    SUCCESS = "success"
    FAILURE = "failure"

    Animated = "animated"
    Success = "success"
    Failure = "failure"


class Toast:
    """Mutable toast; extensions update ``title``/``style`` while it shows."""

    Style = ToastStyle

    def __init__(
        self,
        options: dict[str, Any] | None = None,
        *,
        style: ToastStyle | str = ToastStyle.SUCCESS,
        title: str = "",
        message: str | None = None,
        primary_action: dict[str, Any] | None = None,
        secondary_action: dict[str, Any] | None = None,
        center: ToastCenter | None = None,
    ) -> None:
        options = options or {}
        self.style = ToastStyle(options.get("style", style))
        self.title = str(options.get("title", title))
        self.message = options.get("message", message)
        self.primary_action = options.get("primary_action", primary_action)
        self.secondary_action = options.get("secondary_action", secondary_action)
        self.visible = False
        self._center = center

    async def show(self) -> None:
        self.visible = True
        if self._center is not None:
            self._center.present(self)

    async def hide(self) -> None:
        self.visible = False
        if self._center is not None:
            self._center.dismiss(self)

    def __repr__(self) -> str:
        return f"Toast(style={self.style.value!r}, title={self.title!r}, message={self.message!r})"


class ToastCenter:
    """Toasts shown by one extension instance; the newest is current."""

    def __init__(self, on_change: Callable[[Toast | None], None] | None = None) -> None:
        self.history: list[Toast] = []
        self._current: Toast | None = None
        self._on_change = on_change

    @property
    def current(self) -> Toast | None:
        return self._current

    def create(self, options: dict[str, Any] | None = None, **kwargs: Any) -> Toast:
        return Toast(options, center=self, **kwargs)

    def present(self, toast: Toast) -> None:
        if toast not in self.history:
            self.history.append(toast)
        self._current = toast
        logger.debug("Toast %s: %s", toast.style.value, toast.title)
        if self._on_change is not None:
            self._on_change(toast)

    def dismiss(self, toast: Toast) -> None:
        if self._current is toast:
            self._current = None
            if self._on_change is not None:
                self._on_change(None)


class AlertActionStyle(str, Enum):
    DEFAULT = "default"
    CANCEL = "cancel"
    DESTRUCTIVE = "destructive"

    Default = "default"
    Cancel = "cancel"
    Destructive = "destructive"


@dataclass(frozen=True)
class AlertRecord:
    title: str
    message: str | None = None
    primary_title: str = "OK"
    options: dict[str, Any] = field(default_factory=dict)


class Alert:
    ActionStyle = AlertActionStyle


def alert_record(options: dict[str, Any] | None = None, **kwargs: Any) -> AlertRecord:
    merged = {**(options or {}), **kwargs}
    primary = merged.get("primary_action") or {}
    return AlertRecord(
        title=str(merged.get("title", "")),
        message=merged.get("message"),
        primary_title=str(primary.get("title", "OK")) if isinstance(primary, dict) else "OK",
        options=merged,
    )
