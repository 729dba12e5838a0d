"""Per-view navigation stack."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

    from extension_host.ui.element import Element

logger = logging.getLogger(__name__)


class Navigation:
    """Stack of pushed views above an extension's root element.

    Popping at the root closes the extension.
    """

    def __init__(
        self,
        *,
        on_change: Callable[[], None] | None = None,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        self._stack: list[tuple[Element, Callable[[], Any] | None]] = []
        self._on_change = on_change
        self._on_close = on_close

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def top(self) -> Element | None:
        return self._stack[-1][0] if self._stack else None

    def push(self, element: Element, on_pop: Callable[[], Any] | None = None) -> None:
        self._stack.append((element, on_pop))
        self._changed()

    def pop(self) -> None:
        if not self._stack:
            if self._on_close is not None:
                self._on_close()
            return
        _, on_pop = self._stack.pop()
        self._changed()
        if on_pop is not None:
            on_pop()

    def pop_to_root(self) -> None:
        if not self._stack:
            return
        self._stack.clear()
        self._changed()

    def _changed(self) -> None:
        logger.debug("Navigation depth is now %d", len(self._stack))
        if self._on_change is not None:
            self._on_change()
