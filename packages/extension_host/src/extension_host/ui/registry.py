"""Container-owned registries that rebuild UI structure from registrations.

Children upsert themselves on every render and remove themselves on unmount.
The registry defers recomputation to the next loop iteration and only
notifies subscribers when a structural fingerprint of the entries changes,
so a burst of writes in one render pass yields at most one update.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Sequence

_UNSET: Any = object()
UNSET = _UNSET

_ids = itertools.count(1)


@dataclass(frozen=True)
class Registration:
    """One child's presence in a container."""

    id: str
    payload: dict[str, Any] = field(default_factory=dict)
    section_id: str | None = None
    order: int = 0

    def get(self, name: str, default: Any = None) -> Any:
        return self.payload.get(name, default)


@dataclass(frozen=True)
class Section:
    """Run of consecutive entries sharing one section value."""

    section_id: str | None
    entries: tuple[Registration, ...]
    start: int = 0


def default_fingerprint(entry: Registration) -> Hashable:
    title = entry.payload.get("title")
    return (entry.id, title if isinstance(title, str) else repr(title), entry.section_id)


class Registry:
    """Mutable entry map with coalesced, fingerprint-gated change notification."""

    def __init__(self, fingerprint: Callable[[Registration], Hashable] | None = None, *, prefix: str = "item") -> None:
        self._entries: dict[str, Registration] = {}
        self._fingerprint_of = fingerprint or default_fingerprint
        self._last_fingerprint: tuple[Hashable, ...] = ()
        self._listeners: list[Callable[[int], None]] = []
        self._pending = False
        self._scheduled = False
        self._order = 0
        self._prefix = prefix
        self.change_version = 0
        self.recompute_count = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._entries

    def new_id(self) -> str:
        """Stable identifier for a child that declares none."""
        return f"__{self._prefix}_{next(_ids)}"

    def begin_pass(self) -> None:
        """Restart declaration ordering; called when the container renders."""
        self._order = 0

    def next_order(self) -> int:
        self._order += 1
        return self._order

    def get(self, entry_id: str) -> Registration | None:
        return self._entries.get(entry_id)

    def upsert(self, entry: Registration) -> None:
        self._entries[entry.id] = entry
        self._schedule()

    def remove(self, entry_id: str) -> None:
        if self._entries.pop(entry_id, None) is not None:
            self._schedule()

    def subscribe(self, listener: Callable[[int], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _schedule(self) -> None:
        self._pending = True
        if self._scheduled:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Outside a loop the change waits for flush() or the next scheduled write.
            return
        self._scheduled = True
        loop.call_soon(self._scheduled_recompute)

    @property
    def pending(self) -> bool:
        return self._pending

    def flush(self) -> None:
        """Run a pending recomputation immediately."""
        if self._pending:
            self._recompute()

    def fingerprint(self) -> tuple[Hashable, ...]:
        return tuple(self._fingerprint_of(entry) for entry in self.sorted_entries())

    def _scheduled_recompute(self) -> None:
        self._scheduled = False
        self._recompute()

    def _recompute(self) -> None:
        if not self._pending:
            return
        self._pending = False
        self.recompute_count += 1
        current = self.fingerprint()
        if current == self._last_fingerprint:
            return
        self._last_fingerprint = current
        self.change_version += 1
        for listener in list(self._listeners):
            listener(self.change_version)

    def sorted_entries(self) -> list[Registration]:
        """Entries in ascending declaration order."""
        return sorted(self._entries.values(), key=lambda entry: entry.order)


def group_by_section(entries: Sequence[Registration]) -> list[Section]:
    """Split ordered entries into runs, starting a run wherever the section changes."""
    sections: list[Section] = []
    current: list[Registration] = []
    current_id: Any = _UNSET
    start = 0
    for index, entry in enumerate(entries):
        if current and entry.section_id != current_id:
            sections.append(Section(section_id=current_id, entries=tuple(current), start=start))
            current = []
            start = index
        if not current:
            current_id = entry.section_id
        current.append(entry)
    if current:
        sections.append(Section(section_id=current_id, entries=tuple(current), start=start))
    return sections


def stabilize_selection(
    sections: Sequence[str | None],
    index: int,
    previous_section: Any = _UNSET,
) -> int:
    """Re-map ``index`` after the entry list changed shape.

    ``sections`` holds the section of every entry in display order. The index
    is clamped into range; if it now lands in a different section than
    ``previous_section``, the nearest entry of that section is chosen,
    searching backward first and then forward.
    """
    if not sections:
        return 0
    index = min(max(index, 0), len(sections) - 1)
    if previous_section is _UNSET or sections[index] == previous_section:
        return index
    for candidate in range(index - 1, -1, -1):
        if sections[candidate] == previous_section:
            return candidate
    for candidate in range(index + 1, len(sections)):
        if sections[candidate] == previous_section:
            return candidate
    return index


def matches_query(query: str, *fields: Any, keywords: Sequence[str] | None = None) -> bool:
    """Case-insensitive substring match over text fields and keywords."""
    needle = query.strip().lower()
    if not needle:
        return True
    for value in fields:
        text = value if isinstance(value, str) else (value.get("value") if isinstance(value, dict) else None)
        if isinstance(text, str) and needle in text.lower():
            return True
    return any(needle in str(keyword).lower() for keyword in keywords or ())
