from __future__ import annotations

import asyncio

import pytest

from extension_host.ui.registry import (
    Registration,
    Registry,
    group_by_section,
    matches_query,
    stabilize_selection,
)


def _entry(entry_id: str, order: int, section: str | None = None, title: str | None = None) -> Registration:
    return Registration(id=entry_id, payload={"title": title or entry_id}, section_id=section, order=order)


def test_sorted_entries_follow_declaration_order() -> None:
    registry = Registry()
    registry.upsert(_entry("c", 3))
    registry.upsert(_entry("a", 1))
    registry.upsert(_entry("b", 2))

    assert [entry.id for entry in registry.sorted_entries()] == ["a", "b", "c"]


def test_sections_break_only_where_section_changes() -> None:
    entries = [
        _entry("a", 1, "fruit"),
        _entry("b", 2, "fruit"),
        _entry("c", 3, "veg"),
        _entry("d", 4, "fruit"),
        _entry("e", 5, None),
    ]

    sections = group_by_section(entries)

    assert [section.section_id for section in sections] == ["fruit", "veg", "fruit", None]
    assert [[entry.id for entry in section.entries] for section in sections] == [["a", "b"], ["c"], ["d"], ["e"]]
    assert [section.start for section in sections] == [0, 2, 3, 4]


@pytest.mark.asyncio
async def test_burst_of_writes_coalesces_into_one_recompute() -> None:
    registry = Registry()
    notified: list[int] = []
    registry.subscribe(notified.append)

    for index in range(50):
        registry.upsert(_entry(f"item-{index}", index))
    assert registry.recompute_count == 0

    await asyncio.sleep(0)

    assert registry.recompute_count == 1
    assert notified == [1]


@pytest.mark.asyncio
async def test_unchanged_fingerprint_does_not_notify() -> None:
    registry = Registry()
    notified: list[int] = []
    registry.subscribe(notified.append)
    registry.upsert(Registration(id="a", payload={"title": "A", "on_action": lambda: None}, order=1))
    await asyncio.sleep(0)

    # Only a callback changed, which is not part of the fingerprint.
    registry.upsert(Registration(id="a", payload={"title": "A", "on_action": lambda: 1}, order=1))
    await asyncio.sleep(0)

    assert registry.recompute_count == 2
    assert notified == [1]
    assert registry.change_version == 1


def test_flush_without_loop_recomputes_synchronously() -> None:
    registry = Registry()
    registry.upsert(_entry("a", 1))
    assert registry.pending

    registry.flush()

    assert not registry.pending
    assert registry.change_version == 1


def test_remove_unknown_entry_is_ignored() -> None:
    registry = Registry()
    registry.remove("missing")

    assert not registry.pending


def test_selection_stays_in_previous_section() -> None:
    # A(sec1) B(sec1) C(sec2) with B selected; B removed, D(sec1) inserted before C.
    after = ["sec1", "sec1", "sec2"]

    assert stabilize_selection(after, 1, "sec1") == 1

    # Same removal when D is not inserted: index 1 now points at C.
    assert stabilize_selection(["sec1", "sec2"], 1, "sec1") == 0


def test_selection_searches_forward_when_nothing_precedes() -> None:
    assert stabilize_selection(["sec2", "sec1"], 0, "sec1") == 1


def test_selection_is_clamped_into_range() -> None:
    assert stabilize_selection(["a", "a"], 5, "a") == 1
    assert stabilize_selection([], 3, "a") == 0


def test_matches_query_checks_fields_and_keywords() -> None:
    assert matches_query("app", "Apple", "fruit")
    assert matches_query("red", "Apple", keywords=["Red", "round"])
    assert matches_query("  ", "anything")
    assert not matches_query("kiwi", "Apple", {"value": "Banana"})


def test_selection_past_the_end_returns_to_previous_section() -> None:
    # A(s1) X(s2) B(s1) with B selected; B removed leaves the index past the end.
    assert stabilize_selection(["s1", "s2"], 2, "s1") == 0


@pytest.mark.asyncio
async def test_write_outside_loop_does_not_block_later_notifications() -> None:
    registry = Registry()
    notified: list[int] = []
    registry.subscribe(notified.append)

    await asyncio.to_thread(registry.upsert, _entry("a", 1))
    registry.upsert(_entry("b", 2))
    await asyncio.sleep(0)

    assert notified == [1]
    assert [entry.id for entry in registry.sorted_entries()] == ["a", "b"]
    assert not registry.pending
