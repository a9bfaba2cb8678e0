"""Tests for single-event and batch rescheduling."""

from __future__ import annotations

from datetime import datetime, timezone
from itertools import combinations
from unittest.mock import patch

from planner.domain.models import (
    Event,
    Priority,
    RescheduleStatus,
    TimeSlot,
    WorkingHours,
)
from planner.services.overlaps import find_overlapping_events
from planner.services.rescheduler import (
    auto_reschedule_overlapping_events,
    plan_reschedule,
    reschedule_all_overlapping_events,
    resolve_conflicts,
    summarize_changes,
)

OFFICE = WorkingHours(start_time="09:00", end_time="17:00", working_days=[1, 2, 3, 4, 5])
CLOSED = WorkingHours(working_days=[])


def _on(day: int, hour: int, minute: int = 0) -> datetime:
    # June 2025: the 2nd is a Monday
    return datetime(2025, 6, day, hour, minute, tzinfo=timezone.utc)


def _at(hour: int, minute: int = 0) -> datetime:
    return _on(2, hour, minute)


def _make_event(
    event_id: str,
    start: datetime,
    end: datetime,
    priority: Priority = Priority.MEDIUM,
) -> Event:
    return Event(id=event_id, title=event_id.title(), start_time=start, end_time=end, priority=priority)


def _by_id(events: list[Event]) -> dict[str, Event]:
    return {e.id: e for e in events}


def _assert_conflicts_cleared(original: list[Event], result) -> None:
    output = _by_id(result.events)
    for a, b in combinations(original, 2):
        if not find_overlapping_events(a, [b]):
            continue
        if a.id in result.unresolved_event_ids or b.id in result.unresolved_event_ids:
            continue
        assert find_overlapping_events(output[a.id], [output[b.id]]) == [], (a.id, b.id)


# ---------------------------------------------------------------------------
# Single event
# ---------------------------------------------------------------------------


def test_no_conflict_returns_none():
    a = _make_event("a", _at(9), _at(10))
    b = _make_event("b", _at(10), _at(11))

    assert auto_reschedule_overlapping_events(b, [a], OFFICE) is None
    assert plan_reschedule(b, [a], OFFICE).status == RescheduleStatus.NO_CONFLICT


def test_conflicting_event_moved_to_free_slot():
    a = _make_event("a", _at(9), _at(10), Priority.HIGH)
    b = _make_event("b", _at(9, 30), _at(10, 30))

    moved = auto_reschedule_overlapping_events(b, [a, b], OFFICE)

    assert moved.id == "b"
    assert (moved.start_time, moved.end_time) == (_at(10), _at(11))
    assert moved.end_time - moved.start_time == b.end_time - b.start_time
    # Original left untouched
    assert b.start_time == _at(9, 30)


def test_outcome_reports_slot_and_overlaps():
    a = _make_event("a", _at(9), _at(10))
    b = _make_event("b", _at(9, 30), _at(10, 30))

    outcome = plan_reschedule(b, [a], OFFICE)

    assert outcome.status == RescheduleStatus.RESCHEDULED
    assert outcome.slot.start == _at(10)
    assert [o.event.id for o in outcome.overlaps] == ["a"]


def test_unresolvable_is_distinguished_from_no_conflict():
    a = _make_event("a", _at(9), _at(17), Priority.HIGH)
    b = _make_event("b", _at(10), _at(11), Priority.LOW)

    outcome = plan_reschedule(b, [a], CLOSED)

    assert outcome.status == RescheduleStatus.UNRESOLVABLE
    assert outcome.event is None
    assert [o.event.id for o in outcome.overlaps] == ["a"]
    assert auto_reschedule_overlapping_events(b, [a], CLOSED) is None


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


def test_higher_priority_kept_lower_moved():
    a = _make_event("a", _at(10), _at(11), Priority.HIGH)
    b = _make_event("b", _at(10, 30), _at(11, 30))

    result = reschedule_all_overlapping_events([b, a], OFFICE)

    assert [e.id for e in result] == ["a", "b"]
    assert (result[0].start_time, result[0].end_time) == (_at(10), _at(11))
    assert (result[1].start_time, result[1].end_time) == (_at(11), _at(12))


def test_priority_beats_start_time_inside_cluster():
    early_low = _make_event("early", _at(10), _at(11), Priority.LOW)
    late_high = _make_event("late", _at(10, 30), _at(11, 30), Priority.HIGH)

    result = reschedule_all_overlapping_events([early_low, late_high], OFFICE)
    out = _by_id(result)

    assert [e.id for e in result] == ["late", "early"]
    assert out["late"].start_time == _at(10, 30)
    assert (out["early"].start_time, out["early"].end_time) == (_at(11, 30), _at(12, 30))


def test_same_start_ties_broken_by_priority():
    low = _make_event("low", _at(10), _at(11), Priority.LOW)
    high = _make_event("high", _at(10), _at(11), Priority.HIGH)
    medium = _make_event("medium", _at(10), _at(11), Priority.MEDIUM)

    result = reschedule_all_overlapping_events([low, medium, high], OFFICE)

    assert [e.id for e in result] == ["high", "medium", "low"]
    assert [e.start_time for e in result] == [_at(10), _at(11), _at(12)]


def test_equal_priority_and_start_keeps_input_order():
    first = _make_event("first", _at(10), _at(11))
    second = _make_event("second", _at(10), _at(11))

    result = reschedule_all_overlapping_events([first, second], OFFICE)

    assert [e.id for e in result] == ["first", "second"]
    assert result[0].start_time == _at(10)


def test_events_without_conflicts_pass_through_in_start_order():
    a = _make_event("a", _at(14), _at(15))
    b = _make_event("b", _at(9), _at(10))

    result = resolve_conflicts([a, b], OFFICE)

    assert [e.id for e in result.events] == ["b", "a"]
    assert result.changes == []
    assert result.unresolved_event_ids == []


def test_unresolvable_member_left_in_place_and_reported():
    a = _make_event("a", _at(9), _at(17), Priority.HIGH)
    b = _make_event("b", _at(10), _at(11), Priority.LOW)
    c = _make_event("c", _on(3, 10), _on(3, 11))

    result = resolve_conflicts([a, b, c], CLOSED)
    out = _by_id(result.events)

    assert result.unresolved_event_ids == ["b"]
    assert out["b"].start_time == _at(10)
    assert out["c"].start_time == _on(3, 10)
    assert len(result.events) == 3


def test_moved_event_steps_around_later_anchor():
    """A low-priority event moved out of one cluster never takes a later high-priority slot."""
    a = _make_event("a", _at(10), _at(11), Priority.HIGH)
    b = _make_event("b", _at(10, 30), _at(11, 30), Priority.LOW)
    c = _make_event("c", _at(11, 15), _at(12), Priority.HIGH)
    original = [a, b, c]

    result = resolve_conflicts(original, OFFICE)
    out = _by_id(result.events)

    assert out["a"].start_time == _at(10)
    assert (out["c"].start_time, out["c"].end_time) == (_at(11, 15), _at(12))
    assert (out["b"].start_time, out["b"].end_time) == (_at(12), _at(13))
    assert [ch.event_id for ch in result.changes] == ["b"]
    _assert_conflicts_cleared(original, result)


def test_overnight_booking_blocks_next_morning():
    overnight = _make_event("overnight", _on(2, 22), _on(3, 10), Priority.HIGH)
    morning = _make_event("morning", _on(3, 9, 30), _on(3, 10, 30))

    outcome = plan_reschedule(morning, [overnight], OFFICE)

    assert outcome.status == RescheduleStatus.RESCHEDULED
    assert (outcome.event.start_time, outcome.event.end_time) == (_on(3, 10), _on(3, 11))


def test_batch_clears_overnight_conflict():
    overnight = _make_event("overnight", _on(2, 22), _on(3, 10), Priority.HIGH)
    morning = _make_event("morning", _on(3, 9, 30), _on(3, 10, 30))
    original = [overnight, morning]

    result = resolve_conflicts(original, OFFICE)
    out = _by_id(result.events)

    assert result.unresolved_event_ids == []
    assert out["morning"].start_time == _on(3, 10)
    _assert_conflicts_cleared(original, result)


def test_slot_still_overlapping_is_unresolvable():
    a = _make_event("a", _at(9), _at(10), Priority.HIGH)
    b = _make_event("b", _at(9, 30), _at(10, 30))
    stale = TimeSlot(start=_at(9, 30), end=_at(10, 30))

    with patch("planner.services.rescheduler.find_next_available_time_slot", return_value=stale):
        outcome = plan_reschedule(b, [a], OFFICE)
        result = resolve_conflicts([a, b], OFFICE)

    assert outcome.status == RescheduleStatus.UNRESOLVABLE
    assert outcome.event is None
    assert result.unresolved_event_ids == ["b"]
    assert _by_id(result.events)["b"].start_time == _at(9, 30)


def test_each_event_emitted_once():
    a = _make_event("a", _at(10), _at(11), Priority.HIGH)
    b = _make_event("b", _at(10, 30), _at(12), Priority.LOW)
    c = _make_event("c", _at(11, 30), _at(12, 30))

    result = reschedule_all_overlapping_events([a, b, c], OFFICE)

    assert sorted(e.id for e in result) == ["a", "b", "c"]


def test_busy_day_resolves_every_conflict():
    original = [
        _make_event("standup", _at(9), _at(9, 30), Priority.HIGH),
        _make_event("review", _at(9, 15), _at(10, 15)),
        _make_event("focus", _at(9, 45), _at(11, 45), Priority.LOW),
        _make_event("1on1", _at(11), _at(11, 30), Priority.HIGH),
        _make_event("lunch", _at(12), _at(13), Priority.MEDIUM),
        _make_event("sync", _at(12, 30), _at(13, 30), Priority.HIGH),
        _make_event("wrap", _at(16), _at(17), Priority.LOW),
        _make_event("late", _at(16, 30), _at(17, 30), Priority.MEDIUM),
    ]

    result = resolve_conflicts(original, OFFICE)
    before = _by_id(original)

    assert result.unresolved_event_ids == []
    assert len(result.events) == len(original)
    for event in result.events:
        assert event.end_time - event.start_time == before[event.id].duration
    _assert_conflicts_cleared(original, result)


def test_inputs_not_mutated():
    a = _make_event("a", _at(10), _at(11), Priority.HIGH)
    b = _make_event("b", _at(10, 30), _at(11, 30))
    snapshot = [a.model_dump(), b.model_dump()]

    reschedule_all_overlapping_events([a, b], OFFICE)

    assert [a.model_dump(), b.model_dump()] == snapshot


# ---------------------------------------------------------------------------
# summarize_changes
# ---------------------------------------------------------------------------


def test_changes_matched_by_id_not_position():
    a = _make_event("a", _at(10), _at(11), Priority.HIGH)
    b = _make_event("b", _at(10, 30), _at(11, 30))

    rescheduled = reschedule_all_overlapping_events([b, a], OFFICE)
    changes = summarize_changes([b, a], rescheduled)

    assert len(changes) == 1
    change = changes[0]
    assert change.event_id == "b"
    assert (change.original_start, change.new_start) == (_at(10, 30), _at(11))
    assert change.priority == Priority.MEDIUM
