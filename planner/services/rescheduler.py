"""Service for moving conflicting events, one at a time or across a whole set."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from planner.config import default_working_hours
from planner.domain.models import (
    BatchReschedule,
    Event,
    EventChange,
    RescheduleOutcome,
    RescheduleStatus,
    TimeSlot,
    WorkingHours,
)
from planner.services.overlaps import find_overlapping_events
from planner.services.slots import find_next_available_time_slot

logger = logging.getLogger(__name__)


def _move(event: Event, slot: TimeSlot) -> Event:
    return event.model_copy(update={"start_time": slot.start, "end_time": slot.end})


def plan_reschedule(
    event: Event,
    all_events: Iterable[Event],
    working_hours: WorkingHours | None = None,
) -> RescheduleOutcome:
    """Propose a new time for *event* if it overlaps anything in *all_events*."""
    events = list(all_events)
    overlaps = find_overlapping_events(event, events)
    if not overlaps:
        return RescheduleOutcome(status=RescheduleStatus.NO_CONFLICT)

    slot = find_next_available_time_slot(event, events, working_hours)
    moved = _move(event, slot) if slot is not None else None
    if moved is None or find_overlapping_events(moved, events):
        return RescheduleOutcome(status=RescheduleStatus.UNRESOLVABLE, overlaps=overlaps)

    return RescheduleOutcome(
        status=RescheduleStatus.RESCHEDULED,
        event=moved,
        slot=slot,
        overlaps=overlaps,
    )


def auto_reschedule_overlapping_events(
    event: Event,
    all_events: Iterable[Event],
    working_hours: WorkingHours | None = None,
) -> Event | None:
    """Return a moved copy of *event*, or ``None``.

    ``None`` means either that nothing conflicts or that no free slot exists;
    use :func:`plan_reschedule` to tell the two apart.
    """
    return plan_reschedule(event, all_events, working_hours).event


def resolve_conflicts(
    events: Iterable[Event],
    working_hours: WorkingHours | None = None,
) -> BatchReschedule:
    """Clear every mutual overlap in *events*, keeping higher priorities in place.

    Events are processed by start time, then priority.  Each conflicting
    cluster keeps its highest-priority (then earliest) member as the anchor
    and moves the others, in priority order, into free slots around the events
    already finalized and the events still waiting at their original times.
    A member with no free slot keeps its original time and is reported in
    ``unresolved_event_ids``.
    """
    hours = working_hours or default_working_hours()
    originals = list(events)
    ordered = sorted(originals, key=lambda e: (e.start_time, e.priority.rank))

    rescheduled: list[Event] = []
    processed: set[str] = set()
    unresolved: list[str] = []

    def relocate(member: Event, cluster_ids: set[str]) -> None:
        # Members of the current cluster are excluded: they are about to move too
        waiting = [e for e in ordered if e.id not in processed and e.id not in cluster_ids]
        occupied = rescheduled + waiting
        slot = find_next_available_time_slot(member, occupied, hours)
        moved = _move(member, slot) if slot is not None else None
        if moved is None or find_overlapping_events(moved, occupied):
            unresolved.append(member.id)
            rescheduled.append(member)
        else:
            rescheduled.append(moved)
        processed.add(member.id)

    for event in ordered:
        if event.id in processed:
            continue

        overlaps = find_overlapping_events(event, ordered)
        cluster = [event] + [o.event for o in overlaps if o.event.id not in processed]
        cluster.sort(key=lambda e: (e.priority.rank, e.start_time))
        anchor, *others = cluster
        cluster_ids = {e.id for e in cluster}

        # Fallback: an unresolved member of an earlier cluster may still sit on the anchor's time
        if find_overlapping_events(anchor, rescheduled):
            relocate(anchor, cluster_ids)
        else:
            rescheduled.append(anchor)
            processed.add(anchor.id)

        if others:
            logger.debug(
                "Cluster anchored on %s (%s): relocating %s",
                anchor.id,
                anchor.priority,
                [m.id for m in others],
            )
        for member in others:
            relocate(member, cluster_ids)

    changes = summarize_changes(originals, rescheduled)
    logger.info(
        "Batch reschedule: %d events, %d moved, %d unresolved",
        len(rescheduled),
        len(changes),
        len(unresolved),
    )
    if unresolved:
        logger.warning("Events left at conflicting times: %s", unresolved)
    return BatchReschedule(
        events=rescheduled, unresolved_event_ids=unresolved, changes=changes
    )


def reschedule_all_overlapping_events(
    events: Iterable[Event],
    working_hours: WorkingHours | None = None,
) -> list[Event]:
    """Return *events* with conflicts resolved, in processing order."""
    return resolve_conflicts(events, working_hours).events


def summarize_changes(original: Iterable[Event], rescheduled: Iterable[Event]) -> list[EventChange]:
    """List the events whose start or end differs between the two sets, matched by id."""
    before = {e.id: e for e in original}
    changes: list[EventChange] = []
    for event in rescheduled:
        prior = before.get(event.id)
        if prior is None:
            continue
        if prior.start_time == event.start_time and prior.end_time == event.end_time:
            continue
        changes.append(
            EventChange(
                event_id=event.id,
                title=event.title,
                priority=event.priority,
                original_start=prior.start_time,
                original_end=prior.end_time,
                new_start=event.start_time,
                new_end=event.end_time,
            )
        )
    return changes
