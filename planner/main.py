"""FastAPI application: stateless HTTP surface over the rescheduling engine."""

from __future__ import annotations

from collections import Counter

from fastapi import FastAPI, HTTPException

from planner.config import configure_logging, default_working_hours, load_settings
from planner.domain.models import (
    BatchReschedule,
    BatchRescheduleRequest,
    Event,
    OverlapReport,
    OverlapRequest,
    RescheduleOutcome,
    RescheduleRequest,
    TimeSlot,
    WorkingHours,
)
from planner.services.overlaps import (
    find_overlapping_events,
    format_overlap_message,
    get_overlap_severity,
)
from planner.services.rescheduler import plan_reschedule, resolve_conflicts
from planner.services.slots import find_next_available_time_slot

configure_logging()

app = FastAPI(title="Calendar Conflict Planner")


def _hours(requested: WorkingHours | None) -> WorkingHours:
    return requested or default_working_hours()


def _reject_duplicate_ids(events: list[Event]) -> None:
    duplicates = sorted(eid for eid, n in Counter(e.id for e in events).items() if n > 1)
    if duplicates:
        raise HTTPException(
            status_code=400,
            detail=f"Duplicate event ids: {', '.join(duplicates)}",
        )


# ── Routes ────────────────────────────────────────────────────────────


@app.post("/overlaps", response_model=list[OverlapReport])
def list_overlaps(payload: OverlapRequest) -> list[OverlapReport]:
    """Report every event that overlaps the candidate, with severity and message."""
    policy = load_settings().severity_policy
    return [
        OverlapReport(
            event_id=overlap.event.id,
            title=overlap.event.title,
            overlap_type=overlap.overlap_type,
            overlap_minutes=overlap.overlap_minutes,
            severity=get_overlap_severity(overlap, policy),
            message=format_overlap_message(overlap),
        )
        for overlap in find_overlapping_events(payload.event, payload.events)
    ]


@app.post("/slots/next", response_model=TimeSlot | None)
def next_slot(payload: RescheduleRequest) -> TimeSlot | None:
    """Return the next free slot for the event, or null when none fits."""
    return find_next_available_time_slot(
        payload.event, payload.events, _hours(payload.working_hours)
    )


@app.post("/reschedule", response_model=RescheduleOutcome)
def reschedule_event(payload: RescheduleRequest) -> RescheduleOutcome:
    """Propose a conflict-free time for a single event."""
    return plan_reschedule(payload.event, payload.events, _hours(payload.working_hours))


@app.post("/reschedule-all", response_model=BatchReschedule)
def reschedule_all(payload: BatchRescheduleRequest) -> BatchReschedule:
    """Resolve all mutual conflicts in the submitted event set."""
    _reject_duplicate_ids(payload.events)
    return resolve_conflicts(payload.events, _hours(payload.working_hours))


@app.get("/working-hours/default", response_model=WorkingHours)
def get_default_working_hours() -> WorkingHours:
    """Return the working hours applied when a request omits them."""
    try:
        return default_working_hours()
    except ValueError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
