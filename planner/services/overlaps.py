"""Service for detecting and describing time overlaps between events."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import tzinfo

from planner.domain.models import (
    Event,
    OverlapType,
    Severity,
    SeverityPolicy,
    TimeOverlap,
)

logger = logging.getLogger(__name__)

ERROR_THRESHOLD_MINUTES = 30
MINOR_THRESHOLD_MINUTES = 15

_MESSAGES = {
    OverlapType.CONTAINED: 'This event is completely within "{title}" ({start} - {end})',
    OverlapType.CONTAIN: 'This event completely contains "{title}" ({start} - {end})',
    OverlapType.START: 'This event overlaps with the start of "{title}" ({start} - {end})',
    OverlapType.END: 'This event overlaps with the end of "{title}" ({start} - {end})',
}


def _classify(candidate: Event, other: Event) -> OverlapType:
    if other.start_time <= candidate.start_time and other.end_time >= candidate.end_time:
        return OverlapType.CONTAINED
    if other.start_time >= candidate.start_time and other.end_time <= candidate.end_time:
        return OverlapType.CONTAIN
    if other.start_time < candidate.start_time:
        return OverlapType.START
    return OverlapType.END


def find_overlapping_events(
    candidate: Event,
    all_events: Iterable[Event],
) -> list[TimeOverlap]:
    """Return an overlap record for every event that intersects *candidate*.

    Intervals are half-open: an event ending exactly when the candidate starts
    (or starting when it ends) is not an overlap.  Events sharing the
    candidate's id are skipped so an edited event never conflicts with its
    stored self.  Results keep the iteration order of *all_events*.
    """
    overlaps: list[TimeOverlap] = []
    for other in all_events:
        if other.id == candidate.id:
            continue
        if other.end_time <= candidate.start_time or other.start_time >= candidate.end_time:
            continue

        overlap_start = max(candidate.start_time, other.start_time)
        overlap_end = min(candidate.end_time, other.end_time)
        overlaps.append(
            TimeOverlap(
                event=other,
                overlap_type=_classify(candidate, other),
                overlap_minutes=(overlap_end - overlap_start).total_seconds() / 60,
            )
        )

    if overlaps:
        logger.debug(
            "Event %s overlaps %d event(s): %s",
            candidate.id,
            len(overlaps),
            [o.event.id for o in overlaps],
        )
    return overlaps


def get_overlap_severity(
    overlap: TimeOverlap,
    policy: SeverityPolicy = SeverityPolicy.TWO_TIER,
) -> Severity:
    """Classify how disruptive an overlap is.

    The two-tier policy only distinguishes overlaps longer than 30 minutes
    (``error``) from everything else (``warning``).  The three-tier policy
    additionally reports overlaps of 15 minutes or less as ``minor``.
    """
    if overlap.overlap_minutes > ERROR_THRESHOLD_MINUTES:
        return Severity.ERROR
    if policy == SeverityPolicy.THREE_TIER and overlap.overlap_minutes <= MINOR_THRESHOLD_MINUTES:
        return Severity.MINOR
    return Severity.WARNING


def format_overlap_message(overlap: TimeOverlap, tz: tzinfo | None = None) -> str:
    """Render a one-sentence description of *overlap* for display."""
    event = overlap.event
    start = event.start_time.astimezone(tz) if tz else event.start_time
    end = event.end_time.astimezone(tz) if tz else event.end_time
    return _MESSAGES[overlap.overlap_type].format(
        title=event.title,
        start=start.strftime("%H:%M"),
        end=end.strftime("%H:%M"),
    )
