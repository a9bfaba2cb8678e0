"""Service for finding the next free slot inside working hours."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, tzinfo

from dateutil.rrule import DAILY, FR, MO, SA, SU, TH, TU, WE, rrule

from planner.config import default_working_hours
from planner.domain.models import Event, TimeSlot, WorkingHours

logger = logging.getLogger(__name__)

# Number of calendar days after the event's own day that may receive it
SEARCH_HORIZON_DAYS = 7

# Indexed by weekday number, 0=Sunday
_WEEKDAYS = (SU, MO, TU, WE, TH, FR, SA)


def _local_day(moment: datetime, zone: tzinfo) -> date:
    return moment.astimezone(zone).date()


def working_window(day: date, hours: WorkingHours) -> tuple[datetime, datetime]:
    """Return the aware (start, end) of the working window on *day*."""
    zone = hours.tzinfo
    return (
        datetime.combine(day, hours.opens_at, tzinfo=zone),
        datetime.combine(day, hours.closes_at, tzinfo=zone),
    )


def _bookings_on(day: date, exclude_id: str, events: list[Event], zone: tzinfo) -> list[Event]:
    """Events intersecting *day*, including ones carried over from the night before."""
    midnight = datetime.combine(day, time(), tzinfo=zone)
    next_midnight = datetime.combine(day + timedelta(days=1), time(), tzinfo=zone)
    return sorted(
        (
            e
            for e in events
            if e.id != exclude_id and e.start_time < next_midnight and e.end_time > midnight
        ),
        key=lambda e: e.start_time,
    )


def _first_gap(
    current: datetime,
    duration: timedelta,
    bookings: list[Event],
    day_end: datetime,
) -> TimeSlot | None:
    for booked in bookings:
        if current + duration <= booked.start_time:
            return TimeSlot(start=current, end=current + duration)
        current = max(current, booked.end_time)

    if current + duration <= day_end:
        return TimeSlot(start=current, end=current + duration)
    return None


def _following_working_days(day: date, hours: WorkingHours) -> list[date]:
    """Working days among the SEARCH_HORIZON_DAYS days after *day*."""
    if not hours.working_days:
        return []
    first = datetime.combine(day + timedelta(days=1), time())
    rule = rrule(
        DAILY,
        dtstart=first,
        until=first + timedelta(days=SEARCH_HORIZON_DAYS - 1),
        byweekday=[_WEEKDAYS[d] for d in hours.working_days],
    )
    return [dt.date() for dt in rule]


def find_next_available_time_slot(
    event: Event,
    all_events: Iterable[Event],
    working_hours: WorkingHours | None = None,
) -> TimeSlot | None:
    """Find the earliest slot of the event's duration that avoids other bookings.

    An event with no other bookings on its day keeps its own time, even when
    that time lies outside working hours.  Otherwise the search walks the
    day's bookings from the event's start (clamped to the opening time), then
    tries each following working day within the horizon, gap-walking that
    day's bookings from its opening time.  Returns ``None`` when nothing fits.
    """
    hours = working_hours or default_working_hours()
    zone = hours.tzinfo
    events = list(all_events)
    duration = event.duration

    day = _local_day(event.start_time, zone)
    bookings = _bookings_on(day, event.id, events, zone)
    if not bookings:
        return TimeSlot(start=event.start_time, end=event.end_time)

    day_start, day_end = working_window(day, hours)
    slot = _first_gap(max(event.start_time, day_start), duration, bookings, day_end)
    if slot is not None:
        return slot

    for candidate in _following_working_days(day, hours):
        day_start, day_end = working_window(candidate, hours)
        slot = _first_gap(
            day_start, duration, _bookings_on(candidate, event.id, events, zone), day_end
        )
        if slot is not None:
            logger.debug("Event %s moved to %s", event.id, candidate.isoformat())
            return slot

    logger.warning(
        "No free %s slot for event %s within %d days of %s",
        duration,
        event.id,
        SEARCH_HORIZON_DAYS,
        day.isoformat(),
    )
    return None
