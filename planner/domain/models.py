"""Domain models for the conflict detection and rescheduling engine."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, time, timedelta, timezone, tzinfo
from enum import StrEnum

from dateutil import tz
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

_CLOCK_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class EventType(StrEnum):
    MEETING = "meeting"
    FOCUS = "focus"
    BREAK = "break"
    PERSONAL = "personal"
    TASK = "task"


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort precedence: lower rank is kept first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class OverlapType(StrEnum):
    START = "start"
    END = "end"
    CONTAIN = "contain"
    CONTAINED = "contained"

    @property
    def inverse(self) -> OverlapType:
        """The type reported when the two events swap roles."""
        return _INVERSE_OVERLAP[self]


_INVERSE_OVERLAP = {
    OverlapType.START: OverlapType.END,
    OverlapType.END: OverlapType.START,
    OverlapType.CONTAIN: OverlapType.CONTAINED,
    OverlapType.CONTAINED: OverlapType.CONTAIN,
}


class Severity(StrEnum):
    MINOR = "minor"
    WARNING = "warning"
    ERROR = "error"


class SeverityPolicy(StrEnum):
    TWO_TIER = "two_tier"
    THREE_TIER = "three_tier"


class RescheduleStatus(StrEnum):
    NO_CONFLICT = "no_conflict"
    RESCHEDULED = "rescheduled"
    UNRESOLVABLE = "unresolvable"


def _new_id() -> str:
    return str(uuid.uuid4())


def _as_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Event(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str
    start_time: datetime
    end_time: datetime
    type: EventType = EventType.MEETING
    priority: Priority = Priority.MEDIUM
    attendees: list[str] = Field(default_factory=list)
    description: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return _as_aware(value)

    @model_validator(mode="after")
    def _end_after_start(self) -> Event:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time


class WorkingHours(BaseModel):
    """Per-day clock window and the weekdays (0=Sunday..6=Saturday) open for scheduling."""

    start_time: str = "09:00"
    end_time: str = "17:00"
    working_days: list[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])
    timezone: str = "UTC"

    @field_validator("start_time", "end_time")
    @classmethod
    def _clock_format(cls, value: str) -> str:
        if not _CLOCK_RE.match(value):
            raise ValueError(f"expected a zero-padded HH:MM clock time, got {value!r}")
        return value

    @field_validator("working_days")
    @classmethod
    def _weekday_numbers(cls, value: list[int]) -> list[int]:
        for day in value:
            if not 0 <= day <= 6:
                raise ValueError(f"weekday must be between 0 (Sunday) and 6, got {day}")
        return sorted(set(value))

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        if tz.gettz(value) is None:
            raise ValueError(f"unknown timezone {value!r}")
        return value

    @model_validator(mode="after")
    def _end_after_start(self) -> WorkingHours:
        if self.end_time <= self.start_time:
            raise ValueError("working hours end_time must be after start_time")
        return self

    @property
    def tzinfo(self) -> tzinfo | None:
        return tz.gettz(self.timezone)

    @property
    def opens_at(self) -> time:
        return time.fromisoformat(self.start_time)

    @property
    def closes_at(self) -> time:
        return time.fromisoformat(self.end_time)


class TimeOverlap(BaseModel):
    model_config = ConfigDict(frozen=True)

    event: Event
    overlap_type: OverlapType
    overlap_minutes: float


class TimeSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


class RescheduleOutcome(BaseModel):
    """Result of trying to move a single event out of its conflicts."""

    status: RescheduleStatus
    event: Event | None = None
    slot: TimeSlot | None = None
    overlaps: list[TimeOverlap] = Field(default_factory=list)


class EventChange(BaseModel):
    event_id: str
    title: str
    priority: Priority
    original_start: datetime
    original_end: datetime
    new_start: datetime
    new_end: datetime


class BatchReschedule(BaseModel):
    events: list[Event]
    unresolved_event_ids: list[str] = Field(default_factory=list)
    changes: list[EventChange] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class OverlapRequest(BaseModel):
    event: Event
    events: list[Event]


class OverlapReport(BaseModel):
    event_id: str
    title: str
    overlap_type: OverlapType
    overlap_minutes: float
    severity: Severity
    message: str


class RescheduleRequest(BaseModel):
    event: Event
    events: list[Event]
    working_hours: WorkingHours | None = None


class BatchRescheduleRequest(BaseModel):
    events: list[Event]
    working_hours: WorkingHours | None = None
