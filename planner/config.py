"""Environment-driven defaults for the planner engine and API."""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass

from pydantic import ValidationError

from planner.domain.models import SeverityPolicy, WorkingHours

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


@dataclass(frozen=True)
class Settings:
    work_start: str = "09:00"
    work_end: str = "17:00"
    working_days: tuple[int, ...] = (1, 2, 3, 4, 5)
    timezone: str = "UTC"
    severity_policy: SeverityPolicy = SeverityPolicy.TWO_TIER
    log_level: str = "INFO"


def _parse_days(raw: str) -> tuple[int, ...]:
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError:
        raise ValueError(
            f"PLANNER_WORKING_DAYS must be comma-separated weekday numbers, got {raw!r}"
        ) from None


def load_settings() -> Settings:
    """Read PLANNER_* environment variables, falling back to the defaults."""
    defaults = Settings()
    env = os.environ

    policy_raw = env.get("PLANNER_SEVERITY_POLICY", defaults.severity_policy.value)
    try:
        policy = SeverityPolicy(policy_raw.strip().lower())
    except ValueError:
        raise ValueError(
            f"PLANNER_SEVERITY_POLICY must be one of "
            f"{[p.value for p in SeverityPolicy]}, got {policy_raw!r}"
        ) from None

    log_level = env.get("PLANNER_LOG_LEVEL", defaults.log_level).strip().upper()
    if log_level not in logging.getLevelNamesMapping():
        raise ValueError(
            f"PLANNER_LOG_LEVEL must be a logging level name such as DEBUG or INFO, "
            f"got {log_level!r}"
        )

    days_raw = env.get("PLANNER_WORKING_DAYS")
    return Settings(
        work_start=env.get("PLANNER_WORK_START", defaults.work_start),
        work_end=env.get("PLANNER_WORK_END", defaults.work_end),
        working_days=_parse_days(days_raw) if days_raw is not None else defaults.working_days,
        timezone=env.get("PLANNER_TIMEZONE", defaults.timezone),
        severity_policy=policy,
        log_level=log_level,
    )


def default_working_hours(settings: Settings | None = None) -> WorkingHours:
    """Build the WorkingHours used when a caller does not supply one."""
    settings = settings or load_settings()
    try:
        return WorkingHours(
            start_time=settings.work_start,
            end_time=settings.work_end,
            working_days=list(settings.working_days),
            timezone=settings.timezone,
        )
    except ValidationError as exc:
        raise ValueError(f"Invalid PLANNER_* working hours configuration: {exc}") from exc


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach a single stdout handler to the ``planner`` logger."""
    logger = logging.getLogger("planner")
    level_name = level or load_settings().log_level
    logger.setLevel(level_name)

    # Prevent duplicate handlers on re-import
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt="%H:%M:%S"))
    logger.addHandler(handler)
    return logger
