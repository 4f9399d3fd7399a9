"""Bookable start times for a business day.

Everything here is pure: the same hours, duration and granularity always give
the same ordered list of ``HH:MM`` strings.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable

from .booking import TimeWindow, can_reserve, parse_date
from .directory import BusinessProfile, DayHours
from .errors import ValidationError

DEFAULT_SLOT_GRANULARITY_MINUTES = 30


def generate_slots(
    hours: DayHours | None,
    duration_minutes: int,
    granularity_minutes: int = DEFAULT_SLOT_GRANULARITY_MINUTES,
) -> list[str]:
    if duration_minutes <= 0:
        raise ValidationError("duration_minutes must be greater than zero")
    if granularity_minutes <= 0:
        raise ValidationError("granularity_minutes must be greater than zero")
    if hours is None:
        return []

    slots: list[str] = []
    cursor = hours.open_minutes
    while cursor + duration_minutes <= hours.close_minutes:
        slots.append(f"{cursor // 60:02d}:{cursor % 60:02d}")
        cursor += granularity_minutes
    return slots


def slots_for_date(
    profile: BusinessProfile,
    day: str,
    duration_minutes: int,
    granularity_minutes: int = DEFAULT_SLOT_GRANULARITY_MINUTES,
) -> list[str]:
    return generate_slots(profile.hours_for(parse_date(day)), duration_minutes, granularity_minutes)


def free_slots(
    day: str,
    candidates: Iterable[str],
    duration_minutes: int,
    active_windows: Iterable[TimeWindow],
) -> list[str]:
    """Keep the candidate start times whose interval overlaps none of ``active_windows``."""
    windows = list(active_windows)
    result: list[str] = []
    for start_time in candidates:
        candidate = TimeWindow.from_clock(day, start_time, duration_minutes)
        if can_reserve(candidate.start, candidate.end, windows):
            result.append(start_time)
    return result


def fits_operating_hours(hours: DayHours | None, window: TimeWindow) -> bool:
    if hours is None:
        return False
    open_at = _at(window.start, hours.open_minutes)
    close_at = _at(window.start, hours.close_minutes)
    return open_at <= window.start and window.end <= close_at


def _at(reference: datetime, minute_of_day: int) -> datetime:
    midnight = reference.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight + timedelta(minutes=minute_of_day)
