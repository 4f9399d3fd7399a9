from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable

from .errors import ValidationError

END_OF_DAY = "24:00"


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValidationError("Time window start must be earlier than end.")

    @staticmethod
    def from_clock(day: str, start_time: str, duration_minutes: int) -> "TimeWindow":
        if duration_minutes <= 0:
            raise ValidationError("duration_minutes must be greater than zero")
        start = datetime.combine(parse_date(day), parse_clock(start_time))
        return TimeWindow(start, start + timedelta(minutes=duration_minutes))


def has_time_overlap(new_start: datetime, new_end: datetime, exist_start: datetime, exist_end: datetime) -> bool:
    """Return True when two time intervals overlap by even one minute.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 10:00-10:30 and 10:30-11:00) do not overlap.
    """
    if new_start >= new_end:
        raise ValidationError("new_start must be earlier than new_end.")
    if exist_start >= exist_end:
        raise ValidationError("exist_start must be earlier than exist_end.")

    return new_start < exist_end and exist_start < new_end


def can_reserve(new_start: datetime, new_end: datetime, existing_windows: Iterable[TimeWindow]) -> bool:
    """Return True if the requested interval does not overlap any existing window."""
    if new_start >= new_end:
        raise ValidationError("new_start must be earlier than new_end.")

    for window in existing_windows:
        if has_time_overlap(new_start, new_end, window.start, window.end):
            return False
    return True


def parse_date(value: str) -> date:
    try:
        return date.fromisoformat(str(value))
    except ValueError as error:
        raise ValidationError(f"Invalid date '{value}'. Expected format: YYYY-MM-DD") from error


def parse_clock(value: str) -> time:
    try:
        return datetime.strptime(str(value), "%H:%M").time()
    except ValueError as error:
        raise ValidationError(f"Invalid time '{value}'. Expected format: HH:MM") from error


def format_clock(value: time | datetime) -> str:
    return value.strftime("%H:%M")


def minutes_of_day(value: str) -> int:
    """Minutes since midnight. ``24:00`` is accepted as the end of the day."""
    if str(value).strip() == END_OF_DAY:
        return 24 * 60
    parsed = parse_clock(value)
    return parsed.hour * 60 + parsed.minute
