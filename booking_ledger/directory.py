from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Iterable
import logging

import holidays as pyholidays
import yaml

from .booking import END_OF_DAY, format_clock, minutes_of_day, parse_clock
from .errors import ReservationStorageError, ValidationError

logger = logging.getLogger(__name__)

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
_HOLIDAY_CACHE: dict[tuple[str, int], set[date]] = {}


@dataclass(frozen=True)
class Service:
    service_id: str
    name: str
    duration_minutes: int
    price: float | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "service_id": self.service_id,
            "name": self.name,
            "duration_minutes": self.duration_minutes,
        }
        if self.price is not None:
            payload["price"] = self.price
        return payload


@dataclass(frozen=True)
class DayHours:
    open: str
    close: str

    def __post_init__(self) -> None:
        if minutes_of_day(self.open) >= minutes_of_day(self.close):
            raise ValidationError(f"Opening time {self.open} must be earlier than closing time {self.close}.")

    @property
    def open_minutes(self) -> int:
        return minutes_of_day(self.open)

    @property
    def close_minutes(self) -> int:
        return minutes_of_day(self.close)


@dataclass(frozen=True)
class BusinessProfile:
    business_id: str
    name: str
    hours: dict[str, DayHours | None]
    services: dict[str, Service] = field(default_factory=dict)
    owner_id: str | None = None
    holiday_country: str | None = None

    def hours_for(self, target_date: date) -> DayHours | None:
        """Operating hours for the date, or None when the business is closed that day."""
        if self.holiday_country and _is_public_holiday(self.holiday_country, target_date):
            return None
        return self.hours.get(WEEKDAYS[target_date.weekday()])

    def service(self, service_id: str) -> Service:
        try:
            return self.services[service_id]
        except KeyError:
            raise ValidationError(f"Unknown service '{service_id}' for business '{self.business_id}'.") from None

    def to_dict(self) -> dict[str, Any]:
        return {
            "business_id": self.business_id,
            "name": self.name,
            "owner_id": self.owner_id,
            "holiday_country": self.holiday_country,
            "hours": {
                day: ([value.open, value.close] if value is not None else None)
                for day, value in self.hours.items()
            },
            "services": [service.to_dict() for service in self.services.values()],
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "BusinessProfile":
        business_id = str(data.get("business_id") or "").strip()
        if not business_id:
            raise ValidationError("business_id must not be empty")

        raw_hours = data.get("hours") or {}
        if not isinstance(raw_hours, dict):
            raise ValidationError(f"hours for business '{business_id}' must be a mapping of weekday to [open, close]")

        hours: dict[str, DayHours | None] = {}
        for day in WEEKDAYS:
            value = raw_hours.get(day)
            if value is None:
                hours[day] = None
                continue
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                raise ValidationError(f"hours.{day} for business '{business_id}' must be [open, close] or null")
            hours[day] = DayHours(_clock_text(value[0]), _clock_text(value[1]))

        services: dict[str, Service] = {}
        for row in data.get("services") or []:
            service = Service(
                service_id=str(row["service_id"]),
                name=str(row.get("name") or row["service_id"]),
                duration_minutes=int(row["duration_minutes"]),
                price=(float(row["price"]) if row.get("price") is not None else None),
            )
            if service.duration_minutes <= 0:
                raise ValidationError(f"Service '{service.service_id}' duration must be a positive number")
            services[service.service_id] = service

        holiday_country = str(data["holiday_country"]).strip().upper() if data.get("holiday_country") else None
        if holiday_country and holiday_country not in pyholidays.list_supported_countries():
            raise ValidationError(f"Unsupported holiday_country '{holiday_country}' for business '{business_id}'")

        return BusinessProfile(
            business_id=business_id,
            name=str(data.get("name") or business_id),
            hours=hours,
            services=services,
            owner_id=(str(data["owner_id"]) if data.get("owner_id") is not None else None),
            holiday_country=holiday_country,
        )


class BusinessDirectory:
    """Read-only lookup of business profiles. Profile management lives outside the ledger."""

    def __init__(self, profiles: Iterable[BusinessProfile] = ()) -> None:
        self._profiles: dict[str, BusinessProfile] = {}
        for profile in profiles:
            self._profiles[profile.business_id] = profile

    def __contains__(self, business_id: str) -> bool:
        return business_id in self._profiles

    def get(self, business_id: str) -> BusinessProfile | None:
        return self._profiles.get(business_id)

    def require(self, business_id: str) -> BusinessProfile:
        profile = self._profiles.get(business_id)
        if profile is None:
            raise ValidationError(f"Unknown business '{business_id}'.")
        return profile

    def all(self) -> list[BusinessProfile]:
        return sorted(self._profiles.values(), key=lambda profile: profile.business_id)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "BusinessDirectory":
        path = Path(path)
        if not path.exists():
            logger.info("Business file %s does not exist; starting with an empty directory", path)
            return cls()

        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            raise ReservationStorageError(f"Failed to read business file: {path}") from error

        if payload is None:
            return cls()
        if isinstance(payload, dict):
            payload = payload.get("businesses") or []
        if not isinstance(payload, list):
            raise ValidationError(f"{path.name} must contain a list of businesses")

        return cls(BusinessProfile.from_dict(row) for row in payload if isinstance(row, dict))


def _clock_text(value: Any) -> str:
    # Unquoted 12:00 in YAML 1.1 loads as the sexagesimal integer 720.
    if isinstance(value, int):
        return f"{value // 60:02d}:{value % 60:02d}"
    text = str(value).strip()
    if text == END_OF_DAY:
        return text
    return format_clock(parse_clock(text))


def _is_public_holiday(country: str, target_date: date) -> bool:
    key = (country, target_date.year)
    if key not in _HOLIDAY_CACHE:
        try:
            holiday_map = pyholidays.country_holidays(country, years=[target_date.year])
        except NotImplementedError as error:
            raise ValidationError(f"Unsupported holiday_country '{country}'") from error
        _HOLIDAY_CACHE[key] = set(holiday_map.keys())
    return target_date in _HOLIDAY_CACHE[key]
