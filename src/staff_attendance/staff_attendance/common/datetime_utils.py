from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

from ..core.enums import Weekday


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    return ensure_utc(parsed)


def parse_hhmm(value: str) -> time:
    return datetime.strptime(value.strip(), "%H:%M").time()


def utc_now() -> datetime:
    """Current UTC time (timezone-aware).

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now(pytz.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


@dataclass(frozen=True)
class BusinessClock:
    """Single timezone policy for the whole attendance subsystem.

    The operative day, weekday names and scheduled start times are all
    resolved in ``timezone_name``; instants are stored and compared in UTC.
    """

    timezone_name: str
    _tz: pytz.BaseTzInfo = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_tz", pytz.timezone(self.timezone_name))

    @property
    def tz(self) -> pytz.BaseTzInfo:
        return self._tz

    def now(self) -> datetime:
        return utc_now()

    def resolve(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now is not None else self.now()

    def to_local(self, instant: datetime) -> datetime:
        return ensure_utc(instant).astimezone(self._tz)

    def operative_day(self, instant: datetime) -> date:
        return self.to_local(instant).date()

    def weekday(self, instant: datetime) -> Weekday:
        return Weekday.from_index(self.operative_day(instant).weekday())

    def at(self, day: date, wall_time: time) -> datetime:
        """UTC instant of a wall-clock time on an operative day."""
        local = self._tz.localize(datetime.combine(day, wall_time))
        return local.astimezone(pytz.utc)

    def day_bounds(self, day: date) -> tuple[datetime, datetime]:
        """Half-open UTC interval ``[start, end)`` covering the operative day."""
        start = self.at(day, time.min)
        end = self.at(day + timedelta(days=1), time.min)
        return start, end
