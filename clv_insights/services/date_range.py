"""
Date range handling for the analytics page.

Query params arrive as YYYY-MM-DD strings. Anything missing or unparseable
falls back to a trailing window that ends today (UTC).
"""
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

import pytz

DEFAULT_RANGE_DAYS = 30


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end] window in UTC"""
    start: datetime
    end: datetime

    @property
    def start_input(self) -> str:
        return self.start.date().isoformat()

    @property
    def end_input(self) -> str:
        return self.end.date().isoformat()

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def to_dict(self) -> dict:
        return {"start": self.start_input, "end": self.end_input}


def parse_date_param(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD query value; None when missing or malformed"""
    if not value:
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def start_of_day(day: date) -> datetime:
    return pytz.UTC.localize(datetime.combine(day, time(0, 0, 0)))


def end_of_day(day: date) -> datetime:
    return pytz.UTC.localize(datetime.combine(day, time(23, 59, 59)))


def utc_today() -> date:
    return datetime.now(pytz.UTC).date()


def normalize_date_range(
    start: Optional[str],
    end: Optional[str],
    today: Optional[date] = None,
    range_days: int = DEFAULT_RANGE_DAYS
) -> DateRange:
    """
    Turn optional start/end query values into a concrete UTC window.

    Start snaps to 00:00:00 and end to 23:59:59. When the snapped start is
    after the snapped end, both values revert to the default window rather
    than being swapped.
    """
    today = today or utc_today()
    default_end = today
    default_start = today - timedelta(days=range_days - 1)

    start_day = parse_date_param(start) or default_start
    end_day = parse_date_param(end) or default_end

    window = DateRange(start=start_of_day(start_day), end=end_of_day(end_day))
    if window.start > window.end:
        return DateRange(start=start_of_day(default_start), end=end_of_day(default_end))
    return window
