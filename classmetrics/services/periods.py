"""
Period Boundary Resolver.

Turns (period type, reference instant, week-start day) into an inclusive
[start, end] window in epoch milliseconds plus a display label.

Rules
-----
  daily        midnight → 23:59:59.999 of the reference date
  5day_week    Monday → Friday of the reference week (ignores week start)
  7day_week    7 days from the configured week-start day
  biweekly     14 days from the Monday of the reference week
  monthly      calendar month
  semester     Jan 1 → Jun 30 or Jul 1 → Dec 31 (fixed split, not term-based)
  school_year  Aug 1 → Jul 31 of the academic year containing the reference

"Local time" is the zone passed in (settings.TIMEZONE by default).
Labels are cosmetic and never feed back into computation.

Public API
----------
resolve_period(period_type, reference, week_start_day, tz) -> PeriodWindow
now_ms()                                                   -> int
to_ms(dt) / from_ms(ms, tz)
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

from classmetrics.core.config import settings
from classmetrics.core.errors import InvalidPeriodTypeError


class PeriodType(str, enum.Enum):
    daily = "daily"
    five_day_week = "5day_week"
    seven_day_week = "7day_week"
    biweekly = "biweekly"
    monthly = "monthly"
    semester = "semester"
    school_year = "school_year"


# Sunday-first, matching how week-start preferences are stored.
WEEK_START_DAYS = {
    "Sunday": 0, "Monday": 1, "Tuesday": 2, "Wednesday": 3,
    "Thursday": 4, "Friday": 5, "Saturday": 6,
}

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class PeriodWindow:
    period_type: PeriodType
    start: int   # epoch ms, inclusive
    end: int     # epoch ms, inclusive
    label: str

    def contains(self, instant_ms: int) -> bool:
        return self.start <= instant_ms <= self.end


# ---------------------------------------------------------------------------
# Time helpers
# ---------------------------------------------------------------------------

def to_ms(dt: datetime) -> int:
    """Exact epoch milliseconds for an aware datetime."""
    return (dt - _EPOCH) // timedelta(milliseconds=1)


def from_ms(ms: int, tz: tzinfo) -> datetime:
    return (_EPOCH + timedelta(milliseconds=ms)).astimezone(tz)


def now_ms() -> int:
    return to_ms(datetime.now(tz=timezone.utc))


def local_zone() -> tzinfo:
    return ZoneInfo(settings.TIMEZONE)


def _bounds(first: date, last: date, tz: tzinfo) -> tuple[int, int]:
    start = datetime.combine(first, time.min, tzinfo=tz)
    end = datetime.combine(last, _END_OF_DAY, tzinfo=tz)
    return to_ms(start), to_ms(end)


def _last_day_of_month(year: int, month: int) -> date:
    if month == 12:
        return date(year, 12, 31)
    return date(year, month + 1, 1) - timedelta(days=1)


# ---------------------------------------------------------------------------
# Boundaries
# ---------------------------------------------------------------------------

def _date_range(period_type: PeriodType, day: date, week_start_day: str) -> tuple[date, date]:
    if period_type is PeriodType.daily:
        return day, day

    if period_type is PeriodType.five_day_week:
        monday = day - timedelta(days=day.weekday())
        return monday, monday + timedelta(days=4)

    if period_type is PeriodType.seven_day_week:
        if week_start_day not in WEEK_START_DAYS:
            raise ValueError(f"Unknown week start day: {week_start_day}")
        sunday_based = (day.weekday() + 1) % 7
        back = (sunday_based - WEEK_START_DAYS[week_start_day]) % 7
        first = day - timedelta(days=back)
        return first, first + timedelta(days=6)

    if period_type is PeriodType.biweekly:
        monday = day - timedelta(days=day.weekday())
        return monday, monday + timedelta(days=13)

    if period_type is PeriodType.monthly:
        return day.replace(day=1), _last_day_of_month(day.year, day.month)

    if period_type is PeriodType.semester:
        if day.month <= 6:
            return date(day.year, 1, 1), date(day.year, 6, 30)
        return date(day.year, 7, 1), date(day.year, 12, 31)

    if period_type is PeriodType.school_year:
        year = day.year if day.month >= 8 else day.year - 1
        return date(year, 8, 1), date(year + 1, 7, 31)

    raise InvalidPeriodTypeError(str(period_type))


def _label(period_type: PeriodType, first: date, last: date) -> str:
    if period_type is PeriodType.daily:
        return f"{first:%A}, {first:%B} {first.day}, {first.year}"
    if period_type is PeriodType.five_day_week:
        return f"Week of {first:%b} {first.day}, {first.year} (M-F)"
    if period_type is PeriodType.seven_day_week:
        return f"Week of {first:%b} {first.day}, {first.year}"
    if period_type is PeriodType.biweekly:
        return f"{first:%b} {first.day} - {last:%b} {last.day}, {last.year}"
    if period_type is PeriodType.monthly:
        return f"{first:%B} {first.year}"
    if period_type is PeriodType.semester:
        season = "Spring" if first.month < 7 else "Fall"
        return f"{season} {first.year}"
    return f"{first.year}-{first.year + 1} Academic Year"


def resolve_period(
    period_type: Union[PeriodType, str],
    reference: Optional[Union[datetime, int]] = None,
    week_start_day: str = "Sunday",
    tz: Optional[tzinfo] = None,
) -> PeriodWindow:
    """
    Resolve the window of `period_type` containing `reference`.

    `reference` may be an aware datetime or epoch ms; defaults to now.
    Raises InvalidPeriodTypeError for an unknown period type.
    """
    try:
        ptype = PeriodType(period_type)
    except ValueError:
        raise InvalidPeriodTypeError(str(period_type)) from None

    zone = tz or local_zone()
    if reference is None:
        reference = now_ms()
    if isinstance(reference, datetime):
        local = reference.astimezone(zone)
    else:
        local = from_ms(reference, zone)

    first, last = _date_range(ptype, local.date(), week_start_day)
    start, end = _bounds(first, last, zone)
    return PeriodWindow(
        period_type=ptype,
        start=start,
        end=end,
        label=_label(ptype, first, last),
    )
