"""
Tests for the period boundary resolver.

Reference instant throughout: Friday 2024-03-15 12:00 UTC.
"""
import pytest
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from classmetrics.core.errors import InvalidPeriodTypeError
from classmetrics.services.periods import PeriodType, from_ms, resolve_period, to_ms

UTC = timezone.utc
REF = datetime(2024, 3, 15, 12, 0, tzinfo=UTC)
DAY_MS = 24 * 60 * 60 * 1000


def _start(y, m, d):
    return to_ms(datetime(y, m, d, tzinfo=UTC))


def _end(y, m, d):
    return _start(y, m, d) + DAY_MS - 1


class TestDaily:
    def test_window_covers_the_reference_date(self):
        w = resolve_period("daily", REF, tz=UTC)
        assert w.start == 1710460800000
        assert w.end == 1710547199999
        assert w.label == "Friday, March 15, 2024"

    def test_end_is_last_millisecond_of_the_day(self):
        w = resolve_period(PeriodType.daily, REF, tz=UTC)
        assert w.end - w.start == DAY_MS - 1
        assert from_ms(w.end, UTC).microsecond == 999000

    def test_accepts_epoch_ms_reference(self):
        assert resolve_period("daily", to_ms(REF), tz=UTC) == resolve_period("daily", REF, tz=UTC)

    def test_local_zone_decides_the_date(self):
        # 02:00 UTC on the 15th is still the 14th in New York
        ny = ZoneInfo("America/New_York")
        w = resolve_period("daily", datetime(2024, 3, 15, 2, 0, tzinfo=UTC), tz=ny)
        assert w.label == "Thursday, March 14, 2024"
        assert from_ms(w.start, ny).hour == 0


class TestWeeks:
    def test_five_day_week_is_monday_to_friday(self):
        w = resolve_period("5day_week", REF, tz=UTC)
        assert w.start == _start(2024, 3, 11)
        assert w.end == _end(2024, 3, 15)
        assert w.label == "Week of Mar 11, 2024 (M-F)"

    @pytest.mark.parametrize("week_start_day", ["Sunday", "Monday", "Saturday"])
    def test_five_day_week_ignores_week_start(self, week_start_day):
        w = resolve_period("5day_week", REF, week_start_day=week_start_day, tz=UTC)
        assert w.start == _start(2024, 3, 11)

    def test_five_day_week_on_sunday_uses_the_same_calendar_week(self):
        sunday = datetime(2024, 3, 17, 9, 0, tzinfo=UTC)
        w = resolve_period("5day_week", sunday, tz=UTC)
        assert w.start == _start(2024, 3, 11)
        assert not w.contains(to_ms(sunday))

    @pytest.mark.parametrize(
        "week_start_day, first_day",
        [
            ("Sunday", 10),
            ("Monday", 11),
            ("Wednesday", 13),
            ("Friday", 15),
            ("Saturday", 9),
        ],
    )
    def test_seven_day_week_anchors_on_week_start(self, week_start_day, first_day):
        w = resolve_period("7day_week", REF, week_start_day=week_start_day, tz=UTC)
        assert w.start == _start(2024, 3, first_day)
        assert w.end == _end(2024, 3, first_day + 6)
        assert w.contains(to_ms(REF))
        assert w.label == f"Week of Mar {first_day}, 2024"

    def test_seven_day_week_unknown_day_raises(self):
        with pytest.raises(ValueError):
            resolve_period("7day_week", REF, week_start_day="Funday", tz=UTC)

    def test_biweekly_spans_fourteen_days_from_monday(self):
        w = resolve_period("biweekly", REF, tz=UTC)
        assert w.start == _start(2024, 3, 11)
        assert w.end == _end(2024, 3, 24)
        assert w.label == "Mar 11 - Mar 24, 2024"


class TestLongPeriods:
    def test_monthly(self):
        w = resolve_period("monthly", REF, tz=UTC)
        assert w.start == _start(2024, 3, 1)
        assert w.end == _end(2024, 3, 31)
        assert w.label == "March 2024"

    def test_monthly_leap_february(self):
        w = resolve_period("monthly", datetime(2024, 2, 10, tzinfo=UTC), tz=UTC)
        assert w.end == _end(2024, 2, 29)

    def test_monthly_december(self):
        w = resolve_period("monthly", datetime(2024, 12, 31, 23, tzinfo=UTC), tz=UTC)
        assert w.start == _start(2024, 12, 1)
        assert w.end == _end(2024, 12, 31)

    def test_spring_semester(self):
        w = resolve_period("semester", REF, tz=UTC)
        assert w.start == _start(2024, 1, 1)
        assert w.end == _end(2024, 6, 30)
        assert w.label == "Spring 2024"

    def test_fall_semester(self):
        w = resolve_period("semester", datetime(2024, 10, 1, tzinfo=UTC), tz=UTC)
        assert w.start == _start(2024, 7, 1)
        assert w.end == _end(2024, 12, 31)
        assert w.label == "Fall 2024"

    def test_semester_halves_cover_the_whole_year(self):
        spring = resolve_period("semester", datetime(2024, 6, 30, 23, tzinfo=UTC), tz=UTC)
        fall = resolve_period("semester", datetime(2024, 7, 1, 0, tzinfo=UTC), tz=UTC)
        assert fall.start == spring.end + 1

    def test_school_year_before_august(self):
        w = resolve_period("school_year", REF, tz=UTC)
        assert w.start == _start(2023, 8, 1)
        assert w.end == _end(2024, 7, 31)
        assert w.label == "2023-2024 Academic Year"

    def test_school_year_from_august(self):
        w = resolve_period("school_year", datetime(2024, 8, 1, tzinfo=UTC), tz=UTC)
        assert w.start == _start(2024, 8, 1)
        assert w.label == "2024-2025 Academic Year"


class TestInvariants:
    @pytest.mark.parametrize("period_type", [p.value for p in PeriodType])
    def test_window_contains_reference(self, period_type):
        w = resolve_period(period_type, REF, tz=UTC)
        assert w.start <= to_ms(REF) <= w.end
        assert w.start < w.end

    def test_defaults_to_now(self):
        before = to_ms(datetime.now(tz=UTC) - timedelta(seconds=1))
        w = resolve_period("daily", tz=UTC)
        assert w.end >= before

    def test_invalid_period_type(self):
        with pytest.raises(InvalidPeriodTypeError) as exc:
            resolve_period("fortnight", REF, tz=UTC)
        assert exc.value.code == "INVALID_PERIOD_TYPE"
        assert exc.value.details["period_type"] == "fortnight"
