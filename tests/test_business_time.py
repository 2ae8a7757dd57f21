"""Tests for business-time calendar arithmetic."""

import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from review_slo.business_time import BusinessCalendar
from review_slo.errors import ConfigurationError, InvalidInputError
from review_slo.models import CalendarConfig, PTOInterval

LA = ZoneInfo("America/Los_Angeles")


def _calendar(tz: str = "UTC", holidays=(), pto=(), start: int = 9, end: int = 17, weekdays=(1, 2, 3, 4, 5)):
    return BusinessCalendar(
        CalendarConfig(
            business_start_hour=start,
            business_end_hour=end,
            timezone=tz,
            business_weekdays=frozenset(weekdays),
            holidays=frozenset(holidays),
            pto_intervals=tuple(pto),
        )
    )


def _utc(day: int, hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    # January 2025: the 6th is a Monday.
    return datetime(2025, 1, day, hour, minute, second, tzinfo=timezone.utc)


def _la(day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(2025, 1, day, hour, minute, tzinfo=LA)


def test_count_business_minutes_same_instant_is_zero():
    """Verify an empty interval has no business minutes."""
    calendar = _calendar()
    assert calendar.count_business_minutes(_utc(6, 12), _utc(6, 12)) == 0


def test_count_business_minutes_reversed_interval_is_zero():
    """Verify start after end yields zero rather than a negative count."""
    calendar = _calendar()
    assert calendar.count_business_minutes(_utc(7, 12), _utc(6, 12)) == 0


def test_count_business_minutes_across_evening_and_morning():
    """Verify Mon 15:00 to Tue 11:00 counts the afternoon and the morning only."""
    calendar = _calendar(tz="America/Los_Angeles")
    assert calendar.count_business_minutes(_la(6, 15), _la(7, 11)) == 240


def test_count_business_minutes_full_week_and_weekend_skipped():
    """Verify a Monday-to-Monday span counts five full business days."""
    calendar = _calendar()
    assert calendar.count_business_minutes(_utc(6), _utc(13)) == 5 * 480
    assert calendar.count_business_minutes(_utc(11), _utc(13)) == 0


def test_count_business_minutes_excludes_holidays_and_pto():
    """Verify holiday and PTO days contribute nothing."""
    calendar = _calendar(
        holidays={date(2025, 1, 8)},
        pto=[PTOInterval(start=date(2025, 1, 9), end=date(2025, 1, 10))],
    )
    assert calendar.count_business_minutes(_utc(6), _utc(13)) == 2 * 480


def test_count_business_minutes_rounds_partial_start_minute_up():
    """Verify a minute only counts when its starting mark lies inside the interval."""
    calendar = _calendar()
    assert calendar.count_business_minutes(_utc(6, 10, 0, 30), _utc(6, 10, 5)) == 4
    assert calendar.count_business_minutes(_utc(6, 10, 0), _utc(6, 10, 0, 30)) == 1


def test_count_business_minutes_clamps_to_business_hours():
    """Verify time outside business hours on the same day is ignored."""
    calendar = _calendar()
    assert calendar.count_business_minutes(_utc(6, 7), _utc(6, 10)) == 60
    assert calendar.count_business_minutes(_utc(6, 16), _utc(6, 20)) == 60
    assert calendar.count_business_minutes(_utc(6, 18), _utc(6, 20)) == 0


@pytest.mark.parametrize(
    "middle",
    [
        datetime(2025, 1, 6, 10, 17, 45, tzinfo=timezone.utc),
        datetime(2025, 1, 6, 16, 59, 59, tzinfo=timezone.utc),
        datetime(2025, 1, 7, 3, 0, tzinfo=timezone.utc),
        datetime(2025, 1, 8, 12, 30, 15, tzinfo=timezone.utc),
        datetime(2025, 1, 11, 12, 0, tzinfo=timezone.utc),
        datetime(2025, 1, 14, 9, 0, tzinfo=timezone.utc),
        datetime(2025, 1, 15, 13, 0, tzinfo=timezone.utc),
    ],
)
def test_count_business_minutes_is_additive(middle):
    """Verify splitting an interval anywhere preserves the total count."""
    calendar = _calendar(holidays={date(2025, 1, 9)})
    start = datetime(2025, 1, 6, 10, 17, 45, tzinfo=timezone.utc)
    end = datetime(2025, 1, 15, 13, 0, tzinfo=timezone.utc)

    total = calendar.count_business_minutes(start, end)

    assert total == calendar.count_business_minutes(start, middle) + calendar.count_business_minutes(middle, end)


def test_count_business_minutes_multi_year_matches_day_by_day_count():
    """Verify the closed-form count agrees with walking every day of a long range."""
    holidays = {date(2024, 7, 4), date(2024, 12, 25), date(2025, 1, 1), date(2025, 7, 4)}
    pto = [PTOInterval(start=date(2024, 8, 5), end=date(2024, 8, 16))]
    calendar = _calendar(holidays=holidays, pto=pto)

    first, last = date(2024, 1, 1), date(2025, 12, 31)
    expected_days = sum(
        1 for offset in range((last - first).days + 1) if calendar.is_business_day(first + timedelta(days=offset))
    )

    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    end = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert calendar.count_business_days(first, last) == expected_days
    assert calendar.count_business_minutes(start, end) == expected_days * 480


def test_count_business_minutes_across_daylight_saving_change():
    """Verify wall-clock business hours are counted on both sides of a DST switch."""
    calendar = _calendar(tz="America/Los_Angeles")
    start = datetime(2025, 3, 7, 9, 0, tzinfo=LA)
    end = datetime(2025, 3, 10, 17, 0, tzinfo=LA)

    assert calendar.count_business_minutes(start, end) == 960


def test_add_business_days_next_day_same_time():
    """Verify a one-day allowance from Monday 10:00 lands on Tuesday 10:00."""
    calendar = _calendar(tz="America/Los_Angeles")
    assert calendar.add_business_days(_la(6, 10), 1) == _la(7, 10)


def test_add_business_days_skips_weekend():
    """Verify a one-day allowance from Friday 10:00 lands on Monday 10:00."""
    calendar = _calendar(tz="America/Los_Angeles")
    assert calendar.add_business_days(_la(10, 10), 1) == _la(13, 10)


def test_add_business_days_skips_holiday():
    """Verify a Monday holiday pushes a Friday request to Tuesday."""
    calendar = _calendar(tz="America/Los_Angeles", holidays={date(2025, 1, 13)})
    assert calendar.add_business_days(_la(10, 10), 1) == _la(14, 10)


def test_add_business_days_skips_pto():
    """Verify PTO days are skipped like holidays."""
    calendar = _calendar(pto=[PTOInterval(start=date(2025, 1, 7), end=date(2025, 1, 8))])
    assert calendar.add_business_days(_utc(6, 10), 1) == _utc(9, 10)


def test_add_business_days_fractional_duration():
    """Verify half a business day is four business hours, carried into the next day."""
    calendar = _calendar()
    assert calendar.add_business_days(_utc(6, 10), 0.5) == _utc(6, 14)
    assert calendar.add_business_days(_utc(6, 15), 0.5) == _utc(7, 11)


def test_add_business_days_from_outside_business_hours():
    """Verify a request after hours starts consuming time at the next opening."""
    calendar = _calendar()
    assert calendar.add_business_days(_utc(6, 20), 1) == _utc(7, 17)
    assert calendar.add_business_days(_utc(11, 12), 0.25) == _utc(13, 11)


def test_add_business_days_zero_returns_start():
    """Verify adding zero business days is the identity, even outside hours."""
    calendar = _calendar()
    start = _utc(11, 12, 34)
    assert calendar.add_business_days(start, 0) == start


@pytest.mark.parametrize("start", [_utc(6, 10), _utc(6, 9), _utc(11, 12), _utc(10, 16, 30)])
def test_add_business_days_composes(start):
    """Verify adding m then n business days equals adding m + n."""
    calendar = _calendar(holidays={date(2025, 1, 8)})
    assert calendar.add_business_days(calendar.add_business_days(start, 0.5), 1.5) == calendar.add_business_days(
        start, 2
    )
    assert calendar.add_business_days(calendar.add_business_days(start, 1), 3) == calendar.add_business_days(start, 4)


def test_add_business_days_negative_raises():
    """Verify negative durations are rejected."""
    calendar = _calendar()
    with pytest.raises(InvalidInputError):
        calendar.add_business_days(_utc(6, 10), -1)


def test_get_next_review_time_today_when_before_review_hour():
    """Verify a morning on a business day returns today's review time."""
    calendar = _calendar()
    assert calendar.get_next_review_time(_utc(6, 10), 12) == _utc(6, 12)


def test_get_next_review_time_next_business_day_when_past_review_hour():
    """Verify the afternoon rolls to the next business day, skipping weekends and holidays."""
    calendar = _calendar(holidays={date(2025, 1, 13)})
    assert calendar.get_next_review_time(_utc(6, 13), 12) == _utc(7, 12)
    assert calendar.get_next_review_time(_utc(10, 13), 12) == _utc(14, 12)
    assert calendar.get_next_review_time(_utc(11, 8), 12) == _utc(14, 12)


def test_get_next_review_time_uses_calendar_timezone():
    """Verify the review hour is interpreted in the calendar's local time."""
    calendar = _calendar(tz="America/Los_Angeles")
    # 2025-01-06 17:00 UTC is 09:00 in Los Angeles.
    assert calendar.get_next_review_time(_utc(6, 17), 12) == _la(6, 12)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"start": 17, "end": 9},
        {"start": 9, "end": 9},
        {"start": 9, "end": 25},
        {"weekdays": ()},
        {"weekdays": (0, 1)},
        {"tz": "Not/AZone"},
    ],
)
def test_invalid_calendar_configuration_raises(kwargs):
    """Verify invalid hours, weekdays or timezone fail at construction time."""
    with pytest.raises(ConfigurationError):
        _calendar(**kwargs)
