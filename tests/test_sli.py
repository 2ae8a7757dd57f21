"""Tests for SLI and error-budget calculation."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from review_slo.business_time import BusinessCalendar
from review_slo.models import BucketRule, BudgetRunSnapshot, CalendarConfig, ReviewItem
from review_slo.sli import compute_sli

RULES = (BucketRule(name="small", size_ceiling=200, allowed_days=1),)
CALENDAR = BusinessCalendar(CalendarConfig(business_start_hour=9, business_end_hour=17, timezone="UTC"))


def _utc(day: int, hour: int = 0) -> datetime:
    return datetime(2025, 1, day, hour, tzinfo=timezone.utc)


def _overdue_run() -> BudgetRunSnapshot:
    # Requested Monday 10:00, due Tuesday 10:00, still open at Tuesday 14:00.
    item = ReviewItem(id="https://github.com/org/repo/pull/7", requested_at=_utc(6, 10), size=50)
    return BudgetRunSnapshot(run_at=_utc(7, 14), items=(item,))


def test_compute_sli_no_runs_is_perfect():
    """Verify a window without recorded bad time has an SLI of 1."""
    result = compute_sli([], _utc(6), _utc(13), CALENDAR, RULES, target=0.95)

    assert result.total_business_minutes == 2400
    assert result.bad_minutes == 0
    assert result.good_minutes == 2400
    assert result.sli == 1.0
    assert result.is_met is True


def test_compute_sli_empty_window_is_perfect():
    """Verify a window with no business minutes reports SLI 1 instead of dividing by zero."""
    result = compute_sli([], _utc(11), _utc(13), CALENDAR, RULES, target=0.95)

    assert result.total_business_minutes == 0
    assert result.sli == 1.0
    assert result.budget_minutes == 0
    assert result.is_met is True


def test_compute_sli_two_week_window_with_bad_run():
    """Verify four overdue hours in a two-week window give an SLI of 0.95."""
    result = compute_sli([_overdue_run()], _utc(6), _utc(20), CALENDAR, RULES, target=0.9)

    assert result.total_business_minutes == 4800
    assert result.bad_minutes == 240
    assert result.good_minutes == 4560
    assert result.sli == pytest.approx(0.95)
    assert result.budget_minutes == pytest.approx(480)
    assert result.budget_remaining == pytest.approx(240)
    assert result.is_met is True


def test_compute_sli_violated_when_below_target():
    """Verify the same bad time violates a stricter target and overdraws the budget."""
    result = compute_sli([_overdue_run()], _utc(6), _utc(20), CALENDAR, RULES, target=0.99)

    assert result.is_met is False
    assert result.budget_minutes == pytest.approx(48)
    assert result.budget_remaining == pytest.approx(-192)


def test_compute_sli_good_plus_bad_equals_total():
    """Verify minutes always partition into good and bad."""
    result = compute_sli([_overdue_run()], _utc(6), _utc(9), CALENDAR, RULES, target=0.9)

    assert result.good_minutes + result.bad_minutes == result.total_business_minutes
    assert 0 <= result.sli <= 1
