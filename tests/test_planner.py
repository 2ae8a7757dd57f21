"""Tests for the review planner."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from review_slo.business_time import BusinessCalendar
from review_slo.deadlines import compute_deadlines
from review_slo.models import BucketRule, BudgetRunSnapshot, CalendarConfig, ReviewItem
from review_slo.planner import projected_bad_minutes, recommend

RULES = (BucketRule(name="small", size_ceiling=200, allowed_days=1),)
CALENDAR = BusinessCalendar(CalendarConfig(business_start_hour=9, business_end_hour=17, timezone="UTC"))
WINDOW_DAYS = 30
# 30 days ending Wednesday 2025-01-08 12:00 UTC.
WINDOW_BUSINESS_MINUTES = 10560


def _utc(day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(2025, 1, day, hour, minute, tzinfo=timezone.utc)


NOW = _utc(8, 9, 30)
NEXT_CHECK = _utc(8, 12)

# Due Tuesday 09:30, Wednesday 11:00 and Thursday 09:15 respectively.
ITEM_1 = ReviewItem(id="pr-1", requested_at=_utc(6, 9, 30), size=10)
ITEM_2 = ReviewItem(id="pr-2", requested_at=_utc(7, 11), size=10)
ITEM_3 = ReviewItem(id="pr-3", requested_at=_utc(8, 9, 15), size=10)


@pytest.fixture
def sorted_prs():
    """Outstanding queue sorted by deadline."""
    return compute_deadlines([ITEM_3, ITEM_1, ITEM_2], RULES, CALENDAR, NOW)


def _ids(prs):
    return [pr.item.id for pr in prs]


def test_projected_bad_minutes_counts_from_now_when_already_overdue(sorted_prs):
    """Verify an item overdue since yesterday burns from now until the next check."""
    assert projected_bad_minutes(sorted_prs, NOW, NEXT_CHECK, CALENDAR) == 150


def test_projected_bad_minutes_counts_from_future_deadline(sorted_prs):
    """Verify an item due before the next check burns from its deadline."""
    assert projected_bad_minutes(sorted_prs[1:], NOW, NEXT_CHECK, CALENDAR) == 60


def test_projected_bad_minutes_zero_when_due_after_next_check(sorted_prs):
    """Verify items due after the next check burn nothing, as does an empty queue."""
    assert projected_bad_minutes(sorted_prs[2:], NOW, NEXT_CHECK, CALENDAR) == 0
    assert projected_bad_minutes([], NOW, NEXT_CHECK, CALENDAR) == 0


def test_recommend_ample_budget_has_no_must_do(sorted_prs):
    """Verify a generous budget leaves overdue items as extra credit with their savings."""
    result = recommend(sorted_prs, [], NOW, NEXT_CHECK, CALENDAR, RULES, target=0.9, window_days=WINDOW_DAYS)

    assert result.must_do_today == ()
    assert [(credit.pr.item.id, credit.saved_bad_minutes) for credit in result.extra_credit] == [
        ("pr-1", 90),
        ("pr-2", 150),
    ]
    assert _ids(result.deferrable) == ["pr-3"]
    assert result.projected_bad_minutes_if_no_reviews == 150
    assert result.hist_bad_minutes == 0
    assert result.budget_minutes == pytest.approx(WINDOW_BUSINESS_MINUTES * 0.1)
    assert result.extra_credit[0].percent_of_remaining_budget == pytest.approx(90 / (WINDOW_BUSINESS_MINUTES * 0.1))


def test_recommend_tight_budget_requires_overdue_items(sorted_prs):
    """Verify a near-zero budget makes every item due before the next check mandatory."""
    result = recommend(sorted_prs, [], NOW, NEXT_CHECK, CALENDAR, RULES, target=0.99999, window_days=WINDOW_DAYS)

    assert _ids(result.must_do_today) == ["pr-1", "pr-2"]
    assert result.extra_credit == ()
    assert _ids(result.deferrable) == ["pr-3"]


def test_recommend_exhausted_budget_makes_everything_mandatory(sorted_prs):
    """Verify history already over budget pushes the whole queue into must-do."""
    history = [BudgetRunSnapshot(run_at=_utc(7, 14), items=(ITEM_1,))]

    result = recommend(sorted_prs, history, NOW, NEXT_CHECK, CALENDAR, RULES, target=0.975, window_days=WINDOW_DAYS)

    assert result.hist_bad_minutes == 270
    assert _ids(result.must_do_today) == ["pr-1", "pr-2", "pr-3"]
    assert result.extra_credit == ()
    assert result.deferrable == ()


@pytest.mark.parametrize("target", [0.5, 0.9, 0.99, 0.999, 0.99999])
def test_recommend_partitions_the_queue(sorted_prs, target):
    """Verify every outstanding item lands in exactly one group, with must-do as a prefix."""
    result = recommend(sorted_prs, [], NOW, NEXT_CHECK, CALENDAR, RULES, target=target, window_days=WINDOW_DAYS)

    grouped = (
        _ids(result.must_do_today)
        + [credit.pr.item.id for credit in result.extra_credit]
        + _ids(result.deferrable)
    )
    assert sorted(grouped) == sorted(_ids(sorted_prs))
    assert _ids(result.must_do_today) == _ids(sorted_prs)[: len(result.must_do_today)]
    for credit in result.extra_credit:
        assert 0 <= credit.percent_of_remaining_budget <= 1


def test_recommend_empty_queue():
    """Verify an empty queue yields empty groups."""
    result = recommend([], [], NOW, NEXT_CHECK, CALENDAR, RULES, target=0.9, window_days=WINDOW_DAYS)

    assert result.must_do_today == ()
    assert result.extra_credit == ()
    assert result.deferrable == ()
    assert result.projected_bad_minutes_if_no_reviews == 0
