"""Greedy review planner.

Given the outstanding queue sorted by deadline, decide which reviews must be
done before the next check to stay within the error budget, and how much
budget each optional review would save.

Removing the earliest-deadline item can only delay (or keep) the queue's
minimum deadline, so projected burn never grows as items are resolved in
deadline order. The planner therefore stops at the first prefix that fits the
budget; everything after it can wait.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Sequence

from .business_time import BusinessCalendar, as_utc
from .deadlines import get_min_deadline
from .ledger import compute_bad_minutes
from .models import (
    BucketRule,
    BudgetRunSnapshot,
    ExtraCreditItem,
    PRWithDeadline,
    ReviewRecommendation,
)

logger = logging.getLogger(__name__)


def projected_bad_minutes(
    sorted_prs: Sequence[PRWithDeadline],
    now: datetime,
    next_check_time: datetime,
    calendar: BusinessCalendar,
) -> int:
    """Business minutes the queue would be overdue between ``now`` and the next check."""
    min_deadline = get_min_deadline(sorted_prs)
    if min_deadline is None or min_deadline >= as_utc(next_check_time):
        return 0
    return calendar.count_business_minutes(max(as_utc(now), min_deadline), next_check_time)


def recommend(
    sorted_prs: Sequence[PRWithDeadline],
    snapshots: Sequence[BudgetRunSnapshot],
    now: datetime,
    next_check_time: datetime,
    calendar: BusinessCalendar,
    rules: Sequence[BucketRule],
    target: float,
    window_days: int,
) -> ReviewRecommendation:
    """Partition the outstanding queue into must-do, extra-credit and deferrable reviews.

    Business logic:
    - History is the ledger's bad minutes over ``window_days`` ending at the next check.
    - While history plus projected burn exceeds the budget, the earliest-deadline
      review moves to ``must_do_today``.
    - Each remaining review due before the next check is extra credit, with the
      minutes saved by resolving it and every earlier remaining review.
    - Reviews due at or after the next check are deferrable.
    """
    window_end = as_utc(next_check_time)
    window_start = window_end - timedelta(days=window_days)

    hist_bad = compute_bad_minutes(snapshots, window_start, window_end, calendar, rules)
    budget = calendar.count_business_minutes(window_start, window_end) * (1 - target)
    projected_if_no_reviews = projected_bad_minutes(sorted_prs, now, window_end, calendar)

    remaining: List[PRWithDeadline] = list(sorted_prs)
    must_do: List[PRWithDeadline] = []
    while remaining and hist_bad + projected_bad_minutes(remaining, now, window_end, calendar) > budget:
        must_do.append(remaining.pop(0))

    baseline = projected_bad_minutes(remaining, now, window_end, calendar)
    remaining_budget = budget - hist_bad
    extra_credit: List[ExtraCreditItem] = []
    deferrable: List[PRWithDeadline] = []

    for index, pr in enumerate(remaining):
        if pr.deadline >= window_end:
            deferrable.append(pr)
            continue

        saved = baseline - projected_bad_minutes(remaining[index + 1 :], now, window_end, calendar)
        percent = min(1.0, max(0.0, saved / remaining_budget)) if remaining_budget > 0 else 0.0
        extra_credit.append(ExtraCreditItem(pr=pr, saved_bad_minutes=saved, percent_of_remaining_budget=percent))

    logger.debug(
        "Computed review recommendation",
        extra={
            "outstanding": len(sorted_prs),
            "must_do": len(must_do),
            "extra_credit": len(extra_credit),
            "deferrable": len(deferrable),
            "hist_bad_minutes": hist_bad,
            "budget_minutes": budget,
        },
    )

    return ReviewRecommendation(
        must_do_today=tuple(must_do),
        extra_credit=tuple(extra_credit),
        deferrable=tuple(deferrable),
        projected_bad_minutes_if_no_reviews=projected_if_no_reviews,
        hist_bad_minutes=hist_bad,
        budget_minutes=budget,
    )
