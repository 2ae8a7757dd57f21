"""SLI and error-budget calculation for a single window."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from .business_time import BusinessCalendar
from .ledger import compute_bad_minutes
from .models import BucketRule, BudgetRunSnapshot, SLIResult


def compute_sli(
    snapshots: Sequence[BudgetRunSnapshot],
    window_start: datetime,
    window_end: datetime,
    calendar: BusinessCalendar,
    rules: Sequence[BucketRule],
    target: float,
) -> SLIResult:
    """Compute SLI, error budget and verdict over ``[window_start, window_end)``.

    Business logic:
    - ``total`` is the number of business minutes in the window.
    - ``bad`` comes from the budget-run ledger; ``good = total - bad``.
    - ``sli = good / total`` (``1`` for an empty window).
    - ``budget = total * (1 - target)``; the SLO is met when ``sli >= target``.
    """
    total = calendar.count_business_minutes(window_start, window_end)
    bad = compute_bad_minutes(snapshots, window_start, window_end, calendar, rules)
    good = total - bad
    sli = good / total if total > 0 else 1.0
    budget = total * (1 - target)

    return SLIResult(
        total_business_minutes=total,
        good_minutes=good,
        bad_minutes=bad,
        sli=sli,
        budget_minutes=budget,
        budget_remaining=budget - bad,
        is_met=sli >= target,
    )
