"""Reconstruction of overdue ("bad") business minutes from budget-run snapshots.

Each snapshot records the queue at one instant. Because any overdue item makes
the whole queue bad, only the earliest deadline among items still outstanding
at a run matters. Between two consecutive runs the queue is assumed bad from
``max(previous run, earliest deadline)`` up to the current run.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterator, List, Optional, Sequence

from .buckets import find_bucket
from .business_time import BusinessCalendar, as_utc
from .models import BadInterval, BucketRule, BudgetRunSnapshot


def snapshot_min_deadline(
    snapshot: BudgetRunSnapshot,
    rules: Sequence[BucketRule],
    calendar: BusinessCalendar,
) -> Optional[datetime]:
    """Return the earliest deadline among in-scope items outstanding at ``snapshot.run_at``."""
    run_at = as_utc(snapshot.run_at)
    min_deadline: Optional[datetime] = None

    for item in snapshot.items:
        if not item.is_outstanding_at(run_at):
            continue
        rule = find_bucket(item, rules)
        if rule is None:
            continue
        deadline = as_utc(calendar.add_business_days(item.requested_at, rule.allowed_days))
        if min_deadline is None or deadline < min_deadline:
            min_deadline = deadline

    return min_deadline


def iter_bad_intervals(
    snapshots: Sequence[BudgetRunSnapshot],
    window_start: datetime,
    window_end: datetime,
    calendar: BusinessCalendar,
    rules: Sequence[BucketRule],
) -> Iterator[BadInterval]:
    """Yield bad intervals, clipped to ``[window_start, window_end]``, in run order.

    Only runs whose ``run_at`` lies inside the window are considered; the first
    of them has no previous run, so its interval starts at the deadline.
    """
    window_start = as_utc(window_start)
    window_end = as_utc(window_end)
    runs: List[BudgetRunSnapshot] = sorted(
        (run for run in snapshots if window_start <= as_utc(run.run_at) <= window_end),
        key=lambda run: as_utc(run.run_at),
    )

    previous_run_at: Optional[datetime] = None
    for run in runs:
        run_at = as_utc(run.run_at)
        min_deadline = snapshot_min_deadline(run, rules, calendar)

        if min_deadline is not None and min_deadline < run_at:
            bad_start = min_deadline if previous_run_at is None else max(previous_run_at, min_deadline)
            overlap_start = max(bad_start, window_start)
            overlap_end = min(run_at, window_end)
            if overlap_start < overlap_end:
                yield BadInterval(start=overlap_start, end=overlap_end)

        previous_run_at = run_at


def compute_bad_minutes(
    snapshots: Sequence[BudgetRunSnapshot],
    window_start: datetime,
    window_end: datetime,
    calendar: BusinessCalendar,
    rules: Sequence[BucketRule],
) -> int:
    """Sum the business minutes of all bad intervals within the window."""
    return sum(
        calendar.count_business_minutes(interval.start, interval.end)
        for interval in iter_bad_intervals(snapshots, window_start, window_end, calendar, rules)
    )
