"""Deadline computation for review items.

This module combines bucket assignment with business-time arithmetic:
- Each item's deadline is its request time advanced by its bucket's allowed
  business days.
- Excluded items (no matching bucket) get the ``FAR_FUTURE`` sentinel and are
  never overdue.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from .buckets import EXCLUDED, find_bucket
from .business_time import BusinessCalendar, as_utc
from .models import BucketRule, PRWithDeadline, ReviewItem

logger = logging.getLogger(__name__)

FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


def compute_deadline(
    item: ReviewItem,
    rules: Sequence[BucketRule],
    calendar: BusinessCalendar,
    now: datetime,
) -> PRWithDeadline:
    """Compute the deadline and overdue flag of a single review item.

    Business logic:
    - Assign the most urgent matching bucket.
    - Excluded items get ``FAR_FUTURE`` and ``is_overdue=False`` regardless of ``now``.
    - Otherwise ``deadline = add_business_days(requested_at, allowed_days)``
      and the item is overdue when ``now > deadline``.
    """
    rule = find_bucket(item, rules)
    if rule is None:
        logger.debug("Review item excluded from SLO", extra={"item_id": item.id, "size": item.size})
        return PRWithDeadline(item=item, bucket=EXCLUDED, deadline=FAR_FUTURE, is_overdue=False)

    deadline = as_utc(calendar.add_business_days(item.requested_at, rule.allowed_days))
    return PRWithDeadline(
        item=item,
        bucket=rule.name,
        deadline=deadline,
        is_overdue=as_utc(now) > deadline,
    )


def compute_deadlines(
    items: Iterable[ReviewItem],
    rules: Sequence[BucketRule],
    calendar: BusinessCalendar,
    now: datetime,
) -> List[PRWithDeadline]:
    """Compute deadlines, drop excluded items and sort by deadline.

    The sort is stable, so items sharing a deadline keep their input order.
    """
    with_deadlines = [compute_deadline(item, rules, calendar, now) for item in items]
    in_scope = [pr for pr in with_deadlines if pr.bucket != EXCLUDED]
    return sorted(in_scope, key=lambda pr: pr.deadline)


def get_min_deadline(sorted_prs: Sequence[PRWithDeadline]) -> Optional[datetime]:
    """Return the earliest deadline of an already deadline-sorted sequence."""
    if not sorted_prs:
        return None
    return sorted_prs[0].deadline
