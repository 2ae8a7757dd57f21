"""Urgency bucket assignment for review items."""

from __future__ import annotations

from typing import Mapping, Optional, Sequence, Tuple

from .models import BucketRule, ReviewItem

EXCLUDED = "excluded"


def rule_matches(item: ReviewItem, rule: BucketRule) -> bool:
    """Return whether ``item`` is under the rule's size ceiling and satisfies its predicates."""
    if not item.size < rule.size_ceiling:
        return False
    if rule.as_code_owner is not None and item.as_code_owner != rule.as_code_owner:
        return False
    if rule.requested_reviewer is not None and item.requested_reviewer != rule.requested_reviewer:
        return False
    return True


def find_bucket(item: ReviewItem, rules: Sequence[BucketRule]) -> Optional[BucketRule]:
    """Return the most urgent matching rule, or ``None`` when the item is excluded.

    The rule with the smallest ``allowed_days`` wins. Among equally urgent
    rules the first one in ``rules`` order is chosen.
    """
    matching = [rule for rule in rules if rule_matches(item, rule)]
    if not matching:
        return None
    return min(matching, key=lambda rule: rule.allowed_days)


def assign_bucket(item: ReviewItem, rules: Sequence[BucketRule]) -> str:
    """Return the name of the bucket for ``item`` or ``EXCLUDED``."""
    rule = find_bucket(item, rules)
    return EXCLUDED if rule is None else rule.name


def rules_from_size_buckets(size_buckets: Mapping[str, Tuple[float, float]]) -> Tuple[BucketRule, ...]:
    """Convert a ``{name: (max_size, allowed_days)}`` ladder into predicate-free rules.

    Rules are ordered by ascending ceiling so that, for a ladder whose
    durations grow with size, the smallest fitting bucket is selected.
    """
    ordered = sorted(size_buckets.items(), key=lambda entry: entry[1][0])
    return tuple(
        BucketRule(name=name, size_ceiling=ceiling, allowed_days=allowed_days)
        for name, (ceiling, allowed_days) in ordered
    )
