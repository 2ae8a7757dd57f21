"""Domain models for PR review SLO computation.

All models are immutable value objects. Callers build them from already
fetched and parsed data; the computation modules never mutate them or keep
references across calls.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import FrozenSet, Optional, Tuple

from .errors import ConfigurationError, InvalidInputError


def as_utc(moment: datetime) -> datetime:
    """Return ``moment`` in UTC, treating naive datetimes as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class PTOInterval:
    """Whole-day time off, inclusive on both ends."""

    start: date
    end: date
    added_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ConfigurationError(
                f"Invalid PTO interval: start {self.start.isoformat()} is after end {self.end.isoformat()}."
            )


@dataclass(frozen=True, slots=True)
class CalendarConfig:
    """Business calendar definition: hours, weekdays, holidays and PTO.

    ``business_weekdays`` uses ISO numbering (1=Monday ... 7=Sunday). Hours are
    local to ``timezone``; ``business_end_hour`` is exclusive and may be 24.
    """

    business_start_hour: int
    business_end_hour: int
    timezone: str
    business_weekdays: FrozenSet[int] = frozenset({1, 2, 3, 4, 5})
    holidays: FrozenSet[date] = frozenset()
    pto_intervals: Tuple[PTOInterval, ...] = ()


@dataclass(frozen=True, slots=True)
class BucketRule:
    """Named urgency rule mapping item attributes to an allowed response time.

    ``size_ceiling`` is exclusive. ``allowed_days`` is measured in business
    days and may be fractional. Predicates left as ``None`` match anything.
    """

    name: str
    size_ceiling: float
    allowed_days: float
    as_code_owner: Optional[bool] = None
    requested_reviewer: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("Bucket rule name must not be empty.")
        if not self.size_ceiling > 0:
            raise ConfigurationError(
                f"Invalid size ceiling for bucket '{self.name}': expected a number greater than 0."
            )
        if not self.allowed_days >= 0 or math.isinf(self.allowed_days):
            raise ConfigurationError(
                f"Invalid allowed duration for bucket '{self.name}': expected a finite number >= 0."
            )


@dataclass(frozen=True, slots=True)
class ReviewItem:
    """A pull request waiting (or having waited) on a review."""

    id: str
    requested_at: datetime
    size: float
    as_code_owner: bool = False
    requested_reviewer: str = ""
    resolved_at: Optional[datetime] = None
    title: str = ""

    def __post_init__(self) -> None:
        if not isinstance(self.requested_at, datetime):
            raise InvalidInputError(f"Review item '{self.id}' is missing a request timestamp.")
        if isinstance(self.size, bool) or not isinstance(self.size, (int, float)) or not math.isfinite(self.size):
            raise InvalidInputError(f"Review item '{self.id}' has a non-finite size: {self.size!r}.")

    def is_outstanding_at(self, moment: datetime) -> bool:
        """Return whether the item was still unresolved at ``moment`` (naive values are UTC)."""
        if self.resolved_at is None:
            return True
        return as_utc(self.resolved_at) > as_utc(moment)


@dataclass(frozen=True, slots=True)
class PRWithDeadline:
    """A review item together with its bucket, deadline and overdue flag."""

    item: ReviewItem
    bucket: str
    deadline: datetime
    is_overdue: bool


@dataclass(frozen=True, slots=True)
class BudgetRunSnapshot:
    """The outstanding review queue as observed at ``run_at``."""

    run_at: datetime
    items: Tuple[ReviewItem, ...] = ()


@dataclass(frozen=True, slots=True)
class BadInterval:
    """Half-open interval ``[start, end)`` during which the queue was overdue."""

    start: datetime
    end: datetime


@dataclass(frozen=True, slots=True)
class SLIResult:
    """SLI and error-budget figures for a single window, in business minutes."""

    total_business_minutes: int
    good_minutes: int
    bad_minutes: int
    sli: float
    budget_minutes: float
    budget_remaining: float
    is_met: bool


@dataclass(frozen=True, slots=True)
class ExtraCreditItem:
    """An optional review together with the budget it would save if done now."""

    pr: PRWithDeadline
    saved_bad_minutes: int
    percent_of_remaining_budget: float


@dataclass(frozen=True, slots=True)
class ReviewRecommendation:
    """Planner output partitioning the outstanding queue."""

    must_do_today: Tuple[PRWithDeadline, ...]
    extra_credit: Tuple[ExtraCreditItem, ...]
    deferrable: Tuple[PRWithDeadline, ...]
    projected_bad_minutes_if_no_reviews: int
    hist_bad_minutes: int
    budget_minutes: float


@dataclass(frozen=True, slots=True)
class Holiday:
    """Public holiday as reported by the holiday API."""

    date: date
    name: str
    country_code: str
    counties: Tuple[str, ...] = field(default_factory=tuple)

    def applies_to(self, region_code: str) -> bool:
        """Return whether the holiday is observed in ``region_code`` (e.g. ``US`` or ``GB-ENG``).

        National holidays (no counties listed) apply everywhere in the country;
        regional ones only when ``region_code`` names one of their counties.
        """
        if not self.counties:
            return True
        return region_code.upper() in (county.upper() for county in self.counties)
