"""Business-time calendar arithmetic.

A business minute is a wall-clock minute in the configured timezone that
falls within ``[business_start_hour, business_end_hour)`` on a configured
weekday which is neither a holiday nor covered by a PTO interval.

Minute counting uses a closed-form day decomposition (partial first day,
whole qualifying days, partial last day) so that multi-year windows cost the
same as a single day.
"""

from __future__ import annotations

import bisect
import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from typing import FrozenSet, List
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ConfigurationError, InvalidInputError
from .models import CalendarConfig, as_utc

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def _ceil_minute_of_day(moment: datetime) -> int:
    """Minute-of-day of the first minute mark at or after ``moment``."""
    minute = moment.hour * 60 + moment.minute
    if moment.second or moment.microsecond:
        minute += 1
    return minute


class BusinessCalendar:
    """Validated, immutable business calendar built from a ``CalendarConfig``."""

    def __init__(self, config: CalendarConfig) -> None:
        """Validate ``config`` and precompute excluded dates.

        Raises:
            ConfigurationError: If hours, weekdays or timezone are invalid.
        """
        start_hour = config.business_start_hour
        end_hour = config.business_end_hour
        if not all(isinstance(hour, int) and not isinstance(hour, bool) for hour in (start_hour, end_hour)):
            raise ConfigurationError("Business hours must be whole hours of the day.")
        if not 0 <= start_hour < end_hour <= 24:
            raise ConfigurationError(
                f"Invalid business hours {start_hour}-{end_hour}: expected 0 <= start < end <= 24."
            )

        weekdays = frozenset(config.business_weekdays)
        if not weekdays:
            raise ConfigurationError("At least one business weekday must be configured.")
        if not weekdays <= frozenset(range(1, 8)):
            raise ConfigurationError(
                f"Invalid business weekdays {sorted(weekdays)}: expected values 1 (Mon) to 7 (Sun)."
            )

        try:
            zone = ZoneInfo(config.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigurationError(f"Unknown timezone '{config.timezone}'.") from exc

        excluded = set(config.holidays)
        for pto in config.pto_intervals:
            day = pto.start
            while day <= pto.end:
                excluded.add(day)
                day += timedelta(days=1)

        self._config = config
        self._zone = zone
        self._weekdays: FrozenSet[int] = weekdays
        self._open_minute = start_hour * 60
        self._close_minute = end_hour * 60
        self._excluded_dates: FrozenSet[date] = frozenset(excluded)
        # Only excluded dates that would otherwise be business days affect counts.
        self._excluded_weekdays: List[date] = sorted(day for day in excluded if day.isoweekday() in weekdays)

        logger.debug(
            "Built business calendar",
            extra={
                "timezone": config.timezone,
                "business_hours": f"{start_hour}-{end_hour}",
                "excluded_dates": len(self._excluded_dates),
            },
        )

    @property
    def config(self) -> CalendarConfig:
        return self._config

    @property
    def minutes_per_day(self) -> int:
        """Business minutes in one qualifying day."""
        return self._close_minute - self._open_minute

    def to_local(self, moment: datetime) -> datetime:
        """Convert ``moment`` to the calendar timezone (naive values are UTC)."""
        return as_utc(moment).astimezone(self._zone)

    def is_business_day(self, day: date) -> bool:
        return day.isoweekday() in self._weekdays and day not in self._excluded_dates

    def count_business_days(self, first: date, last: date) -> int:
        """Count qualifying days in the inclusive range ``[first, last]``."""
        if first > last:
            return 0

        total_days = (last - first).days + 1
        full_weeks, remainder = divmod(total_days, 7)
        first_weekday = first.isoweekday()
        count = full_weeks * len(self._weekdays)
        count += sum(1 for offset in range(remainder) if (first_weekday - 1 + offset) % 7 + 1 in self._weekdays)

        excluded = bisect.bisect_right(self._excluded_weekdays, last) - bisect.bisect_left(
            self._excluded_weekdays, first
        )
        return count - excluded

    def count_business_minutes(self, start: datetime, end: datetime) -> int:
        """Count business minutes in ``[start, end)``.

        A minute is identified by its starting mark, so the count is exactly
        additive: ``count(a, c) == count(a, b) + count(b, c)`` for ``a <= b <= c``.
        Returns ``0`` when ``start >= end``.
        """
        if as_utc(start) >= as_utc(end):
            return 0

        local_start = self.to_local(start)
        local_end = self.to_local(end)
        first_day = local_start.date()
        last_day = local_end.date()
        start_minute = _ceil_minute_of_day(local_start)
        end_minute = _ceil_minute_of_day(local_end)

        if first_day == last_day:
            return self._minutes_within_day(first_day, start_minute, end_minute)

        whole_days = self.count_business_days(first_day + timedelta(days=1), last_day - timedelta(days=1))
        return (
            self._minutes_within_day(first_day, start_minute, MINUTES_PER_DAY)
            + whole_days * self.minutes_per_day
            + self._minutes_within_day(last_day, 0, end_minute)
        )

    def add_business_days(self, start: datetime, duration: float) -> datetime:
        """Advance ``start`` by ``duration`` business days, skipping non-business time.

        ``duration`` may be fractional; it is converted to business minutes
        (``duration * minutes_per_day``) and the result is the earliest instant
        at which exactly that much business time has elapsed. A whole-day
        duration started inside business hours therefore keeps its time of day.

        Raises:
            InvalidInputError: If ``duration`` is negative or not finite.
        """
        if not math.isfinite(duration) or duration < 0:
            raise InvalidInputError(f"Business-day duration must be a finite number >= 0, got {duration!r}.")
        if duration == 0:
            return start

        remaining = timedelta(minutes=duration * self.minutes_per_day)
        cursor = self.to_local(start)
        day = cursor.date()

        while True:
            if self.is_business_day(day):
                opening = self._at(day, self._open_minute)
                closing = self._at(day, self._close_minute)
                begin = max(cursor, opening)
                if begin < closing:
                    available = closing - begin
                    if remaining <= available:
                        return (begin + remaining).astimezone(timezone.utc)
                    remaining -= available
            day += timedelta(days=1)
            cursor = self._at(day, 0)

    def get_next_review_time(self, moment: datetime, review_hour: int) -> datetime:
        """Return the next ``review_hour`` o'clock on a business day at or after ``moment``.

        Today qualifies only if it is a business day and the local hour is
        still before ``review_hour``.
        """
        if not 0 <= review_hour <= 23:
            raise InvalidInputError(f"Review hour must be between 0 and 23, got {review_hour}.")

        local = self.to_local(moment)
        day = local.date()
        if not (self.is_business_day(day) and local.hour < review_hour):
            day += timedelta(days=1)
            while not self.is_business_day(day):
                day += timedelta(days=1)

        return datetime.combine(day, time(review_hour), tzinfo=self._zone).astimezone(timezone.utc)

    def _at(self, day: date, minute_of_day: int) -> datetime:
        return datetime.combine(day, time(0), tzinfo=self._zone) + timedelta(minutes=minute_of_day)

    def _minutes_within_day(self, day: date, from_minute: int, to_minute: int) -> int:
        if not self.is_business_day(day):
            return 0
        low = max(from_minute, self._open_minute)
        high = min(to_minute, self._close_minute)
        return max(0, high - low)
