"""Schedule Engine - next-occurrence calculation for frequency rules.

Hybrid approach:
- `dateutil.rrule` for weekly and biweekly patterns
- `dateutil.relativedelta` for month arithmetic with clamping
  (day 31 fires on Apr 30 and Feb 28/29, never skipped)

Parity and clamping follow the same policies as DoseEngine, so a rule's
next occurrence always falls on a date DoseEngine.generate() expands.

IMPORTANT: This module must NOT import from managers/ to avoid circular imports.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import assert_never
from zoneinfo import ZoneInfo

from dateutil.rrule import WEEKLY, rrule, weekday

from .. import const
from ..config import MealTimeConfiguration
from ..exceptions import SchedulingFailedError
from ..models import (
    BiweeklyFrequency,
    DailyFrequency,
    FrequencyRule,
    HourlyFrequency,
    MealBasedFrequency,
    MonthlyFrequency,
    TimeOfDay,
    WeeklyFrequency,
    validate_frequency,
)
from ..utils.dt_utils import (
    add_months_clamped,
    as_local,
    dt_combine_local,
    dt_now_local,
    is_even_iso_week,
    start_of_week,
)
from .notification_engine import NotificationEngine


class RecurrenceEngine:
    """Forward-looking companion to DoseEngine for a single rule.

    Args:
        rule: The frequency rule to evaluate
        meal_config: Meal times for meal-based rules (defaults when None)
        anchor_date: Biweekly fallback anchor (usually the medication's
            start date) when the rule carries none
        tz: Optional timezone override for the local calendar
    """

    def __init__(
        self,
        rule: FrequencyRule,
        meal_config: MealTimeConfiguration | None = None,
        anchor_date: date | None = None,
        tz: ZoneInfo | None = None,
    ) -> None:
        """Initialize the recurrence engine.

        Raises:
            InvalidFrequencyError: If the rule is internally inconsistent
                (including an hourly interval <= 0)
        """
        validate_frequency(rule)
        self._rule = rule
        self._meal_config = meal_config or MealTimeConfiguration()
        self._anchor_date = anchor_date
        self._tz = tz

    @property
    def rule(self) -> FrequencyRule:
        return self._rule

    def get_next_occurrence(self, after: datetime | None = None) -> datetime:
        """Return the first occurrence strictly after `after` (default: now).

        Raises:
            SchedulingFailedError: If calendar arithmetic overflows
        """
        reference = as_local(after or dt_now_local(self._tz), self._tz)
        try:
            result = self._next_after(reference)
        except (ValueError, OverflowError) as err:
            raise SchedulingFailedError(
                f"Could not compute next {self._rule.kind} occurrence after "
                f"{reference.isoformat()}: {err}"
            ) from err

        if result <= reference:
            # Guard for wall-clock folds; never hand back a past instant
            raise SchedulingFailedError(
                f"Next {self._rule.kind} occurrence {result.isoformat()} is not "
                f"after {reference.isoformat()}"
            )
        return result

    def get_occurrences(
        self, start: datetime, end: datetime, limit: int = 100
    ) -> list[datetime]:
        """Occurrences in the half-open window (start, end].

        Args:
            start: Window start (exclusive)
            end: Window end (inclusive)
            limit: Maximum occurrences to return (safety limit)
        """
        occurrences: list[datetime] = []
        end_local = as_local(end, self._tz)
        current = self.get_next_occurrence(start)
        while current <= end_local and len(occurrences) < limit:
            occurrences.append(current)
            current = self.get_next_occurrence(current)
        return occurrences

    def to_rrule_string(self) -> str:
        """Generate an RFC 5545 RRULE string for iCal export.

        Returns an empty string when the rule has no single RRULE form
        (daily times with differing minutes).
        """
        rule = self._rule
        if isinstance(rule, HourlyFrequency):
            return f"FREQ=HOURLY;INTERVAL={rule.interval_hours}"
        if isinstance(rule, DailyFrequency):
            minutes = {entry.minute for entry in rule.times}
            if len(minutes) != 1:
                return ""
            hours = ",".join(str(h) for h in sorted({entry.hour for entry in rule.times}))
            return f"FREQ=DAILY;INTERVAL=1;BYHOUR={hours};BYMINUTE={minutes.pop()}"

        triggers = NotificationEngine.derive_triggers(rule, self._meal_config)
        return triggers[0].to_rrule_string()

    # =========================================================================
    # Private: per-variant calculation
    # =========================================================================

    def _at(self, day: date, time_of_day: TimeOfDay) -> datetime:
        return dt_combine_local(day, time_of_day.hour, time_of_day.minute, self._tz)

    def _next_after(self, reference: datetime) -> datetime:
        rule = self._rule
        today = reference.date()

        if isinstance(rule, DailyFrequency):
            for entry in sorted(rule.times):
                candidate = self._at(today, entry)
                if candidate > reference:
                    return candidate
            return self._at(today + timedelta(days=1), min(rule.times))

        if isinstance(rule, HourlyFrequency):
            return reference + timedelta(hours=rule.interval_hours)

        if isinstance(rule, WeeklyFrequency):
            return self._calculate_with_rrule(
                reference, rule.weekday.python_weekday, rule.time, interval=1,
                dtstart=self._at(today, rule.time),
            )

        if isinstance(rule, BiweeklyFrequency):
            return self._calculate_biweekly(reference, rule)

        if isinstance(rule, MonthlyFrequency):
            return self._calculate_monthly(reference, rule)

        if isinstance(rule, MealBasedFrequency):
            offset = timedelta(minutes=rule.offset_minutes)
            for day in (today - timedelta(days=1), today, today + timedelta(days=1)):
                meal_time = self._meal_config.resolved_time(rule.meal, day)
                candidate = self._at(day, meal_time) + offset
                if candidate > reference:
                    return candidate
            day = today + timedelta(days=2)
            return self._at(day, self._meal_config.resolved_time(rule.meal, day)) + offset

        assert_never(rule)

    def _calculate_with_rrule(
        self,
        reference: datetime,
        python_weekday: int,
        time_of_day: TimeOfDay,
        interval: int,
        dtstart: datetime,
    ) -> datetime:
        """Next matching weekday at time_of_day strictly after reference."""
        recurrence = rrule(
            WEEKLY,
            interval=interval,
            dtstart=dtstart,
            byweekday=weekday(python_weekday),
            byhour=time_of_day.hour,
            byminute=time_of_day.minute,
            bysecond=0,
        )
        result = recurrence.after(reference, inc=False)
        if result is None:
            raise SchedulingFailedError(
                f"No weekly occurrence found after {reference.isoformat()}"
            )
        return result

    def _calculate_biweekly(
        self, reference: datetime, rule: BiweeklyFrequency
    ) -> datetime:
        anchor = rule.anchor_date or self._anchor_date
        python_weekday = rule.weekday.python_weekday

        if anchor is not None:
            # First matching weekday in the anchor's (Sunday-start) week
            week_start = start_of_week(anchor)
            first = self._at(
                week_start + timedelta(days=(python_weekday + 1) % const.DAYS_PER_WEEK),
                rule.time,
            )
            if first > reference:
                periods = (first - reference).days // 14 + 1
                first -= timedelta(weeks=2 * periods)
            return self._calculate_with_rrule(
                reference, python_weekday, rule.time, interval=2, dtstart=first
            )

        # Unanchored: every matching weekday in an even ISO week
        candidate = reference
        for _ in range(const.MAX_DATE_CALCULATION_ITERATIONS):
            candidate = self._calculate_with_rrule(
                candidate,
                python_weekday,
                rule.time,
                interval=1,
                dtstart=self._at(reference.date(), rule.time),
            )
            if is_even_iso_week(candidate.date()):
                return candidate

        const.LOGGER.warning(
            "RecurrenceEngine: Max iterations reached for biweekly rule %s", rule
        )
        raise SchedulingFailedError("No biweekly occurrence found")

    def _calculate_monthly(
        self, reference: datetime, rule: MonthlyFrequency
    ) -> datetime:
        month_start = reference.date().replace(day=1)
        # Two months ahead always suffices; the loop bounds the search
        for months in range(3):
            day = add_months_clamped(month_start, months, rule.day_of_month)
            candidate = self._at(day, rule.time)
            if candidate > reference:
                return candidate
        raise SchedulingFailedError("No monthly occurrence found")


def next_occurrence(
    rule: FrequencyRule,
    after: datetime | None = None,
    meal_config: MealTimeConfiguration | None = None,
    anchor_date: date | None = None,
) -> datetime:
    """Shorthand for RecurrenceEngine(rule, ...).get_next_occurrence(after)."""
    return RecurrenceEngine(rule, meal_config, anchor_date).get_next_occurrence(after)
