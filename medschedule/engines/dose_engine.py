"""Dose Engine - expands frequency rules into dated dose occurrences.

This engine provides stateless, pure Python functions for:
- Expanding one FrequencyRule for one medication on one date
- Expanding a whole medication list for one date or a run of dates
- Checking a medication's active window (start date + duration)

ARCHITECTURE: All functions are static methods that operate on passed-in
data. Meal times come from an explicitly passed MealTimeConfiguration; the
current aggregate lives in ScheduleManager.

Calendar policies:
- Hourly doses stop at 22:00; nothing is generated between 22:00 and the
  next day's start time.
- Biweekly fires when the weeks between the anchor's week and the target's
  week is even. The anchor is the rule's anchor_date, else the medication's
  start_date; with neither, the ISO week-of-year must be even.
- Monthly day_of_month is clamped to the last day of short months.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import assert_never
import uuid
from zoneinfo import ZoneInfo

from .. import const
from ..config import MealTimeConfiguration
from ..exceptions import SchedulingFailedError
from ..models import (
    BiweeklyFrequency,
    DailyFrequency,
    FrequencyRule,
    HourlyFrequency,
    MealBasedFrequency,
    MealRelation,
    MonthlyFrequency,
    ScheduledDose,
    Weekday,
    WeeklyFrequency,
    validate_frequency,
)
from ..type_defs import MedicationData, SchedulingFailure
from ..utils.dt_utils import (
    clamp_day_of_month,
    dt_combine_local,
    is_even_iso_week,
    weeks_between,
)
from .classifier_engine import MealRelationResolver, classify_time_slot

# Namespace for deterministic dose ids
DOSE_ID_NAMESPACE = uuid.UUID("6f1c1e0a-5d1b-4b8e-9a51-3f0f6c2d7e41")


class DoseEngine:
    """Stateless dose generation."""

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def dose_id(medication_id: str, rule_index: int, scheduled_time: datetime) -> str:
        """Deterministic id: same medication, rule and instant give the same id."""
        key = f"{medication_id}:{rule_index}:{scheduled_time.isoformat()}"
        return str(uuid.uuid5(DOSE_ID_NAMESPACE, key))

    @staticmethod
    def is_active_on(medication: MedicationData, target_date: date) -> bool:
        """Return True when the medication should produce doses on target_date.

        Medications without a start date or duration, and ongoing/as-needed
        courses, are always active.
        """
        start_date = medication.get("start_date")
        duration = medication.get("duration")
        if start_date is None:
            return True
        if target_date < start_date:
            return False
        if duration is None or duration.is_open_ended:
            return True
        end_date = duration.end_date_from(start_date)
        return end_date is None or target_date <= end_date

    @staticmethod
    def biweekly_fires_on(
        rule: BiweeklyFrequency, target_date: date, fallback_anchor: date | None = None
    ) -> bool:
        """Return True when target_date is an "on" week for the rule."""
        if Weekday.from_date(target_date) != rule.weekday:
            return False
        anchor = rule.anchor_date or fallback_anchor
        if anchor is None:
            return is_even_iso_week(target_date)
        return weeks_between(anchor, target_date) % 2 == 0

    @staticmethod
    def monthly_fires_on(rule: MonthlyFrequency, target_date: date) -> bool:
        """Return True when target_date is the (clamped) day of month."""
        return (
            clamp_day_of_month(target_date.year, target_date.month, rule.day_of_month)
            == target_date
        )

    # =========================================================================
    # Expansion
    # =========================================================================

    @staticmethod
    def _occurrences(
        rule: FrequencyRule,
        medication: MedicationData,
        target_date: date,
        meal_config: MealTimeConfiguration,
        tz: ZoneInfo | None,
    ) -> list[tuple[datetime, MealRelation | None]]:
        """Return (scheduled_time, explicit meal relation) pairs for the date."""
        if isinstance(rule, DailyFrequency):
            return [
                (dt_combine_local(target_date, entry.hour, entry.minute, tz), None)
                for entry in rule.times
            ]

        if isinstance(rule, HourlyFrequency):
            start = rule.effective_start
            current = dt_combine_local(target_date, start.hour, start.minute, tz)
            cutoff = dt_combine_local(
                target_date,
                const.HOURLY_GENERATION_CUTOFF_HOUR,
                const.HOURLY_GENERATION_CUTOFF_MINUTE,
                tz,
            )
            step = timedelta(hours=rule.interval_hours)
            results: list[tuple[datetime, MealRelation | None]] = []
            while current <= cutoff:
                results.append((current, None))
                current += step
            return results

        if isinstance(rule, WeeklyFrequency):
            if Weekday.from_date(target_date) != rule.weekday:
                return []
            return [(dt_combine_local(target_date, rule.time.hour, rule.time.minute, tz), None)]

        if isinstance(rule, BiweeklyFrequency):
            if not DoseEngine.biweekly_fires_on(
                rule, target_date, medication.get("start_date")
            ):
                return []
            return [(dt_combine_local(target_date, rule.time.hour, rule.time.minute, tz), None)]

        if isinstance(rule, MonthlyFrequency):
            if not DoseEngine.monthly_fires_on(rule, target_date):
                return []
            return [(dt_combine_local(target_date, rule.time.hour, rule.time.minute, tz), None)]

        if isinstance(rule, MealBasedFrequency):
            meal_time = meal_config.resolved_time(rule.meal, target_date)
            scheduled = dt_combine_local(
                target_date, meal_time.hour, meal_time.minute, tz
            ) + timedelta(minutes=rule.offset_minutes)
            relation = MealRelation(
                meal=rule.meal, timing=rule.timing, offset_minutes=rule.offset_minutes
            )
            return [(scheduled, relation)]

        assert_never(rule)

    @staticmethod
    def generate(
        rule: FrequencyRule,
        medication: MedicationData,
        target_date: date,
        meal_config: MealTimeConfiguration | None = None,
        rule_index: int = 0,
        tz: ZoneInfo | None = None,
    ) -> list[ScheduledDose]:
        """Expand one rule of one medication into doses on target_date.

        Args:
            rule: The frequency rule to expand
            medication: Owning medication (id, name, instructions, start date)
            target_date: Local calendar date to expand for
            meal_config: Meal times; defaults apply when None
            rule_index: Position of the rule in the medication's list (part of
                the dose id)
            tz: Optional timezone override for the local calendar

        Returns:
            Doses ordered as the rule lists them (not globally sorted)

        Raises:
            InvalidFrequencyError: If the rule is internally inconsistent
            SchedulingFailedError: If calendar arithmetic fails unexpectedly
        """
        validate_frequency(rule)

        if not DoseEngine.is_active_on(medication, target_date):
            return []

        config = meal_config or MealTimeConfiguration()
        medication_id = medication["internal_id"]
        try:
            occurrences = DoseEngine._occurrences(
                rule, medication, target_date, config, tz
            )
        except (ValueError, OverflowError) as err:
            raise SchedulingFailedError(
                f"Could not expand {rule.kind} rule for {medication_id}: {err}",
                {"medication_id": medication_id, "rule_index": str(rule_index)},
            ) from err

        doses: list[ScheduledDose] = []
        for scheduled_time, explicit_relation in occurrences:
            slot = classify_time_slot(scheduled_time)
            relation = explicit_relation or MealRelationResolver.infer(
                medication.get("instructions"), slot
            )
            doses.append(
                ScheduledDose(
                    id=DoseEngine.dose_id(medication_id, rule_index, scheduled_time),
                    medication_id=medication_id,
                    medication_name=medication["name"],
                    scheduled_time=scheduled_time,
                    time_slot=slot,
                    meal_relation=relation,
                    rule_index=rule_index,
                )
            )

        const.LOGGER.debug(
            "Generated %d %s dose(s) for %s on %s",
            len(doses),
            rule.kind,
            medication["name"],
            target_date,
        )
        return doses

    @staticmethod
    def generate_for_medications(
        medications: Iterable[MedicationData],
        target_date: date,
        meal_config: MealTimeConfiguration | None = None,
        tz: ZoneInfo | None = None,
    ) -> tuple[list[ScheduledDose], list[SchedulingFailure]]:
        """Expand every rule of every medication for one date.

        The batch is expected to be validated already (see
        DoseStateEngine.validate_medications). A SchedulingFailedError on one
        rule is logged and recorded without aborting the other rules.

        Returns:
            Tuple of (doses, failures)
        """
        doses: list[ScheduledDose] = []
        failures: list[SchedulingFailure] = []
        for medication in medications:
            for index, rule in enumerate(medication["frequencies"]):
                try:
                    doses.extend(
                        DoseEngine.generate(
                            rule, medication, target_date, meal_config, index, tz
                        )
                    )
                except SchedulingFailedError as err:
                    const.LOGGER.warning(
                        "Skipping rule %d of %s on %s: %s",
                        index,
                        medication["name"],
                        target_date,
                        err,
                    )
                    failures.append(
                        SchedulingFailure(
                            medication_id=medication["internal_id"],
                            rule_index=index,
                            error=str(err),
                        )
                    )
        return doses, failures

    @staticmethod
    def generate_multi_day(
        medications: Iterable[MedicationData],
        start_date: date,
        days: int,
        meal_config: MealTimeConfiguration | None = None,
        tz: ZoneInfo | None = None,
    ) -> dict[date, list[ScheduledDose]]:
        """Expand a medication list over `days` consecutive dates.

        Returns:
            Dict of date → doses sorted by scheduled time (dates with no doses
            map to an empty list)
        """
        medication_list = list(medications)
        schedule: dict[date, list[ScheduledDose]] = {}
        for offset in range(max(days, 0)):
            day = start_date + timedelta(days=offset)
            doses, _failures = DoseEngine.generate_for_medications(
                medication_list, day, meal_config, tz
            )
            schedule[day] = sorted(
                doses, key=lambda d: (d.scheduled_time, d.medication_id, d.id)
            )
        return schedule
