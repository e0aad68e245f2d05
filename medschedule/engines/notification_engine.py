"""Notification Engine - repeating reminder triggers from frequency rules.

This engine provides stateless, pure Python functions for:
- Deriving the minimal set of repeating triggers for one rule
- Sleep-aware ("smart") redistribution of hourly triggers
- Building NotificationRequest dicts for a delivery layer

Delivery itself (registering OS alarms, push) is the caller's job; the
engine has no visibility into delivery success.

Redistribution maps trigger i of N onto awake[min(i * (len // N), len - 1)],
keeping the trigger's minute. With sleep 22-7 (awake 7..21) and N=6 the step
is 2, so the triggers land on hours 7, 9, 11, 13, 15, 17. Global uniqueness
across medications is not attempted.
"""

from __future__ import annotations

from typing import assert_never

from .. import const
from ..config import MealTimeConfiguration
from ..models import (
    BiweeklyFrequency,
    BiweeklyTrigger,
    DailyFrequency,
    DailyTrigger,
    FrequencyRule,
    HourlyFrequency,
    MealBasedFrequency,
    MonthlyFrequency,
    MonthlyTrigger,
    NotificationSchedule,
    WeeklyFrequency,
    WeeklyTrigger,
    validate_frequency,
)
from ..type_defs import MedicationData, NotificationPreferences, NotificationRequest

MINUTES_PER_DAY = const.HOURS_PER_DAY * 60


class NotificationEngine:
    """Stateless notification trigger derivation."""

    # =========================================================================
    # Hourly helpers
    # =========================================================================

    @staticmethod
    def hourly_triggers(rule: HourlyFrequency) -> list[DailyTrigger]:
        """Enumerate (start + k*interval) mod 24 over one 24h span, deduped and sorted."""
        start = rule.effective_start
        hours = {
            (start.hour + offset) % const.HOURS_PER_DAY
            for offset in range(0, const.HOURS_PER_DAY, rule.interval_hours)
        }
        return [DailyTrigger(hour, start.minute) for hour in sorted(hours)]

    @staticmethod
    def awake_hours(sleep_start_hour: int, sleep_end_hour: int) -> list[int]:
        """Hours from sleep end up to (excluding) sleep start, wrapping midnight.

        Equal hours mean there is no sleep window.
        """
        if sleep_start_hour == sleep_end_hour:
            return list(range(const.HOURS_PER_DAY))
        hours: list[int] = []
        hour = sleep_end_hour % const.HOURS_PER_DAY
        while hour != sleep_start_hour % const.HOURS_PER_DAY:
            hours.append(hour)
            hour = (hour + 1) % const.HOURS_PER_DAY
        return hours

    @staticmethod
    def redistribute(
        schedules: list[DailyTrigger],
        sleep_start_hour: int = const.DEFAULT_SLEEP_START_HOUR,
        sleep_end_hour: int = const.DEFAULT_SLEEP_END_HOUR,
    ) -> list[DailyTrigger]:
        """Spread triggers evenly across the awake window.

        Returned unchanged when there is at most one trigger or the awake
        window has fewer hours than there are triggers.
        """
        count = len(schedules)
        awake = NotificationEngine.awake_hours(sleep_start_hour, sleep_end_hour)
        if count <= 1 or len(awake) < count:
            return list(schedules)

        step = len(awake) // count
        redistributed = [
            DailyTrigger(awake[min(index * step, len(awake) - 1)], schedule.minute)
            for index, schedule in enumerate(schedules)
        ]
        const.LOGGER.debug(
            "Redistributed %d hourly triggers into awake hours %02d-%02d",
            count,
            awake[0],
            awake[-1],
        )
        return redistributed

    # =========================================================================
    # Derivation
    # =========================================================================

    @staticmethod
    def derive_triggers(
        rule: FrequencyRule,
        meal_config: MealTimeConfiguration | None = None,
        preferences: NotificationPreferences | None = None,
    ) -> list[NotificationSchedule]:
        """Convert one frequency rule into repeating triggers.

        Raises:
            InvalidFrequencyError: If the rule is internally inconsistent
        """
        validate_frequency(rule)

        if isinstance(rule, DailyFrequency):
            return [DailyTrigger(entry.hour, entry.minute) for entry in rule.times]

        if isinstance(rule, HourlyFrequency):
            triggers = NotificationEngine.hourly_triggers(rule)
            prefs = preferences or NotificationPreferences()
            if prefs.get(const.CONF_SMART_SCHEDULING, const.DEFAULT_SMART_SCHEDULING):
                return list(
                    NotificationEngine.redistribute(
                        triggers,
                        prefs.get(const.CONF_SLEEP_START_HOUR, const.DEFAULT_SLEEP_START_HOUR),
                        prefs.get(const.CONF_SLEEP_END_HOUR, const.DEFAULT_SLEEP_END_HOUR),
                    )
                )
            return triggers

        if isinstance(rule, WeeklyFrequency):
            return [WeeklyTrigger(int(rule.weekday), rule.time.hour, rule.time.minute)]

        if isinstance(rule, BiweeklyFrequency):
            return [BiweeklyTrigger(int(rule.weekday), rule.time.hour, rule.time.minute)]

        if isinstance(rule, MonthlyFrequency):
            return [MonthlyTrigger(rule.day_of_month, rule.time.hour, rule.time.minute)]

        if isinstance(rule, MealBasedFrequency):
            config = meal_config or MealTimeConfiguration()
            meal_time = config.resolved_time(rule.meal)
            total = (
                meal_time.hour * 60 + meal_time.minute + rule.offset_minutes
            ) % MINUTES_PER_DAY
            return [DailyTrigger(total // 60, total % 60)]

        assert_never(rule)

    # =========================================================================
    # Requests
    # =========================================================================

    @staticmethod
    def notification_body(medication: MedicationData) -> str:
        """Format "Time to take your X (dosage) - instructions"."""
        body = (
            "Time to take your "
            f"{medication.get('name') or const.NOTIFICATION_DEFAULT_MEDICATION_NAME}"
        )
        if dosage := medication.get("dosage"):
            body += f" ({dosage})"
        if instructions := medication.get("instructions"):
            body += f" - {instructions}"
        return body

    @staticmethod
    def build_requests(
        medication: MedicationData,
        meal_config: MealTimeConfiguration | None = None,
        preferences: NotificationPreferences | None = None,
    ) -> list[NotificationRequest]:
        """Build every reminder request for one medication.

        All rules are derived before any request is built, so one invalid rule
        fails the whole medication.

        Raises:
            InvalidFrequencyError: If any rule is internally inconsistent
        """
        medication_id = medication["internal_id"]
        per_rule = [
            NotificationEngine.derive_triggers(rule, meal_config, preferences)
            for rule in medication["frequencies"]
        ]

        body = NotificationEngine.notification_body(medication)
        requests: list[NotificationRequest] = []
        for rule_index, triggers in enumerate(per_rule):
            for trigger_index, trigger in enumerate(triggers):
                requests.append(
                    NotificationRequest(
                        identifier=f"{medication_id}_{rule_index}_{trigger_index}",
                        medication_id=medication_id,
                        title=const.NOTIFICATION_TITLE_MEDICATION_REMINDER,
                        body=body,
                        trigger=trigger,
                        category=const.NOTIFICATION_CATEGORY_MEDICATION_REMINDER,
                    )
                )

        const.LOGGER.debug(
            "Built %d notification request(s) for %s", len(requests), medication["name"]
        )
        return requests
