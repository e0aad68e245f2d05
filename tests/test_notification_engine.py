"""Unit tests for NotificationEngine trigger derivation and redistribution."""

import pytest

from medschedule.config import MealTimeConfiguration, build_notification_preferences
from medschedule.engines.notification_engine import NotificationEngine
from medschedule.exceptions import InvalidFrequencyError
from medschedule.models import (
    BiweeklyFrequency,
    BiweeklyTrigger,
    DailyTrigger,
    HourlyFrequency,
    MealBasedFrequency,
    MealTime,
    MealTiming,
    MonthlyFrequency,
    MonthlyTrigger,
    TimeOfDay,
    Weekday,
    WeeklyFrequency,
    WeeklyTrigger,
)
from tests.helpers import daily, make_medication

SMART = build_notification_preferences({"smart_scheduling": True})


# =============================================================================
# Direct mappings
# =============================================================================


class TestDeriveTriggers:
    """One trigger per time for non-hourly rules."""

    def test_daily_one_trigger_per_time(self) -> None:
        """Each configured time becomes a daily trigger."""
        assert NotificationEngine.derive_triggers(daily("08:00", "20:15")) == [
            DailyTrigger(8, 0),
            DailyTrigger(20, 15),
        ]

    def test_weekly_biweekly_monthly(self) -> None:
        """Calendar rules map directly, weekday numbered Sunday=1."""
        at = TimeOfDay(9, 30)
        assert NotificationEngine.derive_triggers(WeeklyFrequency(Weekday.MONDAY, at)) == [
            WeeklyTrigger(2, 9, 30)
        ]
        assert NotificationEngine.derive_triggers(
            BiweeklyFrequency(Weekday.SUNDAY, at)
        ) == [BiweeklyTrigger(1, 9, 30)]
        assert NotificationEngine.derive_triggers(MonthlyFrequency(31, at)) == [
            MonthlyTrigger(31, 9, 30)
        ]

    def test_meal_based_applies_offset(self, meal_config: MealTimeConfiguration) -> None:
        """Before breakfast at 08:00 → 07:45; after bedtime 22:00 → 22:30."""
        before = MealBasedFrequency(MealTime.BREAKFAST, MealTiming.BEFORE)
        after = MealBasedFrequency(MealTime.BEDTIME, MealTiming.AFTER)

        assert NotificationEngine.derive_triggers(before, meal_config) == [DailyTrigger(7, 45)]
        assert NotificationEngine.derive_triggers(after, meal_config) == [DailyTrigger(22, 30)]

    def test_meal_offset_wraps_midnight(self) -> None:
        """Before a 00:10 meal wraps to the previous evening's clock time."""
        config = MealTimeConfiguration.from_user_input({"bedtime": "00:10"})
        rule = MealBasedFrequency(MealTime.BEDTIME, MealTiming.BEFORE)
        assert NotificationEngine.derive_triggers(rule, config) == [DailyTrigger(23, 55)]

    def test_invalid_rule(self) -> None:
        """Inconsistent rules raise before any trigger is produced."""
        with pytest.raises(InvalidFrequencyError):
            NotificationEngine.derive_triggers(HourlyFrequency(0))

    def test_repeated_daily_time_rejected(self) -> None:
        """A repeated daily time never yields duplicate triggers."""
        with pytest.raises(InvalidFrequencyError):
            NotificationEngine.derive_triggers(daily("08:00", "20:00", "08:00"))


# =============================================================================
# Hourly
# =============================================================================


class TestHourlyTriggers:
    """Hourly rules cover one 24h span."""

    def test_every_four_hours_from_eight(self) -> None:
        """(8 + 4k) mod 24 sorted ascending."""
        triggers = NotificationEngine.derive_triggers(HourlyFrequency(4, TimeOfDay(8, 0)))
        assert [t.hour for t in triggers] == [0, 4, 8, 12, 16, 20]

    def test_keeps_start_minute(self) -> None:
        """Minute comes from the start time."""
        triggers = NotificationEngine.derive_triggers(HourlyFrequency(6, TimeOfDay(9, 15)))
        assert triggers == [
            DailyTrigger(3, 15),
            DailyTrigger(9, 15),
            DailyTrigger(15, 15),
            DailyTrigger(21, 15),
        ]

    def test_non_divisor_interval_deduped(self) -> None:
        """Interval 5 yields 5 distinct hours within 24h."""
        triggers = NotificationEngine.derive_triggers(HourlyFrequency(5, TimeOfDay(8, 0)))
        assert [t.hour for t in triggers] == [4, 8, 13, 18, 23]

    def test_daily_interval(self) -> None:
        """Interval 24 is a single trigger."""
        assert NotificationEngine.derive_triggers(HourlyFrequency(24)) == [DailyTrigger(8, 0)]


# =============================================================================
# Sleep-aware redistribution
# =============================================================================


class TestRedistribution:
    """Smart scheduling spreads hourly triggers across awake hours."""

    def test_awake_hours_wrap(self) -> None:
        """Sleep 22-7 leaves 7..21 awake; sleep 1-9 wraps through midnight."""
        assert NotificationEngine.awake_hours(22, 7) == list(range(7, 22))
        assert NotificationEngine.awake_hours(1, 9) == [*range(9, 24), 0]
        assert NotificationEngine.awake_hours(5, 5) == list(range(24))

    def test_six_triggers_step_by_floor_spacing(self) -> None:
        """15 awake hours / 6 triggers = step 2; minutes are kept."""
        schedules = [DailyTrigger(hour, 20) for hour in (0, 4, 8, 12, 16, 20)]
        awake = list(range(7, 22))

        result = NotificationEngine.redistribute(schedules, 22, 7)

        assert [t.hour for t in result] == [awake[i] for i in (0, 2, 4, 6, 8, 10)]
        assert [t.hour for t in result] == [7, 9, 11, 13, 15, 17]
        assert all(t.minute == 20 for t in result)

    def test_single_trigger_unchanged(self) -> None:
        """N == 1 needs no redistribution."""
        assert NotificationEngine.redistribute([DailyTrigger(3, 0)], 22, 7) == [
            DailyTrigger(3, 0)
        ]

    def test_not_enough_awake_hours(self) -> None:
        """More triggers than awake hours → unchanged."""
        schedules = [DailyTrigger(hour, 0) for hour in range(24)]
        assert NotificationEngine.redistribute(schedules, 22, 7) == schedules

    def test_never_fires_during_sleep(self) -> None:
        """Every redistributed trigger is in the awake window."""
        preferences = build_notification_preferences(
            {"smart_scheduling": True, "sleep_start_hour": 23, "sleep_end_hour": 6}
        )
        triggers = NotificationEngine.derive_triggers(
            HourlyFrequency(3, TimeOfDay(0, 0)), preferences=preferences
        )
        assert len(triggers) == 8
        assert all(6 <= t.hour < 23 for t in triggers)

    def test_smart_scheduling_in_derivation(self) -> None:
        """derive_triggers applies redistribution only when enabled."""
        rule = HourlyFrequency(4, TimeOfDay(8, 0))
        plain = NotificationEngine.derive_triggers(rule)
        smart = NotificationEngine.derive_triggers(rule, preferences=SMART)

        assert [t.hour for t in plain] == [0, 4, 8, 12, 16, 20]
        assert [t.hour for t in smart] == [7, 9, 11, 13, 15, 17]


# =============================================================================
# Requests
# =============================================================================


class TestBuildRequests:
    """NotificationRequest building for a medication."""

    def test_body_and_metadata(self) -> None:
        """Body includes dosage and instructions; ids are stable."""
        medication = make_medication(
            "med-1",
            "Metformin",
            frequencies=[daily("08:00", "20:00"), WeeklyFrequency(Weekday.FRIDAY, TimeOfDay(9, 0))],
            dosage="850mg",
            instructions="with food",
        )

        requests = NotificationEngine.build_requests(medication)

        assert [r["identifier"] for r in requests] == ["med-1_0_0", "med-1_0_1", "med-1_1_0"]
        assert requests[0]["body"] == "Time to take your Metformin (850mg) - with food"
        assert requests[0]["title"] == "Medication Reminder"
        assert requests[0]["category"] == "MEDICATION_REMINDER"
        assert requests[2]["trigger"] == WeeklyTrigger(6, 9, 0)

    def test_body_without_optional_parts(self) -> None:
        """No dosage or instructions → bare sentence."""
        medication = make_medication(dosage=None, instructions="")
        assert (
            NotificationEngine.notification_body(medication)
            == "Time to take your Amoxicillin"
        )

    def test_all_or_nothing(self) -> None:
        """One bad rule fails the whole medication."""
        medication = make_medication(frequencies=[daily("08:00"), HourlyFrequency(0)])
        with pytest.raises(InvalidFrequencyError):
            NotificationEngine.build_requests(medication)


# =============================================================================
# Trigger export
# =============================================================================


class TestTriggerComponents:
    """date_components and RRULE export on trigger types."""

    def test_components(self) -> None:
        """Components carry exactly the matching fields."""
        assert DailyTrigger(8, 5).date_components() == {"hour": 8, "minute": 5}
        assert WeeklyTrigger(2, 8, 5).date_components() == {
            "weekday": 2,
            "hour": 8,
            "minute": 5,
        }
        assert MonthlyTrigger(15, 8, 5).date_components() == {
            "day": 15,
            "hour": 8,
            "minute": 5,
        }

    def test_rrule_strings(self) -> None:
        """Weekday numbering converts to RFC 5545 BYDAY codes."""
        assert WeeklyTrigger(1, 9, 0).to_rrule_string() == (
            "FREQ=WEEKLY;INTERVAL=1;BYDAY=SU;BYHOUR=9;BYMINUTE=0"
        )
        assert BiweeklyTrigger(2, 9, 0).to_rrule_string().startswith(
            "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO"
        )
        assert MonthlyTrigger(10, 9, 0).to_rrule_string() == (
            "FREQ=MONTHLY;INTERVAL=1;BYMONTHDAY=10;BYHOUR=9;BYMINUTE=0"
        )
