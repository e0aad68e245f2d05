"""Unit tests for schedule_engine.py RecurrenceEngine.

Covers:
- Strictly-future next occurrence for every rule variant
- Weekly round trip against derived notification triggers
- Biweekly parity agreeing with DoseEngine (anchored and ISO fallback)
- Monthly clamping (day 31 → Apr 30, Feb 28)
- get_occurrences windows and RRULE export
"""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from freezegun import freeze_time
import pytest

from medschedule.engines.dose_engine import DoseEngine
from medschedule.engines.notification_engine import NotificationEngine
from medschedule.engines.schedule_engine import RecurrenceEngine, next_occurrence
from medschedule.exceptions import InvalidFrequencyError
from medschedule.models import (
    BiweeklyFrequency,
    HourlyFrequency,
    MealBasedFrequency,
    MealTime,
    MealTiming,
    MonthlyFrequency,
    TimeOfDay,
    Weekday,
    WeeklyFrequency,
)
from medschedule.utils import dt_utils
from tests.helpers import daily, make_dt, make_medication

# =============================================================================
# Daily / Hourly
# =============================================================================


class TestDailyNextOccurrence:
    """Smallest configured time strictly after the reference."""

    @pytest.mark.parametrize(
        ("after", "expected"),
        [
            (make_dt(2024, 1, 15, 6), make_dt(2024, 1, 15, 8)),
            (make_dt(2024, 1, 15, 9), make_dt(2024, 1, 15, 20)),
            (make_dt(2024, 1, 15, 8), make_dt(2024, 1, 15, 20)),
            (make_dt(2024, 1, 15, 21), make_dt(2024, 1, 16, 8)),
            (make_dt(2024, 12, 31, 23), make_dt(2025, 1, 1, 8)),
        ],
    )
    def test_next_time(self, after: datetime, expected: datetime) -> None:
        """Unsorted times still resolve to the earliest remaining one."""
        engine = RecurrenceEngine(daily("20:00", "08:00"))
        assert engine.get_next_occurrence(after) == expected

    def test_dst_spring_forward_keeps_wall_clock(self) -> None:
        """08:00 on the DST change day is still 08:00 local."""
        berlin = ZoneInfo("Europe/Berlin")
        dt_utils.set_default_timezone(berlin)
        engine = RecurrenceEngine(daily("08:00"))

        result = engine.get_next_occurrence(datetime(2024, 3, 30, 9, 0, tzinfo=berlin))

        assert result == datetime(2024, 3, 31, 8, 0, tzinfo=berlin)
        assert result.utcoffset() == timedelta(hours=2)

    @freeze_time("2024-01-15 12:00:00", tz_offset=0)
    def test_defaults_to_now(self) -> None:
        """No reference instant uses the current time."""
        assert RecurrenceEngine(daily("08:00", "20:00")).get_next_occurrence() == make_dt(
            2024, 1, 15, 20
        )


class TestHourlyNextOccurrence:
    """Reference plus the interval."""

    def test_adds_interval(self) -> None:
        """10:17 + 4h = 14:17."""
        engine = RecurrenceEngine(HourlyFrequency(4))
        assert engine.get_next_occurrence(make_dt(2024, 1, 15, 10, 17)) == make_dt(
            2024, 1, 15, 14, 17
        )

    @pytest.mark.parametrize("interval", [0, -1])
    def test_non_positive_interval_rejected(self, interval: int) -> None:
        """Zero or negative intervals are invalid input."""
        with pytest.raises(InvalidFrequencyError):
            RecurrenceEngine(HourlyFrequency(interval))


# =============================================================================
# Weekly
# =============================================================================


class TestWeeklyNextOccurrence:
    """Next matching weekday at the configured time."""

    @pytest.mark.parametrize(
        ("after", "expected"),
        [
            (make_dt(2024, 1, 14, 12), make_dt(2024, 1, 15, 9, 30)),
            (make_dt(2024, 1, 15, 9), make_dt(2024, 1, 15, 9, 30)),
            (make_dt(2024, 1, 15, 9, 30), make_dt(2024, 1, 22, 9, 30)),
            (make_dt(2024, 1, 16, 0), make_dt(2024, 1, 22, 9, 30)),
        ],
    )
    def test_monday(self, after: datetime, expected: datetime) -> None:
        """Same-day when still ahead, otherwise roll a week."""
        engine = RecurrenceEngine(WeeklyFrequency(Weekday.MONDAY, TimeOfDay(9, 30)))
        assert engine.get_next_occurrence(after) == expected

    @pytest.mark.parametrize("weekday", list(Weekday))
    @pytest.mark.parametrize(
        "after",
        [make_dt(2024, 1, 15, 0), make_dt(2024, 2, 29, 23, 59), make_dt(2024, 12, 31, 7)],
    )
    def test_round_trip_with_triggers(self, weekday: Weekday, after: datetime) -> None:
        """Derived trigger and next occurrence agree on weekday and time."""
        rule = WeeklyFrequency(weekday, TimeOfDay(7, 45))

        (trigger,) = NotificationEngine.derive_triggers(rule)
        result = RecurrenceEngine(rule).get_next_occurrence(after)

        assert Weekday.from_date(result.date()) == trigger.weekday
        assert (result.hour, result.minute) == (trigger.hour, trigger.minute)
        assert after < result <= after + timedelta(days=7)


# =============================================================================
# Biweekly
# =============================================================================


class TestBiweeklyNextOccurrence:
    """Same parity policy as dose generation."""

    def test_anchored(self) -> None:
        """Anchor Monday Jan 1: after Jan 2 → Jan 15; after Jan 15 10:00 → Jan 29."""
        engine = RecurrenceEngine(
            BiweeklyFrequency(Weekday.MONDAY, TimeOfDay(9, 0), date(2024, 1, 1))
        )
        assert engine.get_next_occurrence(make_dt(2024, 1, 2)) == make_dt(2024, 1, 15, 9)
        assert engine.get_next_occurrence(make_dt(2024, 1, 15, 10)) == make_dt(
            2024, 1, 29, 9
        )

    def test_future_anchor(self) -> None:
        """An anchor in the future still fixes parity for earlier weeks."""
        engine = RecurrenceEngine(
            BiweeklyFrequency(Weekday.MONDAY, TimeOfDay(9, 0), date(2024, 3, 4))
        )
        assert engine.get_next_occurrence(make_dt(2024, 1, 2)) == make_dt(2024, 1, 8, 9)

    def test_engine_anchor_fallback(self) -> None:
        """The constructor anchor applies when the rule has none."""
        engine = RecurrenceEngine(
            BiweeklyFrequency(Weekday.MONDAY, TimeOfDay(9, 0)), anchor_date=date(2024, 1, 8)
        )
        assert engine.get_next_occurrence(make_dt(2024, 1, 9)) == make_dt(2024, 1, 22, 9)

    def test_unanchored_even_iso_week(self) -> None:
        """Without any anchor the next even ISO week is used."""
        engine = RecurrenceEngine(BiweeklyFrequency(Weekday.MONDAY, TimeOfDay(9, 0)))
        assert engine.get_next_occurrence(make_dt(2024, 1, 15)) == make_dt(2024, 1, 22, 9)

    @pytest.mark.parametrize("anchor", [None, date(2024, 1, 3)])
    def test_agrees_with_dose_generation(self, anchor: date | None) -> None:
        """Every occurrence falls on a date DoseEngine expands."""
        rule = BiweeklyFrequency(Weekday.WEDNESDAY, TimeOfDay(18, 0), anchor)
        medication = make_medication(frequencies=[rule])

        occurrences = RecurrenceEngine(rule).get_occurrences(
            make_dt(2024, 1, 1), make_dt(2024, 2, 27)
        )

        assert len(occurrences) == 4
        for occurrence in occurrences:
            (dose,) = DoseEngine.generate(rule, medication, occurrence.date())
            assert dose.scheduled_time == occurrence


# =============================================================================
# Monthly
# =============================================================================


class TestMonthlyNextOccurrence:
    """Day-of-month with clamping."""

    @pytest.mark.parametrize(
        ("after", "expected"),
        [
            (make_dt(2024, 4, 15), make_dt(2024, 4, 30, 10)),
            (make_dt(2024, 4, 30, 11), make_dt(2024, 5, 31, 10)),
            (make_dt(2025, 2, 1), make_dt(2025, 2, 28, 10)),
            (make_dt(2024, 2, 1), make_dt(2024, 2, 29, 10)),
            (make_dt(2024, 12, 31, 10), make_dt(2025, 1, 31, 10)),
        ],
    )
    def test_day_31(self, after: datetime, expected: datetime) -> None:
        """Day 31 clamps to short months and rolls over the year."""
        engine = RecurrenceEngine(MonthlyFrequency(31, TimeOfDay(10, 0)))
        assert engine.get_next_occurrence(after) == expected

    def test_exact_instant_rolls_to_next_month(self) -> None:
        """The reference instant itself is never returned."""
        engine = RecurrenceEngine(MonthlyFrequency(15, TimeOfDay(10, 0)))
        assert engine.get_next_occurrence(make_dt(2024, 1, 15, 10)) == make_dt(
            2024, 2, 15, 10
        )


# =============================================================================
# Meal-based
# =============================================================================


class TestMealBasedNextOccurrence:
    """Today's meal instant with offset, else tomorrow's."""

    def test_before_breakfast(self) -> None:
        """07:45 today while ahead, otherwise tomorrow."""
        engine = RecurrenceEngine(MealBasedFrequency(MealTime.BREAKFAST, MealTiming.BEFORE))

        assert engine.get_next_occurrence(make_dt(2024, 1, 15, 7)) == make_dt(
            2024, 1, 15, 7, 45
        )
        assert engine.get_next_occurrence(make_dt(2024, 1, 15, 8)) == make_dt(
            2024, 1, 16, 7, 45
        )

    def test_after_bedtime(self) -> None:
        """22:00 + 30 minutes."""
        engine = RecurrenceEngine(MealBasedFrequency(MealTime.BEDTIME, MealTiming.AFTER))
        assert engine.get_next_occurrence(make_dt(2024, 1, 15, 22, 10)) == make_dt(
            2024, 1, 15, 22, 30
        )


# =============================================================================
# Ranges and export
# =============================================================================


class TestOccurrencesAndExport:
    """get_occurrences, to_rrule_string and the module shorthand."""

    def test_occurrences_window(self) -> None:
        """(start, end] window for a daily rule."""
        engine = RecurrenceEngine(daily("08:00"))
        occurrences = engine.get_occurrences(make_dt(2024, 1, 15), make_dt(2024, 1, 17, 8))
        assert occurrences == [
            make_dt(2024, 1, 15, 8),
            make_dt(2024, 1, 16, 8),
            make_dt(2024, 1, 17, 8),
        ]

    def test_occurrences_limit(self) -> None:
        """The limit caps the result."""
        engine = RecurrenceEngine(HourlyFrequency(1))
        assert len(engine.get_occurrences(make_dt(2024, 1, 1), make_dt(2024, 2, 1), 5)) == 5

    def test_rrule_strings(self) -> None:
        """RFC 5545 export per variant."""
        assert RecurrenceEngine(daily("08:00", "20:00")).to_rrule_string() == (
            "FREQ=DAILY;INTERVAL=1;BYHOUR=8,20;BYMINUTE=0"
        )
        assert RecurrenceEngine(daily("08:00", "20:30")).to_rrule_string() == ""
        assert RecurrenceEngine(HourlyFrequency(6)).to_rrule_string() == (
            "FREQ=HOURLY;INTERVAL=6"
        )
        assert RecurrenceEngine(
            WeeklyFrequency(Weekday.FRIDAY, TimeOfDay(9, 0))
        ).to_rrule_string() == "FREQ=WEEKLY;INTERVAL=1;BYDAY=FR;BYHOUR=9;BYMINUTE=0"
        assert RecurrenceEngine(
            MonthlyFrequency(31, TimeOfDay(9, 0))
        ).to_rrule_string() == (
            "FREQ=MONTHLY;INTERVAL=1;BYMONTHDAY=31,-1;BYSETPOS=1;BYHOUR=9;BYMINUTE=0"
        )

    def test_next_occurrence_shorthand(self) -> None:
        """Module-level helper matches the engine."""
        rule = WeeklyFrequency(Weekday.SATURDAY, TimeOfDay(11, 0))
        after = make_dt(2024, 1, 15)
        assert next_occurrence(rule, after) == RecurrenceEngine(rule).get_next_occurrence(
            after
        )
