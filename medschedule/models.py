"""Value types for the medschedule engines.

Frequency rules and notification triggers are modelled as tagged unions of
frozen dataclasses. Consumers dispatch on the concrete type and finish with
`assert_never`, so adding a variant surfaces every unhandled consumer under a
type checker.

Types:
    - TimeOfDay, Weekday, MealTime, MealTiming: leaf value types
    - FrequencyRule: Daily | Hourly | Weekly | Biweekly | Monthly | MealBased
    - NotificationSchedule: Daily | Weekly | Biweekly | Monthly trigger
    - TimeSlot, MealRelation, DoseStatus, ScheduledDose: generated schedule
    - MedicationDuration: active window of a medication
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from enum import IntEnum, StrEnum
from typing import TypeAlias

from dateutil.relativedelta import relativedelta

from . import const
from .exceptions import InvalidFrequencyError
from .utils.dt_utils import parse_time_string

# =============================================================================
# Leaf value types
# =============================================================================


@dataclass(frozen=True, order=True)
class TimeOfDay:
    """A local clock time (hour 0-23, minute 0-59)."""

    hour: int
    minute: int = 0

    @classmethod
    def parse(cls, value: str) -> TimeOfDay:
        """Build from an "HH:MM" string (raises ValueError when malformed)."""
        hour, minute = parse_time_string(value)
        return cls(hour, minute)

    @property
    def is_valid(self) -> bool:
        """Return True when hour and minute are integers within range."""
        return (
            isinstance(self.hour, int)
            and isinstance(self.minute, int)
            and not isinstance(self.hour, bool)
            and not isinstance(self.minute, bool)
            and 0 <= self.hour <= 23
            and 0 <= self.minute <= 59
        )

    def to_time(self) -> time:
        """Return the equivalent `datetime.time`."""
        return time(self.hour, self.minute)

    def __str__(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"


class Weekday(IntEnum):
    """Day of week numbered 1-7 with Sunday=1."""

    SUNDAY = 1
    MONDAY = 2
    TUESDAY = 3
    WEDNESDAY = 4
    THURSDAY = 5
    FRIDAY = 6
    SATURDAY = 7

    @classmethod
    def from_date(cls, day: date) -> Weekday:
        """Return the weekday of a date (Python Monday=0 → Monday=2)."""
        return cls((day.weekday() + 1) % 7 + 1)

    @property
    def python_weekday(self) -> int:
        """Index used by `date.weekday()` and dateutil (0=Mon, 6=Sun)."""
        return (self.value - 2) % 7

    @property
    def rrule_code(self) -> str:
        """Two-letter RFC 5545 BYDAY code."""
        return ("MO", "TU", "WE", "TH", "FR", "SA", "SU")[self.python_weekday]

    @property
    def display_name(self) -> str:
        return self.name.capitalize()


class MealTime(StrEnum):
    """Meals a dose can be scheduled against."""

    BREAKFAST = const.MEAL_BREAKFAST
    LUNCH = const.MEAL_LUNCH
    DINNER = const.MEAL_DINNER
    BEDTIME = const.MEAL_BEDTIME

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class MealTiming(StrEnum):
    """Timing of a dose relative to its meal."""

    BEFORE = const.MEAL_TIMING_BEFORE
    AFTER = const.MEAL_TIMING_AFTER

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


def meal_offset_minutes(timing: MealTiming | None) -> int:
    """Fixed offset for meal-based rules: before -15, after +30, with 0."""
    if timing is MealTiming.BEFORE:
        return const.MEAL_OFFSET_BEFORE_MINUTES
    if timing is MealTiming.AFTER:
        return const.MEAL_OFFSET_AFTER_MINUTES
    return const.MEAL_OFFSET_WITH_MINUTES


# =============================================================================
# Frequency rules
# =============================================================================


def _require_valid_time(value: TimeOfDay, field_name: str) -> None:
    if not isinstance(value, TimeOfDay) or not value.is_valid:
        raise InvalidFrequencyError(
            f"Invalid {field_name}: {value!r}",
            {"detail": const.ERROR_DETAIL_INVALID_TIME, "field": field_name},
        )


def _require_valid_weekday(value: Weekday) -> None:
    if not isinstance(value, Weekday):
        raise InvalidFrequencyError(
            f"Invalid weekday: {value!r}",
            {"detail": const.ERROR_DETAIL_INVALID_WEEKDAY},
        )


@dataclass(frozen=True)
class DailyFrequency:
    """Every day at each of the listed times."""

    times: tuple[TimeOfDay, ...]

    kind = const.FREQUENCY_DAILY

    def validate(self) -> None:
        if not self.times:
            raise InvalidFrequencyError(
                "Daily frequency requires at least one time",
                {"detail": const.ERROR_DETAIL_EMPTY_TIMES},
            )
        for entry in self.times:
            _require_valid_time(entry, "times")
        if len(set(self.times)) != len(self.times):
            raise InvalidFrequencyError(
                "Daily frequency times must be distinct",
                {"detail": const.ERROR_DETAIL_DUPLICATE_TIMES, "field": "times"},
            )

    @property
    def display_text(self) -> str:
        if len(self.times) == 1:
            return "Once daily"
        return f"{len(self.times)} times daily"


@dataclass(frozen=True)
class HourlyFrequency:
    """Every `interval_hours` hours from `start_time` (default 08:00)."""

    interval_hours: int
    start_time: TimeOfDay | None = None

    kind = const.FREQUENCY_HOURLY

    @property
    def effective_start(self) -> TimeOfDay:
        return self.start_time or TimeOfDay(
            const.DEFAULT_HOURLY_START_HOUR, const.DEFAULT_HOURLY_START_MINUTE
        )

    def validate(self) -> None:
        interval = self.interval_hours
        if (
            not isinstance(interval, int)
            or isinstance(interval, bool)
            or not const.HOURLY_INTERVAL_MIN <= interval <= const.HOURLY_INTERVAL_MAX
        ):
            raise InvalidFrequencyError(
                f"Hourly interval must be {const.HOURLY_INTERVAL_MIN}-"
                f"{const.HOURLY_INTERVAL_MAX}, got {interval!r}",
                {"detail": const.ERROR_DETAIL_INVALID_INTERVAL},
            )
        if self.start_time is not None:
            _require_valid_time(self.start_time, "start_time")

    @property
    def display_text(self) -> str:
        suffix = "" if self.interval_hours == 1 else "s"
        return f"Every {self.interval_hours} hour{suffix}"


@dataclass(frozen=True)
class WeeklyFrequency:
    """Once a week on `weekday` at `time`."""

    weekday: Weekday
    time: TimeOfDay

    kind = const.FREQUENCY_WEEKLY

    def validate(self) -> None:
        _require_valid_weekday(self.weekday)
        _require_valid_time(self.time, "time")

    @property
    def display_text(self) -> str:
        return "Weekly"


@dataclass(frozen=True)
class BiweeklyFrequency:
    """Every second `weekday` at `time`.

    `anchor_date` pins which weeks fire; without it the medication's start
    date is used, and failing that the ISO week-of-year must be even.
    """

    weekday: Weekday
    time: TimeOfDay
    anchor_date: date | None = None

    kind = const.FREQUENCY_BIWEEKLY

    def validate(self) -> None:
        _require_valid_weekday(self.weekday)
        _require_valid_time(self.time, "time")

    @property
    def display_text(self) -> str:
        return "Every 2 weeks"


@dataclass(frozen=True)
class MonthlyFrequency:
    """Once a month on `day_of_month` (clamped to short months) at `time`."""

    day_of_month: int
    time: TimeOfDay

    kind = const.FREQUENCY_MONTHLY

    def validate(self) -> None:
        day = self.day_of_month
        if (
            not isinstance(day, int)
            or isinstance(day, bool)
            or not const.DAY_OF_MONTH_MIN <= day <= const.DAY_OF_MONTH_MAX
        ):
            raise InvalidFrequencyError(
                f"Day of month must be {const.DAY_OF_MONTH_MIN}-"
                f"{const.DAY_OF_MONTH_MAX}, got {day!r}",
                {"detail": const.ERROR_DETAIL_INVALID_DAY_OF_MONTH},
            )
        _require_valid_time(self.time, "time")

    @property
    def display_text(self) -> str:
        return "Monthly"


@dataclass(frozen=True)
class MealBasedFrequency:
    """Relative to a meal; `timing=None` means with the meal."""

    meal: MealTime
    timing: MealTiming | None = None

    kind = const.FREQUENCY_MEAL_BASED

    @property
    def offset_minutes(self) -> int:
        return meal_offset_minutes(self.timing)

    def validate(self) -> None:
        if not isinstance(self.meal, MealTime):
            raise InvalidFrequencyError(
                f"Invalid meal: {self.meal!r}",
                {"detail": const.ERROR_DETAIL_UNKNOWN_TYPE, "field": "meal"},
            )
        if self.timing is not None and not isinstance(self.timing, MealTiming):
            raise InvalidFrequencyError(
                f"Invalid meal timing: {self.timing!r}",
                {"detail": const.ERROR_DETAIL_UNKNOWN_TYPE, "field": "timing"},
            )

    @property
    def display_text(self) -> str:
        if self.timing is None:
            return f"With {self.meal.display_name}"
        return f"{self.timing.display_name} {self.meal.display_name}"


FrequencyRule: TypeAlias = (
    DailyFrequency
    | HourlyFrequency
    | WeeklyFrequency
    | BiweeklyFrequency
    | MonthlyFrequency
    | MealBasedFrequency
)

FREQUENCY_RULE_TYPES: tuple[type, ...] = (
    DailyFrequency,
    HourlyFrequency,
    WeeklyFrequency,
    BiweeklyFrequency,
    MonthlyFrequency,
    MealBasedFrequency,
)


def validate_frequency(rule: object) -> None:
    """Validate any frequency rule, rejecting objects that are not one."""
    if not isinstance(rule, FREQUENCY_RULE_TYPES):
        raise InvalidFrequencyError(
            f"Unknown frequency rule: {rule!r}",
            {"detail": const.ERROR_DETAIL_UNKNOWN_TYPE},
        )
    rule.validate()


# =============================================================================
# Notification triggers
# =============================================================================


@dataclass(frozen=True, order=True)
class DailyTrigger:
    """Repeats every day at hour:minute."""

    hour: int
    minute: int

    def date_components(self) -> dict[str, int]:
        return {"hour": self.hour, "minute": self.minute}

    def to_rrule_string(self) -> str:
        return f"FREQ=DAILY;INTERVAL=1;BYHOUR={self.hour};BYMINUTE={self.minute}"


@dataclass(frozen=True, order=True)
class WeeklyTrigger:
    """Repeats every week on weekday (Sunday=1) at hour:minute."""

    weekday: int
    hour: int
    minute: int

    def date_components(self) -> dict[str, int]:
        return {"weekday": self.weekday, "hour": self.hour, "minute": self.minute}

    def to_rrule_string(self) -> str:
        byday = Weekday(self.weekday).rrule_code
        return (
            f"FREQ=WEEKLY;INTERVAL=1;BYDAY={byday};"
            f"BYHOUR={self.hour};BYMINUTE={self.minute}"
        )


@dataclass(frozen=True, order=True)
class BiweeklyTrigger:
    """Repeats every second week on weekday (Sunday=1) at hour:minute."""

    weekday: int
    hour: int
    minute: int

    def date_components(self) -> dict[str, int]:
        return {
            "weekday": self.weekday,
            "hour": self.hour,
            "minute": self.minute,
            "week_interval": 2,
        }

    def to_rrule_string(self) -> str:
        byday = Weekday(self.weekday).rrule_code
        return (
            f"FREQ=WEEKLY;INTERVAL=2;BYDAY={byday};"
            f"BYHOUR={self.hour};BYMINUTE={self.minute}"
        )


@dataclass(frozen=True, order=True)
class MonthlyTrigger:
    """Repeats every month on `day` at hour:minute."""

    day: int
    hour: int
    minute: int

    def date_components(self) -> dict[str, int]:
        return {"day": self.day, "hour": self.hour, "minute": self.minute}

    def to_rrule_string(self) -> str:
        # Negative BYMONTHDAY fallback keeps day 29-31 firing in short months
        if self.day > 28:
            bymonthday = f"{self.day},-1"
            return (
                f"FREQ=MONTHLY;INTERVAL=1;BYMONTHDAY={bymonthday};BYSETPOS=1;"
                f"BYHOUR={self.hour};BYMINUTE={self.minute}"
            )
        return (
            f"FREQ=MONTHLY;INTERVAL=1;BYMONTHDAY={self.day};"
            f"BYHOUR={self.hour};BYMINUTE={self.minute}"
        )


NotificationSchedule: TypeAlias = (
    DailyTrigger | WeeklyTrigger | BiweeklyTrigger | MonthlyTrigger
)


# =============================================================================
# Generated schedule types
# =============================================================================


class TimeSlot(StrEnum):
    """Coarse period-of-day bucket used for grouping doses."""

    MORNING = const.TIME_SLOT_MORNING
    MIDDAY = const.TIME_SLOT_MIDDAY
    AFTERNOON = const.TIME_SLOT_AFTERNOON
    EVENING = const.TIME_SLOT_EVENING
    NIGHT = const.TIME_SLOT_NIGHT

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def time_range(self) -> tuple[int, int]:
        """Half-open (start_hour, end_hour); night wraps midnight."""
        return const.TIME_SLOT_RANGES[self.value]


class DoseStatus(StrEnum):
    """Lifecycle state of a dose occurrence."""

    SCHEDULED = const.DOSE_STATUS_SCHEDULED
    TAKEN = const.DOSE_STATUS_TAKEN
    MISSED = const.DOSE_STATUS_MISSED
    SKIPPED = const.DOSE_STATUS_SKIPPED

    @property
    def is_completed(self) -> bool:
        """Taken and skipped doses need no further action."""
        return self in (DoseStatus.TAKEN, DoseStatus.SKIPPED)

    @property
    def requires_attention(self) -> bool:
        return self is DoseStatus.MISSED


@dataclass(frozen=True)
class MealRelation:
    """Timing of a dose relative to a meal."""

    meal: MealTime
    timing: MealTiming | None
    offset_minutes: int

    @property
    def short_display_text(self) -> str:
        prefix = self.timing.display_name if self.timing else "With"
        return f"{prefix} {self.meal.display_name}"


@dataclass(frozen=True)
class ScheduledDose:
    """One concrete, dated occurrence of a medication dose.

    Immutable; status changes produce a new instance through DoseStateEngine.
    """

    id: str
    medication_id: str
    medication_name: str
    scheduled_time: datetime
    time_slot: TimeSlot
    meal_relation: MealRelation | None = None
    status: DoseStatus = DoseStatus.SCHEDULED
    actual_taken_time: datetime | None = None
    rule_index: int = field(default=0, compare=False)

    def is_overdue(self, now: datetime) -> bool:
        """Overdue is derived, never stored: still scheduled and in the past."""
        return self.status is DoseStatus.SCHEDULED and self.scheduled_time < now

    def time_until_due(self, now: datetime) -> timedelta:
        """Time remaining until the dose (negative when in the past)."""
        return self.scheduled_time - now

    def is_due_soon(self, now: datetime) -> bool:
        """Scheduled dose falling within the next 30 minutes."""
        remaining = self.time_until_due(now)
        return (
            self.status is DoseStatus.SCHEDULED
            and timedelta(0) < remaining <= timedelta(minutes=const.DUE_SOON_WINDOW_MINUTES)
        )


# =============================================================================
# Medication duration
# =============================================================================


@dataclass(frozen=True)
class MedicationDuration:
    """How long a medication stays active after its start date."""

    kind: str
    value: int | None = None
    end_date: date | None = None

    @classmethod
    def days(cls, count: int) -> MedicationDuration:
        return cls(const.DURATION_DAYS, count)

    @classmethod
    def weeks(cls, count: int) -> MedicationDuration:
        return cls(const.DURATION_WEEKS, count)

    @classmethod
    def months(cls, count: int) -> MedicationDuration:
        return cls(const.DURATION_MONTHS, count)

    @classmethod
    def ongoing(cls) -> MedicationDuration:
        return cls(const.DURATION_ONGOING)

    @classmethod
    def as_needed(cls) -> MedicationDuration:
        return cls(const.DURATION_AS_NEEDED)

    @classmethod
    def until_follow_up(cls, end_date: date) -> MedicationDuration:
        return cls(const.DURATION_UNTIL_FOLLOW_UP, end_date=end_date)

    @property
    def is_open_ended(self) -> bool:
        return self.kind in (const.DURATION_ONGOING, const.DURATION_AS_NEEDED)

    def end_date_from(self, start: date) -> date | None:
        """Last active date for a course starting on `start` (None if open-ended)."""
        if self.kind == const.DURATION_DAYS and self.value is not None:
            return start + timedelta(days=self.value)
        if self.kind == const.DURATION_WEEKS and self.value is not None:
            return start + timedelta(weeks=self.value)
        if self.kind == const.DURATION_MONTHS and self.value is not None:
            return start + relativedelta(months=self.value)
        if self.kind == const.DURATION_UNTIL_FOLLOW_UP:
            return self.end_date
        return None

    @property
    def display_text(self) -> str:
        if self.kind in (const.DURATION_DAYS, const.DURATION_WEEKS, const.DURATION_MONTHS):
            unit = self.kind[:-1] if self.value == 1 else self.kind
            return f"{self.value} {unit}"
        if self.kind == const.DURATION_ONGOING:
            return "Ongoing"
        if self.kind == const.DURATION_AS_NEEDED:
            return "As needed"
        if self.end_date is not None:
            return f"Until {self.end_date.isoformat()}"
        return "Until follow-up"
