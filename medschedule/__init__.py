"""medschedule - recurrence-based medication dose scheduling.

Expands medication frequency rules into dated dose occurrences, groups them
for presentation, tracks each dose through a taken/missed/skipped state
machine, and derives repeating notification triggers (with sleep-aware
redistribution for hourly rules).
"""

from .config import MealTimeConfiguration, build_notification_preferences
from .engines import (
    AggregateEngine,
    DoseEngine,
    DoseStateEngine,
    NotificationEngine,
    RecurrenceEngine,
    ScheduleAggregate,
)
from .exceptions import (
    DoseNotFoundError,
    InvalidDoseTransitionError,
    InvalidFrequencyError,
    InvalidMedicationError,
    MedicationScheduleError,
    SchedulingFailedError,
)
from .managers import ScheduleManager
from .models import (
    BiweeklyFrequency,
    DailyFrequency,
    DoseStatus,
    HourlyFrequency,
    MealBasedFrequency,
    MealTime,
    MealTiming,
    MedicationDuration,
    MonthlyFrequency,
    ScheduledDose,
    TimeOfDay,
    TimeSlot,
    Weekday,
    WeeklyFrequency,
)

__all__ = [
    "AggregateEngine",
    "BiweeklyFrequency",
    "DailyFrequency",
    "DoseEngine",
    "DoseNotFoundError",
    "DoseStateEngine",
    "DoseStatus",
    "HourlyFrequency",
    "InvalidDoseTransitionError",
    "InvalidFrequencyError",
    "InvalidMedicationError",
    "MealBasedFrequency",
    "MealTime",
    "MealTimeConfiguration",
    "MealTiming",
    "MedicationDuration",
    "MedicationScheduleError",
    "MonthlyFrequency",
    "NotificationEngine",
    "RecurrenceEngine",
    "ScheduleAggregate",
    "ScheduleManager",
    "ScheduledDose",
    "SchedulingFailedError",
    "TimeOfDay",
    "TimeSlot",
    "Weekday",
    "WeeklyFrequency",
    "build_notification_preferences",
]
