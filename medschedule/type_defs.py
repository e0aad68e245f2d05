"""Type definitions for medschedule data structures.

TypedDict is used for the dict-shaped records that cross the library
boundary: medication records supplied by the caller's store, user
preferences, aggregate metrics and notification requests handed to a
delivery layer. Internal value types live in models.py as dataclasses.

NOTE: TypedDict is STATIC ANALYSIS ONLY. Runtime validation happens in
data_builders.py and config.py.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, NotRequired, TypedDict

if TYPE_CHECKING:
    from .models import FrequencyRule, MedicationDuration, NotificationSchedule

# =============================================================================
# Type Aliases (for readability)
# =============================================================================

MedicationId = str  # UUID string
DoseId = str  # UUID string (uuid5, deterministic)
TimeString = str  # "HH:MM"
ISODate = str  # ISO 8601 date string "2024-01-15"


# =============================================================================
# Medication Records
# =============================================================================


class MedicationData(TypedDict):
    """A schedulable medication as supplied by the medication store."""

    internal_id: MedicationId
    name: str
    dosage: NotRequired[str | None]
    instructions: NotRequired[str | None]
    frequencies: list[FrequencyRule]
    duration: NotRequired[MedicationDuration | None]
    start_date: NotRequired[date | None]


class FrequencyRecord(TypedDict, total=False):
    """Raw frequency rule as stored (see data_builders.build_frequency)."""

    type: str
    times: list[TimeString]
    interval_hours: int
    start_time: TimeString | None
    weekday: int
    time: TimeString
    anchor_date: ISODate | None
    day_of_month: int
    meal: str
    timing: str | None


class DurationRecord(TypedDict, total=False):
    """Raw medication duration as stored."""

    type: str
    value: int
    end_date: ISODate


class MedicationRecord(TypedDict, total=False):
    """Raw medication record as stored (strings and plain containers only)."""

    internal_id: MedicationId
    name: str
    dosage: str | None
    instructions: str | None
    frequencies: list[FrequencyRecord]
    duration: DurationRecord | None
    start_date: ISODate | None


# =============================================================================
# Preferences
# =============================================================================


class NotificationPreferences(TypedDict, total=False):
    """User notification preferences (validated by config.py)."""

    smart_scheduling: bool
    sleep_start_hour: int
    sleep_end_hour: int


# =============================================================================
# Aggregate / Notification Output
# =============================================================================


class ScheduleMetrics(TypedDict):
    """Counts computed once per aggregate."""

    total: int
    taken: int
    overdue: int
    upcoming: int


class NotificationRequest(TypedDict):
    """One repeating reminder for the delivery layer to register."""

    identifier: str
    medication_id: MedicationId
    title: str
    body: str
    trigger: NotificationSchedule
    category: str


class SchedulingFailure(TypedDict):
    """A rule whose expansion failed without aborting the batch."""

    medication_id: MedicationId
    rule_index: int
    error: str
