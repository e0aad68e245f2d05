"""Builders for medications, rules and doses used across test modules."""

from datetime import date, datetime
from zoneinfo import ZoneInfo

from medschedule.engines.classifier_engine import classify_time_slot
from medschedule.models import (
    DailyFrequency,
    DoseStatus,
    FrequencyRule,
    MedicationDuration,
    ScheduledDose,
    TimeOfDay,
)
from medschedule.type_defs import MedicationData

UTC = ZoneInfo("UTC")


def make_dt(
    year: int, month: int, day: int, hour: int = 0, minute: int = 0
) -> datetime:
    """Create a UTC datetime for testing."""
    return datetime(year, month, day, hour, minute, tzinfo=UTC)


def daily(*times: str) -> DailyFrequency:
    """DailyFrequency from "HH:MM" strings."""
    return DailyFrequency(tuple(TimeOfDay.parse(value) for value in times))


def make_medication(
    internal_id: str = "med-1",
    name: str = "Amoxicillin",
    frequencies: list[FrequencyRule] | None = None,
    dosage: str | None = "500mg",
    instructions: str | None = None,
    duration: MedicationDuration | None = None,
    start_date: date | None = None,
) -> MedicationData:
    """Build a MedicationData; defaults to twice daily at 08:00 and 20:00."""
    return MedicationData(
        internal_id=internal_id,
        name=name,
        dosage=dosage,
        instructions=instructions,
        frequencies=(
            frequencies if frequencies is not None else [daily("08:00", "20:00")]
        ),
        duration=duration,
        start_date=start_date,
    )


def make_dose(
    dose_id: str,
    scheduled_time: datetime,
    medication_id: str = "med-1",
    status: DoseStatus = DoseStatus.SCHEDULED,
    actual_taken_time: datetime | None = None,
) -> ScheduledDose:
    """Build a ScheduledDose directly (bypassing generation)."""
    return ScheduledDose(
        id=dose_id,
        medication_id=medication_id,
        medication_name=medication_id.title(),
        scheduled_time=scheduled_time,
        time_slot=classify_time_slot(scheduled_time),
        status=status,
        actual_taken_time=actual_taken_time,
    )
