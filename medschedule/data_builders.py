"""Medication record builders.

This module is the single place where stored medication records (plain dicts
of strings, ints and lists) are converted to and from the typed models the
engines consume.

### Build Functions
- `build_frequency()` / `build_duration()` - parse one stored sub-record
- `build_medication()` - full record, create or update mode

### Serialize Functions
- `frequency_to_record()` / `duration_to_record()` / `medication_to_record()`

Build functions raise the same errors the engines raise
(InvalidMedicationError / InvalidFrequencyError) so callers handle one
error hierarchy.
"""

from __future__ import annotations

from datetime import date
from typing import Any, assert_never
import uuid

from . import const
from .exceptions import InvalidFrequencyError, InvalidMedicationError
from .models import (
    BiweeklyFrequency,
    DailyFrequency,
    FrequencyRule,
    HourlyFrequency,
    MealBasedFrequency,
    MealTime,
    MealTiming,
    MedicationDuration,
    MonthlyFrequency,
    TimeOfDay,
    Weekday,
    WeeklyFrequency,
)
from .type_defs import (
    DurationRecord,
    FrequencyRecord,
    MedicationData,
    MedicationRecord,
)

_DURATION_COUNT_TYPES = (const.DURATION_DAYS, const.DURATION_WEEKS, const.DURATION_MONTHS)

# ==============================================================================
# HELPER FUNCTIONS FOR FIELD NORMALIZATION
# ==============================================================================


def _normalize_list_field(value: Any) -> list[Any]:
    """Normalize a field that should be a list.

    Prevents bugs like list("08:00") → ['0', '8', ':', '0', '0']
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        return [value] if value else []
    return list(value) if value else []


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _invalid(message: str, detail: str, **placeholders: str) -> InvalidFrequencyError:
    return InvalidFrequencyError(message, {"detail": detail, **placeholders})


def _parse_time(record: FrequencyRecord | dict[str, Any], key: str) -> TimeOfDay:
    value = record.get(key)
    try:
        return TimeOfDay.parse(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as err:
        raise _invalid(
            f"Invalid {key}: {value!r}", const.ERROR_DETAIL_INVALID_TIME, field=key
        ) from err


def _parse_weekday(record: FrequencyRecord | dict[str, Any]) -> Weekday:
    value = record.get(const.DATA_FREQUENCY_WEEKDAY)
    try:
        return Weekday(int(value))  # type: ignore[arg-type]
    except (TypeError, ValueError) as err:
        raise _invalid(
            f"Invalid weekday: {value!r}", const.ERROR_DETAIL_INVALID_WEEKDAY
        ) from err


# ==============================================================================
# FREQUENCY RULES
# ==============================================================================


def build_frequency(record: FrequencyRecord | dict[str, Any]) -> FrequencyRule:
    """Build a validated frequency rule from its stored form.

    Examples:
        build_frequency({"type": "daily", "times": ["08:00", "20:00"]})
        build_frequency({"type": "hourly", "interval_hours": 4})
        build_frequency({"type": "meal_based", "meal": "breakfast", "timing": "before"})

    Raises:
        InvalidFrequencyError: Unknown type, missing field or out-of-range value
    """
    kind = record.get(const.DATA_FREQUENCY_TYPE)
    rule: FrequencyRule

    if kind == const.FREQUENCY_DAILY:
        times = _normalize_list_field(record.get(const.DATA_FREQUENCY_TIMES))
        parsed: list[TimeOfDay] = []
        for value in times:
            try:
                parsed.append(TimeOfDay.parse(value))
            except (TypeError, ValueError) as err:
                raise _invalid(
                    f"Invalid time: {value!r}",
                    const.ERROR_DETAIL_INVALID_TIME,
                    field=const.DATA_FREQUENCY_TIMES,
                ) from err
        rule = DailyFrequency(tuple(parsed))

    elif kind == const.FREQUENCY_HOURLY:
        interval = record.get(const.DATA_FREQUENCY_INTERVAL_HOURS)
        start_time = (
            _parse_time(record, const.DATA_FREQUENCY_START_TIME)
            if record.get(const.DATA_FREQUENCY_START_TIME)
            else None
        )
        rule = HourlyFrequency(interval, start_time)  # type: ignore[arg-type]

    elif kind == const.FREQUENCY_WEEKLY:
        rule = WeeklyFrequency(
            _parse_weekday(record), _parse_time(record, const.DATA_FREQUENCY_TIME)
        )

    elif kind == const.FREQUENCY_BIWEEKLY:
        try:
            anchor = _parse_date(record.get(const.DATA_FREQUENCY_ANCHOR_DATE))
        except ValueError as err:
            raise _invalid(
                "Invalid anchor date",
                const.ERROR_DETAIL_INVALID_TIME,
                field=const.DATA_FREQUENCY_ANCHOR_DATE,
            ) from err
        rule = BiweeklyFrequency(
            _parse_weekday(record),
            _parse_time(record, const.DATA_FREQUENCY_TIME),
            anchor,
        )

    elif kind == const.FREQUENCY_MONTHLY:
        rule = MonthlyFrequency(
            record.get(const.DATA_FREQUENCY_DAY_OF_MONTH),  # type: ignore[arg-type]
            _parse_time(record, const.DATA_FREQUENCY_TIME),
        )

    elif kind == const.FREQUENCY_MEAL_BASED:
        try:
            meal = MealTime(record.get(const.DATA_FREQUENCY_MEAL))
            timing_value = record.get(const.DATA_FREQUENCY_TIMING)
            timing = MealTiming(timing_value) if timing_value else None
        except ValueError as err:
            raise _invalid(
                "Invalid meal or meal timing", const.ERROR_DETAIL_UNKNOWN_TYPE
            ) from err
        rule = MealBasedFrequency(meal, timing)

    else:
        raise _invalid(
            f"Unknown frequency type: {kind!r}", const.ERROR_DETAIL_UNKNOWN_TYPE
        )

    rule.validate()
    return rule


def frequency_to_record(rule: FrequencyRule) -> FrequencyRecord:
    """Serialize a frequency rule to its stored form."""
    if isinstance(rule, DailyFrequency):
        return FrequencyRecord(
            type=const.FREQUENCY_DAILY, times=[str(entry) for entry in rule.times]
        )
    if isinstance(rule, HourlyFrequency):
        return FrequencyRecord(
            type=const.FREQUENCY_HOURLY,
            interval_hours=rule.interval_hours,
            start_time=str(rule.start_time) if rule.start_time else None,
        )
    if isinstance(rule, WeeklyFrequency):
        return FrequencyRecord(
            type=const.FREQUENCY_WEEKLY, weekday=int(rule.weekday), time=str(rule.time)
        )
    if isinstance(rule, BiweeklyFrequency):
        return FrequencyRecord(
            type=const.FREQUENCY_BIWEEKLY,
            weekday=int(rule.weekday),
            time=str(rule.time),
            anchor_date=rule.anchor_date.isoformat() if rule.anchor_date else None,
        )
    if isinstance(rule, MonthlyFrequency):
        return FrequencyRecord(
            type=const.FREQUENCY_MONTHLY,
            day_of_month=rule.day_of_month,
            time=str(rule.time),
        )
    if isinstance(rule, MealBasedFrequency):
        return FrequencyRecord(
            type=const.FREQUENCY_MEAL_BASED,
            meal=rule.meal.value,
            timing=rule.timing.value if rule.timing else None,
        )
    assert_never(rule)


# ==============================================================================
# DURATION
# ==============================================================================


def build_duration(record: DurationRecord | dict[str, Any] | None) -> MedicationDuration | None:
    """Build a medication duration from its stored form (None passes through).

    Raises:
        InvalidMedicationError: Unknown type or missing/negative count
    """
    if not record:
        return None

    kind = record.get(const.DATA_DURATION_TYPE)
    if kind in _DURATION_COUNT_TYPES:
        value = record.get(const.DATA_DURATION_VALUE)
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise InvalidMedicationError(
                f"Invalid duration value: {value!r}",
                {"detail": const.ERROR_DETAIL_INVALID_DURATION},
            )
        return MedicationDuration(kind, value)
    if kind in (const.DURATION_ONGOING, const.DURATION_AS_NEEDED):
        return MedicationDuration(kind)
    if kind == const.DURATION_UNTIL_FOLLOW_UP:
        try:
            end_date = _parse_date(record.get(const.DATA_DURATION_END_DATE))
        except ValueError as err:
            raise InvalidMedicationError(
                "Invalid follow-up date",
                {"detail": const.ERROR_DETAIL_INVALID_DURATION},
            ) from err
        return MedicationDuration(kind, end_date=end_date)

    raise InvalidMedicationError(
        f"Unknown duration type: {kind!r}",
        {"detail": const.ERROR_DETAIL_INVALID_DURATION},
    )


def duration_to_record(duration: MedicationDuration | None) -> DurationRecord | None:
    """Serialize a medication duration to its stored form."""
    if duration is None:
        return None
    record = DurationRecord(type=duration.kind)
    if duration.value is not None:
        record["value"] = duration.value
    if duration.end_date is not None:
        record["end_date"] = duration.end_date.isoformat()
    return record


# ==============================================================================
# MEDICATIONS
# ==============================================================================


def build_medication(
    user_input: MedicationRecord | dict[str, Any],
    existing: MedicationData | None = None,
) -> MedicationData:
    """Build medication data for create or update operations.

    One function handles both create (existing=None) and update
    (existing=MedicationData). Fields missing from `user_input` fall back to
    the existing record, then to defaults.

    Args:
        user_input: Stored-form data with DATA_MEDICATION_* keys
        existing: None for create, existing MedicationData for update

    Returns:
        Complete MedicationData ready for the engines

    Raises:
        InvalidMedicationError: If the name is empty/whitespace
        InvalidFrequencyError: If any frequency record is malformed
    """
    is_create = existing is None

    def get_field(data_key: str, default: Any) -> Any:
        """Get field value: user_input > existing > default."""
        if data_key in user_input:
            return user_input[data_key]  # type: ignore[literal-required]
        if existing is not None:
            return existing.get(data_key, default)
        return default

    raw_name = get_field(const.DATA_MEDICATION_NAME, "")
    name = str(raw_name).strip() if raw_name else ""
    if is_create and not name:
        raise InvalidMedicationError(
            "Medication name is required", {"detail": const.ERROR_DETAIL_EMPTY_NAME}
        )
    if const.DATA_MEDICATION_NAME in user_input and not name:
        raise InvalidMedicationError(
            "Medication name is required", {"detail": const.ERROR_DETAIL_EMPTY_NAME}
        )

    if const.DATA_MEDICATION_FREQUENCIES in user_input:
        frequencies = [
            build_frequency(record)
            for record in _normalize_list_field(
                user_input[const.DATA_MEDICATION_FREQUENCIES]  # type: ignore[literal-required]
            )
        ]
    elif existing is not None:
        frequencies = list(existing[const.DATA_MEDICATION_FREQUENCIES])  # type: ignore[literal-required]
    else:
        frequencies = []

    if const.DATA_MEDICATION_DURATION in user_input:
        duration = build_duration(user_input[const.DATA_MEDICATION_DURATION])  # type: ignore[literal-required]
    else:
        duration = existing.get(const.DATA_MEDICATION_DURATION) if existing else None  # type: ignore[assignment]

    try:
        start_date = _parse_date(get_field(const.DATA_MEDICATION_START_DATE, None))
    except ValueError as err:
        raise InvalidMedicationError(
            "Invalid start date", {"detail": const.ERROR_DETAIL_INVALID_DURATION}
        ) from err

    if is_create or existing is None:
        internal_id = str(get_field(const.DATA_MEDICATION_ID, "") or uuid.uuid4())
    else:
        internal_id = existing.get(const.DATA_MEDICATION_ID, str(uuid.uuid4()))  # type: ignore[assignment]

    return MedicationData(
        internal_id=internal_id,
        name=name,
        dosage=get_field(const.DATA_MEDICATION_DOSAGE, None),
        instructions=get_field(const.DATA_MEDICATION_INSTRUCTIONS, None),
        frequencies=frequencies,
        duration=duration,
        start_date=start_date,
    )


def medication_to_record(medication: MedicationData) -> MedicationRecord:
    """Serialize medication data to its stored form."""
    start_date = medication.get("start_date")
    return MedicationRecord(
        internal_id=medication["internal_id"],
        name=medication["name"],
        dosage=medication.get("dosage"),
        instructions=medication.get("instructions"),
        frequencies=[frequency_to_record(rule) for rule in medication["frequencies"]],
        duration=duration_to_record(medication.get("duration")),
        start_date=start_date.isoformat() if start_date else None,
    )
