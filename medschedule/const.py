# File: const.py
"""Constants for the medschedule engine.

This file centralizes defaults, limits, error keys, and logger setup so the
engines, managers and configuration helpers share one source of truth.
"""

import logging

# Logger
LOGGER = logging.getLogger(__package__)

# ------------------------------------------------------------------------------------------------
# Meal Times
# ------------------------------------------------------------------------------------------------
MEAL_BREAKFAST = "breakfast"
MEAL_LUNCH = "lunch"
MEAL_DINNER = "dinner"
MEAL_BEDTIME = "bedtime"

# Default clock times (HH:MM) for each meal, overridable per user
DEFAULT_MEAL_TIMES: dict[str, str] = {
    MEAL_BREAKFAST: "08:00",
    MEAL_LUNCH: "13:00",
    MEAL_DINNER: "19:00",
    MEAL_BEDTIME: "22:00",
}

MEAL_TIMING_BEFORE = "before"
MEAL_TIMING_AFTER = "after"

# Offsets applied to meal-based rules (minutes relative to the meal)
MEAL_OFFSET_BEFORE_MINUTES = -15
MEAL_OFFSET_AFTER_MINUTES = 30
MEAL_OFFSET_WITH_MINUTES = 0

# Offsets emitted by the instruction-text heuristic
INFERRED_OFFSET_BEFORE_MINUTES = -30
INFERRED_OFFSET_AFTER_MINUTES = 0

# Instruction phrases recognised by the meal-relation heuristic (lowercase)
INSTRUCTION_PHRASES_AFTER_MEAL: tuple[str, ...] = ("with food", "after meal")
INSTRUCTION_PHRASES_BEFORE_MEAL: tuple[str, ...] = ("before meal", "on empty stomach")

# ------------------------------------------------------------------------------------------------
# Time Slots
# ------------------------------------------------------------------------------------------------
TIME_SLOT_MORNING = "morning"
TIME_SLOT_MIDDAY = "midday"
TIME_SLOT_AFTERNOON = "afternoon"
TIME_SLOT_EVENING = "evening"
TIME_SLOT_NIGHT = "night"

# Half-open hour ranges [start, end); night wraps midnight
TIME_SLOT_RANGES: dict[str, tuple[int, int]] = {
    TIME_SLOT_MORNING: (6, 11),
    TIME_SLOT_MIDDAY: (11, 14),
    TIME_SLOT_AFTERNOON: (14, 17),
    TIME_SLOT_EVENING: (17, 21),
    TIME_SLOT_NIGHT: (21, 6),
}

# ------------------------------------------------------------------------------------------------
# Dose Status
# ------------------------------------------------------------------------------------------------
DOSE_STATUS_SCHEDULED = "scheduled"
DOSE_STATUS_TAKEN = "taken"
DOSE_STATUS_MISSED = "missed"
DOSE_STATUS_SKIPPED = "skipped"

# ------------------------------------------------------------------------------------------------
# Frequency Defaults & Limits
# ------------------------------------------------------------------------------------------------
FREQUENCY_DAILY = "daily"
FREQUENCY_HOURLY = "hourly"
FREQUENCY_WEEKLY = "weekly"
FREQUENCY_BIWEEKLY = "biweekly"
FREQUENCY_MONTHLY = "monthly"
FREQUENCY_MEAL_BASED = "meal_based"

DEFAULT_HOURLY_START_HOUR = 8
DEFAULT_HOURLY_START_MINUTE = 0
HOURLY_INTERVAL_MIN = 1
HOURLY_INTERVAL_MAX = 24

# Hourly dose generation stops once a step passes this time of day
HOURLY_GENERATION_CUTOFF_HOUR = 22
HOURLY_GENERATION_CUTOFF_MINUTE = 0

DAY_OF_MONTH_MIN = 1
DAY_OF_MONTH_MAX = 31

HOURS_PER_DAY = 24
DAYS_PER_WEEK = 7

# Safety limit for forward-search loops in date calculations
MAX_DATE_CALCULATION_ITERATIONS = 100

# ------------------------------------------------------------------------------------------------
# Medication Duration
# ------------------------------------------------------------------------------------------------
DURATION_DAYS = "days"
DURATION_WEEKS = "weeks"
DURATION_MONTHS = "months"
DURATION_ONGOING = "ongoing"
DURATION_AS_NEEDED = "as_needed"
DURATION_UNTIL_FOLLOW_UP = "until_follow_up"

# ------------------------------------------------------------------------------------------------
# Aggregation
# ------------------------------------------------------------------------------------------------
DEFAULT_UPCOMING_WINDOW_HOURS = 2
DUE_SOON_WINDOW_MINUTES = 30

# ------------------------------------------------------------------------------------------------
# Notification Preferences
# ------------------------------------------------------------------------------------------------
CONF_SMART_SCHEDULING = "smart_scheduling"
CONF_SLEEP_START_HOUR = "sleep_start_hour"
CONF_SLEEP_END_HOUR = "sleep_end_hour"

DEFAULT_SMART_SCHEDULING = False
DEFAULT_SLEEP_START_HOUR = 22
DEFAULT_SLEEP_END_HOUR = 7

NOTIFICATION_CATEGORY_MEDICATION_REMINDER = "MEDICATION_REMINDER"
NOTIFICATION_TITLE_MEDICATION_REMINDER = "Medication Reminder"
NOTIFICATION_DEFAULT_MEDICATION_NAME = "medication"

# ------------------------------------------------------------------------------------------------
# Medication Record Keys
# ------------------------------------------------------------------------------------------------
DATA_MEDICATION_ID = "internal_id"
DATA_MEDICATION_NAME = "name"
DATA_MEDICATION_DOSAGE = "dosage"
DATA_MEDICATION_INSTRUCTIONS = "instructions"
DATA_MEDICATION_FREQUENCIES = "frequencies"
DATA_MEDICATION_DURATION = "duration"
DATA_MEDICATION_START_DATE = "start_date"

DATA_FREQUENCY_TYPE = "type"
DATA_FREQUENCY_TIMES = "times"
DATA_FREQUENCY_INTERVAL_HOURS = "interval_hours"
DATA_FREQUENCY_START_TIME = "start_time"
DATA_FREQUENCY_WEEKDAY = "weekday"
DATA_FREQUENCY_TIME = "time"
DATA_FREQUENCY_ANCHOR_DATE = "anchor_date"
DATA_FREQUENCY_DAY_OF_MONTH = "day_of_month"
DATA_FREQUENCY_MEAL = "meal"
DATA_FREQUENCY_TIMING = "timing"

DATA_DURATION_TYPE = "type"
DATA_DURATION_VALUE = "value"
DATA_DURATION_END_DATE = "end_date"

# ------------------------------------------------------------------------------------------------
# Error Keys
# ------------------------------------------------------------------------------------------------
ERROR_INVALID_MEDICATION = "invalid_medication"
ERROR_INVALID_FREQUENCY = "invalid_frequency"
ERROR_DOSE_NOT_FOUND = "dose_not_found"
ERROR_INVALID_DOSE_TRANSITION = "invalid_dose_transition"
ERROR_SCHEDULING_FAILED = "scheduling_failed"

# Detail keys carried in error placeholders
ERROR_DETAIL_EMPTY_NAME = "empty_name"
ERROR_DETAIL_NO_FREQUENCIES = "no_frequencies"
ERROR_DETAIL_EMPTY_TIMES = "empty_times"
ERROR_DETAIL_DUPLICATE_TIMES = "duplicate_times"
ERROR_DETAIL_INVALID_TIME = "invalid_time"
ERROR_DETAIL_INVALID_INTERVAL = "invalid_interval"
ERROR_DETAIL_INVALID_DAY_OF_MONTH = "invalid_day_of_month"
ERROR_DETAIL_INVALID_WEEKDAY = "invalid_weekday"
ERROR_DETAIL_UNKNOWN_TYPE = "unknown_type"
ERROR_DETAIL_INVALID_DURATION = "invalid_duration"
