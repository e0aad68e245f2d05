"""Meal-time configuration and notification preferences.

User overrides arrive as plain dicts (e.g. from a settings screen) and are
validated with voluptuous before the engines consume them. The engines only
ever read a resolved clock time; they never write configuration back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

import voluptuous as vol

from . import const
from .models import MealTime, TimeOfDay
from .type_defs import NotificationPreferences
from .utils.dt_utils import parse_time_string

# =============================================================================
# INPUT VALIDATION HELPERS
# =============================================================================


def validate_time_string(value: Any) -> str:
    """Validate an "HH:MM" clock time.

    Raises:
        vol.Invalid: If the value is not a valid HH:MM string
    """
    try:
        parse_time_string(value)
    except (TypeError, ValueError) as err:
        raise vol.Invalid(f"Invalid time: {value!r}. Expected format: 'HH:MM'") from err
    return value


_HOUR_OF_DAY = vol.All(vol.Coerce(int), vol.Range(min=0, max=const.HOURS_PER_DAY - 1))

MEAL_TIMES_SCHEMA = vol.Schema(
    {
        vol.Optional(const.MEAL_BREAKFAST): validate_time_string,
        vol.Optional(const.MEAL_LUNCH): validate_time_string,
        vol.Optional(const.MEAL_DINNER): validate_time_string,
        vol.Optional(const.MEAL_BEDTIME): validate_time_string,
    }
)

NOTIFICATION_PREFERENCES_SCHEMA = vol.Schema(
    {
        vol.Optional(
            const.CONF_SMART_SCHEDULING, default=const.DEFAULT_SMART_SCHEDULING
        ): vol.Boolean(),
        vol.Optional(
            const.CONF_SLEEP_START_HOUR, default=const.DEFAULT_SLEEP_START_HOUR
        ): _HOUR_OF_DAY,
        vol.Optional(
            const.CONF_SLEEP_END_HOUR, default=const.DEFAULT_SLEEP_END_HOUR
        ): _HOUR_OF_DAY,
    }
)


# =============================================================================
# MEAL TIME CONFIGURATION
# =============================================================================


def _default_meal_times() -> dict[MealTime, TimeOfDay]:
    return {
        MealTime(meal): TimeOfDay.parse(value)
        for meal, value in const.DEFAULT_MEAL_TIMES.items()
    }


@dataclass(frozen=True)
class MealTimeConfiguration:
    """Resolved clock time for each meal.

    Instances are immutable and passed explicitly into every engine call that
    needs meal times.
    """

    times: dict[MealTime, TimeOfDay] = field(default_factory=_default_meal_times)

    @classmethod
    def from_user_input(cls, user_input: dict[str, Any] | None) -> MealTimeConfiguration:
        """Build a configuration from user overrides layered over the defaults.

        Raises:
            vol.Invalid: If any override is not a known meal or HH:MM string
        """
        overrides = MEAL_TIMES_SCHEMA(user_input or {})
        times = _default_meal_times()
        for meal, value in overrides.items():
            times[MealTime(meal)] = TimeOfDay.parse(value)
        return cls(times)

    def resolved_time(self, meal: MealTime, day: date | None = None) -> TimeOfDay:
        """Return the clock time of `meal`.

        `day` is accepted so per-date overrides can be layered in later;
        the current configuration resolves the same time every day.
        """
        if meal in self.times:
            return self.times[meal]
        return TimeOfDay.parse(const.DEFAULT_MEAL_TIMES[meal.value])

    def as_dict(self) -> dict[str, str]:
        """Return the configuration in its stored "HH:MM" form."""
        return {meal.value: str(time_of_day) for meal, time_of_day in self.times.items()}


# =============================================================================
# NOTIFICATION PREFERENCES
# =============================================================================


def build_notification_preferences(
    user_input: dict[str, Any] | None = None,
) -> NotificationPreferences:
    """Validate notification preferences and fill in defaults.

    Raises:
        vol.Invalid: If a value has the wrong type or an hour is out of range
    """
    validated = NOTIFICATION_PREFERENCES_SCHEMA(user_input or {})
    return NotificationPreferences(
        smart_scheduling=validated[const.CONF_SMART_SCHEDULING],
        sleep_start_hour=validated[const.CONF_SLEEP_START_HOUR],
        sleep_end_hour=validated[const.CONF_SLEEP_END_HOUR],
    )
