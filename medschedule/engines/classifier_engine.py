"""Classifier Engine - period-of-day bucketing and meal-relation inference.

Two small, pure components used by the DoseEngine:
- classify_time_slot: total mapping from a clock time to a TimeSlot
- MealRelationResolver: heuristic before/after-meal annotation from free-text
  instructions

The resolver is isolated behind its own class so a structured instruction
field can replace the text heuristic without touching dose generation.
"""

from __future__ import annotations

from datetime import datetime, time
from typing import ClassVar

from .. import const
from ..models import MealRelation, MealTime, MealTiming, TimeOfDay, TimeSlot


def classify_time_slot(value: datetime | time | TimeOfDay | int) -> TimeSlot:
    """Map a clock time (or bare hour) to its TimeSlot.

    Every hour maps to exactly one slot; Night is the only range that wraps
    midnight (hour >= 21 or hour < 6).
    """
    hour = value if isinstance(value, int) else value.hour
    hour %= const.HOURS_PER_DAY

    for slot in TimeSlot:
        start, end = slot.time_range
        if start < end:
            if start <= hour < end:
                return slot
        elif hour >= start or hour < end:
            return slot

    # Unreachable while TIME_SLOT_RANGES covers all 24 hours
    return TimeSlot.NIGHT


class MealRelationResolver:
    """Infer a meal relation for non-meal-based doses from instruction text."""

    SLOT_TO_MEAL: ClassVar[dict[TimeSlot, MealTime | None]] = {
        TimeSlot.MORNING: MealTime.BREAKFAST,
        TimeSlot.MIDDAY: MealTime.LUNCH,
        TimeSlot.AFTERNOON: MealTime.DINNER,
        TimeSlot.EVENING: MealTime.DINNER,
        TimeSlot.NIGHT: None,
    }

    @staticmethod
    def slot_to_meal(slot: TimeSlot) -> MealTime | None:
        return MealRelationResolver.SLOT_TO_MEAL.get(slot)

    @staticmethod
    def infer(instructions: str | None, slot: TimeSlot) -> MealRelation | None:
        """Return a MealRelation when the instructions mention a meal.

        Decision table (case-insensitive substring):
            "with food" / "after meal"        → After, offset 0
            "before meal" / "on empty stomach" → Before, offset -30
            anything else                      → None
        Night doses never get a relation since no meal maps to that slot.
        """
        if not instructions:
            return None

        text = instructions.lower()
        if any(phrase in text for phrase in const.INSTRUCTION_PHRASES_AFTER_MEAL):
            timing = MealTiming.AFTER
            offset = const.INFERRED_OFFSET_AFTER_MINUTES
        elif any(phrase in text for phrase in const.INSTRUCTION_PHRASES_BEFORE_MEAL):
            timing = MealTiming.BEFORE
            offset = const.INFERRED_OFFSET_BEFORE_MINUTES
        else:
            return None

        meal = MealRelationResolver.slot_to_meal(slot)
        if meal is None:
            return None
        return MealRelation(meal=meal, timing=timing, offset_minutes=offset)
