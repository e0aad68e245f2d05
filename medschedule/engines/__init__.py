"""Engine modules for medschedule.

Contains specialized computation engines:
- classifier_engine: Time-slot classification and meal-relation inference
- dose_engine: Frequency rule expansion into dated doses
- aggregate_engine: Dose grouping, ordering and metrics
- dose_state_engine: Dose status state machine and batch validation
- notification_engine: Repeating reminder triggers and sleep-aware redistribution
- schedule_engine: Next-occurrence calculation
"""

# Use relative imports within package to avoid mypy module resolution issues
from .aggregate_engine import AggregateEngine, ScheduleAggregate
from .classifier_engine import MealRelationResolver, classify_time_slot
from .dose_engine import DoseEngine
from .dose_state_engine import DoseStateEngine
from .notification_engine import NotificationEngine
from .schedule_engine import RecurrenceEngine, next_occurrence

__all__ = [
    "AggregateEngine",
    "DoseEngine",
    "DoseStateEngine",
    "MealRelationResolver",
    "NotificationEngine",
    "RecurrenceEngine",
    "ScheduleAggregate",
    "classify_time_slot",
    "next_occurrence",
]
