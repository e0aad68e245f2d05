"""Manager modules for medschedule.

Managers hold state and coordinate between the stateless engines.
"""

from .schedule_manager import ScheduleManager, StatusListener

__all__ = [
    "ScheduleManager",
    "StatusListener",
]
