"""Shared fixtures for medschedule tests.

All tests run against a fixed UTC local calendar unless a test sets its own
timezone; the default is restored after every test.
"""

from collections.abc import Generator

import pytest

from medschedule.config import MealTimeConfiguration
from medschedule.utils import dt_utils
from tests.helpers import UTC


@pytest.fixture(autouse=True)
def reset_default_timezone() -> Generator[None, None, None]:
    """Pin the local calendar to UTC for every test."""
    previous = dt_utils.get_default_timezone()
    dt_utils.set_default_timezone(UTC)
    yield
    dt_utils.set_default_timezone(previous)


@pytest.fixture
def meal_config() -> MealTimeConfiguration:
    """Default meal times (breakfast 08:00, lunch 13:00, dinner 19:00, bedtime 22:00)."""
    return MealTimeConfiguration()
