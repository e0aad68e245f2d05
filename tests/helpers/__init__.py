"""Test helpers for medschedule tests.

    from tests.helpers import UTC, make_dt, make_medication, daily

See builders.py for details.
"""

from tests.helpers.builders import (
    UTC,
    daily,
    make_dose,
    make_dt,
    make_medication,
)

__all__ = [
    "UTC",
    "daily",
    "make_dose",
    "make_dt",
    "make_medication",
]
