# File: utils/__init__.py
"""Pure Python utilities for medschedule.

Submodules:
    - dt_utils: Local-calendar date/time parsing and arithmetic

Usage:
    from .utils import dt_utils
    from .utils.dt_utils import dt_combine_local
"""

from . import dt_utils

__all__ = ["dt_utils"]
