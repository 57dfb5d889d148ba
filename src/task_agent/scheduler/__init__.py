"""
Scheduler module: cron hand-off and wake-time parsing.
"""

from .cron import is_valid_cron, next_fire_time
from .natural_time import MAX_WAKE_DELAY, parse_wake_time, resolve_wake_delay
from .scheduler import CronScheduler, build_sub_run_goal

__all__ = [
    "is_valid_cron",
    "next_fire_time",
    "MAX_WAKE_DELAY",
    "parse_wake_time",
    "resolve_wake_delay",
    "CronScheduler",
    "build_sub_run_goal",
]
