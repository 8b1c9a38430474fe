"""GuildFlow schedule management.

This module provides the schedule manager and the wake-up primitive it
uses to fire workflows on cron schedules.
"""

from .manager import ScheduleManager
from .wakeups import APSchedulerWakeups, Wakeups

__all__ = [
    "APSchedulerWakeups",
    "ScheduleManager",
    "Wakeups",
]
