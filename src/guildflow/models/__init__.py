"""GuildFlow data models."""

from .events import GENERIC_DATABASE_EVENT, ChangeNotification, Event, EventTriggerEntry
from .filters import EventFilter, PathFilter, RecordFilter, build_filter, resolve_path
from .recurrence import (
    FREQUENCIES,
    CustomRecurrence,
    DailyRecurrence,
    HourlyRecurrence,
    MinutelyRecurrence,
    MonthlyRecurrence,
    Recurrence,
    RecurrenceModel,
    WeeklyRecurrence,
    merge_recurrence,
    parse_recurrence,
)
from .schedule import ScheduleEntry

__all__ = [
    "FREQUENCIES",
    "GENERIC_DATABASE_EVENT",
    "ChangeNotification",
    "CustomRecurrence",
    "DailyRecurrence",
    "Event",
    "EventFilter",
    "EventTriggerEntry",
    "HourlyRecurrence",
    "MinutelyRecurrence",
    "MonthlyRecurrence",
    "PathFilter",
    "RecordFilter",
    "Recurrence",
    "RecurrenceModel",
    "ScheduleEntry",
    "WeeklyRecurrence",
    "build_filter",
    "merge_recurrence",
    "parse_recurrence",
    "resolve_path",
]
