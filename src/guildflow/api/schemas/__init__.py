"""GuildFlow API schemas."""

from .common import ErrorDetail, ErrorResponse, MessageResponse
from .events import ChangeAccepted, EventEmitted, EventTriggerCreate, EventTriggerDetail
from .schedules import ScheduleCreate, ScheduleCreated, ScheduleDetail

__all__ = [
    "ChangeAccepted",
    "ErrorDetail",
    "ErrorResponse",
    "EventEmitted",
    "EventTriggerCreate",
    "EventTriggerDetail",
    "MessageResponse",
    "ScheduleCreate",
    "ScheduleCreated",
    "ScheduleDetail",
]
