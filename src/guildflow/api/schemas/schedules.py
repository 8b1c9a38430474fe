"""Schedule API schemas for GuildFlow."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from guildflow.models import ScheduleEntry


class ScheduleCreate(BaseModel):
    """Request to create a schedule."""

    model_config = ConfigDict(populate_by_name=True)

    workflow_id: str = Field(..., alias="workflowId", min_length=1, description="Workflow id")
    recurrence: dict[str, Any] = Field(..., description="Recurrence configuration")


class ScheduleCreated(BaseModel):
    """Result of creating or updating a schedule."""

    id: str = Field(..., description="Schedule id")
    next_execution: datetime | None = Field(None, description="Next fire time (UTC)")


class ScheduleDetail(BaseModel):
    """A schedule and its current state."""

    id: str
    workflow_id: str
    cron_expression: str
    timezone: str
    next_execution: datetime
    last_execution: datetime | None = None
    recurrence: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_entry(cls, entry: ScheduleEntry) -> ScheduleDetail:
        return cls(
            id=entry.id,
            workflow_id=entry.workflow_id,
            cron_expression=entry.cron_expression,
            timezone=entry.timezone,
            next_execution=entry.next_execution,
            last_execution=entry.last_execution,
            recurrence=entry.recurrence.to_config(),
        )
