"""Event API schemas for GuildFlow."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from guildflow.models import EventTriggerEntry


class EventEmitted(BaseModel):
    """Result of a manual emission."""

    event_type: str
    listeners: int = Field(..., description="Listeners registered when the event was emitted")


class EventTriggerCreate(BaseModel):
    """Request to register an event trigger."""

    model_config = ConfigDict(populate_by_name=True)

    workflow_id: str = Field(..., alias="workflowId", min_length=1)
    event_type: str = Field(..., alias="eventType", min_length=1)
    filter: dict[str, Any] | None = Field(default=None, description="Event filter")


class EventTriggerDetail(BaseModel):
    """A registered event trigger."""

    id: str
    workflow_id: str
    event_type: str
    filter: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_entry(cls, entry: EventTriggerEntry) -> EventTriggerDetail:
        return cls(
            id=entry.id,
            workflow_id=entry.workflow_id,
            event_type=entry.event_type,
            filter=entry.filter.to_config(),
        )


class ChangeAccepted(BaseModel):
    """Result of ingesting a change notification."""

    status: str = "accepted"
    events: list[str] = Field(default_factory=list, description="Event types emitted")
