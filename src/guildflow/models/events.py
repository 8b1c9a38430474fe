"""Event models for the GuildFlow event relay."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .filters import EventFilter

GENERIC_DATABASE_EVENT = "database.changed"


class Event(BaseModel):
    """An immutable domain event delivered to listeners."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    type: str = Field(..., description="Event type tag, e.g. 'guild.created'")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    payload: Any = Field(default=None, description="Triggering record or caller data")
    source: str = Field(default="manual", description="Provenance tag, e.g. 'database'")
    table: str | None = Field(default=None, description="Source table for database events")
    operation: str | None = Field(default=None, description="INSERT, UPDATE or DELETE")


class ChangeNotification(BaseModel):
    """A row-change notification from the database change feed."""

    event: Literal["INSERT", "UPDATE", "DELETE"] = Field(..., alias="eventType")
    table: str
    schema_name: str = Field(default="public", alias="schema")
    new: dict[str, Any] | None = None
    old: dict[str, Any] | None = None

    model_config = ConfigDict(populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def accept_payload_key(cls, data: Any) -> Any:
        """Treat a bare `payload` key as the new record."""
        if isinstance(data, dict) and "payload" in data and "new" not in data:
            data = {**data, "new": data["payload"]}
        return data

    @property
    def record(self) -> dict[str, Any]:
        """The changed record (the new row, or the old row for deletes)."""
        return self.new or self.old or {}


class EventTriggerEntry(BaseModel):
    """A workflow registered to run when matching events are emitted."""

    id: str
    workflow_id: str
    event_type: str
    filter: EventFilter

    def to_config(self) -> dict[str, Any]:
        """Return the persisted configuration blob for this trigger."""
        return {"event_type": self.event_type, "filter": self.filter.to_config()}
