"""Schedule entry model for GuildFlow."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from guildflow.cron import next_fire_time

from .recurrence import Recurrence, RecurrenceModel, parse_recurrence


def _parse_timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


class ScheduleEntry(BaseModel):
    """A recurring trigger owned by the schedule manager."""

    id: str = Field(..., description="Schedule identifier")
    workflow_id: str = Field(..., description="Workflow this schedule triggers")
    cron_expression: str = Field(..., description="Five-field cron expression")
    timezone: str = Field(default="UTC", description="IANA timezone for fire times")
    next_execution: datetime = Field(..., description="Next instant the schedule fires")
    last_execution: datetime | None = Field(default=None, description="Last successful fire")
    recurrence: Recurrence = Field(..., description="User-facing recurrence configuration")

    @classmethod
    def build(
        cls,
        schedule_id: str,
        workflow_id: str,
        recurrence: RecurrenceModel,
        now: datetime,
        last_execution: datetime | None = None,
    ) -> ScheduleEntry:
        """Create an entry whose next execution is the first fire after `now`."""
        expression = recurrence.to_cron()
        return cls(
            id=schedule_id,
            workflow_id=workflow_id,
            cron_expression=expression,
            timezone=recurrence.timezone,
            next_execution=next_fire_time(expression, recurrence.timezone, now),
            last_execution=last_execution,
            recurrence=recurrence,
        )

    @classmethod
    def from_config(
        cls,
        schedule_id: str,
        workflow_id: str,
        config: dict[str, Any],
        now: datetime,
    ) -> ScheduleEntry:
        """Rebuild an entry from a persisted configuration blob.

        The next execution is recomputed from `now`; missed fires are not replayed.

        Raises:
            InvalidRecurrenceError: If the stored recurrence is invalid.
        """
        recurrence = parse_recurrence(config)
        return cls.build(
            schedule_id,
            workflow_id,
            recurrence,
            now,
            last_execution=_parse_timestamp(config.get("lastExecution")),
        )

    def advance(self, after: datetime) -> datetime:
        """Move next_execution to the first fire strictly after `after`."""
        self.next_execution = next_fire_time(self.cron_expression, self.timezone, after)
        return self.next_execution

    def to_config(self) -> dict[str, Any]:
        """Return the persisted configuration blob for this schedule."""
        return {
            **self.recurrence.to_config(),
            "nextExecution": self.next_execution.isoformat(),
            "lastExecution": self.last_execution.isoformat() if self.last_execution else None,
        }
