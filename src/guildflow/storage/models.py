"""SQLAlchemy database models for the GuildFlow trigger store."""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime
from typing import Any, ClassVar

from sqlalchemy import DateTime, Enum, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    type_annotation_map: ClassVar[dict[type, type]] = {
        dict[str, Any]: JSON,
    }


class TriggerKind(str, enum.Enum):
    """Kind of activation condition a trigger row describes."""

    SCHEDULE = "schedule"
    EVENT = "event"
    WEBHOOK = "webhook"


class TriggerStatus(str, enum.Enum):
    """Lifecycle status of a trigger row."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class WorkflowTrigger(Base):
    """Stored association between a workflow and an activation condition."""

    __tablename__ = "workflow_triggers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    workflow_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    type: Mapped[TriggerKind] = mapped_column(Enum(TriggerKind), nullable=False, index=True)
    config: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    status: Mapped[TriggerStatus] = mapped_column(
        Enum(TriggerStatus), default=TriggerStatus.ACTIVE
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(UTC)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowTrigger(id={self.id!r}, workflow={self.workflow_id!r}, "
            f"type={self.type.value}, status={self.status.value})>"
        )
