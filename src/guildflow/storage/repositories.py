"""Repository classes for GuildFlow storage operations."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from .models import TriggerKind, TriggerStatus, WorkflowTrigger

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


class TriggerRepository:
    """Repository for WorkflowTrigger records."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository.

        Args:
            session: SQLAlchemy session for database operations.
        """
        self._session = session

    def create(self, trigger: WorkflowTrigger) -> WorkflowTrigger:
        """Create a new trigger record.

        Args:
            trigger: The trigger to create.

        Returns:
            The created trigger with its generated id.
        """
        self._session.add(trigger)
        self._session.flush()
        return trigger

    def get_by_id(self, trigger_id: str) -> WorkflowTrigger | None:
        """Get a trigger by its ID.

        Args:
            trigger_id: The trigger identifier.

        Returns:
            The trigger if found, None otherwise.
        """
        stmt = select(WorkflowTrigger).where(WorkflowTrigger.id == trigger_id)
        return self._session.scalar(stmt)

    def get_active(self, kind: TriggerKind) -> list[WorkflowTrigger]:
        """Get all active triggers of one kind.

        Args:
            kind: Trigger kind to load.

        Returns:
            List of active triggers, oldest first.
        """
        stmt = (
            select(WorkflowTrigger)
            .where(WorkflowTrigger.type == kind)
            .where(WorkflowTrigger.status == TriggerStatus.ACTIVE)
            .order_by(WorkflowTrigger.created_at.asc())
        )
        return list(self._session.scalars(stmt))

    def get_for_workflow(
        self,
        workflow_id: str,
        kind: TriggerKind | None = None,
        active_only: bool = True,
    ) -> list[WorkflowTrigger]:
        """Get triggers attached to a workflow.

        Args:
            workflow_id: The workflow reference.
            kind: Optional kind filter.
            active_only: Only return active triggers.

        Returns:
            List of triggers, oldest first.
        """
        stmt = select(WorkflowTrigger).where(WorkflowTrigger.workflow_id == workflow_id)

        if kind is not None:
            stmt = stmt.where(WorkflowTrigger.type == kind)
        if active_only:
            stmt = stmt.where(WorkflowTrigger.status == TriggerStatus.ACTIVE)

        return list(self._session.scalars(stmt.order_by(WorkflowTrigger.created_at.asc())))

    def update_config(self, trigger_id: str, config: dict[str, Any]) -> bool:
        """Replace the configuration blob of a trigger.

        Args:
            trigger_id: The trigger identifier.
            config: New configuration.

        Returns:
            True if updated, False if not found.
        """
        trigger = self.get_by_id(trigger_id)
        if trigger is None:
            return False

        trigger.config = config
        trigger.updated_at = datetime.now(UTC)
        self._session.flush()
        return True

    def delete(self, trigger_id: str, kind: TriggerKind) -> bool:
        """Delete a trigger of one kind by ID.

        Args:
            trigger_id: The trigger identifier.
            kind: Kind the trigger must have; rows of other kinds are kept.

        Returns:
            True if deleted, False if no trigger of that kind has the ID.
        """
        trigger = self.get_by_id(trigger_id)
        if trigger is None or trigger.type != kind:
            return False

        self._session.delete(trigger)
        self._session.flush()
        return True
