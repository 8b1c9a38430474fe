"""Trigger store used by the schedule manager and event relay."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from guildflow.errors import UpstreamUnavailableError

from .models import TriggerKind, TriggerStatus, WorkflowTrigger
from .repositories import TriggerRepository

if TYPE_CHECKING:
    from .database import Database

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredTrigger:
    """Detached snapshot of a trigger row."""

    id: str
    workflow_id: str
    kind: TriggerKind
    config: dict[str, Any] = field(default_factory=dict)
    status: TriggerStatus = TriggerStatus.ACTIVE
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: WorkflowTrigger) -> StoredTrigger:
        return cls(
            id=row.id,
            workflow_id=row.workflow_id,
            kind=row.type,
            config=dict(row.config or {}),
            status=row.status,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )


class TriggerStore:
    """Persistence for schedule and event trigger rows.

    Wraps the repository in short transactions and converts database
    failures into UpstreamUnavailableError so callers can degrade to
    in-memory operation.
    """

    def __init__(self, db: Database) -> None:
        """Initialize the store.

        Args:
            db: Database holding the workflow_triggers table.
        """
        self._db = db

    def _fail(self, action: str, error: SQLAlchemyError) -> UpstreamUnavailableError:
        logger.error(f"Trigger store failed to {action}: {error}")
        return UpstreamUnavailableError(
            f"Trigger store failed to {action}",
            context={"error": str(error)},
        )

    def insert(
        self,
        workflow_id: str,
        kind: TriggerKind,
        config: dict[str, Any],
        trigger_id: str | None = None,
    ) -> StoredTrigger:
        """Insert an active trigger row.

        Raises:
            UpstreamUnavailableError: If the database write fails.
        """
        try:
            with self._db.session_scope() as session:
                row = WorkflowTrigger(
                    workflow_id=workflow_id,
                    type=kind,
                    config=config,
                    status=TriggerStatus.ACTIVE,
                )
                if trigger_id is not None:
                    row.id = trigger_id
                TriggerRepository(session).create(row)
                return StoredTrigger.from_row(row)
        except SQLAlchemyError as e:
            raise self._fail("insert trigger", e) from e

    def get(self, trigger_id: str) -> StoredTrigger | None:
        """Load one trigger row.

        Raises:
            UpstreamUnavailableError: If the database read fails.
        """
        try:
            with self._db.session_scope() as session:
                row = TriggerRepository(session).get_by_id(trigger_id)
                return StoredTrigger.from_row(row) if row else None
        except SQLAlchemyError as e:
            raise self._fail("load trigger", e) from e

    def load_active(self, kind: TriggerKind) -> list[StoredTrigger]:
        """Load all active triggers of one kind.

        Raises:
            UpstreamUnavailableError: If the database read fails.
        """
        try:
            with self._db.session_scope() as session:
                rows = TriggerRepository(session).get_active(kind)
                return [StoredTrigger.from_row(row) for row in rows]
        except SQLAlchemyError as e:
            raise self._fail(f"load {kind.value} triggers", e) from e

    def list_for_workflow(self, workflow_id: str, kind: TriggerKind) -> list[StoredTrigger]:
        """Load active triggers of one kind for a workflow.

        Raises:
            UpstreamUnavailableError: If the database read fails.
        """
        try:
            with self._db.session_scope() as session:
                rows = TriggerRepository(session).get_for_workflow(workflow_id, kind)
                return [StoredTrigger.from_row(row) for row in rows]
        except SQLAlchemyError as e:
            raise self._fail("list workflow triggers", e) from e

    def update_config(self, trigger_id: str, config: dict[str, Any]) -> bool:
        """Write back a trigger's configuration blob.

        Raises:
            UpstreamUnavailableError: If the database write fails.
        """
        try:
            with self._db.session_scope() as session:
                return TriggerRepository(session).update_config(trigger_id, config)
        except SQLAlchemyError as e:
            raise self._fail("update trigger", e) from e

    def delete(self, trigger_id: str, kind: TriggerKind) -> bool:
        """Delete a trigger row of one kind.

        Returns:
            True if a row of that kind was deleted.

        Raises:
            UpstreamUnavailableError: If the database write fails.
        """
        try:
            with self._db.session_scope() as session:
                return TriggerRepository(session).delete(trigger_id, kind)
        except SQLAlchemyError as e:
            raise self._fail("delete trigger", e) from e
