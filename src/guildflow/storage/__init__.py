"""GuildFlow storage layer.

This module persists schedule and event triggers in a single
workflow_triggers table using SQLAlchemy.
"""

from .database import Database, init_database
from .models import Base, TriggerKind, TriggerStatus, WorkflowTrigger
from .repositories import TriggerRepository
from .store import StoredTrigger, TriggerStore

__all__ = [
    "Base",
    "Database",
    "StoredTrigger",
    "TriggerKind",
    "TriggerRepository",
    "TriggerStatus",
    "TriggerStore",
    "WorkflowTrigger",
    "init_database",
]
