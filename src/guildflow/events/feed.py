"""Database change feed routing row changes into the event relay."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from guildflow.models import ChangeNotification, Event

    from .relay import EventRelay

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeSubscription:
    """Maps row changes on one table to a semantic event type."""

    table: str
    event: str  # INSERT, UPDATE, DELETE or "*"
    semantic_type: str

    def matches(self, notification: ChangeNotification) -> bool:
        """Check whether a notification belongs to this subscription."""
        if notification.table != self.table:
            return False
        return self.event == "*" or self.event == notification.event


DEFAULT_SUBSCRIPTIONS: tuple[ChangeSubscription, ...] = (
    ChangeSubscription("guilds", "INSERT", "guild.created"),
    ChangeSubscription("guilds", "UPDATE", "guild.updated"),
    ChangeSubscription("agents", "*", "agent.changed"),
    ChangeSubscription("workflows", "*", "workflow.changed"),
)


class ChangeFeed:
    """Translates change notifications into relay emissions."""

    def __init__(
        self,
        relay: EventRelay,
        subscriptions: tuple[ChangeSubscription, ...] = DEFAULT_SUBSCRIPTIONS,
    ) -> None:
        self._relay = relay
        self._subscriptions = subscriptions
        self._connected = False

    @property
    def connected(self) -> bool:
        """Whether the feed is accepting notifications."""
        return self._connected

    @property
    def subscriptions(self) -> tuple[ChangeSubscription, ...]:
        return self._subscriptions

    def connect(self) -> None:
        if self._connected:
            return
        self._connected = True
        tables = sorted({s.table for s in self._subscriptions})
        logger.info(f"Change feed listening for {', '.join(tables)}")

    def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        logger.info("Change feed disconnected")

    def handle(self, notification: ChangeNotification) -> list[Event]:
        """Dispatch one notification to the relay.

        Args:
            notification: The row change.

        Returns:
            Events emitted, one per matching subscription.
        """
        if not self._connected:
            logger.warning(f"Dropping change on {notification.table}: feed is not connected")
            return []

        events = [
            self._relay.handle_database_event(subscription.semantic_type, notification)
            for subscription in self._subscriptions
            if subscription.matches(notification)
        ]
        if not events:
            logger.debug(f"No subscription for {notification.event} on {notification.table}")
        return events
