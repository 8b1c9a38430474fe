"""GuildFlow event relay and database change feed."""

from .feed import DEFAULT_SUBSCRIPTIONS, ChangeFeed, ChangeSubscription
from .relay import EventRelay, Listener

__all__ = [
    "DEFAULT_SUBSCRIPTIONS",
    "ChangeFeed",
    "ChangeSubscription",
    "EventRelay",
    "Listener",
]
