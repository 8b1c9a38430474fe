"""GuildFlow API routes."""

from . import events, health, schedules

__all__ = [
    "events",
    "health",
    "schedules",
]
