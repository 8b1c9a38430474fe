"""GuildFlow API server.

Provides a FastAPI-based HTTP API for schedules, event triggers and
database change ingestion.
"""

from .app import create_app

__all__ = ["create_app"]
