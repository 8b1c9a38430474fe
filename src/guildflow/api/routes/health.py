"""Health check endpoints for GuildFlow API."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter

from guildflow import __version__
from guildflow.api.dependencies import Service

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Check API health status.

    Returns:
        Health status with timestamp.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(UTC).isoformat(),
        "service": "guildflow",
        "version": __version__,
    }


@router.get("/health/ready")
async def readiness_check(service: Service) -> dict[str, Any]:
    """Check if the trigger services are ready.

    Returns:
        Readiness status with component state.
    """
    return {
        "status": "ready" if service.is_running else "starting",
        "timestamp": datetime.now(UTC).isoformat(),
        "persistent": service.store is not None,
        "schedules": service.schedules.schedule_count,
        "listeners": service.events.listener_count(),
        "feed_connected": service.feed.connected,
    }


@router.get("/health/live")
async def liveness_check() -> dict[str, Any]:
    """Check if the API is alive."""
    return {
        "status": "alive",
        "timestamp": datetime.now(UTC).isoformat(),
    }
