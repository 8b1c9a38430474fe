"""One-shot wake-up primitive backed by APScheduler."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime

logger = logging.getLogger(__name__)


class Wakeups(Protocol):
    """Fire-once timers keyed by an identifier.

    Arming a key replaces any wake-up already pending for it.
    """

    def start(self) -> None: ...

    def arm(
        self,
        key: str,
        when: datetime,
        func: Callable[..., Awaitable[None]],
        *args: Any,
    ) -> None: ...

    def cancel(self, key: str) -> bool: ...

    def cancel_all(self) -> None: ...

    def is_armed(self, key: str) -> bool: ...

    def shutdown(self) -> None: ...


class APSchedulerWakeups:
    """Wake-ups implemented as one DateTrigger job per key.

    Jobs run as coroutines on the asyncio event loop, so start() must be
    called from inside a running loop.
    """

    def __init__(self, misfire_grace_time: int | None = None) -> None:
        """Initialize the wake-up scheduler.

        Args:
            misfire_grace_time: Seconds a late wake-up may still run.
                None runs late wake-ups however late they are.
        """
        job_defaults = {
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,  # Only one fire per key at a time
            "misfire_grace_time": misfire_grace_time,
        }
        self._scheduler = AsyncIOScheduler(job_defaults=job_defaults)
        self._running = False

    @property
    def is_running(self) -> bool:
        """Check if the scheduler is running."""
        return self._running

    def start(self) -> None:
        """Start the scheduler."""
        if self._running:
            return

        self._scheduler.start()
        self._running = True
        logger.info("Wake-up scheduler started")

    def arm(
        self,
        key: str,
        when: datetime,
        func: Callable[..., Awaitable[None]],
        *args: Any,
    ) -> None:
        """Arm a wake-up for `key` at `when`, replacing any pending one.

        Args:
            key: Wake-up identifier.
            when: Aware datetime to wake up at.
            func: Coroutine function to run.
            *args: Arguments passed to `func`.
        """
        self._scheduler.add_job(
            func,
            trigger=DateTrigger(run_date=when),
            id=key,
            name=key,
            args=list(args),
            replace_existing=True,
        )
        logger.debug(f"Armed wake-up {key} for {when.isoformat()}")

    def cancel(self, key: str) -> bool:
        """Cancel the pending wake-up for `key`.

        Returns:
            True if a wake-up was pending, False otherwise.
        """
        if self._scheduler.get_job(key) is None:
            return False

        self._scheduler.remove_job(key)
        logger.debug(f"Cancelled wake-up {key}")
        return True

    def cancel_all(self) -> None:
        """Cancel every pending wake-up."""
        self._scheduler.remove_all_jobs()

    def is_armed(self, key: str) -> bool:
        """Check whether a wake-up is pending for `key`."""
        return self._scheduler.get_job(key) is not None

    def shutdown(self) -> None:
        """Stop the scheduler without waiting for running wake-ups."""
        if not self._running:
            return

        self._scheduler.shutdown(wait=False)
        self._running = False
        logger.info("Wake-up scheduler stopped")
