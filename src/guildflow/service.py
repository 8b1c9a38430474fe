"""Application root wiring the trigger services together."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from guildflow.client import WorkflowClient
from guildflow.config import Settings
from guildflow.events import ChangeFeed, EventRelay
from guildflow.scheduler import ScheduleManager
from guildflow.storage import Database, TriggerStore

if TYPE_CHECKING:
    import httpx

    from guildflow.scheduler import Wakeups

logger = logging.getLogger(__name__)


class GuildFlowService:
    """Owns the store, workflow client, schedule manager, relay and feed.

    Each instance is independent, so tests and embedders can run several
    side by side.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        wakeups: Wakeups | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            settings: Runtime settings. Defaults to Settings.load().
            http_client: Optional httpx client for the workflow endpoint.
            wakeups: Optional wake-up primitive for the schedule manager.
            clock: Optional clock for the schedule manager.
        """
        self.settings = settings or Settings.load()

        self.database: Database | None = None
        self.store: TriggerStore | None = None
        if self.settings.database_url is not None:
            self.database = Database(self.settings.database_url)
            self.store = TriggerStore(self.database)

        self.client = WorkflowClient(self.settings.api_base_url, client=http_client)
        self._wakeups = wakeups
        self._clock = clock
        self._wire(self.store)
        self._running = False

    def _wire(self, store: TriggerStore | None) -> None:
        self.store = store
        self.schedules = ScheduleManager(
            self.client,
            store=store,
            wakeups=self._wakeups,
            clock=self._clock,
        )
        self.events = EventRelay(self.client, store=store)
        self.feed = ChangeFeed(self.events)

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Create tables, load schedules and event triggers, open the feed."""
        if self._running:
            return

        if self.database is not None:
            try:
                self.database.create_tables()
            except SQLAlchemyError as e:
                logger.warning(f"Trigger store at {self.database.url} unavailable: {e}")
                self._wire(None)

        await self.schedules.start()
        await self.events.restore_triggers()
        self.feed.connect()
        self._running = True
        mode = "persistent" if self.store is not None else "in-memory"
        logger.info(f"GuildFlow service started ({mode}, endpoint {self.client.url})")

    async def shutdown(self) -> None:
        """Stop every component; safe to call more than once."""
        self.feed.disconnect()
        await self.schedules.shutdown()
        await self.events.shutdown()
        await self.client.aclose()
        if self.database is not None:
            self.database.dispose()
        if self._running:
            logger.info("GuildFlow service stopped")
        self._running = False
