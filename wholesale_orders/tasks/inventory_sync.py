"""Periodic inventory sync from the data source."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from wholesale_orders.scheduler import SingleFlight
from wholesale_orders.sources.base import DataSource

INITIAL_DELAY_SECONDS = 5


class InventorySync:
    """Fetches inventory levels and keeps the most recent snapshot."""

    def __init__(
        self,
        data_source: DataSource,
        interval_minutes: int = 10,
        logger: Optional[logging.Logger] = None,
    ):
        self.data_source = data_source
        self.interval_minutes = interval_minutes
        self.logger = logger or logging.getLogger(__name__)
        self.snapshot: Optional[Dict[str, Any]] = None
        self.last_sync: Optional[datetime] = None
        self._flight = SingleFlight("Inventory sync", self.logger)

    @property
    def interval_seconds(self) -> int:
        return self.interval_minutes * 60

    async def run(self) -> Optional[Dict[str, Any]]:
        """Sync once; returns None when a sync is already in progress."""
        return await self._flight.run(self._sync)

    async def _sync(self) -> Dict[str, Any]:
        started = datetime.utcnow()
        self.logger.info("Starting inventory sync")

        items = await self.data_source.list_inventory()

        self.last_sync = datetime.utcnow()
        self.snapshot = {
            "items": items,
            "lastSync": self.last_sync.isoformat(),
            "count": len(items),
        }

        elapsed_ms = int((self.last_sync - started).total_seconds() * 1000)
        self.logger.info(f"Inventory sync completed in {elapsed_ms}ms ({len(items)} items)")
        return self.snapshot

    def status(self) -> Dict[str, Any]:
        return {
            "isRunning": self._flight.running,
            "lastSync": self.last_sync.isoformat() if self.last_sync else None,
            "interval": f"{self.interval_minutes} minutes",
        }
