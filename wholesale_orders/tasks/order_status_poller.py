"""Periodic polling of upstream order statuses."""

import logging
from typing import Any, Dict, Optional

from wholesale_orders.scheduler import SingleFlight
from wholesale_orders.sources.base import DataSource
from wholesale_orders.transform import map_upstream_status

INITIAL_DELAY_SECONDS = 10
MONITORED_STATUSES = ("paid", "picking", "packed", "shipped")
POLL_LIMIT = 100


class OrderStatusPoller:
    """Detects orders whose upstream status moved since the last listing."""

    def __init__(
        self,
        data_source: DataSource,
        interval_minutes: int = 5,
        logger: Optional[logging.Logger] = None,
    ):
        self.data_source = data_source
        self.interval_minutes = interval_minutes
        self.logger = logger or logging.getLogger(__name__)
        self._flight = SingleFlight("Order status polling", self.logger)

    @property
    def interval_seconds(self) -> int:
        return self.interval_minutes * 60

    async def run(self) -> Optional[Dict[str, int]]:
        """Poll once; returns None when a poll is already in progress."""
        return await self._flight.run(self._poll)

    async def _poll(self) -> Dict[str, int]:
        orders = await self.data_source.list_orders(
            {"status": ",".join(MONITORED_STATUSES), "limit": POLL_LIMIT}
        )
        self.logger.info(f"Checking status for {len(orders)} orders")

        checked = 0
        changed = 0
        for order in orders:
            try:
                raw_status = await self.data_source.get_order_status(order["id"])
                checked += 1
                current = map_upstream_status(raw_status)
                if current and current != order.get("status"):
                    changed += 1
                    self.logger.info(
                        f"Order {order['id']} status changed: {order.get('status')} -> {current}"
                    )
                    self.handle_status_change(order, current)
            except Exception as e:
                self.logger.error(f"Error checking order {order.get('id')}: {e}")

        self.logger.info(f"Order status poll completed ({checked} checked, {changed} changed)")
        return {"checked": checked, "changed": changed}

    def handle_status_change(self, order: Dict[str, Any], new_status: str) -> None:
        order_id = order.get("id")
        if new_status == "packed":
            self.logger.info(f"Order {order_id} is packed and ready for shipment")
        elif new_status == "shipped":
            self.logger.info(
                f"Order {order_id} has shipped (tracking: {order.get('trackingNumber')})"
            )
        elif new_status == "delivered":
            self.logger.info(f"Order {order_id} has been delivered")
        elif new_status == "cancelled":
            self.logger.warning(f"Order {order_id} was cancelled")

    def status(self) -> Dict[str, Any]:
        return {
            "isRunning": self._flight.running,
            "interval": f"{self.interval_minutes} minutes",
        }
