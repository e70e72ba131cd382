"""Scheduled background tasks."""

from wholesale_orders.tasks.inventory_sync import InventorySync
from wholesale_orders.tasks.order_status_poller import OrderStatusPoller

__all__ = ["InventorySync", "OrderStatusPoller"]
