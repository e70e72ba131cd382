"""Data sources for orders, products and inventory."""

from wholesale_orders.sources.base import DataSource
from wholesale_orders.sources.live import LiveDataSource
from wholesale_orders.sources.mock import MockDataSource

__all__ = ["DataSource", "LiveDataSource", "MockDataSource"]
