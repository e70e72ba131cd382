"""Data source interface for orders, products and inventory."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional


class DataSource(ABC):
    """
    Source of record for orders, the product catalog and inventory.

    One implementation is selected at startup: LiveDataSource talks to the
    Extensiv API, MockDataSource serves built-in fixtures for local work and
    demos. Callers never branch on which one they hold.
    """

    name = "base"

    @abstractmethod
    async def create_order(
        self,
        order_data: Dict[str, Any],
        *,
        created_at: datetime,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create an order upstream.

        Returns:
            Dict with upstream_order_id, status, created_at and raw_response

        Raises:
            UpstreamError: when the upstream system rejects or misses the call
        """

    @abstractmethod
    async def list_orders(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """List orders matching status, customer, date range and paging filters."""

    @abstractmethod
    async def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        """Return one order, or None when it does not exist."""

    @abstractmethod
    async def get_order_status(self, order_id: str) -> Optional[str]:
        """Return the current upstream status of an order, or None."""

    @abstractmethod
    async def update_order(self, order_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a partial update to an order."""

    @abstractmethod
    async def list_products(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """List catalog products matching category, brand, stock and price filters."""

    @abstractmethod
    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        """Return one product by id or SKU, or None."""

    @abstractmethod
    async def list_inventory(self) -> List[Dict[str, Any]]:
        """Return current inventory levels for every SKU."""

    async def close(self) -> None:
        """Release network resources."""
        return None
