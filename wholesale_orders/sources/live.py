"""Data source backed by the Extensiv API."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from wholesale_orders.errors import UpstreamError, UpstreamErrorKind
from wholesale_orders.sources.base import DataSource
from wholesale_orders.transform import (
    from_upstream_order,
    to_upstream_order,
    transform_inventory_item,
    transform_product,
)
from wholesale_orders.upstream.client import UpstreamClient

ORDER_FILTER_PARAMS = {
    "status": "status",
    "customer": "customer_id",
    "startDate": "start_date",
    "endDate": "end_date",
    "limit": "limit",
    "offset": "offset",
}

PRODUCT_FILTER_PARAMS = {
    "category": "category",
    "brand": "brand",
    "inStock": "in_stock",
    "minPrice": "min_price",
    "maxPrice": "max_price",
}


def _unwrap(body: Any) -> Any:
    """Extensiv wraps most payloads in a top-level ``data`` key."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


def _params(filters: Dict[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    return {
        upstream: filters[local]
        for local, upstream in mapping.items()
        if filters.get(local) not in (None, "")
    }


class LiveDataSource(DataSource):
    """Reads and writes through the Extensiv API."""

    name = "extensiv"

    def __init__(self, client: UpstreamClient, logger: Optional[logging.Logger] = None):
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    async def create_order(
        self,
        order_data: Dict[str, Any],
        *,
        created_at: datetime,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        upstream_order = to_upstream_order(order_data, created_at)
        headers = {"Idempotency-Key": idempotency_key} if idempotency_key else None

        body = await self.client.post("/api/v1/orders", upstream_order, headers=headers)
        data = _unwrap(body) or {}

        upstream_order_id = data.get("order_id") or data.get("id")
        self.logger.info(f"Order created in Extensiv: {upstream_order_id}")

        return {
            "upstream_order_id": upstream_order_id,
            "status": data.get("status") or "created",
            "created_at": data.get("created_at") or datetime.utcnow().isoformat(),
            "raw_response": data,
        }

    async def list_orders(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        body = await self.client.get("/api/v1/orders", _params(filters, ORDER_FILTER_PARAMS))
        orders = [from_upstream_order(order) for order in _unwrap(body) or []]
        self.logger.info(f"Fetched {len(orders)} orders from Extensiv")
        return orders

    async def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        try:
            body = await self.client.get(f"/api/v1/orders/{order_id}")
        except UpstreamError as e:
            if e.kind == UpstreamErrorKind.not_found:
                return None
            raise

        data = _unwrap(body)
        if not data:
            return None
        return from_upstream_order(data)

    async def get_order_status(self, order_id: str) -> Optional[str]:
        try:
            body = await self.client.get(f"/api/v1/orders/{order_id}/status")
        except UpstreamError as e:
            if e.kind == UpstreamErrorKind.not_found:
                return None
            raise

        data = _unwrap(body) or {}
        return data.get("status") if isinstance(data, dict) else None

    async def update_order(self, order_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        body = await self.client.patch(f"/api/v1/orders/{order_id}", updates)
        self.logger.info(f"Order {order_id} updated in Extensiv")
        return _unwrap(body) or {}

    async def list_products(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        body = await self.client.get(
            "/api/v1/products", _params(filters, PRODUCT_FILTER_PARAMS)
        )
        products = [transform_product(product) for product in _unwrap(body) or []]
        self.logger.info(f"Fetched {len(products)} products from Extensiv")
        return products

    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        try:
            body = await self.client.get(f"/api/v1/products/{product_id}")
        except UpstreamError as e:
            if e.kind == UpstreamErrorKind.not_found:
                return None
            raise

        data = _unwrap(body)
        if not data:
            return None
        return transform_product(data)

    async def list_inventory(self) -> List[Dict[str, Any]]:
        body = await self.client.get("/api/v1/inventory")
        data = _unwrap(body)
        if not isinstance(data, list):
            raise UpstreamError(
                UpstreamErrorKind.unknown, "Invalid inventory response from Extensiv"
            )
        return [transform_inventory_item(item) for item in data]

    async def close(self) -> None:
        await self.client.close()
        await self.client.token_provider.close()
