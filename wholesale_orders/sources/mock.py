"""Fixture-backed data source used when EXTENSIV_MOCK_MODE is enabled."""

import copy
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from dateutil.parser import isoparse

from wholesale_orders.sources.base import DataSource
from wholesale_orders.transform import (
    epoch_millis,
    from_upstream_order,
    map_upstream_status,
    to_upstream_order,
    transform_inventory_item,
    transform_product,
)

MOCK_PRODUCTS = [
    {
        "product_id": "PRD-1001",
        "sku": "VL-FLW-001",
        "name": "Blue Ridge Flower 3.5g",
        "brand": "Blue Ridge",
        "category": "Flower",
        "price": 22.5,
        "quantity_available": 140,
        "thc_content": 21.4,
        "batch_number": "BR-2311",
        "rating": 4.6,
    },
    {
        "product_id": "PRD-1002",
        "sku": "VL-EDB-014",
        "name": "Citrus Gummies 10pk",
        "brand": "Sunny Side",
        "category": "Edibles",
        "price": 14.0,
        "quantity_available": 0,
        "thc_mg": 100,
        "batch_number": "SS-0912",
        "rating": 4.2,
    },
    {
        "product_id": "PRD-1003",
        "sku": "VL-VAP-220",
        "name": "Live Resin Cart 1g",
        "brand": "Blue Ridge",
        "category": "Vapes",
        "price": 38.0,
        "quantity_available": 56,
        "thc_content": 84.0,
        "batch_number": "BR-2302",
        "rating": 4.8,
    },
]

MOCK_INVENTORY = [
    {
        "sku": "VL-FLW-001",
        "product_id": "PRD-1001",
        "product_name": "Blue Ridge Flower 3.5g",
        "brand": "Blue Ridge",
        "quantity_available": 140,
        "quantity_on_hand": 160,
        "quantity_allocated": 20,
        "reorder_point": 40,
        "reorder_quantity": 200,
        "warehouse_location": "A-01-03",
    },
    {
        "sku": "VL-EDB-014",
        "product_id": "PRD-1002",
        "product_name": "Citrus Gummies 10pk",
        "brand": "Sunny Side",
        "quantity_available": 0,
        "quantity_on_hand": 12,
        "quantity_allocated": 12,
        "reorder_point": 30,
        "reorder_quantity": 120,
        "warehouse_location": "B-04-01",
    },
    {
        "sku": "VL-VAP-220",
        "product_id": "PRD-1003",
        "product_name": "Live Resin Cart 1g",
        "brand": "Blue Ridge",
        "quantity_available": 56,
        "quantity_on_hand": 60,
        "quantity_allocated": 4,
        "reorder_point": 25,
        "reorder_quantity": 100,
        "warehouse_location": "C-02-07",
    },
]

MOCK_ORDERS = [
    {
        "order_id": "EXT-ORD-5001",
        "order_number": "ORDER-5001",
        "status": "picking",
        "customer": {
            "name": "Green Leaf Dispensary",
            "email": "buyer@greenleaf.example",
            "company": "Green Leaf LLC",
        },
        "customer_name": "Green Leaf Dispensary",
        "line_items": [
            {"sku": "VL-FLW-001", "quantity": 40, "price": 22.5, "description": "Blue Ridge Flower 3.5g"},
        ],
        "shipping_address": {"name": "Green Leaf Dispensary", "city": "Tulsa", "state": "OK"},
        "order_date": "2024-03-02T15:04:00+00:00",
        "delivery_method": "delivery",
    },
    {
        "order_id": "EXT-ORD-5002",
        "order_number": "ORDER-5002",
        "status": "shipped",
        "customer": {
            "name": "Prairie Wellness",
            "email": "orders@prairie.example",
            "company": "Prairie Wellness Inc",
        },
        "customer_name": "Prairie Wellness",
        "line_items": [
            {"sku": "VL-VAP-220", "quantity": 12, "price": 38.0, "description": "Live Resin Cart 1g"},
            {"sku": "VL-EDB-014", "quantity": 24, "price": 14.0, "description": "Citrus Gummies 10pk"},
        ],
        "shipping_address": {"name": "Prairie Wellness", "city": "Norman", "state": "OK"},
        "order_date": "2024-03-05T09:30:00+00:00",
        "delivery_method": "pickup",
        "tracking_number": "TRK-88213",
    },
    {
        "order_id": "EXT-ORD-5003",
        "order_number": "ORDER-5003",
        "status": "created",
        "customer": {
            "name": "Green Leaf Dispensary",
            "email": "buyer@greenleaf.example",
            "company": "Green Leaf LLC",
        },
        "customer_name": "Green Leaf Dispensary",
        "line_items": [
            {"sku": "VL-VAP-220", "quantity": 6, "price": 38.0, "description": "Live Resin Cart 1g"},
        ],
        "shipping_address": {"name": "Green Leaf Dispensary", "city": "Tulsa", "state": "OK"},
        "order_date": "2024-03-09T12:00:00+00:00",
        "delivery_method": "delivery",
    },
]


def _as_naive_utc(value: Any) -> datetime:
    parsed = value if isinstance(value, datetime) else isoparse(str(value))
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


def _order_date(order: Dict[str, Any]) -> Optional[datetime]:
    try:
        return _as_naive_utc(order.get("order_date"))
    except (ValueError, OverflowError):
        return None


def _in_date_range(
    value: Optional[datetime], start: Optional[datetime], end: Optional[datetime]
) -> bool:
    # Orders with an unreadable date never match a date filter.
    if value is None:
        return False
    return (start is None or value >= start) and (end is None or value <= end)


class MockDataSource(DataSource):
    """Serves fixture data and simulates order creation."""

    name = "mock"

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self._orders = copy.deepcopy(MOCK_ORDERS)
        self._products = copy.deepcopy(MOCK_PRODUCTS)
        self._inventory = copy.deepcopy(MOCK_INVENTORY)

    async def create_order(
        self,
        order_data: Dict[str, Any],
        *,
        created_at: datetime,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.logger.info("MOCK MODE: Simulating order creation in Extensiv")
        upstream_order = to_upstream_order(order_data, created_at)
        mock_order_id = f"EXT-ORD-{epoch_millis(datetime.utcnow())}"
        created = dict(upstream_order, order_id=mock_order_id, status="paid")
        self._orders.append(created)

        return {
            "upstream_order_id": mock_order_id,
            "status": "paid",
            "created_at": datetime.utcnow().isoformat(),
            "raw_response": created,
        }

    async def list_orders(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        orders = list(self._orders)

        if filters.get("status"):
            wanted = set(str(filters["status"]).split(","))
            orders = [o for o in orders if map_upstream_status(o.get("status")) in wanted]
        if filters.get("customer"):
            orders = [o for o in orders if o.get("customer_name") == filters["customer"]]
        if filters.get("startDate") or filters.get("endDate"):
            start = _as_naive_utc(filters["startDate"]) if filters.get("startDate") else None
            end = _as_naive_utc(filters["endDate"]) if filters.get("endDate") else None
            orders = [o for o in orders if _in_date_range(_order_date(o), start, end)]

        offset = int(filters.get("offset") or 0)
        orders = orders[offset:]
        if filters.get("limit"):
            orders = orders[: int(filters["limit"])]

        self.logger.info(f"Returning {len(orders)} filtered mock orders")
        return [from_upstream_order(order) for order in orders]

    async def get_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        order = self._find_order(order_id)
        if order is None:
            self.logger.warning(f"Mock order {order_id} not found")
            return None
        return from_upstream_order(order)

    async def get_order_status(self, order_id: str) -> Optional[str]:
        order = self._find_order(order_id)
        return order.get("status") if order else None

    async def update_order(self, order_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        order = self._find_order(order_id)
        if order is None:
            return {}
        order.update(updates)
        return dict(order)

    async def list_products(self, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        products = [transform_product(p) for p in self._products]

        if filters.get("category"):
            products = [p for p in products if p["category"] == filters["category"]]
        if filters.get("brand"):
            products = [p for p in products if p["brand"] == filters["brand"]]
        if filters.get("inStock"):
            products = [p for p in products if p["stock"] > 0]
        if filters.get("minPrice") is not None:
            products = [p for p in products if p["price"] >= float(filters["minPrice"])]
        if filters.get("maxPrice") is not None:
            products = [p for p in products if p["price"] <= float(filters["maxPrice"])]

        self.logger.info(f"Returning {len(products)} filtered mock products")
        return products

    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        for product in self._products:
            if product_id in (product.get("product_id"), product.get("sku")):
                return transform_product(product)
        return None

    async def list_inventory(self) -> List[Dict[str, Any]]:
        return [transform_inventory_item(item) for item in self._inventory]

    def _find_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        for order in self._orders:
            if order_id in (order.get("order_id"), order.get("order_number")):
                return order
        return None
