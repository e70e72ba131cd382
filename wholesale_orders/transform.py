"""Mapping between portal payloads and the Extensiv data formats."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

STATUS_MAP = {
    "created": "paid",
    "pending": "paid",
    "picking": "picking",
    "picked": "picked",
    "packing": "packing",
    "packed": "packed",
    "shipped": "shipped",
    "delivered": "delivered",
    "cancelled": "cancelled",
    "on_hold": "on_hold",
}


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def epoch_millis(value: datetime) -> int:
    return int(_as_utc(value).timestamp() * 1000)


def _as_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _as_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return 0


def to_upstream_order(order_data: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """
    Translate a portal order submission into the Extensiv order format.

    Pure: the only time input is ``now``, used for the default order number
    and order date. The same submission and ``now`` always produce the same
    output.
    """
    customer = order_data.get("customer") or {}
    shipping = order_data.get("shipping") or {}

    return {
        "customer": {
            "name": customer.get("name") or customer.get("companyName"),
            "email": customer.get("email"),
            "phone": customer.get("phone") or None,
            "company": customer.get("companyName") or None,
        },
        "shipping_address": {
            "name": shipping.get("name") or customer.get("name"),
            "street1": shipping.get("street") or shipping.get("address1"),
            "street2": shipping.get("street2") or None,
            "city": shipping.get("city"),
            "state": shipping.get("state"),
            "zip": shipping.get("zip") or shipping.get("zipCode"),
            "country": shipping.get("country") or "US",
        },
        "line_items": [
            {
                "sku": item.get("sku"),
                "quantity": item.get("quantity"),
                "price": item.get("price") or item.get("unitPrice"),
                "description": item.get("name") or item.get("description"),
            }
            for item in order_data.get("items") or []
        ],
        "order_number": order_data.get("orderNumber") or f"ORDER-{epoch_millis(now)}",
        "order_date": order_data.get("orderDate") or _as_utc(now).isoformat(),
        "delivery_method": order_data.get("deliveryMethod") or "delivery",
        "notes": order_data.get("notes") or None,
        "metadata": {
            "portal_order_id": order_data.get("id"),
            "delivery_zone": order_data.get("deliveryZone"),
            "total_amount": order_data.get("total"),
            "payment_status": order_data.get("paymentStatus") or "paid",
        },
    }


def map_upstream_status(status: Optional[str]) -> Optional[str]:
    """Map an Extensiv order status to the portal's status vocabulary."""
    if not status:
        return status
    return STATUS_MAP.get(status.lower(), status)


def calculate_total(line_items: Optional[List[Dict[str, Any]]]) -> float:
    return sum(
        _as_float(item.get("quantity")) * _as_float(item.get("price"))
        for item in line_items or []
    )


def from_upstream_order(order: Dict[str, Any]) -> Dict[str, Any]:
    """Translate an Extensiv order into the portal's order representation."""
    customer = order.get("customer") or {}
    shipping = order.get("shipping_address") or {}
    line_items = order.get("line_items") or []

    return {
        "id": order.get("id") or order.get("order_id"),
        "orderNumber": order.get("order_number"),
        "customer": {
            "name": customer.get("name"),
            "email": customer.get("email"),
            "phone": customer.get("phone"),
            "companyName": customer.get("company"),
        },
        "items": [
            {
                "sku": item.get("sku"),
                "name": item.get("description") or item.get("name"),
                "quantity": item.get("quantity"),
                "price": item.get("price"),
                "total": _as_float(item.get("quantity")) * _as_float(item.get("price")),
            }
            for item in line_items
        ],
        "status": map_upstream_status(order.get("status")),
        "total": order.get("total_amount") or calculate_total(line_items),
        "date": order.get("order_date") or order.get("created_at"),
        "shipping": {
            "name": shipping.get("name"),
            "street": shipping.get("street1"),
            "street2": shipping.get("street2"),
            "city": shipping.get("city"),
            "state": shipping.get("state"),
            "zip": shipping.get("zip"),
            "country": shipping.get("country") or "US",
        },
        "deliveryMethod": order.get("delivery_method") or "delivery",
        "trackingNumber": order.get("tracking_number"),
        "_extensivData": {
            "originalId": order.get("id"),
            "warehouseId": order.get("warehouse_id"),
            "lastUpdated": order.get("updated_at"),
        },
    }


def transform_product(product: Dict[str, Any]) -> Dict[str, Any]:
    """Translate an Extensiv product into the catalog representation."""
    return {
        "id": product.get("id") or product.get("product_id"),
        "sku": product.get("sku"),
        "name": product.get("name") or product.get("description"),
        "brand": product.get("brand") or product.get("manufacturer"),
        "category": product.get("category") or "Uncategorized",
        "price": _as_float(product.get("price") or product.get("unit_price")),
        "stock": _as_int(product.get("quantity_available") or product.get("stock")),
        "thc": _as_float(product.get("thc_content") or product.get("thc_mg")),
        "description": product.get("long_description") or product.get("description") or "",
        "batchNumber": product.get("batch_number") or product.get("lot_number"),
        "coaLink": product.get("coa_url") or product.get("certificate_url"),
        "image": product.get("image_url") or product.get("image"),
        "rating": product.get("rating") or 0,
        "_extensivData": {
            "originalId": product.get("id"),
            "lastUpdated": product.get("updated_at"),
        },
    }


def transform_inventory_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Translate an Extensiv inventory record."""
    available = _as_int(item.get("quantity_available"))
    reorder_point = _as_int(item.get("reorder_point"))

    return {
        "sku": item.get("sku"),
        "productId": item.get("product_id"),
        "name": item.get("product_name") or item.get("description"),
        "brand": item.get("brand") or item.get("manufacturer"),
        "quantityAvailable": available,
        "quantityOnHand": _as_int(item.get("quantity_on_hand")),
        "quantityAllocated": _as_int(item.get("quantity_allocated")),
        "quantityOnOrder": _as_int(item.get("quantity_on_order")),
        "reorderPoint": reorder_point,
        "reorderQuantity": _as_int(item.get("reorder_quantity")),
        "warehouseLocation": item.get("warehouse_location"),
        "batchNumber": item.get("batch_number") or item.get("lot_number"),
        "expirationDate": item.get("expiration_date"),
        "lastUpdated": item.get("updated_at"),
        "isLowStock": available <= (reorder_point or 10),
        "isOutOfStock": available == 0,
        "_extensivData": {
            "warehouseId": item.get("warehouse_id"),
            "locationId": item.get("location_id"),
        },
    }
