"""Accepting order submissions into the order queue."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from wholesale_orders.errors import OrderValidationError
from wholesale_orders.models import CREATE_ORDER_JOB, Job
from wholesale_orders.service import JobService


def validate_order(order_data: Dict[str, Any]) -> None:
    """Reject submissions that can never become an upstream order."""
    if not order_data.get("items"):
        raise OrderValidationError("Order must contain at least one item")
    if not order_data.get("customer"):
        raise OrderValidationError("Customer information is required")


class OrderSubmitter:
    """Validates a submission and enqueues one createOrder job for it."""

    def __init__(self, job_service: JobService, logger: Optional[logging.Logger] = None):
        self.job_service = job_service
        self.logger = logger or logging.getLogger(__name__)

    async def submit(self, order_data: Dict[str, Any]) -> Job:
        validate_order(order_data)

        payload = {
            "order_data": order_data,
            "created_at": datetime.utcnow().isoformat(),
        }
        job = await self.job_service.enqueue(type=CREATE_ORDER_JOB, payload=payload)

        self.logger.info(
            f"Order {order_data.get('id') or order_data.get('orderNumber')} queued as job {job.id}"
        )
        return job
