"""Handler for createOrder jobs."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from dateutil.parser import isoparse

from wholesale_orders.errors import NonRetriableJobError, UpstreamError, UpstreamErrorKind
from wholesale_orders.models import CREATE_ORDER_JOB, Job
from wholesale_orders.registry import JobRegistry
from wholesale_orders.sources.base import DataSource

RETRIABLE_KINDS = frozenset(
    {UpstreamErrorKind.rate_limited, UpstreamErrorKind.upstream_unavailable}
)
TERMINAL_KINDS = frozenset({UpstreamErrorKind.bad_request})


def _parse_created_at(value: Any) -> datetime:
    if not value:
        return datetime.utcnow()
    parsed = value if isinstance(value, datetime) else isoparse(str(value))
    if parsed.tzinfo is not None:
        parsed = parsed.replace(tzinfo=None) - parsed.utcoffset()
    return parsed


class OrderJobProcessor:
    """
    Creates queued orders in the warehouse system.

    Each createOrder job carries the submitted order and the time it was
    accepted. The job id is forwarded as the idempotency key so a retry
    after an ambiguous failure does not create a second upstream order.
    """

    def __init__(self, data_source: DataSource, logger: Optional[logging.Logger] = None):
        self.data_source = data_source
        self.logger = logger or logging.getLogger(__name__)

    def register(self, registry: JobRegistry) -> None:
        registry.register(CREATE_ORDER_JOB, self.handle, on_failed=self.on_failed)

    async def handle(self, ctx: Dict[str, Any], payload: Dict[str, Any]) -> Dict[str, Any]:
        job: Job = ctx["job"]
        order_data = payload.get("order_data") or {}
        order_ref = order_data.get("id") or order_data.get("orderNumber")

        self.logger.info(
            f"Processing order job {job.id} (order: {order_ref}, attempt: {ctx.get('attempt')})"
        )

        try:
            created = await self.data_source.create_order(
                order_data,
                created_at=_parse_created_at(payload.get("created_at")),
                idempotency_key=str(job.id),
            )
        except Exception as e:
            self.classify_failure(e)
            raise

        self.logger.info(
            f"Order job {job.id} created upstream order {created.get('upstream_order_id')}"
        )
        return {
            "success": True,
            "upstream_order_id": created.get("upstream_order_id"),
            "status": created.get("status"),
            "created_at": created.get("created_at"),
        }

    def classify_failure(self, error: BaseException) -> bool:
        """
        Decide whether a failed order creation may be attempted again.

        Returns True for retriable failures. Raises NonRetriableJobError for
        failures that would fail identically on every attempt.
        """
        if not isinstance(error, UpstreamError):
            return True

        if error.kind in RETRIABLE_KINDS:
            self.logger.warning(f"Retriable upstream error ({error.kind.value}): {error}")
            return True

        if error.kind in TERMINAL_KINDS:
            self.logger.error(f"Non-retriable upstream error: {error}")
            raise NonRetriableJobError(f"Non-retriable error: {error}", cause=error) from error

        return True

    async def on_failed(self, job: Job, attempt: int, error: BaseException) -> None:
        """Report a terminally failed order job."""
        exhausted = attempt >= job.max_attempts
        self.logger.error(
            f"Order job {job.id} failed (order: {job.order_reference}, "
            f"attempts: {attempt}/{job.max_attempts}, error: {error})"
        )
        if exhausted:
            # Admin notification hooks in here.
            self.logger.error(f"Order job {job.id} exhausted all retry attempts")
