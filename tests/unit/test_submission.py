"""Unit tests for order submission."""

import pytest
from dateutil.parser import isoparse

from wholesale_orders.errors import OrderValidationError
from wholesale_orders.models import CREATE_ORDER_JOB
from wholesale_orders.submission import OrderSubmitter, validate_order


@pytest.mark.asyncio
async def test_submit_enqueues_one_job(job_service, fake_store, sample_order):
    job = await OrderSubmitter(job_service).submit(sample_order)

    assert list(fake_store.jobs) == [job.id]
    stored = fake_store.jobs[job.id]
    assert stored.type == CREATE_ORDER_JOB
    assert stored.payload["order_data"] == sample_order
    assert isoparse(stored.payload["created_at"]) is not None


@pytest.mark.parametrize(
    "change,message",
    [
        ({"items": []}, "Order must contain at least one item"),
        ({"items": None}, "Order must contain at least one item"),
        ({"customer": None}, "Customer information is required"),
    ],
)
@pytest.mark.asyncio
async def test_invalid_submission_creates_no_job(job_service, fake_store, sample_order, change, message):
    sample_order.update(change)

    with pytest.raises(OrderValidationError, match=message):
        await OrderSubmitter(job_service).submit(sample_order)

    assert fake_store.jobs == {}


def test_validate_order_checks_items_first():
    with pytest.raises(OrderValidationError, match="at least one item"):
        validate_order({})
