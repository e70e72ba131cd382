"""Unit tests for models module."""

from datetime import datetime, timedelta
from uuid import uuid4

from wholesale_orders.models import CREATE_ORDER_JOB, Job, JobStatus


def _job(**overrides):
    fields = dict(
        id=uuid4(),
        type=CREATE_ORDER_JOB,
        status=JobStatus.waiting,
        payload={"order_data": {"id": "PORTAL-1"}, "created_at": "2024-03-01T10:00:00"},
        run_at=datetime(2024, 3, 1, 10, 0, 0),
        priority=0,
        attempts=0,
        max_attempts=5,
        backoff_policy={"type": "exponential", "base_seconds": 2},
    )
    fields.update(overrides)
    return Job(**fields)


def test_job_status_from_string():
    job = _job(status="active")

    assert job.status is JobStatus.active


def test_waiting_job_with_future_run_at_is_delayed():
    now = datetime(2024, 3, 1, 10, 0, 0)
    job = _job(run_at=now + timedelta(seconds=4))

    assert job.state(now) == "delayed"
    assert job.state(now + timedelta(seconds=5)) == "waiting"


def test_non_waiting_states_are_reported_as_is():
    now = datetime(2024, 3, 1, 10, 0, 0)
    job = _job(status=JobStatus.failed, run_at=now + timedelta(hours=1))

    assert job.state(now) == "failed"


def test_order_reference_prefers_portal_id():
    assert _job().order_reference == "PORTAL-1"
    assert _job(payload={"order_data": {"orderNumber": "ORDER-9"}}).order_reference == "ORDER-9"
    assert _job(payload={}).order_reference is None


def test_job_to_dict():
    """Test job serialization."""
    job = _job(result={"success": True}, finished_at=datetime(2024, 3, 1, 10, 0, 5))

    data = job.to_dict()

    assert data["id"] == str(job.id)
    assert data["type"] == "createOrder"
    assert data["status"] == "waiting"
    assert data["result"] == {"success": True}
    assert data["run_at"] == "2024-03-01T10:00:00"
    assert data["finished_at"] == "2024-03-01T10:00:05"
    assert data["lease_expires_at"] is None
