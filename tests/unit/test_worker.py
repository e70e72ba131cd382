"""Unit tests for worker logic."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from wholesale_orders.errors import NonRetriableJobError
from wholesale_orders.models import JobStatus
from wholesale_orders.registry import JobRegistry
from wholesale_orders.worker import (
    _calculate_backoff,
    _calculate_backoff_with_jitter,
    process_job,
    run_worker_loop,
)


def test_exponential_backoff():
    """Test exponential backoff calculation."""
    policy = {"type": "exponential", "base_seconds": 2}

    assert _calculate_backoff(policy, 1) == 2
    assert _calculate_backoff(policy, 2) == 4
    assert _calculate_backoff(policy, 3) == 8
    assert _calculate_backoff(policy, 4) == 16


def test_exponential_backoff_cap():
    """Test that exponential backoff is capped at 1 hour."""
    policy = {"type": "exponential", "base_seconds": 1000}

    assert _calculate_backoff(policy, 10) == 3600


def test_fixed_backoff():
    policy = {"type": "fixed", "base_seconds": 30}

    assert _calculate_backoff(policy, 1) == 30
    assert _calculate_backoff(policy, 4) == 30


def test_default_policy_values():
    """Test defaults when the policy is empty."""
    assert _calculate_backoff({}, 1) == 2
    assert _calculate_backoff({}, 3) == 8


def test_backoff_without_jitter_is_exact():
    policy = {"type": "exponential", "base_seconds": 2}

    assert _calculate_backoff_with_jitter(policy, 3) == 8.0


def test_backoff_jitter_stays_within_fraction():
    policy = {"type": "exponential", "base_seconds": 10, "jitter": 0.2}

    for _ in range(50):
        delay = _calculate_backoff_with_jitter(policy, 2)
        assert 16.0 <= delay <= 24.0


async def _lease_one(job_service):
    jobs = await job_service.lease_jobs(1, timedelta(minutes=5))
    assert len(jobs) == 1
    return jobs[0]


@pytest.mark.asyncio
async def test_process_job_success(job_service, fake_store, logger):
    registry = JobRegistry()
    registry.register("createOrder", AsyncMock(return_value={"upstream_order_id": "EXT-1"}))
    await job_service.enqueue(type="createOrder", payload={"order_data": {}})
    job = await _lease_one(job_service)

    result = await process_job(job_service, registry, job, logger)

    stored = fake_store.jobs[job.id]
    assert result == {"upstream_order_id": "EXT-1"}
    assert stored.status == JobStatus.completed
    assert stored.attempts == 1
    assert stored.result == {"upstream_order_id": "EXT-1"}


@pytest.mark.asyncio
async def test_process_job_wraps_non_dict_result(job_service, fake_store, logger):
    registry = JobRegistry()
    registry.register("createOrder", AsyncMock(return_value="done"))
    await job_service.enqueue(type="createOrder", payload={})
    job = await _lease_one(job_service)

    await process_job(job_service, registry, job, logger)

    assert fake_store.jobs[job.id].result == {"value": "done"}


@pytest.mark.asyncio
async def test_process_job_passes_context(job_service, logger):
    handler = AsyncMock(return_value={})
    registry = JobRegistry()
    registry.register("createOrder", handler)
    await job_service.enqueue(type="createOrder", payload={"order_data": {"id": "P-1"}})
    job = await _lease_one(job_service)

    await process_job(job_service, registry, job, logger)

    ctx, payload = handler.await_args.args
    assert ctx["job"].id == job.id
    assert ctx["attempt"] == 1
    assert ctx["logger"] is logger
    assert payload == {"order_data": {"id": "P-1"}}


@pytest.mark.asyncio
async def test_process_job_without_handler_fails(job_service, fake_store, logger):
    await job_service.enqueue(type="unknownType", payload={})
    job = await _lease_one(job_service)

    await process_job(job_service, JobRegistry(), job, logger)

    stored = fake_store.jobs[job.id]
    assert stored.status == JobStatus.failed
    assert "No handler" in stored.last_error["error"]


@pytest.mark.asyncio
async def test_retriable_failure_exhausts_after_max_attempts(job_service, fake_store, logger):
    """A job failing every time is attempted five times with 2/4/8/16s backoff."""
    handler = AsyncMock(side_effect=RuntimeError("upstream down"))
    on_failed = AsyncMock()
    registry = JobRegistry()
    registry.register("createOrder", handler, on_failed=on_failed)
    await job_service.enqueue(type="createOrder", payload={})

    for _ in range(5):
        fake_store.make_due()
        job = await _lease_one(job_service)
        await process_job(job_service, registry, job, logger)

    stored = next(iter(fake_store.jobs.values()))
    assert handler.await_count == 5
    assert stored.status == JobStatus.failed
    assert stored.attempts == 5
    assert stored.last_error["error"] == "upstream down"
    assert fake_store.retry_delays == [2, 4, 8, 16]
    on_failed.assert_awaited_once()
    _, attempt, error = on_failed.await_args.args
    assert attempt == 5
    assert str(error) == "upstream down"


@pytest.mark.asyncio
async def test_retry_leaves_job_delayed(job_service, fake_store, logger):
    registry = JobRegistry()
    registry.register("createOrder", AsyncMock(side_effect=RuntimeError("boom")))
    await job_service.enqueue(type="createOrder", payload={})
    job = await _lease_one(job_service)

    await process_job(job_service, registry, job, logger)

    stored = fake_store.jobs[job.id]
    assert stored.state() == "delayed"
    assert stored.attempts == 1
    assert await job_service.lease_jobs(1, timedelta(minutes=5)) == []


@pytest.mark.asyncio
async def test_non_retriable_failure_stops_after_one_attempt(job_service, fake_store, logger):
    handler = AsyncMock(side_effect=NonRetriableJobError("Non-retriable error: Bad request"))
    on_failed = AsyncMock()
    registry = JobRegistry()
    registry.register("createOrder", handler, on_failed=on_failed)
    await job_service.enqueue(type="createOrder", payload={})
    job = await _lease_one(job_service)

    await process_job(job_service, registry, job, logger)

    stored = fake_store.jobs[job.id]
    assert stored.status == JobStatus.failed
    assert stored.attempts == 1
    assert stored.last_error["type"] == "NonRetriableJobError"
    assert fake_store.retry_delays == []
    on_failed.assert_awaited_once()


@pytest.mark.asyncio
async def test_failure_hook_errors_do_not_escape(job_service, fake_store, logger):
    registry = JobRegistry()
    registry.register(
        "createOrder",
        AsyncMock(side_effect=NonRetriableJobError("nope")),
        on_failed=AsyncMock(side_effect=RuntimeError("hook broke")),
    )
    await job_service.enqueue(type="createOrder", payload={})
    job = await _lease_one(job_service)

    await process_job(job_service, registry, job, logger)

    assert fake_store.jobs[job.id].status == JobStatus.failed


@pytest.mark.asyncio
async def test_worker_loop_processes_jobs_until_shutdown(job_service, fake_store, logger):
    shutdown_event = asyncio.Event()
    processed = []

    async def handler(ctx, payload):
        processed.append(payload["n"])
        if len(processed) == 3:
            shutdown_event.set()
        return {}

    registry = JobRegistry()
    registry.register("createOrder", handler)
    for n in range(3):
        await job_service.enqueue(type="createOrder", payload={"n": n})

    await asyncio.wait_for(
        run_worker_loop(
            job_service,
            registry,
            logger,
            concurrency=2,
            poll_interval_seconds=0.01,
            shutdown_event=shutdown_event,
        ),
        timeout=5,
    )

    assert sorted(processed) == [0, 1, 2]
    assert all(job.status == JobStatus.completed for job in fake_store.jobs.values())


@pytest.mark.asyncio
async def test_worker_loop_survives_lease_errors(job_service, logger):
    shutdown_event = asyncio.Event()

    async def failing_lease(max_count, lease_duration):
        shutdown_event.set()
        raise ConnectionError("database unreachable")

    with patch.object(job_service, "lease_jobs", side_effect=failing_lease) as lease:
        await asyncio.wait_for(
            run_worker_loop(job_service, JobRegistry(), logger, shutdown_event=shutdown_event),
            timeout=5,
        )

    assert lease.await_count == 1
