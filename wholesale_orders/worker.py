"""Worker logic for the order queue."""

import asyncio
import logging
import random
from datetime import datetime, timedelta
from typing import Any, Optional

from wholesale_orders.errors import NonRetriableJobError
from wholesale_orders.models import Job
from wholesale_orders.registry import JobRegistry
from wholesale_orders.service import JobService

MAX_BACKOFF_SECONDS = 3600


async def process_job(
    job_service: JobService,
    registry: JobRegistry,
    job: Job,
    logger: logging.Logger,
) -> Optional[dict[str, Any]]:
    """
    Execute one leased job and record its outcome.

    Success completes the job with the handler's result. A
    NonRetriableJobError fails it at once; any other error sends it back to
    the queue with backoff until max_attempts is reached.

    Returns:
        The handler result on success, otherwise None
    """
    attempt = job.attempts + 1

    handler = registry.get_handler(job.type)
    if not handler:
        logger.error(f"No handler found for job type {job.type}")
        error = {
            "error": f"No handler for type {job.type}",
            "timestamp": datetime.utcnow().isoformat(),
        }
        await job_service.mark_job_failed(job, error)
        return None

    logger.info(f"Executing job {job.id} (type={job.type}, attempt={attempt})")

    try:
        ctx = {"job": job, "logger": logger, "attempt": attempt}
        result = await handler(ctx, job.payload)
    except Exception as e:
        error = {
            "error": str(e),
            "type": type(e).__name__,
            "attempt": attempt,
            "timestamp": datetime.utcnow().isoformat(),
        }

        if isinstance(e, NonRetriableJobError):
            logger.error(f"Job {job.id} failed with non-retriable error: {e}")
            await job_service.mark_job_failed(job, error)
            await _run_failure_hook(registry, job, attempt, e, logger)
            return None

        logger.error(f"Job {job.id} failed: {str(e)}", exc_info=True)

        if attempt < job.max_attempts:
            backoff_seconds = _calculate_backoff_with_jitter(job.backoff_policy, attempt)
            await job_service.mark_job_retry(job, error, backoff_seconds)
            logger.info(
                f"Job {job.id} will retry (attempt {attempt}/"
                f"{job.max_attempts}) after {backoff_seconds:.1f}s"
            )
        else:
            await job_service.mark_job_failed(job, error)
            logger.error(f"Job {job.id} failed after {job.max_attempts} attempts")
            await _run_failure_hook(registry, job, attempt, e, logger)
        return None

    result = result if isinstance(result, dict) else {"value": result}
    await job_service.mark_job_completed(job, result)
    return result


async def _run_failure_hook(
    registry: JobRegistry,
    job: Job,
    attempt: int,
    error: BaseException,
    logger: logging.Logger,
) -> None:
    hook = registry.get_failure_hook(job.type)
    if hook is None:
        return
    try:
        await hook(job, attempt, error)
    except Exception:
        logger.exception(f"Failure hook for job {job.id} raised")


async def run_worker_loop(
    job_service: JobService,
    registry: JobRegistry,
    logger: logging.Logger,
    concurrency: int = 5,
    lease_duration: timedelta = timedelta(minutes=5),
    poll_interval_seconds: float = 1.0,
    shutdown_event: asyncio.Event = None,
) -> None:
    """
    Run the worker loop that leases jobs and processes them concurrently.

    Args:
        job_service: Job service bound to the order queue store
        registry: Job handler registry
        logger: Logger instance
        concurrency: Maximum number of jobs executing at the same time
        lease_duration: How long a leased job may run before it counts as stalled
        poll_interval_seconds: Sleep between polls when the queue is idle
        shutdown_event: Optional event to signal shutdown
    """
    semaphore = asyncio.Semaphore(concurrency)
    in_flight: set[asyncio.Task] = set()

    async def run_one(job: Job) -> None:
        async with semaphore:
            try:
                await process_job(job_service, registry, job, logger)
            except Exception as e:
                # Outcome could not be recorded; the lease expiry requeues it.
                logger.error(f"Error recording outcome of job {job.id}: {e}", exc_info=True)

    logger.info(f"Starting worker loop (concurrency={concurrency})")

    while True:
        if shutdown_event and shutdown_event.is_set():
            logger.info("Shutdown signal received, exiting worker loop")
            break

        try:
            free_slots = concurrency - len(in_flight)
            jobs = []
            if free_slots > 0:
                jobs = await job_service.lease_jobs(free_slots, lease_duration)

            for job in jobs:
                task = asyncio.create_task(run_one(job))
                in_flight.add(task)
                task.add_done_callback(in_flight.discard)

            if not jobs:
                await wait_for_shutdown(shutdown_event, poll_interval_seconds)

        except Exception as e:
            logger.error(f"Error in worker loop: {str(e)}", exc_info=True)
            await wait_for_shutdown(shutdown_event, 5)

    if in_flight:
        logger.info(f"Waiting for {len(in_flight)} in-flight jobs")
        await asyncio.gather(*in_flight, return_exceptions=True)


async def wait_for_shutdown(shutdown_event: Optional[asyncio.Event], seconds: float) -> None:
    """Sleep, waking early when shutdown is requested."""
    if shutdown_event is None:
        await asyncio.sleep(seconds)
        return
    try:
        await asyncio.wait_for(shutdown_event.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        pass


def _calculate_backoff_with_jitter(backoff_policy: dict[str, Any], attempt: int) -> float:
    """
    Calculate backoff delay with the policy's jitter fraction applied.

    Args:
        backoff_policy: Backoff policy configuration
        attempt: Number of the attempt that just failed (1-indexed)

    Returns:
        Backoff delay in seconds
    """
    base_delay = _calculate_backoff(backoff_policy, attempt)

    jitter = float(backoff_policy.get("jitter", 0.0))
    if jitter <= 0:
        return float(base_delay)

    jittered_delay = base_delay * (1.0 + random.uniform(-jitter, jitter))
    return max(1.0, jittered_delay)


def _calculate_backoff(backoff_policy: dict[str, Any], attempt: int) -> float:
    """
    Calculate backoff delay based on policy and attempt number.

    Args:
        backoff_policy: Backoff policy configuration
        attempt: Number of the attempt that just failed (1-indexed)

    Returns:
        Backoff delay in seconds
    """
    policy_type = backoff_policy.get("type", "exponential")
    base_seconds = backoff_policy.get("base_seconds", 2)

    if policy_type == "fixed":
        return min(base_seconds, MAX_BACKOFF_SECONDS)

    # Exponential: base * 2^(attempt-1), so 2s, 4s, 8s, 16s with the defaults
    delay = base_seconds * (2 ** (attempt - 1))
    return min(delay, MAX_BACKOFF_SECONDS)
