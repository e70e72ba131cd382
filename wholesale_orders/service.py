"""High-level service layer for order queue operations."""

import logging
from datetime import datetime, timedelta
from typing import Any, Optional
from uuid import UUID, uuid4

from wholesale_orders.config import PortalConfig
from wholesale_orders.models import JOB_STATES, Job, JobStatus
from wholesale_orders.store import JobStore


class JobService:
    """High-level API for job operations."""

    def __init__(
        self,
        config: PortalConfig,
        store: JobStore,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.store = store
        self.logger = logger or logging.getLogger(__name__)

    async def enqueue(
        self,
        *,
        type: str,
        payload: dict[str, Any],
        run_at: Optional[datetime] = None,
        max_attempts: Optional[int] = None,
        backoff_policy: Optional[dict[str, Any]] = None,
        priority: int = 0,
    ) -> Job:
        """
        Enqueue a new job.

        Args:
            type: Job type (e.g., "createOrder")
            payload: Job payload as dictionary, never modified afterwards
            run_at: When to run the job (defaults to now)
            max_attempts: Maximum attempts (defaults to the queue setting)
            backoff_policy: Retry backoff policy (defaults to the queue setting)
            priority: Job priority (higher = more important)

        Returns:
            Job: The stored job, carrying its queue-assigned id
        """
        if run_at is None:
            run_at = datetime.utcnow()
        if max_attempts is None:
            max_attempts = self.config.queue_max_attempts
        if backoff_policy is None:
            backoff_policy = self.config.default_backoff_policy()

        job = await self.store.insert_job(
            id=uuid4(),
            type=type,
            payload=payload,
            run_at=run_at,
            max_attempts=max_attempts,
            backoff_policy=backoff_policy,
            priority=priority,
        )

        self.logger.info(f"Job {job.id} added to order queue (type: {type})")
        return job

    async def get_job(self, job_id: UUID) -> Job:
        """Get a job by ID."""
        return await self.store.get_job(job_id)

    async def list_jobs(
        self,
        *,
        type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> list[Job]:
        """List jobs with optional filters."""
        return await self.store.list_jobs(type=type, status=status, limit=limit)

    async def lease_jobs(self, max_count: int, lease_duration: timedelta) -> list[Job]:
        """
        Atomically lease up to ``max_count`` runnable jobs.

        Leased jobs become active until ``lease_duration`` elapses, after
        which requeue_stalled treats them as abandoned.
        """
        if max_count <= 0:
            return []

        now = datetime.utcnow()
        return await self.store.lease_jobs(max_count, now, now + lease_duration)

    async def mark_job_completed(self, job: Job, result: dict[str, Any]) -> None:
        """Mark a job as completed and prune completed history."""
        await self.store.update_job_completed(job.id, result, datetime.utcnow())
        await self._trim_history(JobStatus.completed)
        self.logger.info(f"Order job {job.id} completed successfully")

    async def mark_job_retry(
        self, job: Job, error: dict[str, Any], backoff_seconds: float
    ) -> datetime:
        """Send a job back to the queue to run after ``backoff_seconds``."""
        now = datetime.utcnow()
        next_run_at = now + timedelta(seconds=backoff_seconds)
        await self.store.update_job_retry(job.id, error, next_run_at, now)
        self.logger.info(f"Job {job.id} scheduled for retry at {next_run_at}")
        return next_run_at

    async def mark_job_failed(self, job: Job, error: dict[str, Any]) -> None:
        """Mark a job as permanently failed and prune failed history."""
        await self.store.update_job_failed(job.id, error, datetime.utcnow())
        await self._trim_history(JobStatus.failed)
        self.logger.error(f"Job {job.id} marked as failed")

    async def _trim_history(self, status: JobStatus) -> None:
        keep = self.config.retention_for_status(status.value)
        if keep is not None:
            await self.store.trim_history(status, keep)

    async def requeue_stalled(self) -> int:
        """
        Recover jobs whose worker stopped renewing the lease.

        This should be called periodically so that a crash mid-processing
        never drops a job. Returns the number of jobs recovered.
        """
        count = await self.store.requeue_stalled(datetime.utcnow())
        if count > 0:
            self.logger.warning(f"Recovered {count} stalled order jobs")
        return count

    async def get_counts(self) -> dict[str, int]:
        """Aggregate job counts per state, plus their total."""
        counts = await self.store.count_by_state(datetime.utcnow())
        stats = {state: counts.get(state, 0) for state in JOB_STATES}
        stats["total"] = sum(stats.values())
        return stats

    async def clean(self, grace: timedelta) -> int:
        """Delete completed and failed jobs finished more than ``grace`` ago."""
        cutoff = datetime.utcnow() - grace
        removed = 0
        for status in (JobStatus.completed, JobStatus.failed):
            removed += await self.store.delete_finished_before(status, cutoff)
        self.logger.info(
            f"Order queue cleaned (grace: {int(grace.total_seconds())}s, removed: {removed})"
        )
        return removed
