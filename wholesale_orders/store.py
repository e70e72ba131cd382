"""Database store layer for the order queue."""

import json
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import asyncpg

from wholesale_orders.errors import JobNotFoundError
from wholesale_orders.models import DELAYED_STATE, Job, JobStatus


def _affected_rows(result: Optional[str]) -> int:
    """Extract the row count from a status string like "UPDATE 5"."""
    if not result:
        return 0
    try:
        return int(result.split()[-1])
    except ValueError:
        return 0


def _load_json(value: Any) -> Any:
    if value is not None and isinstance(value, str):
        return json.loads(value)
    return value


class JobStore:
    """Database layer for job operations."""

    def __init__(self, db_pool: asyncpg.Pool):
        self.db_pool = db_pool

    async def insert_job(
        self,
        id: UUID,
        type: str,
        payload: dict[str, Any],
        run_at: datetime,
        max_attempts: int,
        backoff_policy: dict[str, Any],
        priority: int = 0,
    ) -> Job:
        """Insert a new waiting job."""
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                INSERT INTO order_jobs (
                    id, type, status, payload, priority, run_at,
                    attempts, max_attempts, backoff_policy
                ) VALUES ($1, $2, $3, $4, $5, $6, 0, $7, $8)
                RETURNING *
                """,
                id,
                type,
                JobStatus.waiting.value,
                json.dumps(payload),
                priority,
                run_at,
                max_attempts,
                json.dumps(backoff_policy),
            )

        return self._row_to_job(row)

    async def get_job(self, job_id: UUID) -> Job:
        """Get a job by ID."""
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM order_jobs WHERE id = $1", job_id)

        if not row:
            raise JobNotFoundError(str(job_id))

        return self._row_to_job(row)

    async def list_jobs(
        self,
        type: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = 50,
    ) -> list[Job]:
        """List jobs with optional filters, newest first."""
        query = "SELECT * FROM order_jobs WHERE 1=1"
        params = []
        param_idx = 1

        if type:
            query += f" AND type = ${param_idx}"
            params.append(type)
            param_idx += 1

        if status:
            query += f" AND status = ${param_idx}"
            params.append(status)
            param_idx += 1

        query += f" ORDER BY seq DESC LIMIT ${param_idx}"
        params.append(limit)

        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(query, *params)

        return [self._row_to_job(row) for row in rows]

    async def lease_jobs(
        self, limit: int, now: datetime, lease_expires_at: datetime
    ) -> list[Job]:
        """
        Atomically lease runnable jobs.

        Uses FOR UPDATE SKIP LOCKED so that concurrent workers never lease the
        same job. Higher priority first, then FIFO by run_at and insertion.
        """
        async with self.db_pool.acquire() as conn:
            rows = await conn.fetch(
                """
                UPDATE order_jobs
                SET status = $1, lease_expires_at = $2, updated_at = $5
                WHERE id IN (
                    SELECT id FROM order_jobs
                    WHERE status = $3
                      AND run_at <= $5
                    ORDER BY priority DESC, run_at ASC, seq ASC
                    LIMIT $4
                    FOR UPDATE SKIP LOCKED
                )
                RETURNING *
                """,
                JobStatus.active.value,
                lease_expires_at,
                JobStatus.waiting.value,
                limit,
                now,
            )

        jobs = [self._row_to_job(row) for row in rows]
        jobs.sort(key=lambda job: (-job.priority, job.run_at))
        return jobs

    async def update_job_completed(
        self, job_id: UUID, result: dict[str, Any], now: datetime
    ) -> None:
        """Mark an active job as completed with its result."""
        async with self.db_pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE order_jobs
                SET status = $1,
                    attempts = attempts + 1,
                    result = $2,
                    lease_expires_at = NULL,
                    updated_at = $3,
                    finished_at = $3
                WHERE id = $4 AND status = $5
                """,
                JobStatus.completed.value,
                json.dumps(result),
                now,
                job_id,
                JobStatus.active.value,
            )

    async def update_job_retry(
        self, job_id: UUID, error: dict[str, Any], next_run_at: datetime, now: datetime
    ) -> None:
        """Send an active job back to waiting with incremented attempts."""
        async with self.db_pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE order_jobs
                SET status = $1,
                    attempts = attempts + 1,
                    last_error = $2,
                    run_at = $3,
                    lease_expires_at = NULL,
                    updated_at = $4
                WHERE id = $5 AND status = $6
                """,
                JobStatus.waiting.value,
                json.dumps(error),
                next_run_at,
                now,
                job_id,
                JobStatus.active.value,
            )

    async def update_job_failed(
        self, job_id: UUID, error: dict[str, Any], now: datetime
    ) -> None:
        """Mark an active job as failed (terminal)."""
        async with self.db_pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE order_jobs
                SET status = $1,
                    attempts = attempts + 1,
                    last_error = $2,
                    lease_expires_at = NULL,
                    updated_at = $3,
                    finished_at = $3
                WHERE id = $4 AND status = $5
                """,
                JobStatus.failed.value,
                json.dumps(error),
                now,
                job_id,
                JobStatus.active.value,
            )

    async def requeue_stalled(self, now: datetime) -> int:
        """
        Recover active jobs whose lease expired.

        A stall counts as an attempt. Jobs with attempts left go back to
        waiting; the others are failed.
        Returns the number of jobs recovered.
        """
        async with self.db_pool.acquire() as conn:
            result = await conn.execute(
                """
                UPDATE order_jobs
                SET status = $1,
                    lease_expires_at = NULL,
                    attempts = attempts + 1,
                    last_error = jsonb_build_object(
                        'error', 'Job stalled - worker may have crashed',
                        'timestamp', $3::text
                    ),
                    updated_at = $4
                WHERE status = $2
                  AND lease_expires_at < $4
                  AND attempts + 1 < max_attempts
                """,
                JobStatus.waiting.value,
                JobStatus.active.value,
                now.isoformat(),
                now,
            )
            requeued = _affected_rows(result)

            failed_result = await conn.execute(
                """
                UPDATE order_jobs
                SET status = $1,
                    lease_expires_at = NULL,
                    attempts = attempts + 1,
                    last_error = jsonb_build_object(
                        'error', 'Job stalled after max attempts',
                        'timestamp', $3::text
                    ),
                    updated_at = $4,
                    finished_at = $4
                WHERE status = $2
                  AND lease_expires_at < $4
                  AND attempts + 1 >= max_attempts
                """,
                JobStatus.failed.value,
                JobStatus.active.value,
                now.isoformat(),
                now,
            )

            return requeued + _affected_rows(failed_result)

    async def count_by_state(self, now: datetime) -> dict[str, int]:
        """Count jobs per observable state."""
        async with self.db_pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT
                  COUNT(*) FILTER (WHERE status = 'waiting' AND run_at <= $1) AS waiting,
                  COUNT(*) FILTER (WHERE status = 'active') AS active,
                  COUNT(*) FILTER (WHERE status = 'completed') AS completed,
                  COUNT(*) FILTER (WHERE status = 'failed') AS failed,
                  COUNT(*) FILTER (WHERE status = 'waiting' AND run_at > $1) AS delayed
                FROM order_jobs
                """,
                now,
            )

        return {
            "waiting": row["waiting"],
            "active": row["active"],
            "completed": row["completed"],
            "failed": row["failed"],
            DELAYED_STATE: row["delayed"],
        }

    async def trim_history(self, status: JobStatus, keep: int) -> int:
        """Delete finished jobs of a status beyond the most recent ``keep``."""
        async with self.db_pool.acquire() as conn:
            result = await conn.execute(
                """
                DELETE FROM order_jobs
                WHERE id IN (
                    SELECT id FROM order_jobs
                    WHERE status = $1
                    ORDER BY finished_at DESC, seq DESC
                    OFFSET $2
                )
                """,
                status.value,
                keep,
            )
        return _affected_rows(result)

    async def delete_finished_before(self, status: JobStatus, cutoff: datetime) -> int:
        """Delete finished jobs of a status that finished before ``cutoff``."""
        async with self.db_pool.acquire() as conn:
            result = await conn.execute(
                """
                DELETE FROM order_jobs
                WHERE status = $1 AND finished_at < $2
                """,
                status.value,
                cutoff,
            )
        return _affected_rows(result)

    async def ping(self) -> bool:
        """Check database connectivity."""
        async with self.db_pool.acquire() as conn:
            return await conn.fetchval("SELECT 1") == 1

    def _row_to_job(self, row: asyncpg.Record) -> Job:
        """Convert a database row to a Job model."""
        return Job(
            id=row["id"],
            type=row["type"],
            status=JobStatus(row["status"]),
            payload=_load_json(row["payload"]),
            run_at=row["run_at"],
            priority=row["priority"],
            attempts=row["attempts"],
            max_attempts=row["max_attempts"],
            backoff_policy=_load_json(row["backoff_policy"]),
            lease_expires_at=row["lease_expires_at"],
            result=_load_json(row["result"]),
            last_error=_load_json(row["last_error"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            finished_at=row["finished_at"],
        )
