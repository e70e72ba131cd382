"""Data models for order queue jobs."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID


CREATE_ORDER_JOB = "createOrder"


class JobStatus(str, Enum):
    """Persisted job status values."""

    waiting = "waiting"
    active = "active"
    completed = "completed"
    failed = "failed"


# Reported for waiting jobs whose run_at is still in the future.
DELAYED_STATE = "delayed"

JOB_STATES = ("waiting", "active", "completed", "failed", "delayed")


class Job:
    """Represents a job record."""

    def __init__(
        self,
        id: UUID,
        type: str,
        status: JobStatus,
        payload: Dict[str, Any],
        run_at: datetime,
        priority: int,
        attempts: int,
        max_attempts: int,
        backoff_policy: Dict[str, Any],
        lease_expires_at: Optional[datetime] = None,
        result: Optional[Dict[str, Any]] = None,
        last_error: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        finished_at: Optional[datetime] = None,
    ):
        self.id = id
        self.type = type
        self.status = JobStatus(status) if isinstance(status, str) else status
        self.payload = payload
        self.run_at = run_at
        self.priority = priority
        self.attempts = attempts
        self.max_attempts = max_attempts
        self.backoff_policy = backoff_policy
        self.lease_expires_at = lease_expires_at
        self.result = result
        self.last_error = last_error
        self.created_at = created_at
        self.updated_at = updated_at
        self.finished_at = finished_at

    def state(self, now: Optional[datetime] = None) -> str:
        """Observable state, distinguishing delayed retries from waiting jobs."""
        if self.status == JobStatus.waiting:
            now = now or datetime.utcnow()
            if self.run_at and self.run_at > now:
                return DELAYED_STATE
        return self.status.value

    @property
    def order_reference(self) -> Optional[str]:
        """Client-side identifier of the order carried by a createOrder job."""
        order_data = (self.payload or {}).get("order_data") or {}
        return order_data.get("id") or order_data.get("orderNumber")

    def to_dict(self) -> Dict[str, Any]:
        """Convert job to dictionary for JSON serialization."""
        return {
            "id": str(self.id),
            "type": self.type,
            "status": self.status.value,
            "state": self.state(),
            "payload": self.payload,
            "run_at": self.run_at.isoformat() if self.run_at else None,
            "priority": self.priority,
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
            "backoff_policy": self.backoff_policy,
            "lease_expires_at": (
                self.lease_expires_at.isoformat() if self.lease_expires_at else None
            ),
            "result": self.result,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }
