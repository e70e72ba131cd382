"""Wholesale order portal API with a durable order queue."""

__version__ = "0.1.0"

from wholesale_orders.config import PortalConfig
from wholesale_orders.ddl import ORDER_JOBS_TABLE_DDL
from wholesale_orders.errors import (
    AuthTokenError,
    JobNotFoundError,
    NonRetriableJobError,
    OrderValidationError,
    PortalError,
    UpstreamError,
    UpstreamErrorKind,
)
from wholesale_orders.models import CREATE_ORDER_JOB, Job, JobStatus
from wholesale_orders.processor import OrderJobProcessor
from wholesale_orders.registry import JobRegistry
from wholesale_orders.service import JobService
from wholesale_orders.sources import DataSource, LiveDataSource, MockDataSource
from wholesale_orders.store import JobStore
from wholesale_orders.submission import OrderSubmitter
from wholesale_orders.worker import run_worker_loop

__all__ = [
    "PortalConfig",
    "ORDER_JOBS_TABLE_DDL",
    "AuthTokenError",
    "JobNotFoundError",
    "NonRetriableJobError",
    "OrderValidationError",
    "PortalError",
    "UpstreamError",
    "UpstreamErrorKind",
    "CREATE_ORDER_JOB",
    "Job",
    "JobStatus",
    "OrderJobProcessor",
    "JobRegistry",
    "JobService",
    "DataSource",
    "LiveDataSource",
    "MockDataSource",
    "JobStore",
    "OrderSubmitter",
    "run_worker_loop",
]
