"""Exception types for the wholesale order portal."""

from enum import Enum
from typing import Optional


class PortalError(Exception):
    """Base exception for all portal errors."""

    pass


class UpstreamErrorKind(str, Enum):
    """Closed set of failure categories surfaced by the upstream client."""

    unauthorized = "unauthorized"
    rate_limited = "rate_limited"
    bad_request = "bad_request"
    not_found = "not_found"
    upstream_unavailable = "upstream_unavailable"
    network_unreachable = "network_unreachable"
    unknown = "unknown"


TRANSIENT_KINDS = frozenset(
    {
        UpstreamErrorKind.unauthorized,
        UpstreamErrorKind.rate_limited,
        UpstreamErrorKind.upstream_unavailable,
        UpstreamErrorKind.network_unreachable,
    }
)


class UpstreamError(PortalError):
    """Raised when a call to the warehouse-management API fails."""

    def __init__(
        self,
        kind: UpstreamErrorKind,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        self.kind = UpstreamErrorKind(kind)
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message)

    @property
    def transient(self) -> bool:
        """Whether the condition is expected to clear on a later attempt."""
        return self.kind in TRANSIENT_KINDS

    def __repr__(self) -> str:
        return (
            f"UpstreamError(kind={self.kind.value}, status_code={self.status_code}, "
            f"message={self.message!r})"
        )


class AuthTokenError(PortalError):
    """Raised when an upstream access token cannot be obtained."""

    pass


class NonRetriableJobError(PortalError):
    """Raised by a job handler when the job must not be attempted again."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class JobNotFoundError(PortalError):
    """Raised when a job is not found."""

    def __init__(self, job_id: str, message: str = None):
        self.job_id = job_id
        if message is None:
            message = f"Job {job_id} not found"
        super().__init__(message)


class OrderValidationError(PortalError):
    """Raised when an order submission is rejected before enqueue."""

    pass

