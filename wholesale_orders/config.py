"""Configuration for the wholesale order portal."""

import os
from typing import Any, Dict, Optional


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"Invalid integer in {name}: {raw!r}") from e


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class PortalConfig:
    """Configuration object for the portal API, order queue and upstream client."""

    def __init__(
        self,
        db_dsn: str,
        extensiv_base_url: str = "https://api.extensiv.com",
        extensiv_client_id: Optional[str] = None,
        extensiv_client_secret: Optional[str] = None,
        extensiv_customer_id: Optional[str] = None,
        extensiv_token_expiry_seconds: int = 3600,
        mock_mode: bool = False,
        queue_max_attempts: int = 5,
        queue_backoff_base_seconds: int = 2,
        queue_keep_completed: int = 100,
        queue_keep_failed: int = 500,
        queue_concurrency: int = 5,
        queue_lease_seconds: int = 300,
        queue_clean_grace_seconds: int = 24 * 3600,
        inventory_sync_interval_minutes: int = 10,
        order_status_poll_interval_minutes: int = 5,
        frontend_url: str = "http://localhost:5173",
        port: int = 3001,
        log_level: str = "INFO",
    ):
        self.db_dsn = db_dsn
        self.extensiv_base_url = extensiv_base_url.rstrip("/")
        self.extensiv_client_id = extensiv_client_id
        self.extensiv_client_secret = extensiv_client_secret
        self.extensiv_customer_id = extensiv_customer_id
        self.extensiv_token_expiry_seconds = extensiv_token_expiry_seconds
        self.mock_mode = mock_mode
        self.queue_max_attempts = queue_max_attempts
        self.queue_backoff_base_seconds = queue_backoff_base_seconds
        self.queue_keep_completed = queue_keep_completed
        self.queue_keep_failed = queue_keep_failed
        self.queue_concurrency = queue_concurrency
        self.queue_lease_seconds = queue_lease_seconds
        self.queue_clean_grace_seconds = queue_clean_grace_seconds
        self.inventory_sync_interval_minutes = inventory_sync_interval_minutes
        self.order_status_poll_interval_minutes = order_status_poll_interval_minutes
        self.frontend_url = frontend_url
        self.port = port
        self.log_level = log_level

        if not mock_mode and not (extensiv_client_id and extensiv_client_secret):
            raise ValueError(
                "Extensiv credentials not configured. Please set "
                "EXTENSIV_CLIENT_ID and EXTENSIV_CLIENT_SECRET"
            )

    @classmethod
    def from_env(cls) -> "PortalConfig":
        """Create config from environment variables."""
        db_dsn = os.getenv("ORDER_QUEUE_DB_DSN")
        if not db_dsn:
            raise ValueError("ORDER_QUEUE_DB_DSN environment variable is required")

        return cls(
            db_dsn=db_dsn,
            extensiv_base_url=os.getenv(
                "EXTENSIV_BASE_URL", "https://api.extensiv.com"
            ),
            extensiv_client_id=os.getenv("EXTENSIV_CLIENT_ID"),
            extensiv_client_secret=os.getenv("EXTENSIV_CLIENT_SECRET"),
            extensiv_customer_id=os.getenv("EXTENSIV_CUSTOMER_ID") or None,
            extensiv_token_expiry_seconds=_env_int("EXTENSIV_TOKEN_EXPIRY", 3600),
            mock_mode=_env_bool("EXTENSIV_MOCK_MODE"),
            queue_max_attempts=_env_int("ORDER_QUEUE_MAX_ATTEMPTS", 5),
            queue_backoff_base_seconds=_env_int("ORDER_QUEUE_BACKOFF_BASE_SECONDS", 2),
            queue_keep_completed=_env_int("ORDER_QUEUE_KEEP_COMPLETED", 100),
            queue_keep_failed=_env_int("ORDER_QUEUE_KEEP_FAILED", 500),
            queue_concurrency=_env_int("ORDER_QUEUE_CONCURRENCY", 5),
            queue_lease_seconds=_env_int("ORDER_QUEUE_LEASE_SECONDS", 300),
            queue_clean_grace_seconds=_env_int(
                "ORDER_QUEUE_CLEAN_GRACE_SECONDS", 24 * 3600
            ),
            inventory_sync_interval_minutes=_env_int("INVENTORY_SYNC_INTERVAL", 10),
            order_status_poll_interval_minutes=_env_int(
                "ORDER_STATUS_POLL_INTERVAL", 5
            ),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:5173"),
            port=_env_int("PORT", 3001),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def default_backoff_policy(self) -> Dict[str, Any]:
        """Backoff policy attached to newly enqueued order jobs."""
        return {
            "type": "exponential",
            "base_seconds": self.queue_backoff_base_seconds,
        }

    def retention_for_status(self, status: str) -> Optional[int]:
        """Number of finished jobs of a status kept in history."""
        return {
            "completed": self.queue_keep_completed,
            "failed": self.queue_keep_failed,
        }.get(status)
