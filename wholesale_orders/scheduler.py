"""Scheduled loops: queue maintenance and periodic tasks."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

from wholesale_orders.config import PortalConfig
from wholesale_orders.service import JobService
from wholesale_orders.worker import wait_for_shutdown


class SingleFlight:
    """
    Non-blocking guard that lets one run of a task proceed at a time.

    A run attempted while another is in progress is skipped rather than
    queued behind it.
    """

    def __init__(self, name: str, logger: Optional[logging.Logger] = None):
        self.name = name
        self.logger = logger or logging.getLogger(__name__)
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run(self, func: Callable[[], Awaitable[Any]]) -> Optional[Any]:
        """Run ``func`` unless a run is in progress; returns None when skipped."""
        if self._running:
            self.logger.info(f"{self.name} already in progress, skipping")
            return None

        self._running = True
        try:
            return await func()
        finally:
            self._running = False


async def run_periodic(
    name: str,
    func: Callable[[], Awaitable[Any]],
    interval_seconds: float,
    logger: logging.Logger,
    shutdown_event: asyncio.Event = None,
    initial_delay_seconds: float = 0,
) -> None:
    """
    Call ``func`` every ``interval_seconds`` until shutdown.

    Errors are logged and the loop keeps its schedule.
    """
    logger.info(f"Starting {name} (every {interval_seconds:.0f}s)")

    if initial_delay_seconds:
        await wait_for_shutdown(shutdown_event, initial_delay_seconds)

    while not (shutdown_event and shutdown_event.is_set()):
        try:
            await func()
        except Exception as e:
            logger.error(f"Error in {name}: {str(e)}", exc_info=True)

        await wait_for_shutdown(shutdown_event, interval_seconds)

    logger.info(f"Shutdown signal received, stopping {name}")


async def run_maintenance_loop(
    job_service: JobService,
    config: PortalConfig,
    logger: logging.Logger,
    loop_interval_seconds: int = 30,
    shutdown_event: asyncio.Event = None,
) -> None:
    """
    Run queue maintenance until shutdown.

    Jobs whose lease expired are returned to waiting on every iteration.
    Finished jobs older than the clean grace period are deleted once per
    grace period.

    Args:
        job_service: Job service bound to the order queue store
        config: Portal configuration
        logger: Logger instance
        loop_interval_seconds: Time to sleep between iterations
        shutdown_event: Optional event to signal shutdown
    """
    grace = timedelta(seconds=config.queue_clean_grace_seconds)
    last_clean: Optional[datetime] = None

    logger.info("Starting order queue maintenance loop")

    while True:
        if shutdown_event and shutdown_event.is_set():
            logger.info("Shutdown signal received, exiting maintenance loop")
            break

        try:
            await job_service.requeue_stalled()

            now = datetime.utcnow()
            if last_clean is None or now - last_clean >= grace:
                await job_service.clean(grace)
                last_clean = now
        except Exception as e:
            logger.error(f"Error in maintenance loop: {str(e)}", exc_info=True)

        await wait_for_shutdown(shutdown_event, loop_interval_seconds)
