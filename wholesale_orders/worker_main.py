"""CLI entrypoint and programmatic interface for a standalone order worker."""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import timedelta
from typing import Optional

from wholesale_orders.app import build_data_source, create_db_pool
from wholesale_orders.config import PortalConfig
from wholesale_orders.processor import OrderJobProcessor
from wholesale_orders.registry import JobRegistry
from wholesale_orders.server_main import setup_logging
from wholesale_orders.service import JobService
from wholesale_orders.store import JobStore
from wholesale_orders.worker import run_worker_loop


async def run_worker(
    config: Optional[PortalConfig] = None,
    db_pool=None,
    logger: Optional[logging.Logger] = None,
    shutdown_event: Optional[asyncio.Event] = None,
    concurrency: Optional[int] = None,
):
    """
    Run an order worker outside the API process.

    Args:
        config: PortalConfig instance. If None, will load from environment.
        db_pool: Database connection pool. If None, will create from config.
        logger: Logger instance. If None, will create default logger.
        shutdown_event: Optional asyncio.Event for graceful shutdown.
        concurrency: Jobs processed at once. Defaults to ORDER_QUEUE_CONCURRENCY.
    """
    if config is None:
        config = PortalConfig.from_env()

    if logger is None:
        logger = logging.getLogger(__name__)

    if shutdown_event is None:
        shutdown_event = asyncio.Event()

    db_pool_provided = db_pool is not None
    if db_pool is None:
        db_pool = await create_db_pool(config)

    data_source = build_data_source(config, logger)
    registry = JobRegistry()
    OrderJobProcessor(data_source, logger).register(registry)

    try:
        await run_worker_loop(
            JobService(config, JobStore(db_pool), logger),
            registry,
            logger,
            concurrency=concurrency or config.queue_concurrency,
            lease_duration=timedelta(seconds=config.queue_lease_seconds),
            shutdown_event=shutdown_event,
        )
    finally:
        await data_source.close()
        if not db_pool_provided and db_pool:
            await db_pool.close()


def main():
    """Main entrypoint for worker."""
    setup_logging()
    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(description="Wholesale order queue worker")
    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Jobs processed at once (default: ORDER_QUEUE_CONCURRENCY)",
    )
    args = parser.parse_args()

    try:
        config = PortalConfig.from_env()
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    shutdown_event = asyncio.Event()

    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down...")
        shutdown_event.set()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    async def run():
        """Async main function."""
        try:
            logger.info("Starting order worker...")
            await run_worker(
                config=config,
                logger=logger,
                shutdown_event=shutdown_event,
                concurrency=args.concurrency,
            )
        except Exception as e:
            logger.error(f"Fatal error in worker: {e}", exc_info=True)
            sys.exit(1)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
