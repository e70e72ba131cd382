"""CLI entrypoint for the portal API server."""

import logging
import os
import sys

import uvicorn

from wholesale_orders.app import SHUTDOWN_TIMEOUT_SECONDS, create_app
from wholesale_orders.config import PortalConfig


def setup_logging():
    """Setup logging configuration."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def main():
    """Main entrypoint for the API server."""
    setup_logging()
    logger = logging.getLogger("wholesale_orders")

    try:
        config = PortalConfig.from_env()
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    app = create_app(config, logger=logger)

    logger.info(f"Server running on port {config.port}")
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=config.port,
        log_level=config.log_level.lower(),
        timeout_graceful_shutdown=SHUTDOWN_TIMEOUT_SECONDS,
    )


if __name__ == "__main__":
    main()
