"""FastAPI application factory for the wholesale order portal."""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Optional

import asyncpg
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from wholesale_orders import __version__
from wholesale_orders.config import PortalConfig
from wholesale_orders.ddl import ORDER_JOBS_TABLE_DDL
from wholesale_orders.fastapi_router import create_portal_router
from wholesale_orders.processor import OrderJobProcessor
from wholesale_orders.registry import JobRegistry
from wholesale_orders.scheduler import run_maintenance_loop, run_periodic
from wholesale_orders.service import JobService
from wholesale_orders.sources import DataSource, LiveDataSource, MockDataSource
from wholesale_orders.store import JobStore
from wholesale_orders.tasks import InventorySync, OrderStatusPoller
from wholesale_orders.tasks import inventory_sync as inventory_sync_module
from wholesale_orders.tasks import order_status_poller as order_status_poller_module
from wholesale_orders.upstream import AccessTokenProvider, UpstreamClient
from wholesale_orders.worker import run_worker_loop

SHUTDOWN_TIMEOUT_SECONDS = 10


async def create_db_pool(config: PortalConfig) -> asyncpg.Pool:
    """Create database connection pool and ensure the order queue table exists."""
    pool = await asyncpg.create_pool(config.db_dsn, min_size=2, max_size=10)
    async with pool.acquire() as conn:
        await conn.execute(ORDER_JOBS_TABLE_DDL)
    return pool


def build_data_source(config: PortalConfig, logger: Optional[logging.Logger] = None) -> DataSource:
    """Select the data source once, from EXTENSIV_MOCK_MODE."""
    logger = logger or logging.getLogger(__name__)
    if config.mock_mode:
        logger.warning("EXTENSIV_MOCK_MODE enabled, serving fixture data")
        return MockDataSource()

    token_provider = AccessTokenProvider(
        base_url=config.extensiv_base_url,
        client_id=config.extensiv_client_id,
        client_secret=config.extensiv_client_secret,
        customer_id=config.extensiv_customer_id,
        token_expiry_seconds=config.extensiv_token_expiry_seconds,
    )
    client = UpstreamClient(config.extensiv_base_url, token_provider)
    return LiveDataSource(client)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "statusCode": status_code, "message": message},
    )


def create_app(
    config: PortalConfig,
    *,
    job_service: Optional[JobService] = None,
    data_source: Optional[DataSource] = None,
    run_background: bool = True,
    logger: Optional[logging.Logger] = None,
) -> FastAPI:
    """
    Build the portal application.

    Collaborators are created here and handed to the routes and background
    loops that need them. Passing ``job_service`` or ``data_source`` replaces
    the Postgres-backed queue or the configured data source.

    Args:
        config: Portal configuration
        job_service: Order queue service (built on a new Postgres pool if omitted)
        data_source: Data source (selected from config if omitted)
        run_background: Start the worker, maintenance and scheduled loops
        logger: Logger instance
    """
    logger = logger or logging.getLogger(__name__)

    data_source = data_source or build_data_source(config, logger)
    registry = JobRegistry()
    OrderJobProcessor(data_source, logger).register(registry)
    inventory_sync = InventorySync(
        data_source, config.inventory_sync_interval_minutes, logger
    )
    status_poller = OrderStatusPoller(
        data_source, config.order_status_poll_interval_minutes, logger
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db_pool = None
        if app.state.job_service is None:
            logger.info("Creating database connection pool...")
            db_pool = await create_db_pool(config)
            app.state.job_service = JobService(config, JobStore(db_pool), logger)

        shutdown_event = asyncio.Event()
        tasks = []
        if run_background:
            service = app.state.job_service
            tasks = [
                asyncio.create_task(
                    run_worker_loop(
                        service,
                        registry,
                        logger,
                        concurrency=config.queue_concurrency,
                        lease_duration=timedelta(seconds=config.queue_lease_seconds),
                        shutdown_event=shutdown_event,
                    )
                ),
                asyncio.create_task(
                    run_maintenance_loop(service, config, logger, shutdown_event=shutdown_event)
                ),
                asyncio.create_task(
                    run_periodic(
                        "inventory sync",
                        inventory_sync.run,
                        inventory_sync.interval_seconds,
                        logger,
                        shutdown_event=shutdown_event,
                        initial_delay_seconds=inventory_sync_module.INITIAL_DELAY_SECONDS,
                    )
                ),
                asyncio.create_task(
                    run_periodic(
                        "order status polling",
                        status_poller.run,
                        status_poller.interval_seconds,
                        logger,
                        shutdown_event=shutdown_event,
                        initial_delay_seconds=order_status_poller_module.INITIAL_DELAY_SECONDS,
                    )
                ),
            ]
            logger.info("Background jobs started")

        logger.info(f"Server ready (data source: {data_source.name})")
        try:
            yield
        finally:
            logger.info("Received shutdown signal, closing server gracefully...")
            shutdown_event.set()
            if tasks:
                try:
                    await asyncio.wait_for(
                        asyncio.gather(*tasks, return_exceptions=True),
                        timeout=SHUTDOWN_TIMEOUT_SECONDS,
                    )
                except asyncio.TimeoutError:
                    logger.error("Forced shutdown due to timeout")
                    for task in tasks:
                        task.cancel()

            await data_source.close()
            if db_pool is not None:
                logger.info("Closing database connection pool...")
                await db_pool.close()

    app = FastAPI(title="Wholesale Orders API", version=__version__, lifespan=lifespan)
    app.state.config = config
    app.state.job_service = job_service
    app.state.data_source = data_source
    app.state.registry = registry
    app.state.inventory_sync = inventory_sync
    app.state.status_poller = status_poller
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.frontend_url],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"{request.method} {request.url.path}")
        return await call_next(request)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
        return _error_response(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
            message = f"Invalid request: {location} {errors[0].get('msg', '')}".strip()
        return _error_response(400, message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc
        )
        return _error_response(500, "Internal server error")

    @app.get("/health")
    async def health():
        database = "disconnected"
        service = app.state.job_service
        if service is not None:
            try:
                if await service.store.ping():
                    database = "connected"
            except Exception as e:
                logger.warning(f"Database health check failed: {e}")

        return {
            "status": "healthy",
            "timestamp": datetime.utcnow().isoformat(),
            "database": database,
            "uptime": time.monotonic() - app.state.started_at,
        }

    @app.get("/api/")
    async def api_index():
        return {
            "message": "Wholesale Orders API",
            "version": __version__,
            "endpoints": {
                "products": "/api/v1/products",
                "orders": "/api/v1/orders",
                "inventory": "/api/v1/inventory",
                "jobs": "/api/v1/jobs/{job_id}",
                "queueStats": "/api/v1/queue/stats",
                "health": "/health",
            },
        }

    app.include_router(
        create_portal_router(
            job_service_factory=lambda: app.state.job_service,
            data_source_factory=lambda: app.state.data_source,
            inventory_sync_factory=lambda: app.state.inventory_sync,
        ),
        prefix="/api/v1",
    )

    return app
