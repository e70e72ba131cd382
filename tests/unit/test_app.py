"""Unit tests for application wiring."""

import logging
import time

from fastapi.testclient import TestClient

from wholesale_orders.app import build_data_source, create_app
from wholesale_orders.config import PortalConfig
from wholesale_orders.models import CREATE_ORDER_JOB
from wholesale_orders.sources import LiveDataSource, MockDataSource


def test_build_data_source_mock(config):
    assert isinstance(build_data_source(config), MockDataSource)


def test_build_data_source_live():
    config = PortalConfig(
        db_dsn="postgresql://test",
        extensiv_base_url="https://wms.example.com",
        extensiv_client_id="client",
        extensiv_client_secret="secret",
        extensiv_customer_id="cust-1",
    )

    source = build_data_source(config)

    assert isinstance(source, LiveDataSource)
    assert source.client.base_url == "https://wms.example.com"
    assert source.client.token_provider.customer_id == "cust-1"


def test_create_app_registers_order_handler(config, job_service):
    app = create_app(config, job_service=job_service, run_background=False)

    assert app.state.registry.get_handler(CREATE_ORDER_JOB) is not None
    assert app.state.registry.get_failure_hook(CREATE_ORDER_JOB) is not None
    assert isinstance(app.state.data_source, MockDataSource)


def test_lifespan_runs_background_loops_and_stops(config, job_service, fake_store, sample_order):
    """Orders submitted over HTTP are exported by the in-process worker."""
    app = create_app(config, job_service=job_service, logger=logging.getLogger("test"))

    with TestClient(app) as client:
        job_id = client.post("/api/v1/orders", json=sample_order).json()["jobId"]
        state = None
        for _ in range(200):
            state = client.get(f"/api/v1/jobs/{job_id}").json()["data"]["state"]
            if state == "completed":
                break
            time.sleep(0.05)

    assert state == "completed"
    result = next(iter(fake_store.jobs.values())).result
    assert result["status"] == "paid"


def test_cors_allows_frontend_origin(config, job_service):
    client = TestClient(create_app(config, job_service=job_service, run_background=False))

    response = client.options(
        "/api/v1/orders",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "POST",
        },
    )

    assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
