"""FastAPI router for the portal HTTP API."""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict

from wholesale_orders.errors import JobNotFoundError, OrderValidationError
from wholesale_orders.models import Job
from wholesale_orders.service import JobService
from wholesale_orders.sources.base import DataSource
from wholesale_orders.submission import OrderSubmitter
from wholesale_orders.tasks.inventory_sync import InventorySync


logger = logging.getLogger(__name__)


class OrderSubmission(BaseModel):
    """Request model for an order submission. Unknown fields are kept."""

    model_config = ConfigDict(extra="allow")

    items: List[Dict[str, Any]] = []
    customer: Optional[Dict[str, Any]] = None


class StatusUpdateRequest(BaseModel):
    """Request model for an order status update."""

    status: Optional[str] = None


class JobResponse(BaseModel):
    """Response model for job details."""

    jobId: str
    type: str
    state: str
    attempts: int
    maxAttempts: int
    orderReference: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    lastError: Optional[Dict[str, Any]] = None
    runAt: Optional[str] = None
    createdAt: Optional[str] = None
    finishedAt: Optional[str] = None


def _job_response(job: Job) -> JobResponse:
    data = job.to_dict()
    return JobResponse(
        jobId=data["id"],
        type=data["type"],
        state=data["state"],
        attempts=data["attempts"],
        maxAttempts=data["max_attempts"],
        orderReference=job.order_reference,
        result=data["result"],
        lastError=data["last_error"],
        runAt=data["run_at"],
        createdAt=data["created_at"],
        finishedAt=data["finished_at"],
    )


def create_portal_router(
    job_service_factory: Callable[[], JobService],
    data_source_factory: Callable[[], DataSource],
    inventory_sync_factory: Callable[[], InventorySync],
) -> APIRouter:
    """
    Create FastAPI router for the /api/v1 portal API.

    Args:
        job_service_factory: Callable that returns the order queue JobService
        data_source_factory: Callable that returns the active DataSource
        inventory_sync_factory: Callable that returns the InventorySync task

    Returns:
        APIRouter instance
    """
    router = APIRouter()

    async def get_job_service() -> JobService:
        return job_service_factory()

    async def get_data_source() -> DataSource:
        return data_source_factory()

    async def get_inventory_sync() -> InventorySync:
        return inventory_sync_factory()

    @router.post("/orders", status_code=202)
    async def submit_order(
        request: OrderSubmission,
        job_service: JobService = Depends(get_job_service),
    ):
        """Accept an order and queue it for export to the warehouse."""
        submitter = OrderSubmitter(job_service)
        try:
            job = await submitter.submit(request.model_dump())
        except OrderValidationError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        except Exception as e:
            logger.exception("Error creating order")
            raise HTTPException(status_code=500, detail="Failed to create order") from e

        return {
            "success": True,
            "message": "Order received and queued for processing",
            "jobId": str(job.id),
            "order": {
                "status": "paid",
                "queuedAt": datetime.utcnow().isoformat(),
            },
        }

    @router.get("/orders")
    async def list_orders(
        status: Optional[str] = Query(None),
        customer: Optional[str] = Query(None),
        startDate: Optional[str] = Query(None),
        endDate: Optional[str] = Query(None),
        limit: int = Query(50, ge=1, le=1000),
        offset: int = Query(0, ge=0),
        data_source: DataSource = Depends(get_data_source),
    ):
        """List orders from the warehouse system."""
        try:
            orders = await data_source.list_orders(
                {
                    "status": status,
                    "customer": customer,
                    "startDate": startDate,
                    "endDate": endDate,
                    "limit": limit,
                    "offset": offset,
                }
            )
        except Exception as e:
            logger.exception("Error fetching orders")
            raise HTTPException(status_code=500, detail="Failed to fetch orders") from e

        return {
            "success": True,
            "data": orders,
            "pagination": {"limit": limit, "offset": offset, "total": len(orders)},
        }

    @router.get("/orders/{order_id}")
    async def get_order(order_id: str, data_source: DataSource = Depends(get_data_source)):
        """Get one order by id."""
        try:
            order = await data_source.get_order(order_id)
        except Exception as e:
            logger.exception(f"Error fetching order {order_id}")
            raise HTTPException(status_code=500, detail="Failed to fetch order") from e

        if order is None:
            raise HTTPException(status_code=404, detail="Order not found")
        return {"success": True, "data": order}

    @router.patch("/orders/{order_id}/status")
    async def update_order_status(
        order_id: str,
        request: StatusUpdateRequest,
        data_source: DataSource = Depends(get_data_source),
    ):
        """Change the status of an order in the warehouse system."""
        if not request.status:
            raise HTTPException(status_code=400, detail="Status is required")

        try:
            current_status = await data_source.get_order_status(order_id)
            if current_status is not None:
                await data_source.update_order(order_id, {"status": request.status})
        except Exception as e:
            logger.exception(f"Error updating order {order_id} status")
            raise HTTPException(
                status_code=500, detail="Failed to update order status"
            ) from e

        if current_status is None:
            raise HTTPException(status_code=404, detail="Order not found")

        logger.info(f"Order {order_id} status updated from {current_status} to {request.status}")
        return {
            "success": True,
            "message": "Order status updated",
            "data": {
                "orderId": order_id,
                "previousStatus": current_status,
                "newStatus": request.status,
                "updatedAt": datetime.utcnow().isoformat(),
            },
        }

    @router.get("/jobs/{job_id}")
    async def get_job(job_id: str, job_service: JobService = Depends(get_job_service)):
        """Get the state and result of an order job."""
        try:
            job_uuid = UUID(job_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail="Invalid job ID format") from e

        try:
            job = await job_service.get_job(job_uuid)
        except JobNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        except Exception as e:
            logger.exception("Error getting job")
            raise HTTPException(status_code=500, detail="Internal server error") from e

        return {"success": True, "data": _job_response(job).model_dump()}

    @router.get("/queue/stats")
    async def queue_stats(job_service: JobService = Depends(get_job_service)):
        """Per-state job counts of the order queue."""
        try:
            counts = await job_service.get_counts()
        except Exception as e:
            logger.exception("Error getting queue stats")
            raise HTTPException(status_code=500, detail="Failed to fetch queue stats") from e
        return {"success": True, "data": counts}

    @router.get("/products")
    async def list_products(
        category: Optional[str] = Query(None),
        brand: Optional[str] = Query(None),
        inStock: Optional[bool] = Query(None),
        minPrice: Optional[float] = Query(None),
        maxPrice: Optional[float] = Query(None),
        data_source: DataSource = Depends(get_data_source),
    ):
        """List catalog products."""
        try:
            products = await data_source.list_products(
                {
                    "category": category,
                    "brand": brand,
                    "inStock": inStock,
                    "minPrice": minPrice,
                    "maxPrice": maxPrice,
                }
            )
        except Exception as e:
            logger.exception("Error fetching products")
            raise HTTPException(status_code=500, detail="Failed to fetch products") from e

        return {"success": True, "data": products, "source": data_source.name}

    @router.get("/products/{product_id}")
    async def get_product(product_id: str, data_source: DataSource = Depends(get_data_source)):
        """Get one product by id or SKU."""
        try:
            product = await data_source.get_product(product_id)
        except Exception as e:
            logger.exception(f"Error fetching product {product_id}")
            raise HTTPException(status_code=500, detail="Failed to fetch product") from e

        if product is None:
            raise HTTPException(status_code=404, detail="Product not found")
        return {"success": True, "data": product, "source": data_source.name}

    @router.get("/inventory")
    async def get_inventory(inventory_sync: InventorySync = Depends(get_inventory_sync)):
        """Serve the most recent inventory snapshot."""
        snapshot = inventory_sync.snapshot
        if snapshot is None:
            raise HTTPException(
                status_code=404,
                detail=(
                    "Inventory not yet synced. Please wait for the next sync "
                    "cycle or trigger manual sync."
                ),
            )
        return {"success": True, "data": snapshot, "lastSync": snapshot["lastSync"]}

    @router.post("/inventory/sync")
    async def sync_inventory(inventory_sync: InventorySync = Depends(get_inventory_sync)):
        """Run an inventory sync now."""
        logger.info("Manual inventory sync triggered")
        try:
            snapshot = await inventory_sync.run()
        except Exception as e:
            logger.exception("Error syncing inventory")
            raise HTTPException(status_code=500, detail="Failed to sync inventory") from e

        if snapshot is None:
            raise HTTPException(status_code=409, detail="Inventory sync already in progress")

        return {
            "success": True,
            "message": "Inventory synced successfully",
            "data": {
                "productsUpdated": snapshot["count"],
                "syncedAt": snapshot["lastSync"],
            },
        }

    return router
