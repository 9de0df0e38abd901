"""
Order Microservice

Responsibilities:
- Order placement and lifecycle
- Payment outcomes reported by payment_service
- Seller-by-seller fulfillment through shipping_service
- Carrier tracking updates
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

import uvicorn
from fastapi import Body, Depends, FastAPI, HTTPException, Path, Query, status

from core.auth_dependencies import (
    is_internal_service_request,
    optional_auth_or_internal_service,
    require_admin,
    require_auth_or_internal_service,
    require_internal_service,
)
from core.config import get_settings
from core.errors import register_exception_handlers
from core.logger import setup_service_logger
from core.rate_limiter import FixedWindowRateLimiter, rate_limit

from .models import (
    FulfillmentResult,
    Order,
    OrderCancelRequest,
    OrderCreateRequest,
    OrderFilter,
    OrderListResponse,
    OrderStatus,
    OrderUpdateRequest,
    PaymentCompletedRequest,
    PaymentFailedRequest,
    PaymentStatus,
    Shipment,
    StatusUpdateRequest,
    TrackingUpdateRequest,
)
from .order_service import OrderService

SERVICE_NAME = "order_service"
SERVICE_VERSION = "1.0.0"

settings = get_settings()
logger = setup_service_logger(SERVICE_NAME)

checkout_limiter: Optional[FixedWindowRateLimiter] = (
    FixedWindowRateLimiter.from_config(settings.rate_limit) if settings.rate_limit.enabled else None
)


class OrderMicroservice:
    """Order microservice core class"""

    def __init__(self):
        self.order_service: Optional[OrderService] = None
        self._resources = []

    async def initialize(self):
        """Initialize the microservice"""
        try:
            from .factory import create_order_service
            self.order_service, self._resources = await create_order_service(settings)
            logger.info("✅ Order microservice initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize order microservice: {e}")
            raise

    async def shutdown(self):
        """Shutdown the microservice"""
        for resource in self._resources:
            closer = getattr(resource, "stop", None) or getattr(resource, "close")
            try:
                await closer()
            except Exception as e:
                logger.error(f"Error during shutdown of {type(resource).__name__}: {e}")
        logger.info("Order microservice shutdown completed")


# Global microservice instance
order_microservice = OrderMicroservice()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    await order_microservice.initialize()
    yield
    await order_microservice.shutdown()


app = FastAPI(
    title="Order Service",
    description="Order lifecycle, payment outcomes and fulfillment",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)
register_exception_handlers(app)


def get_order_service() -> OrderService:
    """Get order service instance"""
    if not order_microservice.order_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Order service not initialized",
        )
    return order_microservice.order_service


def _owner(user_id: str) -> Optional[str]:
    """Internal callers skip the ownership check"""
    return None if is_internal_service_request(user_id) else user_id


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "port": settings.services.order_service_port,
        "version": SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ==================== Orders ====================

@app.post(
    "/api/v1/orders",
    response_model=Order,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(checkout_limiter, "create-order"))],
)
async def create_order(
    request: OrderCreateRequest,
    user_id: Optional[str] = Depends(optional_auth_or_internal_service),
    order_service: OrderService = Depends(get_order_service),
):
    """Place an order. Guests may check out without a user id."""
    owner = _owner(user_id) if user_id else None
    return await order_service.create_order(request, owner)


@app.get("/api/v1/orders", response_model=OrderListResponse)
async def list_orders(
    user_id: Optional[str] = Query(None, description="Filter by user ID"),
    order_status: Optional[OrderStatus] = Query(None, alias="status", description="Filter by status"),
    payment_status: Optional[PaymentStatus] = Query(None, description="Filter by payment status"),
    code: Optional[str] = Query(None, pattern=r"^BB-\d+$", description="Filter by order code"),
    created_from: Optional[datetime] = Query(None, description="Created at or after"),
    created_to: Optional[datetime] = Query(None, description="Created at or before"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _admin: str = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service),
):
    filters = OrderFilter(
        user_id=user_id,
        status=order_status,
        payment_status=payment_status,
        code=code,
        created_from=created_from,
        created_to=created_to,
        limit=limit,
        offset=offset,
    )
    orders = await order_service.list_orders(filters)
    return OrderListResponse(orders=orders, count=len(orders), limit=limit, offset=offset)


@app.get("/api/v1/orders/{order_id}", response_model=Order)
async def get_order(
    order_id: str = Path(..., description="Order ID"),
    user_id: str = Depends(require_auth_or_internal_service),
    order_service: OrderService = Depends(get_order_service),
):
    return await order_service.get_order(order_id, _owner(user_id))


@app.get("/api/v1/orders/{order_id}/shipments", response_model=List[Shipment])
async def get_order_shipments(
    order_id: str = Path(..., description="Order ID"),
    user_id: str = Depends(require_auth_or_internal_service),
    order_service: OrderService = Depends(get_order_service),
):
    return await order_service.get_shipments(order_id, _owner(user_id))


@app.put("/api/v1/orders/{order_id}", response_model=Order)
async def update_order(
    order_id: str = Path(..., description="Order ID"),
    request: OrderUpdateRequest = Body(...),
    user_id: str = Depends(require_auth_or_internal_service),
    order_service: OrderService = Depends(get_order_service),
):
    return await order_service.update_order(order_id, request, _owner(user_id))


@app.post("/api/v1/orders/{order_id}/cancel", response_model=Order)
async def cancel_order(
    order_id: str = Path(..., description="Order ID"),
    request: OrderCancelRequest = Body(default_factory=OrderCancelRequest),
    user_id: str = Depends(require_auth_or_internal_service),
    order_service: OrderService = Depends(get_order_service),
):
    return await order_service.cancel_order(order_id, request.reason, _owner(user_id))


# ==================== Admin ====================

@app.patch("/api/v1/orders/{order_id}/status", response_model=Order)
async def update_order_status(
    order_id: str = Path(..., description="Order ID"),
    request: StatusUpdateRequest = Body(...),
    admin_id: str = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service),
):
    return await order_service.transition(order_id, request.status, admin_id)


@app.post("/api/v1/orders/{order_id}/fulfill", response_model=FulfillmentResult)
async def fulfill_order(
    order_id: str = Path(..., description="Order ID"),
    _admin: str = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service),
):
    """Book shipments for every seller group not yet booked"""
    return await order_service.fulfill_order(order_id)


@app.post("/api/v1/shipments/tracking")
async def update_shipment_tracking(
    request: TrackingUpdateRequest,
    _admin: str = Depends(require_admin),
    order_service: OrderService = Depends(get_order_service),
):
    shipment = await order_service.update_shipment_tracking(request)
    return {"shipment_id": shipment.id, "code": shipment.code, "status": shipment.status.value}


# ==================== Internal (payment_service) ====================

@app.post("/api/v1/orders/{order_id}/payment-completed", response_model=Order)
async def payment_completed(
    order_id: str = Path(..., description="Order ID"),
    request: PaymentCompletedRequest = Body(default_factory=PaymentCompletedRequest),
    _caller: str = Depends(require_internal_service),
    order_service: OrderService = Depends(get_order_service),
):
    return await order_service.mark_payment_completed(order_id, request.payment_id)


@app.post("/api/v1/orders/{order_id}/payment-failed", response_model=Order)
async def payment_failed(
    order_id: str = Path(..., description="Order ID"),
    request: PaymentFailedRequest = Body(default_factory=PaymentFailedRequest),
    _caller: str = Depends(require_internal_service),
    order_service: OrderService = Depends(get_order_service),
):
    return await order_service.mark_payment_failed(order_id, request.reason)


if __name__ == "__main__":
    uvicorn.run(
        "microservices.order_service.main:app",
        host=settings.default_host,
        port=settings.services.order_service_port,
        reload=settings.debug,
        log_level=settings.logging.log_level.lower(),
    )
