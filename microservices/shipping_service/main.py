"""
Shipping Microservice

Responsibilities:
- Shipping rate quotes across all enabled providers
- Provider account management for the admin back office
- Shipment booking for order_service
- Carrier status normalization
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

import uvicorn
from fastapi import Body, Depends, FastAPI, HTTPException, Path, Query, status

from core.auth_dependencies import require_admin, require_internal_service
from core.config import get_settings
from core.errors import register_exception_handlers
from core.logger import setup_service_logger

from .connection_service import ProviderConnectionService
from .models import (
    ConnectionResult,
    CreateShipmentRequest,
    PriorityRequest,
    ProviderCredentials,
    ProviderFilter,
    ProviderView,
    RateQuoteRequest,
    RateQuoteResponse,
    ShipmentCreated,
    ToggleProviderRequest,
    TrackingStatusRequest,
)
from .rate_aggregator import RateAggregator
from .shipping_service import ShippingService
from .status_normalizer import get_status_label

SERVICE_NAME = "shipping_service"
SERVICE_VERSION = "1.0.0"

settings = get_settings()
logger = setup_service_logger(SERVICE_NAME)


class ShippingMicroservice:
    """Shipping microservice core class"""

    def __init__(self):
        self.rate_aggregator: Optional[RateAggregator] = None
        self.connection_service: Optional[ProviderConnectionService] = None
        self.shipping_service: Optional[ShippingService] = None
        self.db = None

    async def initialize(self, components=None):
        """Initialize the microservice"""
        try:
            if components is None:
                from .factory import create_shipping_components
                components = await create_shipping_components(settings)

            self.rate_aggregator = components.rate_aggregator
            self.connection_service = components.connection_service
            self.shipping_service = components.shipping_service
            self.db = components.db
            logger.info("✅ Shipping microservice initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize shipping microservice: {e}")
            raise

    async def shutdown(self):
        """Shutdown the microservice"""
        if self.db is not None:
            await self.db.close()
            logger.info("PostgreSQL pool closed")
        logger.info("Shipping microservice shutdown completed")


# Global microservice instance
shipping_microservice = ShippingMicroservice()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    await shipping_microservice.initialize()
    yield
    await shipping_microservice.shutdown()


app = FastAPI(
    title="Shipping Service",
    description="Shipping rates, provider accounts and shipment booking",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)
register_exception_handlers(app)


# Dependency injection
def get_rate_aggregator() -> RateAggregator:
    if not shipping_microservice.rate_aggregator:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Shipping service not initialized",
        )
    return shipping_microservice.rate_aggregator


def get_connection_service() -> ProviderConnectionService:
    if not shipping_microservice.connection_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Shipping service not initialized",
        )
    return shipping_microservice.connection_service


def get_shipping_service() -> ShippingService:
    if not shipping_microservice.shipping_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Shipping service not initialized",
        )
    return shipping_microservice.shipping_service


@app.get("/health")
async def health_check():
    """Service health check"""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "port": settings.services.shipping_service_port,
        "version": SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ==================== Rates ====================

@app.post("/api/v1/shipping/rates", response_model=RateQuoteResponse)
async def get_shipping_rates(
    request: RateQuoteRequest,
    aggregator: RateAggregator = Depends(get_rate_aggregator),
):
    """Quote every enabled provider for a corridor"""
    return await aggregator.get_rates(request)


# ==================== Shipments (internal) ====================

@app.post("/api/v1/shipping/shipments", response_model=ShipmentCreated)
async def create_shipment(
    request: CreateShipmentRequest,
    _caller: str = Depends(require_internal_service),
    service: ShippingService = Depends(get_shipping_service),
):
    """Book a package with the given provider. Called by order_service."""
    return await service.create_shipment(request)


@app.post("/api/v1/shipping/status/normalize")
async def normalize_status(
    request: TrackingStatusRequest,
    service: ShippingService = Depends(get_shipping_service),
):
    normalized = service.normalize_status(request.provider_code, request.provider_status)
    return {"status": normalized.value, "label": get_status_label(normalized)}


# ==================== Admin: providers ====================

@app.get("/api/v1/admin/shipping/providers", response_model=List[ProviderView])
async def list_providers(
    is_enabled: Optional[bool] = Query(None, description="Filter by enabled flag"),
    code: Optional[str] = Query(None, pattern=r"^[a-z0-9_]+$", description="Filter by provider code"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _admin: str = Depends(require_admin),
    service: ProviderConnectionService = Depends(get_connection_service),
):
    filters = ProviderFilter(is_enabled=is_enabled, code=code, limit=limit, offset=offset)
    return await service.get_all_providers(filters)


@app.get("/api/v1/admin/shipping/providers/{provider_id}", response_model=ProviderView)
async def get_provider(
    provider_id: str = Path(..., description="Provider ID"),
    _admin: str = Depends(require_admin),
    service: ProviderConnectionService = Depends(get_connection_service),
):
    return await service.get_by_id(provider_id)


@app.post("/api/v1/admin/shipping/providers/{provider_id}/connect", response_model=ConnectionResult)
async def connect_provider(
    provider_id: str = Path(..., description="Provider ID"),
    credentials: ProviderCredentials = Body(...),
    admin_id: str = Depends(require_admin),
    service: ProviderConnectionService = Depends(get_connection_service),
):
    """Connect a provider account. A rejected login returns success=false."""
    return await service.connect(provider_id, credentials, admin_id)


@app.post("/api/v1/admin/shipping/providers/{provider_id}/disconnect", response_model=ProviderView)
async def disconnect_provider(
    provider_id: str = Path(..., description="Provider ID"),
    admin_id: str = Depends(require_admin),
    service: ProviderConnectionService = Depends(get_connection_service),
):
    return await service.disconnect(provider_id, admin_id)


@app.post("/api/v1/admin/shipping/providers/{provider_id}/toggle", response_model=ProviderView)
async def toggle_provider(
    provider_id: str = Path(..., description="Provider ID"),
    request: ToggleProviderRequest = Body(...),
    admin_id: str = Depends(require_admin),
    service: ProviderConnectionService = Depends(get_connection_service),
):
    return await service.toggle(provider_id, request.enabled, admin_id)


@app.put("/api/v1/admin/shipping/providers/{provider_id}/priority", response_model=ProviderView)
async def set_provider_priority(
    provider_id: str = Path(..., description="Provider ID"),
    request: PriorityRequest = Body(...),
    admin_id: str = Depends(require_admin),
    service: ProviderConnectionService = Depends(get_connection_service),
):
    return await service.set_priority(provider_id, request.priority, admin_id)


if __name__ == "__main__":
    uvicorn.run(
        "microservices.shipping_service.main:app",
        host=settings.default_host,
        port=settings.services.shipping_service_port,
        reload=settings.debug,
        log_level=settings.logging.log_level.lower(),
    )
