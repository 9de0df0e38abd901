"""
Payment Microservice

Responsibilities:
- Gateway order creation for checkout (idempotent per local order)
- Checkout signature verification
- Razorpay webhook intake
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, Header, HTTPException, Request, status

from core.auth_dependencies import require_auth_or_internal_service
from core.config import get_settings
from core.errors import ConfigurationError, SignatureError, ValidationError, register_exception_handlers
from core.logger import setup_service_logger
from core.rate_limiter import FixedWindowRateLimiter, rate_limit

from .models import CreatePaymentOrderRequest, PaymentGatewayOrder, VerificationFailure, VerifyPaymentRequest
from .payment_service import PaymentService

SERVICE_NAME = "payment_service"
SERVICE_VERSION = "1.0.0"

settings = get_settings()
logger = setup_service_logger(SERVICE_NAME)

checkout_limiter: Optional[FixedWindowRateLimiter] = (
    FixedWindowRateLimiter.from_config(settings.rate_limit) if settings.rate_limit.enabled else None
)


class PaymentMicroservice:
    """Payment microservice core class"""

    def __init__(self):
        self.payment_service: Optional[PaymentService] = None
        self._resources = []

    async def initialize(self):
        """Initialize the microservice"""
        try:
            from .factory import create_payment_service
            self.payment_service, self._resources = await create_payment_service(settings)
            logger.info("✅ Payment microservice initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize payment microservice: {e}")
            raise

    async def shutdown(self):
        """Shutdown the microservice"""
        for resource in self._resources:
            try:
                await resource.close()
            except Exception as e:
                logger.error(f"Error closing {type(resource).__name__}: {e}")
        logger.info("Payment microservice shutdown completed")


# Global microservice instance
payment_microservice = PaymentMicroservice()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    await payment_microservice.initialize()
    yield
    await payment_microservice.shutdown()


app = FastAPI(
    title="Payment Service",
    description="Razorpay payment orders, verification and webhooks",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)
register_exception_handlers(app)


def get_payment_service() -> PaymentService:
    """Get payment service instance"""
    if not payment_microservice.payment_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment service not initialized",
        )
    return payment_microservice.payment_service


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "port": settings.services.payment_service_port,
        "version": SERVICE_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@app.post(
    "/api/v1/payments/create-order",
    response_model=PaymentGatewayOrder,
    dependencies=[Depends(rate_limit(checkout_limiter, "create-order"))],
)
async def create_payment_order(
    request: CreatePaymentOrderRequest,
    _user_id: str = Depends(require_auth_or_internal_service),
    service: PaymentService = Depends(get_payment_service),
):
    """Create the gateway order the browser checkout opens"""
    return await service.create_payment_order(request)


FAILURE_ERRORS = {
    VerificationFailure.MISSING_FIELDS: ValidationError,
    VerificationFailure.MALFORMED_PAYLOAD: ValidationError,
    VerificationFailure.NOT_CONFIGURED: ConfigurationError,
    VerificationFailure.INVALID_SIGNATURE: SignatureError,
}


def _verification_error(failure: Optional[VerificationFailure], message: str) -> Exception:
    return FAILURE_ERRORS.get(failure, SignatureError)(message)


@app.post("/api/v1/payments/verify")
async def verify_payment(
    request: VerifyPaymentRequest,
    _user_id: str = Depends(require_auth_or_internal_service),
    service: PaymentService = Depends(get_payment_service),
):
    result = await service.verify_payment(request)
    if not result.is_valid:
        raise _verification_error(result.failure, result.error or "Payment verification failed")
    return {"verified": True, "local_order_id": result.local_order_id}


@app.post("/api/v1/webhooks/razorpay")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None, alias="x-razorpay-signature"),
    service: PaymentService = Depends(get_payment_service),
):
    """Signed gateway callbacks. The signature covers the raw body bytes."""
    raw_body = await request.body()
    verification = service.verify_webhook(x_razorpay_signature, raw_body)
    if not verification.is_valid:
        logger.error(f"Webhook verification failed: {verification.error}")
        raise _verification_error(verification.failure, verification.error or "Webhook verification failed")

    result = await service.handle_webhook_event(verification.event)
    return result.model_dump()


if __name__ == "__main__":
    uvicorn.run(
        "microservices.payment_service.main:app",
        host=settings.default_host,
        port=settings.services.payment_service_port,
        reload=settings.debug,
        log_level=settings.logging.log_level.lower(),
    )
