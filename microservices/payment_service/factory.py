"""
Payment Service Factory

Factory for creating PaymentService with real dependencies.
This is the ONLY module that imports concrete implementations.
"""

import logging
from typing import Optional, Tuple

from core.config import CommerceConfig, get_settings

from .payment_service import PaymentService

logger = logging.getLogger(__name__)


async def create_payment_service(settings: Optional[CommerceConfig] = None) -> Tuple[PaymentService, list]:
    """
    Create PaymentService with all real dependencies

    Returns:
        The service and the resources to close on shutdown
    """
    from core.postgres_client import get_postgres_client
    from .clients.order_client import OrderServiceClient
    from .payment_repository import PaymentRepository
    from .razorpay_gateway import RazorpayGateway

    settings = settings or get_settings()

    db = await get_postgres_client("payment_service")
    gateway = RazorpayGateway(settings.payment)
    order_client = OrderServiceClient(settings.services.order_service_url)

    if not settings.payment.razorpay_key_id or not settings.payment.razorpay_key_secret:
        logger.warning("⚠️  Razorpay keys not configured - payment order creation will fail")
    if not settings.payment.razorpay_webhook_secret:
        logger.warning("⚠️  RAZORPAY_WEBHOOK_SECRET not set - webhooks will be rejected")

    service = PaymentService(
        repository=PaymentRepository(db),
        gateway=gateway,
        config=settings.payment,
        order_client=order_client,
    )
    return service, [gateway, order_client, db]
