"""
Order Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_order_service
    service, resources = await create_order_service(settings)
"""
from typing import List, Optional, Tuple

from core.config import CommerceConfig, get_settings

from .notifications import NotificationQueue
from .order_service import OrderService


async def create_order_service(settings: Optional[CommerceConfig] = None) -> Tuple[OrderService, List[object]]:
    """
    Create OrderService with real dependencies.

    The notification worker is started here; every returned resource has
    an async ``close()`` or ``stop()``.
    """
    # Import real repository and clients here (not at module level)
    from core.postgres_client import get_postgres_client
    from .clients.shipping_client import ShippingServiceClient
    from .notifications import ResendEmailSender
    from .order_repository import OrderRepository

    settings = settings or get_settings()

    db = await get_postgres_client("order_service")
    shipping_client = ShippingServiceClient(settings.services.shipping_service_url)
    sender = ResendEmailSender(settings.notification)
    queue = NotificationQueue(sender, settings.notification)
    await queue.start()

    service = OrderService(
        repository=OrderRepository(db),
        shipping_client=shipping_client,
        notification_queue=queue,
        shipping_config=settings.shipping,
    )
    # Queue stops (and drains) before the sender it uses is closed
    return service, [queue, sender, shipping_client, db]
