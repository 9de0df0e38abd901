"""
Purchase confirmation notifications

Order updates never wait on email delivery: confirmations go onto an
in-process queue drained by a background worker. Each task is retried with
exponential backoff; a task that still fails is logged and dropped.
"""

import asyncio
import html
import logging
from dataclasses import dataclass
from typing import Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from core.config import NotificationConfig
from core.errors import ProviderError, is_retryable

from .models import Order
from .protocols import NotificationSenderProtocol

logger = logging.getLogger(__name__)


@dataclass
class NotificationTask:
    order: Order
    email: str
    kind: str = "purchase_confirmation"


def render_purchase_confirmation(order: Order) -> str:
    rows = "".join(
        f"<tr><td>{html.escape(item.name)}</td><td>{item.quantity}</td>"
        f"<td>&#8377;{item.unit_price * item.quantity:,.2f}</td></tr>"
        for item in order.items
    )
    name = html.escape(order.address.name or "there")
    return (
        f"<p>Hi {name},</p>"
        f"<p>Thanks for your purchase. Your order <strong>{order.code}</strong> is confirmed.</p>"
        f"<table>{rows}</table>"
        f"<p>Total paid: &#8377;{order.totals.grand_total:,.2f}</p>"
    )


class ResendEmailSender:
    """Sends transactional email through the Resend API"""

    def __init__(self, config: NotificationConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.resend_base_url,
                headers={
                    "Authorization": f"Bearer {self.config.resend_api_key}",
                    "Content-Type": "application/json",
                },
                timeout=30.0,
            )
        return self._client

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send_purchase_confirmation(self, order: Order, email: str) -> None:
        if not self.config.resend_api_key:
            logger.warning(f"Resend API key not configured. Skipping confirmation for {order.code}")
            return

        email_data = {
            "from": self.config.from_email,
            "to": [email],
            "subject": f"Order {order.code} confirmed",
            "html": render_purchase_confirmation(order),
        }
        try:
            response = await self.client.post("/emails", json=email_data)
        except httpx.HTTPError as e:
            raise ProviderError(f"Email API unreachable: {e}", provider="resend") from e

        if response.status_code >= 400:
            raise ProviderError(
                f"Email API error: {response.status_code} - {response.text}",
                provider="resend",
                retryable=response.status_code >= 500 or response.status_code == 429,
            )
        logger.info(f"Purchase confirmation for {order.code} sent: {response.json().get('id')}")


class NotificationQueue:
    """
    Background delivery of purchase confirmations

    ``start()`` must run inside the event loop before anything is enqueued;
    ``stop()`` drains what is already queued.
    """

    def __init__(self, sender: NotificationSenderProtocol, config: Optional[NotificationConfig] = None):
        self.sender = sender
        self.config = config or NotificationConfig()
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self.config.queue_size)
        self._worker = asyncio.create_task(self._run())
        logger.info("Notification worker started")

    async def stop(self) -> None:
        if not self.running:
            return
        await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Notification worker stopped")

    async def join(self) -> None:
        """Wait until every queued task has been attempted"""
        if self._queue is not None:
            await self._queue.join()

    def enqueue_purchase_confirmation(self, order: Order, email: str) -> bool:
        return self.enqueue(NotificationTask(order=order, email=email))

    def enqueue(self, task: NotificationTask) -> bool:
        if not self.running:
            logger.warning(f"Notification worker not running; dropping {task.kind} for {task.order.code}")
            return False
        try:
            self._queue.put_nowait(task)
        except asyncio.QueueFull:
            logger.error(f"Notification queue full; dropping {task.kind} for {task.order.code}")
            return False
        return True

    async def _deliver(self, task: NotificationTask) -> None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self.config.backoff_min_seconds,
                max=self.config.backoff_max_seconds,
            ),
            retry=retry_if_exception(is_retryable),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self.sender.send_purchase_confirmation(task.order, task.email)

    async def _run(self) -> None:
        while True:
            task = await self._queue.get()
            try:
                await self._deliver(task)
            except Exception as e:
                logger.error(f"Failed to send {task.kind} for order {task.order.code}: {e}")
            finally:
                self._queue.task_done()
