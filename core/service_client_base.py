"""
Base class for calls between storefront services

Subclasses set ``service_name`` and call ``get``/``post`` with a path. Every
request carries the internal service headers, and a transport failure
surfaces as a retryable ProviderError naming the peer.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from core.errors import ProviderError
from core.internal_service_auth import InternalServiceAuth

logger = logging.getLogger(__name__)


class BaseServiceClient:
    service_name: Optional[str] = None

    def __init__(
        self,
        base_url: str,
        use_internal_auth: bool = True,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not self.service_name:
            raise ValueError(f"{type(self).__name__} has no service_name")

        self.base_url = base_url.rstrip("/")
        headers = {"User-Agent": f"storefront/{self.service_name}-client"}
        if use_internal_auth:
            headers.update(InternalServiceAuth.get_internal_service_headers())

        if client is None:
            client = httpx.AsyncClient(timeout=timeout, headers=headers)
        else:
            client.headers.update(headers)
        self.client = client

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self.client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.HTTPError as e:
            peer = self.service_name.replace("_", " ").capitalize()
            raise ProviderError(f"{peer} unreachable: {e}", provider=self.service_name) from e

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        return await self._request("GET", path, params=params)

    async def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> httpx.Response:
        return await self._request("POST", path, json=json)

    @staticmethod
    def error_message(response: httpx.Response) -> str:
        """The ``error`` field of a storefront error body, else the raw text"""
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return response.text

    async def health_check(self) -> bool:
        try:
            response = await self.get("/health")
        except ProviderError as e:
            logger.warning(f"{self.service_name} health check failed: {e}")
            return False
        return response.status_code == 200

    async def close(self) -> None:
        await self.client.aclose()


__all__ = ["BaseServiceClient"]
