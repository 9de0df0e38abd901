"""
Shiprocket Shipping Provider

Implements rate quotes and shipment booking against the Shiprocket external
API. https://apidocs.shiprocket.in/

Credentials (email_password):
    email, password as entered by the admin; ``token`` and
    ``token_expires_at`` are cached after a successful login.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx

from core.errors import ProviderError

from ..models import (
    ConnectionType,
    CreateShipmentRequest,
    ProviderAuthResult,
    ProviderCredentials,
    RateQuote,
    ShipmentCreated,
    ShipmentStatus,
    ShippingMode,
    ShippingRate,
)
from .base import ShippingProviderAdapter

logger = logging.getLogger(__name__)


class ShiprocketProvider(ShippingProviderAdapter):
    """
    Shiprocket aggregator.

    Usage:
        provider = ShiprocketProvider(provider_id, {"email": ..., "password": ...})
        quote = await provider.quote_rates("110001", "400001", 1.5, cod=False)
    """

    code = "shiprocket"
    name = "Shiprocket"
    connection_type = ConnectionType.EMAIL_PASSWORD

    API_BASE = "https://apiv2.shiprocket.in/v1/external"
    TRACKING_URL = "https://shiprocket.co/tracking/{awb}"
    TOKEN_TTL = timedelta(hours=240)

    MIN_WEIGHT_KG = 0.1
    MAX_WEIGHT_KG = 50.0
    MIN_COURIER_RATING = 4.0
    DEFAULT_DIMENSION_CM = 10
    DEFAULT_DELIVERY_DAYS = 3

    ENDPOINTS = {
        "auth": "/auth/login",
        "serviceability": "/courier/serviceability",
        "create_order": "/orders/create/adhoc",
        "assign_awb": "/courier/assign/awb",
    }

    def __init__(
        self,
        provider_id: str,
        credentials: Optional[Dict[str, Any]] = None,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(provider_id, credentials)
        self.timeout = timeout
        self._client = client
        self._token: Optional[str] = self.credentials.get("token")
        expires = self.credentials.get("token_expires_at")
        self._token_expires_at: Optional[datetime] = datetime.fromisoformat(expires) if expires else None

    @property
    def client(self) -> httpx.AsyncClient:
        """Lazy HTTP client initialization"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.API_BASE,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        return self._client

    async def close(self):
        """Close HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # ==================== Auth ====================

    async def _login(self, email: str, password: str) -> Dict[str, Any]:
        try:
            response = await self.client.post(
                self.ENDPOINTS["auth"], json={"email": email, "password": password}
            )
        except httpx.HTTPError as e:
            raise ProviderError(f"Shiprocket login failed: {e}", provider=self.code) from e

        if response.status_code != 200:
            message = self._error_message(response)
            raise ProviderError(
                f"Authentication failed: {message}",
                provider=self.code,
                retryable=response.status_code >= 500,
            )
        return response.json()

    async def authenticate(self, credentials: ProviderCredentials) -> ProviderAuthResult:
        if credentials.type != ConnectionType.EMAIL_PASSWORD:
            return ProviderAuthResult(success=False, error="Shiprocket requires email_password credentials")
        try:
            data = await self._login(credentials.email, credentials.password)
        except ProviderError as e:
            return ProviderAuthResult(success=False, error=e.message)

        self._token = data.get("token")
        self._token_expires_at = datetime.utcnow() + self.TOKEN_TTL
        return ProviderAuthResult(
            success=True,
            token=self._token,
            token_expires_at=self._token_expires_at,
            account_info={
                "id": data.get("id"),
                "email": data.get("email"),
                "first_name": data.get("first_name"),
                "last_name": data.get("last_name"),
                "company_id": data.get("company_id"),
            },
        )

    async def _auth_headers(self) -> Dict[str, str]:
        if not self._token or (self._token_expires_at and self._token_expires_at <= datetime.utcnow()):
            email = self.credentials.get("email")
            password = self.credentials.get("password")
            if not email or not password:
                raise ProviderError("Shiprocket account is not connected", provider=self.code, retryable=False)
            data = await self._login(email, password)
            self._token = data.get("token")
            self._token_expires_at = datetime.utcnow() + self.TOKEN_TTL
        return {"Authorization": f"Bearer {self._token}"}

    # ==================== HTTP ====================

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("message") or response.reason_phrase
        except ValueError:
            return response.reason_phrase

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = await self._auth_headers()
        try:
            response = await self.client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise ProviderError(f"Shiprocket timed out on {path}", provider=self.code) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Shiprocket request failed: {e}", provider=self.code) from e

        if response.status_code == 401:
            # Token revoked upstream; the next attempt logs in again
            self._token = None
            raise ProviderError("Shiprocket token rejected", provider=self.code)
        if response.status_code >= 400 and response.status_code != 404:
            raise ProviderError(
                f"Shiprocket error {response.status_code}: {self._error_message(response)}",
                provider=self.code,
                retryable=response.status_code >= 500 or response.status_code == 429,
            )
        return response

    # ==================== Rates ====================

    def _map_rate(self, courier: Dict[str, Any], recommended_id: Optional[int]) -> ShippingRate:
        return ShippingRate(
            provider_id=self.provider_id,
            provider_name=self.name,
            courier_name=courier.get("courier_name"),
            courier_code=str(courier.get("id") or courier.get("courier_company_id")),
            mode=ShippingMode.SURFACE if courier.get("is_surface") else ShippingMode.AIR,
            cost=float(courier.get("rate") or 0),
            estimated_days=int(courier.get("estimated_delivery_days") or self.DEFAULT_DELIVERY_DAYS),
            available=courier.get("blocked", 0) == 0,
            recommended=recommended_id is not None and courier.get("courier_company_id") == recommended_id,
            cod_available=courier.get("cod") == 1,
        )

    async def quote_rates(self, origin_pincode, destination_pincode, weight, cod) -> RateQuote:
        if weight < self.MIN_WEIGHT_KG or weight > self.MAX_WEIGHT_KG:
            logger.info(f"Shiprocket skipped: weight {weight}kg outside {self.MIN_WEIGHT_KG}-{self.MAX_WEIGHT_KG}kg")
            return RateQuote(serviceable=False)

        response = await self._request(
            "GET",
            self.ENDPOINTS["serviceability"],
            params={
                "pickup_postcode": origin_pincode,
                "delivery_postcode": destination_pincode,
                "weight": weight,
                "cod": 1 if cod else 0,
            },
        )
        if response.status_code == 404:
            return RateQuote(serviceable=False)

        data = response.json().get("data") or {}
        couriers: List[Dict[str, Any]] = data.get("available_courier_companies") or []
        recommended_id = data.get("recommended_courier_company_id")

        usable = [
            c for c in couriers
            if c.get("blocked", 0) == 0 and float(c.get("rating") or 0) >= self.MIN_COURIER_RATING
        ]
        if not usable:
            return RateQuote(serviceable=False)

        rates = [self._map_rate(c, recommended_id) for c in usable]
        recommended = next((r.courier_code for r in rates if r.recommended), None)
        return RateQuote(serviceable=True, rates=rates, recommended_courier_code=recommended)

    # ==================== Shipments ====================

    def _order_payload(self, request: CreateShipmentRequest, package_weight: float) -> Dict[str, Any]:
        destination = request.destination
        dims = request.dimensions
        return {
            "order_id": request.shipment_code,
            "order_date": datetime.utcnow().strftime("%Y-%m-%d %H:%M"),
            "pickup_location": request.origin.name or "Primary",
            "billing_customer_name": destination.name or "",
            "billing_last_name": "",
            "billing_address": destination.line1 or "",
            "billing_address_2": destination.line2 or "",
            "billing_city": destination.city or "",
            "billing_pincode": destination.pincode,
            "billing_state": destination.state or "",
            "billing_country": destination.country,
            "billing_email": destination.email or "",
            "billing_phone": destination.phone or "",
            "shipping_is_billing": True,
            "order_items": [
                {
                    "name": item.name or item.product_id or "Item",
                    "sku": item.product_id or "",
                    "units": item.quantity,
                    "selling_price": item.price,
                }
                for item in request.items
            ],
            "payment_method": "COD" if request.payment_method.lower() == "cod" else "Prepaid",
            "sub_total": request.order_total,
            "length": dims.length if dims else self.DEFAULT_DIMENSION_CM,
            "breadth": dims.width if dims else self.DEFAULT_DIMENSION_CM,
            "height": dims.height if dims else self.DEFAULT_DIMENSION_CM,
            "weight": package_weight,
        }

    async def create_shipment(self, request: CreateShipmentRequest, package_weight: float) -> ShipmentCreated:
        response = await self._request(
            "POST", self.ENDPOINTS["create_order"], json=self._order_payload(request, package_weight)
        )
        order = response.json()
        shipment_id = order.get("shipment_id")
        if not shipment_id:
            raise ProviderError(
                f"Shiprocket did not create shipment {request.shipment_code}: {order.get('message')}",
                provider=self.code,
                retryable=False,
            )

        awb_body: Dict[str, Any] = {"shipment_id": shipment_id}
        if request.courier_code:
            awb_body["courier_id"] = request.courier_code
        awb_response = (await self._request("POST", self.ENDPOINTS["assign_awb"], json=awb_body)).json()

        if awb_response.get("awb_assign_status") != 1:
            raise ProviderError(
                f"AWB assignment failed for {request.shipment_code}: {awb_response.get('message')}",
                provider=self.code,
            )

        awb_data = (awb_response.get("response") or {}).get("data") or {}
        awb = awb_data.get("awb_code")
        logger.info(f"Shiprocket AWB {awb} assigned to shipment {request.shipment_code}")
        return ShipmentCreated(
            provider_id=self.provider_id,
            tracking_number=awb,
            courier_name=awb_data.get("courier_name"),
            tracking_url=self.TRACKING_URL.format(awb=awb),
            shipping_cost=float(awb_data.get("freight_charges") or 0),
            package_weight=package_weight,
            status=ShipmentStatus.CREATED,
            provider_shipment_id=str(shipment_id),
        )
