"""
Razorpay signature helpers

Checkout signature: HMAC-SHA256(key_secret, "<order_id>|<payment_id>").
Webhook signature: HMAC-SHA256(webhook_secret, raw request body).
Both are lowercase hex and always compared in constant time.
"""

import hashlib
import hmac
from typing import Union


def _hmac_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def compute_payment_signature(key_secret: str, gateway_order_id: str, payment_id: str) -> str:
    return _hmac_hex(key_secret, f"{gateway_order_id}|{payment_id}".encode("utf-8"))


def compute_webhook_signature(webhook_secret: str, raw_body: Union[bytes, str]) -> str:
    if isinstance(raw_body, str):
        raw_body = raw_body.encode("utf-8")
    return _hmac_hex(webhook_secret, raw_body)


def signatures_match(expected: str, received: str) -> bool:
    if not expected or not received:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), received.strip().lower().encode("utf-8"))
