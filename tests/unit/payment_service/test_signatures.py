"""
Payment Service - Signature Unit Tests

Known-answer vectors computed with HMAC-SHA256.
"""

import hashlib
import hmac

import pytest

from microservices.payment_service.signatures import (
    compute_payment_signature,
    compute_webhook_signature,
    signatures_match,
)

pytestmark = [pytest.mark.unit]


def _reference(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class TestPaymentSignature:

    def test_signs_order_pipe_payment(self):
        expected = _reference("key_secret", b"order_ABC|pay_XYZ")
        assert compute_payment_signature("key_secret", "order_ABC", "pay_XYZ") == expected

    def test_order_of_ids_matters(self):
        assert compute_payment_signature("s", "a", "b") != compute_payment_signature("s", "b", "a")

    def test_lowercase_hex(self):
        signature = compute_payment_signature("s", "order_1", "pay_1")
        assert signature == signature.lower()
        assert len(signature) == 64


class TestWebhookSignature:

    def test_bytes_and_str_agree(self):
        body = '{"event":"payment.captured"}'
        assert compute_webhook_signature("whsec", body) == compute_webhook_signature("whsec", body.encode())

    def test_covers_exact_bytes(self):
        assert compute_webhook_signature("whsec", b'{"a":1}') != compute_webhook_signature("whsec", b'{"a": 1}')


class TestSignaturesMatch:

    def test_equal(self):
        sig = compute_payment_signature("s", "o", "p")
        assert signatures_match(sig, sig)

    def test_case_and_whitespace_tolerated(self):
        sig = compute_payment_signature("s", "o", "p")
        assert signatures_match(sig, f"  {sig.upper()}\n")

    def test_different(self):
        assert not signatures_match(compute_payment_signature("s", "o", "p"), "0" * 64)

    @pytest.mark.parametrize("expected, received", [("", "abc"), ("abc", ""), ("abc", None)])
    def test_empty_never_matches(self, expected, received):
        assert not signatures_match(expected, received)
