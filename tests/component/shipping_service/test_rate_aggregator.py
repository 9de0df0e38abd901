"""
Shipping Service - Rate Aggregator Component Tests

Fan-out quoting across enabled providers with per-provider timeouts and a
global deadline. Providers that fail never fail the request.
"""

import pytest

from core.config import ShippingConfig
from core.errors import ProviderError, ValidationError
from microservices.shipping_service.encryption import CredentialCipher
from microservices.shipping_service.models import Dimensions, RateStrategy
from microservices.shipping_service.providers import ProviderRegistry
from microservices.shipping_service.rate_aggregator import RateAggregator
from tests.fixtures import make_provider, make_rate_request

from .mocks import MockShippingRepository, scripted_adapter

pytestmark = [pytest.mark.component, pytest.mark.asyncio]


@pytest.fixture(scope="module")
def cipher():
    return CredentialCipher("component-test-secret")


@pytest.fixture
def fast_config():
    return ShippingConfig(provider_timeout_seconds=0.05, rate_deadline_seconds=0.5)


def build(providers, adapters, config=None, cipher=None):
    repository = MockShippingRepository(providers)
    registry = ProviderRegistry({a.code: a for a in adapters})
    return RateAggregator(repository, registry, cipher or CredentialCipher("component-test-secret"), config)


def connected(code, cipher, priority=0, **kwargs):
    return make_provider(
        code=code,
        provider_id=f"prov_{code}",
        priority=priority,
        encrypted_credentials=cipher.encrypt_json({"type": "api_key", "api_key": f"{code}-key"}),
        **kwargs,
    )


class TestMerging:

    async def test_rates_from_all_providers_in_priority_order(self, cipher):
        alpha = scripted_adapter("alpha", costs=[150.0])
        beta = scripted_adapter("beta", costs=[90.0, 120.0])
        aggregator = build(
            [connected("beta", cipher, priority=5), connected("alpha", cipher, priority=10)],
            [alpha, beta],
            cipher=cipher,
        )

        response = await aggregator.get_rates(make_rate_request())

        assert response.serviceable is True
        assert [r.provider_id for r in response.rates] == ["prov_alpha", "prov_beta", "prov_beta"]
        assert response.default_rate.provider_id == "prov_alpha"
        assert response.metadata.providers_queried == 2
        assert response.metadata.providers_responded == 2
        assert response.metadata.total_options == 3
        assert response.metadata.price_range.min == 90.0
        assert response.metadata.price_range.max == 150.0

    async def test_strategy_picks_default(self, cipher):
        alpha = scripted_adapter("alpha", costs=[150.0])
        beta = scripted_adapter("beta", costs=[90.0])
        aggregator = build(
            [connected("alpha", cipher, priority=10), connected("beta", cipher, priority=5)],
            [alpha, beta],
            cipher=cipher,
        )

        response = await aggregator.get_rates(make_rate_request(strategy=RateStrategy.CHEAPEST))

        assert response.default_rate.provider_id == "prov_beta"

    async def test_configured_strategy_used_when_request_has_none(self, cipher):
        alpha = scripted_adapter("alpha", costs=[150.0])
        beta = scripted_adapter("beta", costs=[90.0])
        aggregator = build(
            [connected("alpha", cipher, priority=10), connected("beta", cipher, priority=5)],
            [alpha, beta],
            config=ShippingConfig(default_strategy="cheapest"),
            cipher=cipher,
        )

        response = await aggregator.get_rates(make_rate_request())

        assert response.default_rate.provider_id == "prov_beta"

    async def test_adapter_receives_decrypted_credentials(self, cipher):
        alpha = scripted_adapter("alpha")
        aggregator = build([connected("alpha", cipher)], [alpha], cipher=cipher)

        await aggregator.get_rates(make_rate_request())

        assert alpha.calls[0]["credentials"]["api_key"] == "alpha-key"
        assert alpha.closed == 1

    async def test_chargeable_weight_from_dimensions(self, cipher):
        alpha = scripted_adapter("alpha")
        aggregator = build([connected("alpha", cipher)], [alpha], cipher=cipher)

        response = await aggregator.get_rates(
            make_rate_request(weight=1.0, dimensions=Dimensions(length=50, width=40, height=30))
        )

        assert alpha.calls[0]["weight"] == 12.0
        assert response.metadata.chargeable_weight == 12.0


class TestPartialFailure:

    async def test_failing_provider_dropped(self, cipher):
        alpha = scripted_adapter("alpha", costs=[150.0])
        broken = scripted_adapter("broken", error=ProviderError("Carrier API 500"))
        aggregator = build(
            [connected("alpha", cipher, priority=1), connected("broken", cipher, priority=9)],
            [alpha, broken],
            cipher=cipher,
        )

        response = await aggregator.get_rates(make_rate_request())

        assert response.serviceable is True
        assert [r.provider_id for r in response.rates] == ["prov_alpha"]
        assert response.metadata.providers_responded == 1

    async def test_unexpected_exception_dropped(self, cipher):
        alpha = scripted_adapter("alpha")
        buggy = scripted_adapter("buggy", error=KeyError("rate"))
        aggregator = build([connected("alpha", cipher), connected("buggy", cipher)], [alpha, buggy], cipher=cipher)

        response = await aggregator.get_rates(make_rate_request())

        assert response.metadata.providers_responded == 1

    async def test_slow_provider_times_out(self, cipher, fast_config):
        alpha = scripted_adapter("alpha", costs=[150.0])
        slow = scripted_adapter("slow", costs=[10.0], delay=1.0)
        aggregator = build(
            [connected("alpha", cipher), connected("slow", cipher)],
            [alpha, slow],
            config=fast_config,
            cipher=cipher,
        )

        response = await aggregator.get_rates(make_rate_request())

        assert [r.provider_id for r in response.rates] == ["prov_alpha"]
        assert slow.closed == 1

    async def test_global_deadline_cancels_stragglers(self, cipher):
        alpha = scripted_adapter("alpha")
        slow = scripted_adapter("slow", delay=2.0)
        config = ShippingConfig(provider_timeout_seconds=5.0, rate_deadline_seconds=0.1)
        aggregator = build([connected("alpha", cipher), connected("slow", cipher)], [alpha, slow], config, cipher)

        response = await aggregator.get_rates(make_rate_request())

        assert response.serviceable is True
        assert response.metadata.providers_queried == 2
        assert response.metadata.providers_responded == 1

    async def test_not_serviceable_quote_dropped(self, cipher):
        alpha = scripted_adapter("alpha")
        nope = scripted_adapter("nope", serviceable=False)
        aggregator = build([connected("alpha", cipher), connected("nope", cipher)], [alpha, nope], cipher=cipher)

        response = await aggregator.get_rates(make_rate_request())

        assert response.metadata.providers_responded == 1

    async def test_undecryptable_credentials_dropped(self, cipher):
        alpha = scripted_adapter("alpha")
        corrupt = scripted_adapter("corrupt")
        aggregator = build(
            [connected("alpha", cipher), make_provider(code="corrupt", encrypted_credentials="00:11:22")],
            [alpha, corrupt],
            cipher=cipher,
        )

        response = await aggregator.get_rates(make_rate_request())

        assert [r.provider_id for r in response.rates] == ["prov_alpha"]
        assert corrupt.calls == []

    async def test_all_providers_fail(self, cipher):
        broken = scripted_adapter("broken", error=ProviderError("down"))
        aggregator = build([connected("broken", cipher)], [broken], cipher=cipher)

        response = await aggregator.get_rates(make_rate_request())

        assert response.serviceable is False
        assert response.rates == []
        assert response.default_rate is None


class TestProviderSelection:

    async def test_no_enabled_providers(self, cipher):
        alpha = scripted_adapter("alpha")
        aggregator = build([connected("alpha", cipher, is_enabled=False)], [alpha], cipher=cipher)

        response = await aggregator.get_rates(make_rate_request())

        assert response.serviceable is False
        assert response.metadata.providers_queried == 0
        assert alpha.calls == []

    async def test_provider_without_adapter_skipped(self, cipher):
        alpha = scripted_adapter("alpha")
        aggregator = build([connected("alpha", cipher), connected("legacy", cipher)], [alpha], cipher=cipher)

        response = await aggregator.get_rates(make_rate_request())

        assert response.metadata.providers_queried == 1


class TestValidation:

    async def test_bad_pincode(self, cipher):
        aggregator = build([], [], cipher=cipher)
        with pytest.raises(ValidationError):
            await aggregator.get_rates(make_rate_request(to_pincode="12345"))

    async def test_box_over_carrier_limit(self, cipher):
        aggregator = build([], [], cipher=cipher)
        with pytest.raises(ValidationError):
            await aggregator.get_rates(
                make_rate_request(dimensions=Dimensions(length=200, width=10, height=10))
            )

    async def test_limits_come_from_config(self, cipher):
        config = ShippingConfig(max_single_edge_cm=60, max_weight_kg=20)
        aggregator = build([], [], config=config, cipher=cipher)

        with pytest.raises(ValidationError, match="60cm"):
            await aggregator.get_rates(make_rate_request(dimensions=Dimensions(length=80, width=10, height=10)))
        with pytest.raises(ValidationError, match="cannot exceed 20 kg"):
            await aggregator.get_rates(make_rate_request(weight=25.0))

    async def test_volumetric_divisor_from_config(self, cipher):
        alpha = scripted_adapter("alpha")
        aggregator = build(
            [connected("alpha", cipher)], [alpha], config=ShippingConfig(volumetric_divisor=6000), cipher=cipher
        )

        await aggregator.get_rates(
            make_rate_request(weight=1.0, dimensions=Dimensions(length=50, width=40, height=30))
        )

        assert alpha.calls[0]["weight"] == 10.0
