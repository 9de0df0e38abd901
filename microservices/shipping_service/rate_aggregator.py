"""
Shipping Rate Aggregator

Quotes every enabled provider concurrently and merges the answers into one
rate list. A provider that fails, times out or cannot serve the corridor is
dropped from the result; it never fails the request.
"""

import asyncio
import logging
from typing import List, Optional

from core.config import ShippingConfig

from .encryption import CredentialCipher
from .models import (
    PriceRange,
    RateQuote,
    RateQuoteMetadata,
    RateQuoteRequest,
    RateQuoteResponse,
    ShippingProvider,
)
from .protocols import ShippingRepositoryProtocol
from .providers import ProviderRegistry
from .rate_selector import select_default_rate
from .validators import validate_rate_request
from .weight_calculator import ensure_valid_dimensions, get_chargeable_weight

logger = logging.getLogger(__name__)


class RateAggregator:
    """
    Fan-out rate quoting

    Every adapter call is bounded by ``provider_timeout_seconds``; the whole
    fan-out by ``rate_deadline_seconds``. Whatever has not answered by the
    deadline is cancelled and left out.
    """

    def __init__(
        self,
        repository: ShippingRepositoryProtocol,
        registry: ProviderRegistry,
        cipher: CredentialCipher,
        config: Optional[ShippingConfig] = None,
    ):
        self.repository = repository
        self.registry = registry
        self.cipher = cipher
        self.config = config or ShippingConfig()

    async def _quote_provider(self, provider: ShippingProvider, request: RateQuoteRequest, weight: float) -> RateQuote:
        adapter = self.registry.build_for(provider, self.cipher)
        try:
            return await asyncio.wait_for(
                adapter.quote_rates(request.from_pincode, request.to_pincode, weight, request.cod),
                timeout=self.config.provider_timeout_seconds,
            )
        finally:
            await adapter.close()

    async def _gather_quotes(
        self,
        providers: List[ShippingProvider],
        request: RateQuoteRequest,
        weight: float,
    ) -> List[Optional[RateQuote]]:
        """One entry per provider, in the same order; None for anything dropped"""
        if not providers:
            return []

        tasks = [
            asyncio.create_task(self._quote_provider(provider, request, weight))
            for provider in providers
        ]
        done, pending = await asyncio.wait(tasks, timeout=self.config.rate_deadline_seconds)

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        quotes: List[Optional[RateQuote]] = []
        for provider, task in zip(providers, tasks):
            if task not in done or task.cancelled():
                logger.warning(f"Provider {provider.code} missed the {self.config.rate_deadline_seconds}s rate deadline")
                quotes.append(None)
                continue

            error = task.exception()
            if isinstance(error, asyncio.TimeoutError):
                logger.warning(f"Provider {provider.code} timed out quoting {request.to_pincode}")
                quotes.append(None)
            elif error is not None:
                logger.warning(f"Provider {provider.code} failed to quote {request.to_pincode}: {error}")
                quotes.append(None)
            elif not task.result().serviceable:
                logger.info(f"Provider {provider.code} cannot serve {request.from_pincode} -> {request.to_pincode}")
                quotes.append(None)
            else:
                quotes.append(task.result())
        return quotes

    async def get_rates(self, request: RateQuoteRequest) -> RateQuoteResponse:
        """
        Quote all enabled providers for a corridor

        Raises:
            ValidationError: malformed pincode, weight or dimensions
        """
        config = self.config
        request = validate_rate_request(
            request, config.origin_pincode, config.min_weight_kg, config.max_weight_kg
        )

        weight = request.weight
        if request.dimensions is not None:
            ensure_valid_dimensions(request.dimensions, config.max_single_edge_cm, config.max_girth_cm)
            weight = get_chargeable_weight(weight, request.dimensions, config.volumetric_divisor)

        providers = sorted(
            await self.repository.get_enabled_providers(),
            key=lambda p: p.priority,
            reverse=True,
        )
        providers = [p for p in providers if self.registry.supports(p.code)]

        quotes = await self._gather_quotes(providers, request, weight)
        rates = [
            rate
            for quote in quotes if quote is not None
            for rate in quote.rates if rate.available and rate.serviceable
        ]

        metadata = RateQuoteMetadata(
            providers_queried=len(providers),
            providers_responded=sum(1 for q in quotes if q is not None),
            total_options=len(rates),
            chargeable_weight=weight,
        )

        if not rates:
            logger.info(f"No shipping options for {request.from_pincode} -> {request.to_pincode}")
            return RateQuoteResponse(
                serviceable=False,
                from_pincode=request.from_pincode,
                to_pincode=request.to_pincode,
                metadata=metadata,
            )

        costs = [r.cost for r in rates]
        metadata.price_range = PriceRange(min=min(costs), max=max(costs))
        strategy = request.strategy or self.config.default_strategy

        return RateQuoteResponse(
            serviceable=True,
            rates=rates,
            default_rate=select_default_rate(rates, strategy),
            from_pincode=request.from_pincode,
            to_pincode=request.to_pincode,
            metadata=metadata,
        )
