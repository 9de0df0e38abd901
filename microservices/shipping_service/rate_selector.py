"""
Rate selection strategies

Picks one rate out of a quote. Input rates are expected in provider
priority order; ``priority`` simply takes the first one that survives the
filters.
"""

import logging
from typing import Dict, List, Optional, Tuple

from .models import RateStrategy, SelectionCriteria, SelectionResult, ShippingRate

logger = logging.getLogger(__name__)


def filter_rates(rates: List[ShippingRate], criteria: SelectionCriteria) -> Tuple[List[ShippingRate], List[Tuple[ShippingRate, str]]]:
    """Split rates into (valid, [(filtered, reason)])"""
    valid = []
    filtered = []
    for rate in rates:
        if not rate.available or not rate.serviceable:
            filtered.append((rate, "Not available"))
        elif criteria.max_cost is not None and rate.cost > criteria.max_cost:
            filtered.append((rate, f"Cost {rate.cost} exceeds {criteria.max_cost}"))
        elif criteria.max_days is not None and rate.estimated_days > criteria.max_days:
            filtered.append((rate, f"Delivery {rate.estimated_days}d exceeds {criteria.max_days}d"))
        else:
            valid.append(rate)
    return valid, filtered


def cheapest(rates: List[ShippingRate]) -> ShippingRate:
    # min() keeps the first of equal candidates, i.e. the higher-priority provider
    return min(rates, key=lambda r: (r.cost, r.estimated_days))


def fastest(rates: List[ShippingRate]) -> ShippingRate:
    return min(rates, key=lambda r: (r.estimated_days, r.cost))


def balanced(rates: List[ShippingRate], cost_weight: float = 0.5, speed_weight: float = 0.5) -> ShippingRate:
    """Lowest weighted score of cost and days, each normalized to its maximum"""
    max_cost = max(r.cost for r in rates) or 1.0
    max_days = max(r.estimated_days for r in rates) or 1

    def score(rate: ShippingRate) -> float:
        return (rate.cost / max_cost) * cost_weight + (rate.estimated_days / max_days) * speed_weight

    return min(rates, key=score)


def recommended_or_balanced(rates: List[ShippingRate]) -> ShippingRate:
    """A provider's own recommendation wins; otherwise score cost against time"""
    for rate in rates:
        if rate.recommended:
            return rate
    return balanced(rates)


def select_rate(rates: List[ShippingRate], criteria: SelectionCriteria) -> Optional[SelectionResult]:
    """Apply filters and the criteria's strategy. None when nothing qualifies."""
    valid, filtered = filter_rates(rates, criteria)
    if filtered:
        logger.debug(f"Filtered {len(filtered)} of {len(rates)} rates")
    if not valid:
        return None

    strategy = criteria.strategy
    if strategy == RateStrategy.CHEAPEST:
        selected = cheapest(valid)
        reason = f"Cheapest option at {selected.cost}"
    elif strategy == RateStrategy.FASTEST:
        selected = fastest(valid)
        reason = f"Fastest option at {selected.estimated_days} days"
    elif strategy == RateStrategy.BALANCED:
        selected = balanced(valid, criteria.cost_weight, criteria.speed_weight)
        reason = "Best balance of cost and delivery time"
    elif strategy == RateStrategy.SPECIFIC:
        matches = [r for r in valid if r.provider_id == criteria.specific_provider_id]
        if not matches:
            return None
        selected = matches[0]
        reason = f"Requested provider {selected.provider_name}"
    else:
        selected = valid[0]
        reason = f"Highest priority provider {selected.provider_name}"

    return SelectionResult(
        selected_rate=selected,
        reason=reason,
        alternative_rates=[r for r in valid if r is not selected],
    )


def select_default_rate(rates: List[ShippingRate], strategy: Optional[RateStrategy]) -> Optional[ShippingRate]:
    """Default for a quote: explicit strategy, else first rate in priority order"""
    if not rates:
        return None
    if strategy == RateStrategy.CHEAPEST:
        return cheapest(rates)
    if strategy == RateStrategy.FASTEST:
        return fastest(rates)
    if strategy == RateStrategy.BALANCED:
        return recommended_or_balanced(rates)
    return rates[0]


def best_rates_by_delivery_days(rates: List[ShippingRate]) -> List[ShippingRate]:
    """Cheapest rate per delivery-day bucket, fastest bucket first"""
    best: Dict[int, ShippingRate] = {}
    for rate in rates:
        current = best.get(rate.estimated_days)
        if current is None or rate.cost < current.cost:
            best[rate.estimated_days] = rate
    return [best[days] for days in sorted(best)]
