"""
Cart helpers

Pure functions over cart lines: merging the anonymous cart into the
server cart at login, subtotals, seller grouping and package weight
estimates.
"""

from collections import OrderedDict
from typing import Dict, List, Optional, Tuple

from core.config import DEFAULT_CATEGORY_WEIGHTS

from .models import CartItem

UNASSIGNED_SELLER = "default"
MIN_SHIPPING_WEIGHT_KG = 0.1

CartKey = Tuple[str, Optional[str], Optional[str]]


def cart_key(item: CartItem) -> CartKey:
    return (item.product_id, item.size, item.color)


def merge_cart_items(anonymous: List[CartItem], server: List[CartItem]) -> List[CartItem]:
    """
    Union of both carts keyed by (product, size, color)

    Where both carts hold the same key the server line wins. Lines keep the
    position where their key first appeared.
    """
    merged: "OrderedDict[CartKey, CartItem]" = OrderedDict()
    for item in anonymous:
        merged[cart_key(item)] = item
    for item in server:
        merged[cart_key(item)] = item
    return list(merged.values())


def cart_subtotal(items: List[CartItem]) -> float:
    return round(sum(item.unit_price * item.quantity for item in items), 2)


def group_items_by_seller(items: List[CartItem]) -> "OrderedDict[str, List[CartItem]]":
    """Seller id -> lines, in order of first appearance"""
    groups: "OrderedDict[str, List[CartItem]]" = OrderedDict()
    for item in items:
        groups.setdefault(item.seller_id or UNASSIGNED_SELLER, []).append(item)
    return groups


def item_weight(item: CartItem, category_weights: Optional[Dict[str, float]] = None) -> float:
    """Explicit positive weight, else the category default (same rule shipping_service applies)"""
    if item.weight is not None and item.weight > 0:
        return item.weight
    weights = category_weights or DEFAULT_CATEGORY_WEIGHTS
    return weights.get((item.category or "").lower(), weights.get("default", DEFAULT_CATEGORY_WEIGHTS["default"]))


def estimate_weight(items: List[CartItem], category_weights: Optional[Dict[str, float]] = None) -> float:
    """Actual package weight in kg, rounded to 2 decimals"""
    return round(sum(item_weight(item, category_weights) * item.quantity for item in items), 2)


def billable_weight(items: List[CartItem], category_weights: Optional[Dict[str, float]] = None) -> float:
    """Package weight for quoting, never below the carrier minimum"""
    return max(estimate_weight(items, category_weights), MIN_SHIPPING_WEIGHT_KG)
