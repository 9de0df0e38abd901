"""
Package weight and dimension calculations

Pure functions. Weights are kilograms, dimensions centimetres.
"""

import math
from typing import Dict, Iterable, Optional

from core.config import DEFAULT_CATEGORY_WEIGHTS
from core.errors import ValidationError

from .models import Dimensions, DimensionValidation, PackageItem

VOLUMETRIC_DIVISOR = 5000.0
MAX_SINGLE_EDGE_CM = 150.0
MAX_GIRTH_CM = 300.0

SMALL_PACKAGE_CM3 = 10_000
MEDIUM_PACKAGE_CM3 = 50_000


def _round2(value: float) -> float:
    return round(value, 2)


def get_item_weight(item: PackageItem, category_weights: Optional[Dict[str, float]] = None) -> float:
    """Explicit weight, else the category default"""
    if item.weight is not None and item.weight > 0:
        return item.weight
    weights = category_weights or DEFAULT_CATEGORY_WEIGHTS
    category = (item.category or "").lower()
    return weights.get(category, weights.get("default", DEFAULT_CATEGORY_WEIGHTS["default"]))


def calculate_package_weight(
    items: Iterable[PackageItem],
    category_weights: Optional[Dict[str, float]] = None,
) -> float:
    """Sum of item weight x quantity, rounded to 2 decimals"""
    total = sum(get_item_weight(item, category_weights) * item.quantity for item in items)
    return _round2(total)


def calculate_volumetric_weight(
    length: float,
    width: float,
    height: float,
    divisor: float = VOLUMETRIC_DIVISOR,
) -> float:
    return _round2((length * width * height) / divisor)


def get_chargeable_weight(
    actual_weight: float,
    dimensions: Optional[Dimensions] = None,
    divisor: float = VOLUMETRIC_DIVISOR,
) -> float:
    """Greater of actual and volumetric weight"""
    if dimensions is None:
        return actual_weight
    volumetric = calculate_volumetric_weight(dimensions.length, dimensions.width, dimensions.height, divisor)
    return max(actual_weight, volumetric)


def round_weight_up(weight: float, increment: float = 0.5) -> float:
    """Round up to the carrier's billing slab"""
    return math.ceil(weight / increment) * increment


def validate_dimensions(
    length: float,
    width: float,
    height: float,
    max_edge: float = MAX_SINGLE_EDGE_CM,
    max_girth: float = MAX_GIRTH_CM,
) -> DimensionValidation:
    """
    Check a box against carrier limits

    The result names the first constraint that failed: ``positive``,
    ``max_edge`` or ``max_girth``.
    """
    if length <= 0 or width <= 0 or height <= 0:
        return DimensionValidation(
            valid=False,
            constraint="positive",
            error="All dimensions must be greater than 0",
        )

    if max(length, width, height) > max_edge:
        return DimensionValidation(
            valid=False,
            constraint="max_edge",
            error=f"No single dimension should exceed {max_edge:g}cm",
        )

    girth = length + 2 * (width + height)
    if girth > max_girth:
        return DimensionValidation(
            valid=False,
            constraint="max_girth",
            error=f"Total girth (length + 2*(width + height)) should not exceed {max_girth:g}cm",
        )

    return DimensionValidation(valid=True)


def ensure_valid_dimensions(
    dimensions: Dimensions,
    max_edge: float = MAX_SINGLE_EDGE_CM,
    max_girth: float = MAX_GIRTH_CM,
) -> None:
    """Raise ValidationError when ``dimensions`` break a carrier limit"""
    result = validate_dimensions(dimensions.length, dimensions.width, dimensions.height, max_edge, max_girth)
    if not result.valid:
        raise ValidationError(result.error)


def get_package_size_category(dimensions: Dimensions) -> str:
    volume = dimensions.length * dimensions.width * dimensions.height
    if volume <= SMALL_PACKAGE_CM3:
        return "small"
    if volume <= MEDIUM_PACKAGE_CM3:
        return "medium"
    return "large"
