"""
Pincode, phone and rate-request validation helpers
"""

import re
from typing import Optional

from core.errors import ValidationError

from .models import RateQuoteRequest

PINCODE_PATTERN = re.compile(r"^\d{6}$")
PHONE_PATTERN = re.compile(r"^[6-9]\d{9}$")

MIN_WEIGHT_KG = 0.1
MAX_WEIGHT_KG = 500.0

PINCODE_REGIONS = {
    "1": "Delhi, Haryana, Punjab, Himachal Pradesh, Jammu & Kashmir",
    "2": "Uttar Pradesh, Uttarakhand",
    "3": "Rajasthan, Gujarat, Dadra & Nagar Haveli, Daman & Diu",
    "4": "Maharashtra, Goa, Madhya Pradesh, Chhattisgarh",
    "5": "Andhra Pradesh, Telangana, Karnataka",
    "6": "Tamil Nadu, Kerala, Puducherry, Lakshadweep",
    "7": "West Bengal, Odisha, Assam, Northeast States",
    "8": "Bihar, Jharkhand",
    "9": "Andaman & Nicobar Islands",
}


def normalize_pincode(pincode: str) -> str:
    return re.sub(r"\s", "", pincode or "")


def is_valid_pincode(pincode: str) -> bool:
    return bool(PINCODE_PATTERN.match(normalize_pincode(pincode)))


def get_pincode_region(pincode: str) -> Optional[str]:
    if not is_valid_pincode(pincode):
        return None
    return PINCODE_REGIONS.get(normalize_pincode(pincode)[0], "Unknown")


def estimate_distance_category(from_pincode: str, to_pincode: str) -> str:
    """local (same first two digits), regional (same first digit) or national"""
    if not is_valid_pincode(from_pincode) or not is_valid_pincode(to_pincode):
        return "national"
    origin = normalize_pincode(from_pincode)
    destination = normalize_pincode(to_pincode)
    if origin[:2] == destination[:2]:
        return "local"
    if origin[0] == destination[0]:
        return "regional"
    return "national"


def normalize_phone(phone: str) -> str:
    return re.sub(r"[\s\-()]", "", phone or "")


def is_valid_phone(phone: str) -> bool:
    """10-digit Indian mobile number"""
    return bool(PHONE_PATTERN.match(normalize_phone(phone)))


def validate_rate_request(
    request: RateQuoteRequest,
    origin_pincode: str,
    min_weight: float = MIN_WEIGHT_KG,
    max_weight: float = MAX_WEIGHT_KG,
) -> RateQuoteRequest:
    """Normalize pincodes and enforce weight limits; raises ValidationError"""
    from_pincode = normalize_pincode(request.from_pincode or origin_pincode)
    to_pincode = normalize_pincode(request.to_pincode)

    if not is_valid_pincode(to_pincode):
        raise ValidationError("Pincode must be 6 digits")
    if not is_valid_pincode(from_pincode):
        raise ValidationError("Origin pincode must be 6 digits")
    if request.weight < min_weight:
        raise ValidationError(f"Weight must be at least {min_weight:g} kg")
    if request.weight > max_weight:
        raise ValidationError(f"Weight cannot exceed {max_weight:g} kg")

    return request.model_copy(update={"from_pincode": from_pincode, "to_pincode": to_pincode})
