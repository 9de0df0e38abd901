"""
Carrier status normalization

Each carrier reports its own status vocabulary; these map it onto
ShipmentStatus. Unknown carriers or statuses fall back to keyword inference.
"""

import logging

from .models import ShipmentStatus

logger = logging.getLogger(__name__)

STATUS_MAPPINGS = {
    "shiprocket": {
        "pending": ShipmentStatus.PENDING,
        "awaiting_pickup": ShipmentStatus.CREATED,
        "pickup_scheduled": ShipmentStatus.CREATED,
        "pickup_complete": ShipmentStatus.PICKED_UP,
        "in_transit": ShipmentStatus.IN_TRANSIT,
        "out_for_delivery": ShipmentStatus.OUT_FOR_DELIVERY,
        "delivered": ShipmentStatus.DELIVERED,
        "cancelled": ShipmentStatus.CANCELLED,
        "rto": ShipmentStatus.RETURNED,
        "lost": ShipmentStatus.FAILED,
        "damaged": ShipmentStatus.FAILED,
    },
    "delhivery": {
        "Pending": ShipmentStatus.PENDING,
        "Pickup Scheduled": ShipmentStatus.CREATED,
        "Manifested": ShipmentStatus.CREATED,
        "Dispatched": ShipmentStatus.PICKED_UP,
        "In Transit": ShipmentStatus.IN_TRANSIT,
        "Out For Delivery": ShipmentStatus.OUT_FOR_DELIVERY,
        "Delivered": ShipmentStatus.DELIVERED,
        "Cancelled": ShipmentStatus.CANCELLED,
        "RTO": ShipmentStatus.RETURNED,
        "Lost": ShipmentStatus.FAILED,
    },
    "bluedart": {
        "Booked": ShipmentStatus.CREATED,
        "Picked Up": ShipmentStatus.PICKED_UP,
        "In Transit": ShipmentStatus.IN_TRANSIT,
        "Out for Delivery": ShipmentStatus.OUT_FOR_DELIVERY,
        "Delivered": ShipmentStatus.DELIVERED,
        "Returned": ShipmentStatus.RETURNED,
        "Cancelled": ShipmentStatus.CANCELLED,
    },
}

STATUS_LABELS = {
    ShipmentStatus.PENDING: "Pending",
    ShipmentStatus.CREATED: "Label Created",
    ShipmentStatus.PICKED_UP: "Picked Up",
    ShipmentStatus.IN_TRANSIT: "In Transit",
    ShipmentStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    ShipmentStatus.DELIVERED: "Delivered",
    ShipmentStatus.FAILED: "Delivery Failed",
    ShipmentStatus.RETURNED: "Returned to Sender",
    ShipmentStatus.CANCELLED: "Cancelled",
}

# Order matters: "out for delivery" must win over "deliver"
_KEYWORDS = (
    (("out for",), ShipmentStatus.OUT_FOR_DELIVERY),
    (("deliver",), ShipmentStatus.DELIVERED),
    (("transit",), ShipmentStatus.IN_TRANSIT),
    (("pick",), ShipmentStatus.PICKED_UP),
    (("cancel",), ShipmentStatus.CANCELLED),
    (("return", "rto"), ShipmentStatus.RETURNED),
    (("fail", "lost"), ShipmentStatus.FAILED),
    (("pending", "await"), ShipmentStatus.PENDING),
)


def infer_status(status: str) -> ShipmentStatus:
    lowered = (status or "").lower()
    for keywords, normalized in _KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return normalized
    return ShipmentStatus.PENDING


def normalize_shipment_status(provider: str, provider_status: str) -> ShipmentStatus:
    mappings = STATUS_MAPPINGS.get((provider or "").lower())
    if mappings is None:
        logger.warning(f"No status mapping for provider {provider}, inferring from '{provider_status}'")
        return infer_status(provider_status)

    normalized = mappings.get(provider_status)
    if normalized is None:
        logger.warning(f"Unknown status '{provider_status}' for provider {provider}, inferring")
        return infer_status(provider_status)
    return normalized


def get_status_label(status: ShipmentStatus) -> str:
    return STATUS_LABELS.get(status, status.value)


def is_terminal_status(status: ShipmentStatus) -> bool:
    return status in (
        ShipmentStatus.DELIVERED,
        ShipmentStatus.CANCELLED,
        ShipmentStatus.RETURNED,
        ShipmentStatus.FAILED,
    )
