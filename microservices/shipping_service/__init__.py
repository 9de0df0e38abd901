"""
Shipping Service

Rate quotes across shipping providers, provider account management and
shipment booking for the storefront.

Port: 8231
"""

__version__ = "1.0.0"
__service_name__ = "shipping_service"
__service_port__ = 8231
