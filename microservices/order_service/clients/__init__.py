"""
Order Service Clients Module

HTTP clients for synchronous communication with other services
"""

from .shipping_client import ShippingServiceClient

__all__ = ["ShippingServiceClient"]
