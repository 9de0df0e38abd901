"""
Payment Service Clients Module

HTTP clients for synchronous communication with other services
"""

from .order_client import OrderServiceClient

__all__ = ["OrderServiceClient"]
