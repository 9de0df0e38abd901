"""
Order Service

Order lifecycle, payment outcomes and seller-by-seller fulfillment for the
storefront.

Port: 8233
"""

__version__ = "1.0.0"
__service_name__ = "order_service"
__service_port__ = 8233
