"""
Payment Service

Razorpay payment orders, checkout signature verification and webhook
intake for the storefront.

Port: 8232
"""

__version__ = "1.0.0"
__service_name__ = "payment_service"
__service_port__ = 8232
