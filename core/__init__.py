#!/usr/bin/env python3
"""
Core Module for the storefront microservices

Shared infrastructure used by shipping_service, payment_service and
order_service.

COMPONENTS:
    - config/: dataclass configuration loaded from the environment
    - errors.py: error taxonomy and FastAPI exception handlers
    - logger.py: per-service logger setup
    - auth_dependencies.py: user, internal service and admin dependencies
    - jwt_manager.py: admin bearer tokens
    - rate_limiter.py: fixed-window checkout rate limiting
    - retry.py: tenacity backoff for retryable provider errors
    - postgres_client.py: asyncpg pool wrapper
    - service_client_base.py: base class for peer service HTTP clients
"""

__version__ = "0.1.0"
