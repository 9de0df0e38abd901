#!/usr/bin/env python3
"""Storefront commerce configuration

Shipping, payment, notification, security and rate-limit settings, plus the
top-level CommerceConfig that bundles every sub-config.
"""
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .logging_config import LoggingConfig
from .infra_config import InfraConfig
from .service_config import ServiceConfig
from .env import current_env, env_bool, env_float, env_int, env_list


DEFAULT_CATEGORY_WEIGHTS: Dict[str, float] = {
    "clothing": 0.3,
    "electronics": 0.5,
    "books": 0.4,
    "accessories": 0.2,
    "footwear": 0.5,
    "default": 0.3,
}


# ===========================================
# Shipping
# ===========================================

@dataclass
class ShippingConfig:
    """Rate quoting and package limits"""
    origin_pincode: str = "110001"
    rate_deadline_seconds: float = 8.0
    provider_timeout_seconds: float = 5.0
    default_strategy: Optional[str] = None

    volumetric_divisor: float = 5000.0
    max_single_edge_cm: float = 150.0
    max_girth_cm: float = 300.0
    min_weight_kg: float = 0.1
    max_weight_kg: float = 500.0
    category_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CATEGORY_WEIGHTS))

    @classmethod
    def from_env(cls) -> 'ShippingConfig':
        return cls(
            origin_pincode=os.getenv("SHIPPING_ORIGIN_PINCODE", "110001"),
            rate_deadline_seconds=env_float("SHIPPING_RATE_DEADLINE", 8.0),
            provider_timeout_seconds=env_float("SHIPPING_PROVIDER_TIMEOUT", 5.0),
            default_strategy=os.getenv("SHIPPING_DEFAULT_STRATEGY") or None,
            volumetric_divisor=env_float("SHIPPING_VOLUMETRIC_DIVISOR", 5000.0),
            max_single_edge_cm=env_float("SHIPPING_MAX_EDGE_CM", 150.0),
            max_girth_cm=env_float("SHIPPING_MAX_GIRTH_CM", 300.0),
            min_weight_kg=env_float("SHIPPING_MIN_WEIGHT_KG", 0.1),
            max_weight_kg=env_float("SHIPPING_MAX_WEIGHT_KG", 500.0),
        )


# ===========================================
# Payment
# ===========================================

@dataclass
class PaymentConfig:
    """Razorpay gateway settings"""
    razorpay_key_id: Optional[str] = None
    razorpay_key_secret: Optional[str] = None
    razorpay_webhook_secret: Optional[str] = None
    razorpay_base_url: str = "https://api.razorpay.com/v1"
    supported_currencies: List[str] = field(default_factory=lambda: ["INR"])
    # Paise (1,000,000 INR)
    max_amount: int = 100_000_000
    gateway_timeout_seconds: float = 15.0

    @classmethod
    def from_env(cls) -> 'PaymentConfig':
        return cls(
            razorpay_key_id=os.getenv("RAZORPAY_KEY_ID"),
            razorpay_key_secret=os.getenv("RAZORPAY_KEY_SECRET"),
            razorpay_webhook_secret=os.getenv("RAZORPAY_WEBHOOK_SECRET"),
            razorpay_base_url=os.getenv("RAZORPAY_BASE_URL", "https://api.razorpay.com/v1"),
            supported_currencies=env_list("PAYMENT_SUPPORTED_CURRENCIES", ["INR"]),
            max_amount=env_int("PAYMENT_MAX_AMOUNT", 100_000_000),
            gateway_timeout_seconds=env_float("PAYMENT_GATEWAY_TIMEOUT", 15.0),
        )


# ===========================================
# Notifications
# ===========================================

@dataclass
class NotificationConfig:
    """Purchase confirmation email delivery"""
    resend_api_key: Optional[str] = None
    resend_base_url: str = "https://api.resend.com"
    from_email: str = "orders@storefront.local"
    max_attempts: int = 3
    backoff_min_seconds: float = 1.0
    backoff_max_seconds: float = 10.0
    queue_size: int = 1000

    @classmethod
    def from_env(cls) -> 'NotificationConfig':
        return cls(
            resend_api_key=os.getenv("RESEND_API_KEY"),
            resend_base_url=os.getenv("RESEND_BASE_URL", "https://api.resend.com"),
            from_email=os.getenv("EMAIL_FROM", "orders@storefront.local"),
            max_attempts=env_int("NOTIFICATION_MAX_ATTEMPTS", 3),
            backoff_min_seconds=env_float("NOTIFICATION_BACKOFF_MIN", 1.0),
            backoff_max_seconds=env_float("NOTIFICATION_BACKOFF_MAX", 10.0),
            queue_size=env_int("NOTIFICATION_QUEUE_SIZE", 1000),
        )


# ===========================================
# Security
# ===========================================

@dataclass
class SecurityConfig:
    """Secrets for credential encryption and request authentication"""
    encryption_key: Optional[str] = None
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    internal_service_secret: str = "dev-internal-secret-change-in-production"

    @classmethod
    def from_env(cls) -> 'SecurityConfig':
        return cls(
            encryption_key=os.getenv("ENCRYPTION_KEY"),
            jwt_secret=os.getenv("JWT_SECRET"),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            internal_service_secret=os.getenv(
                "INTERNAL_SERVICE_SECRET", "dev-internal-secret-change-in-production"
            ),
        )


# ===========================================
# Rate limiting
# ===========================================

@dataclass
class RateLimitConfig:
    """Checkout rate limiting"""
    enabled: bool = True
    window_seconds: int = 60
    max_requests: int = 10
    max_keys: int = 10000

    @classmethod
    def from_env(cls) -> 'RateLimitConfig':
        return cls(
            enabled=env_bool("RATE_LIMIT_ENABLED", True),
            window_seconds=env_int("RATE_LIMIT_WINDOW", 60),
            max_requests=env_int("RATE_LIMIT_MAX_REQUESTS", 10),
            max_keys=env_int("RATE_LIMIT_MAX_KEYS", 10000),
        )


# ===========================================
# Main Commerce Configuration
# ===========================================

@dataclass
class CommerceConfig:
    """Main storefront configuration with all sub-configs"""

    environment: str = "development"
    debug: bool = False
    default_host: str = "0.0.0.0"

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    infrastructure: InfraConfig = field(default_factory=InfraConfig)
    services: ServiceConfig = field(default_factory=ServiceConfig)
    shipping: ShippingConfig = field(default_factory=ShippingConfig)
    payment: PaymentConfig = field(default_factory=PaymentConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)

    @classmethod
    def from_env(cls) -> 'CommerceConfig':
        """Load complete configuration from environment"""
        env = current_env()
        return cls(
            environment=env,
            debug=env_bool("DEBUG", env == "development"),
            default_host=os.getenv("HOST", "0.0.0.0"),
            logging=LoggingConfig.from_env(),
            infrastructure=InfraConfig.from_env(),
            services=ServiceConfig.from_env(),
            shipping=ShippingConfig.from_env(),
            payment=PaymentConfig.from_env(),
            notification=NotificationConfig.from_env(),
            security=SecurityConfig.from_env(),
            rate_limit=RateLimitConfig.from_env(),
        )
