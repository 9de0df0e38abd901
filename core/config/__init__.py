#!/usr/bin/env python3
"""Configuration for the storefront services

- infra_config: PostgreSQL connection settings
- service_config: ports and URLs of the three services
- commerce_config: shipping, payment, notification, security and rate limits
- logging_config: log level, format and handlers

Values come from the environment. A dotenv file for the current ENV is
loaded first without overriding variables that are already set.
"""
from pathlib import Path

from dotenv import load_dotenv

from .commerce_config import (
    DEFAULT_CATEGORY_WEIGHTS,
    CommerceConfig,
    NotificationConfig,
    PaymentConfig,
    RateLimitConfig,
    SecurityConfig,
    ShippingConfig,
)
from .env import current_env
from .infra_config import InfraConfig
from .logging_config import LoggingConfig
from .service_config import ServiceConfig

ENV_DIR = Path("deployment/environments")
_ENV_ALIASES = {"development": "dev", "testing": "test"}


def _load_env_file() -> None:
    env = current_env()
    load_dotenv(ENV_DIR / f"{_ENV_ALIASES.get(env, env)}.env", override=False)


_load_env_file()
settings = CommerceConfig.from_env()


def get_settings() -> CommerceConfig:
    return settings


def reload_settings() -> CommerceConfig:
    """Re-read the environment, e.g. after a test changes it"""
    global settings
    settings = CommerceConfig.from_env()
    return settings


__all__ = [
    'CommerceConfig',
    'get_settings',
    'reload_settings',
    'settings',
    'LoggingConfig',
    'InfraConfig',
    'ServiceConfig',
    'ShippingConfig',
    'PaymentConfig',
    'NotificationConfig',
    'SecurityConfig',
    'RateLimitConfig',
    'DEFAULT_CATEGORY_WEIGHTS',
]
