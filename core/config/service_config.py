#!/usr/bin/env python3
"""Ports and base URLs of the storefront services

payment_service calls order_service and order_service calls
shipping_service; both resolve the peer URL from here.
"""
from dataclasses import dataclass

from .env import env_int, env_str


@dataclass
class ServiceConfig:
    shipping_service_port: int = 8231
    payment_service_port: int = 8232
    order_service_port: int = 8233

    shipping_service_url: str = "http://localhost:8231"
    payment_service_url: str = "http://localhost:8232"
    order_service_url: str = "http://localhost:8233"

    @classmethod
    def from_env(cls) -> 'ServiceConfig':
        ports = {
            name: env_int(f"{name.upper()}_SERVICE_PORT", getattr(cls, f"{name}_service_port"))
            for name in ("shipping", "payment", "order")
        }
        urls = {
            f"{name}_service_url": env_str(f"{name.upper()}_SERVICE_URL", f"http://localhost:{port}")
            for name, port in ports.items()
        }
        return cls(**{f"{name}_service_port": port for name, port in ports.items()}, **urls)
