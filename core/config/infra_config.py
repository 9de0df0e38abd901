#!/usr/bin/env python3
"""PostgreSQL settings shared by the storefront services"""
from dataclasses import dataclass

from .env import env_int, env_str


@dataclass
class InfraConfig:
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "storefront"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    # asyncpg pool bounds per service process
    postgres_min_pool: int = 1
    postgres_max_pool: int = 10

    @classmethod
    def from_env(cls) -> 'InfraConfig':
        return cls(
            postgres_host=env_str("POSTGRES_HOST", cls.postgres_host),
            postgres_port=env_int("POSTGRES_PORT", cls.postgres_port),
            postgres_db=env_str("POSTGRES_DB", cls.postgres_db),
            postgres_user=env_str("POSTGRES_USER", cls.postgres_user),
            postgres_password=env_str("POSTGRES_PASSWORD", cls.postgres_password),
            postgres_min_pool=env_int("POSTGRES_MIN_POOL", cls.postgres_min_pool),
            postgres_max_pool=env_int("POSTGRES_MAX_POOL", cls.postgres_max_pool),
        )

    @property
    def postgres_dsn(self) -> str:
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )
