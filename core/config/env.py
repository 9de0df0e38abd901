"""Typed environment lookups shared by the config dataclasses"""
import os
from typing import List, Sequence


def env_str(name: str, default: str = "") -> str:
    return os.getenv(name) or default


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def env_int(name: str, default: int) -> int:
    try:
        return int(os.environ[name])
    except (KeyError, ValueError):
        return default


def env_float(name: str, default: float) -> float:
    try:
        return float(os.environ[name])
    except (KeyError, ValueError):
        return default


def env_list(name: str, default: Sequence[str]) -> List[str]:
    items = [v.strip() for v in os.getenv(name, "").split(",") if v.strip()]
    return items or list(default)


def current_env() -> str:
    return os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
