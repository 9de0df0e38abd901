#!/usr/bin/env python3
"""Logging configuration"""
from dataclasses import dataclass

from .env import current_env, env_bool, env_str

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class LoggingConfig:
    log_level: str = "INFO"
    log_format: str = DEFAULT_LOG_FORMAT
    # Empty disables the file handler
    log_file: str = ""
    enable_console: bool = True

    @classmethod
    def from_env(cls) -> 'LoggingConfig':
        verbose = current_env() in ("development", "dev")
        return cls(
            log_level=env_str("LOG_LEVEL", "DEBUG" if verbose else "INFO").upper(),
            log_format=env_str("LOG_FORMAT", DEFAULT_LOG_FORMAT),
            log_file=env_str("LOG_FILE"),
            enable_console=env_bool("LOG_CONSOLE", True),
        )
