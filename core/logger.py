"""
Service logger setup

Configures the root storefront logging once per process and returns a named
logger for the calling microservice.

Usage:
    from core.logger import setup_service_logger
    logger = setup_service_logger("shipping_service")
"""

import logging
import sys
from typing import Optional

from core.config import LoggingConfig

_configured = False


def setup_service_logger(service_name: str, config: Optional[LoggingConfig] = None) -> logging.Logger:
    """Return a logger for ``service_name`` configured from LoggingConfig"""
    global _configured
    config = config or LoggingConfig.from_env()
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    if not _configured:
        root = logging.getLogger()
        root.setLevel(level)
        formatter = logging.Formatter(config.log_format)

        if config.enable_console:
            console = logging.StreamHandler(sys.stdout)
            console.setFormatter(formatter)
            root.addHandler(console)

        if config.log_file:
            file_handler = logging.FileHandler(config.log_file)
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)
        _configured = True

    logger = logging.getLogger(service_name)
    logger.setLevel(level)
    return logger


__all__ = ["setup_service_logger"]
