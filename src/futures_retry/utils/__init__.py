"""Utility functions."""

from .config_loader import (
    HandlerConfig,
    LoggingConfig,
    RetryConfig,
    ServerConfig,
    load_config,
)
from .structured_logging import StructuredFormatter, setup_structured_logging

__all__ = [
    "HandlerConfig",
    "LoggingConfig",
    "RetryConfig",
    "ServerConfig",
    "load_config",
    "StructuredFormatter",
    "setup_structured_logging",
]
