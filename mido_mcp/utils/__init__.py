"""Shared helpers."""

from .helpers import timestamp_ms
from .logging import get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
    "timestamp_ms",
]
