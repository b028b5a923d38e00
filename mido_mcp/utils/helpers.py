"""Small time helpers."""

from __future__ import annotations

import time


def timestamp_ms() -> int:
    """Current UTC time in milliseconds."""
    return int(time.time() * 1000)
