"""Time helpers."""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], float]


def now_ms() -> int:
    """Return current timestamp in milliseconds."""
    return int(time.time() * 1000)


def monotonic_clock() -> float:
    """Seconds from a monotonic source; the default clock for caches."""
    return time.monotonic()


__all__ = ["Clock", "now_ms", "monotonic_clock"]
