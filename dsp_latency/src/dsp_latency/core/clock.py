"""Monotonic timing and pacing helpers.

All timestamps are integer nanoseconds from ``time.monotonic_ns`` so that
latency differences never suffer float rounding. Microsecond values are
floor-truncated.
"""

from __future__ import annotations

import asyncio
import math
import time

NS_PER_US = 1_000
US_PER_MS = 1_000
US_PER_SECOND = 1_000_000


def now_ns() -> int:
    """Current monotonic timestamp in nanoseconds."""
    return time.monotonic_ns()


def micros_between(start_ns: int, end_ns: int) -> int:
    """Elapsed microseconds between two monotonic timestamps, floor-truncated."""
    return (end_ns - start_ns) // NS_PER_US


def micros_since(start_ns: int) -> int:
    """Microseconds elapsed since ``start_ns``."""
    return micros_between(start_ns, now_ns())


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties away from zero for positive values."""
    return int(math.floor(value + 0.5))


def total_requests(rate_hz: float, duration_seconds: float) -> int:
    """Number of requests a run of ``duration_seconds`` at ``rate_hz`` issues."""
    return round_half_up(rate_hz * duration_seconds)


def scheduled_offset_us(index: int, rate_hz: float) -> int:
    """Offset from run start at which request ``index`` (0-based) is due."""
    return int(math.floor(index * US_PER_SECOND / rate_hz))


async def sleep_us(usec: int) -> None:
    """Suspend for ``usec`` microseconds with millisecond grain.

    The delay is rounded up to whole milliseconds so the caller never wakes
    before the requested offset. Non-positive delays still yield to the loop.
    """
    if usec <= 0:
        await asyncio.sleep(0)
        return
    msec = -(-usec // US_PER_MS)
    await asyncio.sleep(msec / US_PER_MS)
