"""Blend of the current and previous fixed windows into one sliding estimate."""

from __future__ import annotations

import math
from datetime import datetime

from quotagate.models import RateLimitCounter


def blend_fraction(current: RateLimitCounter, now: datetime, period: int) -> float:
    """Share of the current window already elapsed, clamped to [0, 1].

    A current timestamp in the future (clock skew) gives 0; a stale bucket
    older than one period gives 1.
    """
    elapsed = (now - current.timestamp).total_seconds()
    return min(max(elapsed / period, 0.0), 1.0)


def merge_windows(
    current: RateLimitCounter,
    previous: RateLimitCounter | None,
    now: datetime,
    period: int,
) -> int:
    """Estimated number of calls in the sliding window ending at ``now``.

    Rounded up so that leftover activity from the previous window blocks
    slightly early rather than slightly late.
    """
    if previous is None:
        return math.ceil(current.count)

    fraction = blend_fraction(current, now, period)
    return math.ceil(current.count * fraction + previous.count * (1 - fraction))
