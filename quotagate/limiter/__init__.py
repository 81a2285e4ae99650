"""Sliding-window rate limiting over a pluggable counter store.

This package provides:
- Bucket key derivation for the current and previous windows
- The window blend producing the sliding estimate
- Per-key reader/writer locking
- The RateLimitService orchestrating all of the above
"""

from quotagate.limiter.keys import COUNTER_KEY_PREFIX, build_counter_keys, counter_token
from quotagate.limiter.locks import ReaderWriterLock, StripedRWLock
from quotagate.limiter.merger import blend_fraction, merge_windows
from quotagate.limiter.service import RateLimitService

__all__ = [
    "COUNTER_KEY_PREFIX",
    "RateLimitService",
    "ReaderWriterLock",
    "StripedRWLock",
    "blend_fraction",
    "build_counter_keys",
    "counter_token",
    "merge_windows",
]
