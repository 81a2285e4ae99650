"""Bucket key derivation for the two-window limiter."""

from __future__ import annotations

import hashlib
import json
import math
from datetime import datetime

from quotagate.models import RateLimitRule, RequestIdentity

COUNTER_KEY_PREFIX = "rate_limit"


def counter_token(identity: RequestIdentity, rule: RateLimitRule) -> str:
    """Digest of (identity, period, verb, path) as 64 hex characters.

    The fields are joined as a JSON array, so a delimiter inside one value can
    never be mistaken for a field boundary.
    """
    raw = json.dumps(
        [identity.identity, rule.period, identity.http_verb, identity.path],
        separators=(",", ":"),
    )
    return hashlib.sha256(raw.encode()).hexdigest()


def slot_index(now: datetime, period: int) -> int:
    """Index of the fixed window of ``period`` seconds containing ``now``."""
    return math.floor(now.timestamp() / period)


def build_counter_keys(
    identity: RequestIdentity,
    rule: RateLimitRule,
    now: datetime,
) -> tuple[str, str]:
    """Return ``(current_key, previous_key)`` for the window containing ``now``."""
    token = counter_token(identity, rule)
    slot = slot_index(now, rule.period)
    return (
        f"{COUNTER_KEY_PREFIX}_{token}_{slot}",
        f"{COUNTER_KEY_PREFIX}_{token}_{slot - 1}",
    )
