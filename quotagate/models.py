"""Shared data models for quotagate."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from quotagate.errors import ConfigurationError

# --- Enums ---


class RateLimitType(str, Enum):
    VIA_IP = "via_ip"
    VIA_CLIENT_ID = "via_client_id"
    VIA_PARAMETER = "via_parameter"


class StoreType(str, Enum):
    MEMORY = "memory"
    REDIS = "redis"


class RateLimitEventType(str, Enum):
    RATE_LIMIT_BLOCKED = "rate_limit_blocked"
    IDENTITY_UNRESOLVED = "identity_unresolved"
    STORE_FAILURE = "store_failure"


class RateLimitPeriod:
    """Common period lengths, in seconds."""

    ONE_MINUTE = 60
    HALF_MINUTE = 30

    ONE_HOUR = 60 * ONE_MINUTE
    HALF_HOUR = 30 * ONE_MINUTE

    ONE_DAY = 24 * ONE_HOUR


# --- Limiter values ---


@dataclass(frozen=True)
class RequestIdentity:
    """Who is calling, and which endpoint they are calling."""

    identity: str
    path: str
    http_verb: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", self.path.lower())
        object.__setattr__(self, "http_verb", self.http_verb.lower())


@dataclass(frozen=True)
class RateLimitRule:
    """At most ``limit`` requests per ``period`` seconds.

    A limit of zero rejects every request. The period must be positive since
    bucket slots are computed by dividing by it.
    """

    limit: int
    period: int

    def __post_init__(self) -> None:
        if self.limit < 0:
            raise ConfigurationError(f"Limit should not be less than zero, got {self.limit}")
        if self.period < 0:
            raise ConfigurationError(f"Period should not be less than zero, got {self.period}")
        if self.period == 0:
            raise ConfigurationError("Period must be at least one second")


class RateLimitCounter(BaseModel):
    """Start of a window and the number of calls attributed to it."""

    timestamp: datetime
    count: float = Field(ge=0)


# --- Policy Models ---


class RoutePolicy(BaseModel):
    """Binds a rate limit rule to an endpoint.

    ``path`` is a route template such as ``/items/{item_id}``. An empty
    ``methods`` tuple matches every HTTP method.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    methods: tuple[str, ...] = ()
    kind: RateLimitType = RateLimitType.VIA_IP
    limit: int = Field(ge=0)
    period: int = Field(gt=0)
    parameter_names: str = ""

    @field_validator("methods")
    @classmethod
    def _upper_methods(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        return tuple(m.upper() for m in value)

    @model_validator(mode="after")
    def _require_parameter_names(self) -> RoutePolicy:
        if self.kind == RateLimitType.VIA_PARAMETER and not self.names:
            raise ValueError(
                "parameter_names should not be empty when rate limiting via parameter"
            )
        return self

    @property
    def names(self) -> list[str]:
        return [n.strip() for n in self.parameter_names.split(";") if n.strip()]

    @property
    def rule(self) -> RateLimitRule:
        return RateLimitRule(limit=self.limit, period=self.period)


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class RateLimitEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: RateLimitEventType
    source_ip: str | None = None
    identity: str | None = None
    action: str
    result: str  # "blocked" | "failure" | "allowed"
    details: dict[str, object] | None = None
