"""Policy files and environment configuration."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from quotagate.errors import ConfigurationError
from quotagate.models import RoutePolicy, StoreType

DEFAULT_POLICIES_PATH = "config/rate-limit-policies.json"
DEFAULT_CLIENT_ID_HEADER = "x-client-id"


def parse_policies(raw: Any) -> list[RoutePolicy]:
    """Validate a decoded policy list. Raises ConfigurationError on bad entries."""
    if not isinstance(raw, list):
        raise ConfigurationError("Rate limit policies must be a JSON list")
    policies: list[RoutePolicy] = []
    for index, entry in enumerate(raw):
        try:
            policies.append(RoutePolicy.model_validate(entry))
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid rate limit policy #{index}: {exc}") from exc
    return policies


def load_policies_from_file(policies_path: str) -> list[RoutePolicy]:
    path = Path(policies_path)
    if not path.exists():
        raise FileNotFoundError(f"Rate limit policies file not found: {policies_path}")
    try:
        raw = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Rate limit policies file is not valid JSON: {exc}") from exc
    return parse_policies(raw)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime settings for the proxy, read from the environment."""

    upstream_url: str
    policies_path: str = DEFAULT_POLICIES_PATH
    store_type: StoreType = StoreType.MEMORY
    redis_url: str | None = None
    store_timeout: float | None = None
    fail_open: bool = False
    client_id_header: str = DEFAULT_CLIENT_ID_HEADER
    audit_log_path: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        try:
            upstream_url = os.environ["UPSTREAM_URL"]
        except KeyError as exc:
            raise ConfigurationError("UPSTREAM_URL must be set") from exc

        store_name = os.environ.get("RATE_LIMIT_STORE", StoreType.MEMORY.value)
        try:
            store_type = StoreType(store_name.lower())
        except ValueError as exc:
            raise ConfigurationError(f"Unknown RATE_LIMIT_STORE: {store_name!r}") from exc

        timeout_raw = os.environ.get("RATE_LIMIT_STORE_TIMEOUT")
        try:
            store_timeout = float(timeout_raw) if timeout_raw else None
        except ValueError as exc:
            raise ConfigurationError(
                f"RATE_LIMIT_STORE_TIMEOUT must be a number, got {timeout_raw!r}",
            ) from exc

        return cls(
            upstream_url=upstream_url,
            policies_path=os.environ.get("RATE_LIMIT_POLICIES_PATH", DEFAULT_POLICIES_PATH),
            store_type=store_type,
            redis_url=os.environ.get("REDIS_URL"),
            store_timeout=store_timeout,
            fail_open=_env_bool("RATE_LIMIT_FAIL_OPEN"),
            client_id_header=os.environ.get(
                "RATE_LIMIT_CLIENT_ID_HEADER", DEFAULT_CLIENT_ID_HEADER,
            ).lower(),
            audit_log_path=os.environ.get("AUDIT_LOG_PATH"),
        )
