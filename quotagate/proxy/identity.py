"""Caller identification for rate limit policies."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping

from starlette.requests import Request

from quotagate.errors import IdentityResolutionError
from quotagate.models import RateLimitType, RequestIdentity, RoutePolicy

logger = logging.getLogger(__name__)


def _parameter_value(request: Request, path_params: Mapping[str, str], name: str) -> str:
    if name in request.query_params:
        return request.query_params[name]
    if name in path_params:
        return str(path_params[name]).lower()
    return ""


def resolve_identity(
    request: Request,
    policy: RoutePolicy,
    path_params: Mapping[str, str],
    client_id_header: str = "x-client-id",
) -> RequestIdentity:
    """Build the RequestIdentity a policy keys its quota on.

    Raises:
        IdentityResolutionError: The request lacks the client address, the
            client id header, or one of the policy's parameters.
    """
    if policy.kind == RateLimitType.VIA_IP:
        if request.client is None:
            raise IdentityResolutionError("Client address is not available")
        identity = request.client.host
    elif policy.kind == RateLimitType.VIA_CLIENT_ID:
        identity = request.headers.get(client_id_header, "").strip()
        if not identity:
            raise IdentityResolutionError(
                f"Header {client_id_header} is required when rate limiting via client id",
            )
    else:
        values: list[str] = []
        for name in policy.names:
            value = _parameter_value(request, path_params, name)
            if not value.strip():
                logger.error(
                    "Parameter %s should exist in query or route when rate limiting via parameter.",
                    name,
                )
                raise IdentityResolutionError(
                    f"Parameter {name} should exist in query or route", parameter=name,
                )
            values.append(value)
        # A JSON array keeps ("ab", "c") and ("a", "bc") apart.
        identity = json.dumps(values, separators=(",", ":"))

    return RequestIdentity(
        identity=identity,
        path=request.url.path,
        http_verb=request.method,
    )
