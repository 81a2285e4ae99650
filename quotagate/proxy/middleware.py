"""ASGI middleware enforcing rate limit policies before requests reach the app."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import compile_path
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from quotagate.audit.logger import AuditLogger
from quotagate.errors import IdentityResolutionError, StoreError
from quotagate.limiter.service import RateLimitService
from quotagate.models import RateLimitEvent, RateLimitEventType, RoutePolicy
from quotagate.proxy.identity import resolve_identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _CompiledPolicy:
    policy: RoutePolicy
    pattern: re.Pattern[str]

    def match(self, method: str, path: str) -> dict[str, str] | None:
        if self.policy.methods and method not in self.policy.methods:
            return None
        found = self.pattern.match(path)
        return found.groupdict() if found else None


class RateLimitMiddleware:
    """Rejects requests over quota with 429 before they reach the wrapped app.

    Every policy whose route template and method match the request is
    evaluated; the request must pass all of them. Admitted responses carry
    ``X-RateLimit-Limit`` and ``X-RateLimit-Remaining`` for the tightest
    policy. When the counter store fails the request gets a 503, unless
    ``fail_open`` is set, in which case it is let through unthrottled.
    """

    def __init__(
        self,
        app: ASGIApp,
        service: RateLimitService,
        policies: Iterable[RoutePolicy],
        audit_logger: AuditLogger | None = None,
        client_id_header: str = "x-client-id",
        fail_open: bool = False,
    ) -> None:
        self.app = app
        self.service = service
        self.audit_logger = audit_logger
        self._client_id_header = client_id_header.lower()
        self._fail_open = fail_open
        self._policies = [
            _CompiledPolicy(policy=p, pattern=compile_path(p.path)[0]) for p in policies
        ]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        method = request.method.upper()
        path = request.url.path
        tightest: tuple[int, int] | None = None  # (limit, remaining)

        for compiled in self._policies:
            path_params = compiled.match(method, path)
            if path_params is None:
                continue
            policy = compiled.policy

            try:
                identity = resolve_identity(
                    request, policy, path_params, self._client_id_header,
                )
            except IdentityResolutionError as exc:
                self._audit(request, RateLimitEventType.IDENTITY_UNRESOLVED, "failure", None, {
                    "reason": str(exc),
                })
                response = JSONResponse({"error": str(exc)}, status_code=400)
                await response(scope, receive, send)
                return

            try:
                allowed = await self.service.process_request(identity, policy.rule)
                remaining = (
                    await self.service.check_availability(identity, policy.rule)
                    if allowed else 0
                )
            except StoreError as exc:
                self._audit(request, RateLimitEventType.STORE_FAILURE, "failure", identity.identity, {
                    "reason": str(exc),
                    "fail_open": self._fail_open,
                })
                if self._fail_open:
                    logger.warning("Counter store failed, admitting %s %s unthrottled", method, path)
                    continue
                response = JSONResponse({"error": "Rate limiting unavailable"}, status_code=503)
                await response(scope, receive, send)
                return

            if not allowed:
                self._audit(request, RateLimitEventType.RATE_LIMIT_BLOCKED, "blocked", identity.identity, {
                    "limit": policy.limit,
                    "period": policy.period,
                })
                response = _too_many_requests(policy)
                await response(scope, receive, send)
                return

            remaining = max(remaining, 0)
            if tightest is None or remaining < tightest[1]:
                tightest = (policy.limit, remaining)

        if tightest is None:
            await self.app(scope, receive, send)
            return

        limit, remaining = tightest

        async def send_with_quota(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = MutableHeaders(scope=message)
                headers["X-RateLimit-Limit"] = str(limit)
                headers["X-RateLimit-Remaining"] = str(remaining)
            await send(message)

        await self.app(scope, receive, send_with_quota)

    def _audit(
        self,
        request: Request,
        event_type: RateLimitEventType,
        result: str,
        identity: str | None,
        details: dict[str, object],
    ) -> None:
        if self.audit_logger:
            self.audit_logger.log(RateLimitEvent(
                event_type=event_type,
                source_ip=request.client.host if request.client else None,
                identity=identity,
                action=f"{request.method} {request.url.path}",
                result=result,
                details=details,
            ))


def _too_many_requests(policy: RoutePolicy) -> JSONResponse:
    return JSONResponse(
        {
            "error": {
                "message": "Too many requests",
                "limit": policy.limit,
                "period": policy.period,
            },
        },
        status_code=429,
        headers={"Retry-After": str(policy.period)},
    )
