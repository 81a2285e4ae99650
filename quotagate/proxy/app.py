"""FastAPI reverse proxy that throttles callers before forwarding upstream."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from quotagate.audit.logger import AuditLogger
from quotagate.config import Settings, load_policies_from_file
from quotagate.limiter.service import RateLimitService
from quotagate.models import RoutePolicy
from quotagate.proxy.middleware import RateLimitMiddleware
from quotagate.stores.factory import build_store

logger = logging.getLogger(__name__)

# content-encoding too: httpx hands back the body already decoded.
_HOP_BY_HOP = (
    "content-length", "content-encoding", "transfer-encoding", "connection", "keep-alive",
)


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    settings = Settings.from_env()
    policies = load_policies_from_file(settings.policies_path)
    store = build_store(settings.store_type, settings.redis_url)
    service = RateLimitService(store, store_timeout=settings.store_timeout)
    audit_logger = (
        AuditLogger.from_env(settings.audit_log_path) if settings.audit_log_path else None
    )
    logger.info(
        "Loaded %d rate limit policies, counter store: %s",
        len(policies), settings.store_type.value,
    )
    return create_app(
        settings.upstream_url,
        service,
        policies,
        audit_logger=audit_logger,
        client_id_header=settings.client_id_header,
        fail_open=settings.fail_open,
    )


def create_app(
    upstream_url: str,
    service: RateLimitService,
    policies: Iterable[RoutePolicy],
    audit_logger: AuditLogger | None = None,
    client_id_header: str = "x-client-id",
    fail_open: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create the proxy app with the rate limit middleware in front of it."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        close = getattr(service.store, "close", None)
        if close is not None:
            await close()

    app = FastAPI(docs_url=None, redoc_url=None, lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
    async def proxy(request: Request, path: str) -> Response:
        url = f"{upstream_url.rstrip('/')}/{path}"
        if request.url.query:
            url = f"{url}?{request.url.query}"
        headers = dict(request.headers)
        headers.pop("host", None)
        headers.pop("content-length", None)
        body = await request.body()

        try:
            async with httpx.AsyncClient(transport=transport) as client:
                resp = await client.request(
                    method=request.method,
                    url=url,
                    headers=headers,
                    content=body,
                    timeout=30.0,
                )
        except (httpx.ConnectError, httpx.TimeoutException):
            return JSONResponse({"error": "Upstream unavailable"}, status_code=502)

        return Response(
            content=resp.content,
            status_code=resp.status_code,
            headers={k: v for k, v in resp.headers.items() if k.lower() not in _HOP_BY_HOP},
        )

    app.add_middleware(
        RateLimitMiddleware,
        service=service,
        policies=list(policies),
        audit_logger=audit_logger,
        client_id_header=client_id_header,
        fail_open=fail_open,
    )

    return app
