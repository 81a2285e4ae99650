"""Click CLI for inspecting policies and counter buckets."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable
from datetime import UTC, datetime
from typing import TypeVar

import click

from quotagate.config import load_policies_from_file
from quotagate.errors import QuotagateError
from quotagate.limiter.keys import build_counter_keys
from quotagate.limiter.service import RateLimitService
from quotagate.models import RateLimitRule, RequestIdentity, StoreType
from quotagate.stores.factory import build_store

T = TypeVar("T")


def _run(ctx: click.Context, operation: Awaitable[T]) -> T:
    service: RateLimitService = ctx.obj["service"]

    async def _with_cleanup() -> T:
        try:
            return await operation
        finally:
            close = getattr(service.store, "close", None)
            if close is not None:
                await close()

    try:
        return asyncio.run(_with_cleanup())
    except QuotagateError as exc:
        raise click.ClickException(str(exc)) from exc


def _rule(limit: int, period: int) -> RateLimitRule:
    try:
        return RateLimitRule(limit=limit, period=period)
    except QuotagateError as exc:
        raise click.BadParameter(str(exc)) from exc


@click.group()
@click.option(
    "--store",
    type=click.Choice([s.value for s in StoreType]),
    default=StoreType.MEMORY.value,
    help="Counter store backend.",
)
@click.option("--redis-url", default=None, help="Redis URL when --store=redis.")
@click.pass_context
def cli(ctx: click.Context, store: str, redis_url: str | None) -> None:
    """quotagate rate limit inspection CLI."""
    ctx.ensure_object(dict)
    ctx.obj["service"] = RateLimitService(build_store(store, redis_url))


@cli.command()
@click.argument("policies_path")
def policies(policies_path: str) -> None:
    """Validate a policy file and print the parsed policies."""
    try:
        loaded = load_policies_from_file(policies_path)
    except (QuotagateError, FileNotFoundError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(json.dumps([p.model_dump(mode="json") for p in loaded], indent=2))


@cli.command()
@click.argument("identity")
@click.argument("path")
@click.argument("verb")
@click.option("--period", type=int, required=True, help="Window length in seconds.")
def keys(identity: str, path: str, verb: str, period: int) -> None:
    """Print the current and previous bucket keys."""
    rule = _rule(0, period)
    current, previous = build_counter_keys(
        RequestIdentity(identity=identity, path=path, http_verb=verb),
        rule,
        datetime.now(UTC),
    )
    click.echo(json.dumps({"current": current, "previous": previous}, indent=2))


@cli.command()
@click.argument("identity")
@click.argument("path")
@click.argument("verb")
@click.option("--limit", type=int, required=True, help="Requests allowed per period.")
@click.option("--period", type=int, required=True, help="Window length in seconds.")
@click.pass_context
def status(
    ctx: click.Context, identity: str, path: str, verb: str, limit: int, period: int,
) -> None:
    """Show how many calls remain in the current window."""
    service: RateLimitService = ctx.obj["service"]
    request_identity = RequestIdentity(identity=identity, path=path, http_verb=verb)
    rule = _rule(limit, period)
    current_key, _ = build_counter_keys(request_identity, rule, datetime.now(UTC))

    async def _status() -> dict[str, object]:
        return {
            "key": current_key,
            "active": await service.store.exists(current_key),
            "remaining": await service.check_availability(request_identity, rule),
        }

    click.echo(json.dumps(_run(ctx, _status()), indent=2))


@cli.command()
@click.argument("identity")
@click.argument("path")
@click.argument("verb")
@click.option("--limit", type=int, required=True, help="Requests allowed per period.")
@click.option("--period", type=int, required=True, help="Window length in seconds.")
@click.pass_context
def reset(
    ctx: click.Context, identity: str, path: str, verb: str, limit: int, period: int,
) -> None:
    """Clear the current and previous buckets for a caller."""
    service: RateLimitService = ctx.obj["service"]
    request_identity = RequestIdentity(identity=identity, path=path, http_verb=verb)
    _run(ctx, service.reset(request_identity, _rule(limit, period)))
    click.echo(f"Buckets cleared for: {identity} {verb.upper()} {path}")
