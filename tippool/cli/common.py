"""Shared helpers for CLI commands.

Commands are thin wrappers: they build a TipPool for the selected team,
run one coroutine against it and render the result. Every run starts with
a catch-up auto-close check, since the CLI does not keep watchers alive
between invocations.
"""

import asyncio
import os
from typing import Any, Awaitable, Callable, Dict, Tuple

import click

from tippool.sdk import (
    JsonPoolStore,
    TipPool,
    TipPoolError,
    get_default_team,
)

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M", "%Y-%m-%dT%H:%M:%S"]


def open_pool(team: str = None, watch_auto_close: bool = False, **kwargs) -> TipPool:
    """Build a TipPool for the CLI (no background watchers unless asked)."""
    return TipPool(
        team or get_default_team(),
        JsonPoolStore(),
        acting_user=os.environ.get("TIP_POOL_USER"),
        watch_auto_close=watch_auto_close,
        **kwargs,
    )


def run_pool(ctx: click.Context, action: Callable[[TipPool], Awaitable[Any]]) -> Any:
    """Run action against the team selected on the command line.

    SDK errors become ClickExceptions carrying the specific message.
    """
    team = (ctx.obj or {}).get("team")

    async def _main():
        pool = open_pool(team)
        closed = await pool.check_auto_close()
        if closed is not None:
            click.secho(f"Period '{closed.label}' reached its closing time and was closed.", fg="yellow")
        return await action(pool)

    try:
        return asyncio.run(_main())
    except TipPoolError as e:
        raise click.ClickException(str(e))


def parse_overrides(values: Tuple[str, ...]) -> Dict[str, str]:
    """Parse repeated MEMBER=AMOUNT options."""
    overrides = {}
    for value in values:
        member, sep, amount = value.partition("=")
        if not sep or not member.strip():
            raise click.BadParameter(f"Expected MEMBER=AMOUNT, got: {value}", param_hint="--pay")
        overrides[member.strip()] = amount.strip()
    return overrides


async def resolve_overrides(pool: TipPool, overrides: Dict[str, str]) -> Dict[str, str]:
    """Map member names (or ids) in overrides to member ids."""
    resolved = {}
    for name_or_id, amount in overrides.items():
        member = await pool.roster.find_member(name_or_id)
        resolved[member.id] = amount
    return resolved


def match_id(prefix: str, ids, kind: str) -> str:
    """Resolve an id or unique id prefix (as shown in tables)."""
    ids = list(ids)
    if prefix in ids:
        return prefix
    matches = [i for i in ids if i.startswith(prefix)]
    if not matches:
        raise click.ClickException(f"{kind} not found: {prefix}")
    if len(matches) > 1:
        raise click.ClickException(f"{kind} id '{prefix}' is ambiguous; use more characters")
    return matches[0]


async def resolve_period_ids(pool: TipPool, prefixes) -> list:
    periods = await pool.periods.list_periods()
    return [match_id(p, (period.id for period in periods), "Period") for p in prefixes]


def money(value: float) -> str:
    return f"{value:,.2f}"


def require_confirmation(message: str, yes: bool) -> None:
    if not yes and not click.confirm(message, default=False):
        raise click.Abort()
