"""Period CLI commands for Tip Pool."""

import asyncio

import click
from rich.console import Console

from tippool.sdk import TipPoolError, format_closing_time

from .common import DATE_FORMATS, open_pool, require_confirmation, resolve_period_ids, run_pool
from .renderers.pool_renderer import render_periods


@click.group()
def periods():
    """Start, close and manage tip periods.

    A period is a span of time whose tips are pooled together. Periods are
    active while collecting tips, closed once ended, and paid once settled.
    """
    pass


@periods.command("list")
@click.pass_context
def periods_list(ctx):
    """List all periods, newest first."""
    async def action(pool):
        return await pool.periods.list_periods(), await pool.periods.unpaid_period_count()

    items, unpaid = run_pool(ctx, action)
    render_periods(Console(), items)
    if unpaid:
        click.echo(f"{unpaid} closed period(s) waiting for a payout.")


@periods.command("current")
@click.pass_context
def periods_current(ctx):
    """Show the active period and when it closes."""
    async def action(pool):
        return await pool.periods.current_period(), await pool.get_settings()

    period, settings = run_pool(ctx, action)
    if period is None:
        click.echo("No active period.")
        return
    click.echo(f"Active period: {period.label} ({period.id[:8]})")
    click.echo(f"Started:       {period.start_date:%Y-%m-%d %H:%M}")
    click.echo(f"Tips:          {len(period.tips)} totalling {period.total_tips:,.2f}")
    if period.auto_close_date:
        click.echo(f"Auto-closes:   {period.auto_close_date:%Y-%m-%d %H:%M}")
    else:
        click.echo("Auto-closes:   never (close it with 'tip-pool periods end')")
    click.echo(f"Closing time:  {format_closing_time(settings.closing_time)}")


@periods.command("start")
@click.pass_context
def periods_start(ctx):
    """Start a new period (closes the active one)."""
    period = run_pool(ctx, lambda pool: pool.start_new_period())
    click.echo(f"Started period '{period.label}' ({period.id[:8]}).")
    if period.auto_close_date:
        click.echo(f"It closes automatically at {period.auto_close_date:%Y-%m-%d %H:%M}.")


@periods.command("end")
@click.pass_context
def periods_end(ctx):
    """Close the active period."""
    period = run_pool(ctx, lambda pool: pool.end_current_period())
    if period is None:
        click.echo("No active period to end.")
        return
    click.echo(f"Closed period '{period.label}' with {period.total_tips:,.2f} in tips.")


@periods.command("delete")
@click.argument("period_id")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def periods_delete(ctx, period_id, yes):
    """Delete an unpaid period and all its tips."""
    require_confirmation(f"Delete period {period_id} and all its tips?", yes)

    async def action(pool):
        (resolved,) = await resolve_period_ids(pool, [period_id])
        return await pool.delete_period(resolved)

    period = run_pool(ctx, action)
    click.echo(f"Deleted period '{period.label}' ({len(period.tips)} tip(s)).")


@periods.command("rename")
@click.argument("period_id")
@click.option("--name", help="New display name (empty string restores the default).")
@click.option("--notes", help="Notes for the period (empty string clears them).")
@click.pass_context
def periods_rename(ctx, period_id, name, notes):
    """Rename a period or change its notes."""
    if name is None and notes is None:
        raise click.UsageError("Give --name and/or --notes")

    async def action(pool):
        (resolved,) = await resolve_period_ids(pool, [period_id])
        return await pool.periods.update_period(resolved, name=name, notes=notes)

    period = run_pool(ctx, action)
    click.echo(f"Updated period {period.id[:8]}: {period.label}")


@periods.command("schedule")
@click.argument("when", type=click.DateTime(formats=DATE_FORMATS))
@click.pass_context
def periods_schedule(ctx, when):
    """Set when the active period closes automatically."""
    period = run_pool(ctx, lambda pool: pool.periods.schedule_auto_close(when))
    click.echo(f"Period '{period.label}' will close at {period.auto_close_date:%Y-%m-%d %H:%M}.")


@periods.command("check")
@click.pass_context
def periods_check(ctx):
    """Close the active period if its closing time has passed.

    Every command already does this first; use it from cron to keep
    periods rolling without anything else running.
    """
    async def action(pool):
        return await pool.periods.current_period()

    period = run_pool(ctx, action)
    if period is not None and period.auto_close_date:
        click.echo(f"Active period '{period.label}' closes at {period.auto_close_date:%Y-%m-%d %H:%M}.")
    else:
        click.echo("No auto-close scheduled.")


@periods.command("watch")
@click.option("--interval", type=float, default=60.0, show_default=True, help="Seconds between checks.")
@click.pass_context
def periods_watch(ctx, interval):
    """Keep running and close periods as their deadlines pass.

    Stop with Ctrl+C.
    """
    team = (ctx.obj or {}).get("team")

    async def _watch():
        pool = open_pool(team, watch_auto_close=True, poll_interval=interval)
        try:
            handle = await pool.resume()
            if handle is None:
                click.echo("No period to watch yet; the first tip will start one.")
            else:
                click.echo(f"Watching period {handle.period_id[:8]}, closes {handle.deadline:%Y-%m-%d %H:%M}.")
            while True:
                await pool.check_auto_close()
                current = await pool.periods.current_period()
                if current is not None and pool.periods.get_watch(current.id) is None:
                    pool.periods.watch(current)
                await asyncio.sleep(interval)
        finally:
            await pool.shutdown()

    try:
        asyncio.run(_watch())
    except TipPoolError as e:
        raise click.ClickException(str(e))
    except KeyboardInterrupt:
        click.echo("\nStopped watching.")
