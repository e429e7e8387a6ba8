"""Tip CLI commands for Tip Pool."""

import click
from rich.console import Console

from .common import DATE_FORMATS, match_id, money, resolve_period_ids, run_pool
from .renderers.pool_renderer import render_tips


@click.group()
def tips():
    """Log and manage tips.

    Tips always go into the active period; one is started automatically
    when none is active.
    """
    pass


@tips.command("add")
@click.argument("amount", type=float)
@click.option("--note", "-n", help="Free-text note (e.g. 'Saturday dinner').")
@click.option("--date", "-d", type=click.DateTime(formats=DATE_FORMATS), help="When the tip was received (default: now).")
@click.pass_context
def tips_add(ctx, amount, note, date):
    """Log a tip of AMOUNT in the active period."""
    async def action(pool):
        tip = await pool.add_tip(amount, note=note, date=date)
        period = await pool.periods.get_period(tip.period_id)
        return tip, period

    tip, period = run_pool(ctx, action)
    click.echo(f"Added tip {money(tip.amount)} to '{period.label}' (total {money(period.total_tips)}).")


@tips.command("list")
@click.option("--period", "-p", "period_id", help="Period id (default: the active period).")
@click.pass_context
def tips_list(ctx, period_id):
    """List the tips of a period."""
    async def action(pool):
        if period_id:
            (resolved,) = await resolve_period_ids(pool, [period_id])
            return await pool.periods.get_period(resolved)
        return await pool.periods.current_period()

    period = run_pool(ctx, action)
    if period is None:
        click.echo("No active period. Use --period to list the tips of another period.")
        return
    render_tips(Console(), period)


@tips.command("edit")
@click.argument("period_id")
@click.argument("tip_id")
@click.option("--amount", type=float, help="New amount.")
@click.option("--note", help="New note (empty string clears it).")
@click.option("--date", type=click.DateTime(formats=DATE_FORMATS), help="New date.")
@click.pass_context
def tips_edit(ctx, period_id, tip_id, amount, note, date):
    """Change a tip in an unpaid period."""
    async def action(pool):
        (resolved,) = await resolve_period_ids(pool, [period_id])
        period = await pool.periods.get_period(resolved)
        tip_full_id = match_id(tip_id, (t.id for t in period.tips), "Tip")
        return await pool.periods.update_tip(resolved, tip_full_id, amount=amount, note=note, date=date)

    tip = run_pool(ctx, action)
    click.echo(f"Updated tip {tip.id[:8]}: {money(tip.amount)}")


@tips.command("delete")
@click.argument("period_id")
@click.argument("tip_id")
@click.pass_context
def tips_delete(ctx, period_id, tip_id):
    """Delete a tip from an unpaid period."""
    async def action(pool):
        (resolved,) = await resolve_period_ids(pool, [period_id])
        period = await pool.periods.get_period(resolved)
        tip_full_id = match_id(tip_id, (t.id for t in period.tips), "Tip")
        return await pool.periods.delete_tip(resolved, tip_full_id)

    tip = run_pool(ctx, action)
    click.echo(f"Deleted tip {tip.id[:8]} ({money(tip.amount)}).")
