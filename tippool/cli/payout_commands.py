"""Payout CLI commands for Tip Pool.

Previewing is read-only. Settling marks the chosen closed periods as
paid, updates every member's carried balance and clears their hours.
"""

import json

import click
from rich.console import Console

from tippool.sdk import PersistenceError

from .common import money, parse_overrides, require_confirmation, resolve_overrides, resolve_period_ids, run_pool
from .renderers.pool_renderer import render_distribution, render_payout


async def _member_names(pool) -> dict:
    return {m.id: m.name for m in await pool.roster.list_members()}


@click.group()
def payout():
    """Preview, settle and review payouts."""
    pass


@payout.command("preview")
@click.argument("period_ids", nargs=-1)
@click.option("--rounding", metavar="STEP", help="Rounding step: none, 0.50, 1, 2, 5 or 10 (default: team setting).")
@click.option("--pay", "pays", multiple=True, metavar="MEMBER=AMOUNT", help="Pay a member this amount instead.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def payout_preview(ctx, period_ids, rounding, pays, as_json):
    """Show what a payout would look like. Nothing is saved.

    Without PERIOD_IDS every unpaid period is included (the active one too).
    """
    overrides = parse_overrides(pays)

    async def action(pool):
        selected = await resolve_period_ids(pool, period_ids) if period_ids else None
        items = await pool.preview_payout(
            selected,
            rounding_step=rounding,
            overrides=await resolve_overrides(pool, overrides),
        )
        average = await pool.calculate_average_tip_per_hour(selected)
        return items, average, await _member_names(pool)

    items, average, names = run_pool(ctx, action)

    if as_json:
        click.echo(json.dumps({
            "average_tip_per_hour": round(average, 2),
            "distribution": [dict(i.to_dict(), name=names.get(i.member_id)) for i in items],
        }, indent=2))
        return

    render_distribution(Console(), items, names, title="Payout preview")
    click.echo(f"Average tip per hour: {money(average)}")


@payout.command("settle")
@click.argument("period_ids", nargs=-1, required=True)
@click.option("--rounding", metavar="STEP", help="Rounding step: none, 0.50, 1, 2, 5 or 10 (default: team setting).")
@click.option("--pay", "pays", multiple=True, metavar="MEMBER=AMOUNT", help="Pay a member this amount instead.")
@click.option("--payer", help="Who hands out the money.")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def payout_settle(ctx, period_ids, rounding, pays, payer, yes):
    """Pay out closed periods.

    \b
    Examples:
        tip-pool payout settle 3f2a9c1e
        tip-pool payout settle 3f2a9c1e 77b0d2aa --rounding 5 --pay Ana=40
    """
    overrides = parse_overrides(pays)

    async def action(pool):
        selected = await resolve_period_ids(pool, period_ids)
        resolved = await resolve_overrides(pool, overrides)
        names = await _member_names(pool)
        items = await pool.preview_payout(selected, rounding_step=rounding, overrides=resolved)

        console = Console()
        render_distribution(console, items, names, title="Payout")
        require_confirmation(f"Pay out {len(selected)} period(s)?", yes)

        try:
            result = await pool.mark_periods_as_paid(
                selected,
                overrides=resolved,
                payer_name=payer,
                rounding_step=rounding,
            )
        except PersistenceError as e:
            click.secho(f"Saving the payout failed: {e}", fg="red", err=True)
            while click.confirm("Retry saving the same payout?", default=True):
                try:
                    result = await pool.payouts.retry_pending()
                    break
                except PersistenceError as retry_error:
                    click.secho(f"Still failing: {retry_error}", fg="red", err=True)
            else:
                pool.payouts.discard_pending()
                raise click.ClickException("Payout was not saved; nothing changed.")
        return result

    result = run_pool(ctx, action)
    click.echo(
        f"Paid {money(result.total_paid)} for {len(result.period_ids)} period(s) "
        f"(payout {result.id[:8]})."
    )


@payout.command("history")
@click.option("--limit", "-n", type=int, default=5, show_default=True, help="Number of payouts to show.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def payout_history(ctx, limit, as_json):
    """Show past payouts, newest first."""
    async def action(pool):
        return await pool.payouts.list_payouts(), await _member_names(pool)

    payouts, names = run_pool(ctx, action)
    payouts = payouts[:limit]

    if as_json:
        click.echo(json.dumps([p.to_dict() for p in payouts], indent=2))
        return

    if not payouts:
        click.echo("No payouts yet.")
        return
    console = Console()
    for item in payouts:
        render_payout(console, item, names)
