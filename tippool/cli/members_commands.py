"""Team member CLI commands for Tip Pool."""

import click
from rich.console import Console

from .common import DATE_FORMATS, match_id, money, require_confirmation, run_pool
from .renderers.pool_renderer import render_members


@click.group()
def members():
    """Manage team members, their hours and balances.

    Members can be referred to by name (case-insensitive) or id.
    """
    pass


@members.command("list")
@click.pass_context
def members_list(ctx):
    """List members with registered hours and carried balance."""
    items = run_pool(ctx, lambda pool: pool.roster.list_members())
    render_members(Console(), items)


@members.command("add")
@click.argument("name")
@click.pass_context
def members_add(ctx, name):
    """Add a team member."""
    member = run_pool(ctx, lambda pool: pool.roster.add_member(name))
    click.echo(f"Added {member.name} ({member.id[:8]}).")


@members.command("rename")
@click.argument("member")
@click.argument("new_name")
@click.pass_context
def members_rename(ctx, member, new_name):
    """Rename MEMBER to NEW_NAME."""
    async def action(pool):
        found = await pool.roster.find_member(member)
        return found.name, await pool.roster.rename_member(found.id, new_name)

    old_name, renamed = run_pool(ctx, action)
    click.echo(f"Renamed {old_name} to {renamed.name}.")


@members.command("remove")
@click.argument("member")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def members_remove(ctx, member, yes):
    """Remove a team member."""
    require_confirmation(f"Remove {member} from the team?", yes)

    async def action(pool):
        found = await pool.roster.find_member(member)
        return await pool.roster.remove_member(found.id)

    removed = run_pool(ctx, action)
    click.echo(f"Removed {removed.name}.")
    if removed.balance:
        click.secho(f"Note: {removed.name} had an outstanding balance of {money(removed.balance)}.", fg="yellow")


@members.command("hours")
@click.argument("member")
@click.argument("hours", type=float)
@click.option("--date", "-d", type=click.DateTime(formats=DATE_FORMATS), help="When the hours were worked (default: now).")
@click.option("--correction", is_flag=True, help="Allow negative hours to correct earlier entries.")
@click.pass_context
def members_hours(ctx, member, hours, date, correction):
    """Register HOURS worked by MEMBER.

    \b
    Examples:
        tip-pool members hours Ana 6.5
        tip-pool members hours --correction Ana -- -2
    """
    async def action(pool):
        found = await pool.roster.find_member(member)
        await pool.roster.add_hours(found.id, hours, date=date, correction=correction)
        return await pool.roster.get_member(found.id)

    updated = run_pool(ctx, action)
    click.echo(f"Registered {hours:g} hour(s) for {updated.name} (total {updated.hours:g}).")


@members.command("delete-hours")
@click.argument("member")
@click.argument("registration_id", required=False)
@click.option("--all", "clear_all", is_flag=True, help="Delete all of the member's registrations.")
@click.pass_context
def members_delete_hours(ctx, member, registration_id, clear_all):
    """Delete an hour registration (or all of them with --all)."""
    if not registration_id and not clear_all:
        raise click.UsageError("Give a REGISTRATION_ID or --all")

    async def action(pool):
        found = await pool.roster.find_member(member)
        if clear_all:
            return await pool.roster.clear_hours(found.id)
        full_id = match_id(registration_id, (r.id for r in found.hour_registrations), "Hour registration")
        return await pool.roster.delete_hour_registration(found.id, full_id)

    updated = run_pool(ctx, action)
    click.echo(f"{updated.name} now has {updated.hours:g} hour(s) registered.")


@members.command("registrations")
@click.argument("member")
@click.pass_context
def members_registrations(ctx, member):
    """Show a member's hour registrations."""
    found = run_pool(ctx, lambda pool: pool.roster.find_member(member))
    if not found.hour_registrations:
        click.echo(f"{found.name} has no hours registered.")
        return
    for reg in sorted(found.hour_registrations, key=lambda r: r.date):
        by = f"  ({reg.added_by})" if reg.added_by else ""
        click.echo(f"  {reg.id[:8]}  {reg.date:%Y-%m-%d %H:%M}  {reg.hours:>7g}{by}")
    click.echo(f"  Total: {found.hours:g}")


@members.command("balance")
@click.argument("member")
@click.argument("amount", type=float, required=False)
@click.pass_context
def members_balance(ctx, member, amount):
    """Show or set MEMBER's carried balance.

    A positive balance is owed to the member; a negative one was overpaid.
    """
    async def action(pool):
        found = await pool.roster.find_member(member)
        if amount is None:
            return found
        return await pool.roster.update_balance(found.id, amount)

    found = run_pool(ctx, action)
    verb = "set to" if amount is not None else "is"
    click.echo(f"Balance for {found.name} {verb} {money(found.balance)}.")
