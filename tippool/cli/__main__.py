"""Tip Pool CLI - Command-line interface for pooled tips and payouts."""

import click

from tippool import __version__

from .members_commands import members as members_group
from .payout_commands import payout as payout_group
from .periods_commands import periods as periods_group
from .settings_commands import settings as settings_group
from .tips_commands import tips as tips_group


@click.group()
@click.version_option(version=__version__, prog_name="tip-pool")
@click.option("--team", "-t", envvar="TIP_POOL_TEAM", help="Team id (default: settings.json 'team', else 'default').")
@click.pass_context
def cli(ctx, team):
    """Tip Pool - Pool tips over periods and pay them out by hours worked.

    Tips are logged into the active period. Closed periods are paid out to
    team members in proportion to their registered hours; whatever is not
    handed out is carried as a balance to the next payout.

    Configuration is loaded from (in order):

    \b
    1. TIP_POOL_CONFIG_PATH environment variable
    2. ~/.config/tip-pool/ (XDG default)

    Run 'tip-pool settings show' to see the effective configuration.
    """
    ctx.ensure_object(dict)
    ctx.obj["team"] = team


cli.add_command(tips_group)
cli.add_command(periods_group)
cli.add_command(members_group)
cli.add_command(payout_group)
cli.add_command(settings_group)


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
