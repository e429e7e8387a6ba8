"""Settings CLI commands for Tip Pool.

Manages settings.json (data directory, default team), the per-team pool
settings stored with each team, and the pool.yaml defaults for new teams.
"""

import click
from pathlib import Path

from tippool.sdk import (
    PeriodDuration,
    PoolSettings,
    ValidationError,
    format_closing_time,
    get_data_path,
    get_default_team,
    get_pool_defaults_path,
    get_setting,
    get_settings_path,
    load_pool_defaults,
    load_settings,
    save_pool_defaults,
    save_settings,
    set_setting,
    update_pool_settings,
)
from tippool.sdk.store import validate_team_id

from .common import run_pool

DURATION_CHOICES = [d.value for d in PeriodDuration]


def _pool_options(f):
    """Options shared by 'settings pool' and 'settings defaults'."""
    options = [
        click.option("--duration", type=click.Choice(DURATION_CHOICES), help="Period length."),
        click.option("--auto-close/--no-auto-close", default=None, help="Close periods automatically."),
        click.option("--align/--no-align", default=None, help="Close on calendar boundaries (Sunday, month end)."),
        click.option("--closing-time", metavar="HH:MM", help="Closing time; before 12:00 means after midnight."),
        click.option("--rounding", metavar="STEP", help="Payout rounding step: none, 0.50, 1, 2, 5 or 10."),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _changes(duration, auto_close, align, closing_time, rounding) -> dict:
    return {
        "period_duration": duration,
        "auto_close_periods": auto_close,
        "align_with_calendar": align,
        "closing_time": closing_time,
        "rounding_step": rounding,
    }


def _echo_pool_settings(settings: PoolSettings) -> None:
    click.echo(f"  period_duration:     {settings.period_duration.value}")
    click.echo(f"  auto_close_periods:  {settings.auto_close_periods}")
    click.echo(f"  align_with_calendar: {settings.align_with_calendar}")
    click.echo(f"  closing_time:        {format_closing_time(settings.closing_time)}")
    click.echo(f"  rounding_step:       {settings.rounding_step.value}")


@click.group()
def settings():
    """Manage settings.

    \b
    settings.json:
    - data_dir: custom data directory path
    - team: default team id
    \b
    Per team (stored with the team):
    - period duration, auto-close, calendar alignment, closing time, rounding
    """
    pass


@settings.command("show")
def settings_show():
    """Show current settings and their values."""
    settings_path = get_settings_path()
    current = load_settings()

    click.echo(f"Settings file: {settings_path}")
    click.echo(f"File exists: {settings_path.exists()}")
    click.echo()

    if not current:
        click.echo("No settings configured (using defaults).")
    else:
        click.echo("Current settings:")
        for key, value in current.items():
            click.echo(f"  {key}: {value}")

    click.echo()
    click.echo("Effective values:")
    click.echo(f"  data_dir: {get_data_path()}")
    click.echo(f"  team: {get_default_team()}")
    click.echo(f"  pool defaults: {get_pool_defaults_path()}")


@settings.command("data-dir")
@click.argument("path", required=False, type=click.Path())
@click.option("--clear", is_flag=True, help="Clear custom data_dir, revert to default")
def settings_data_dir(path, clear):
    """Set or clear the custom data directory.

    PATH is the directory where tip-pool stores team documents.

    Examples:
        tip-pool settings data-dir ~/tip-pool/data
        tip-pool settings data-dir --clear
    """
    if clear:
        current = load_settings()
        if "data_dir" in current:
            del current["data_dir"]
            save_settings(current)
            click.echo("Cleared data_dir setting.")
            click.echo(f"Data directory is now: {get_data_path()} (default)")
        else:
            click.echo("data_dir was not set.")
        return

    if not path:
        current_data_dir = get_setting("data_dir")
        if current_data_dir:
            click.echo(f"Current data_dir: {current_data_dir}")
        else:
            click.echo(f"No custom data_dir set. Using default: {get_data_path()}")
        return

    data_path = Path(path).expanduser().resolve()

    if data_path.exists():
        if not data_path.is_dir():
            raise click.ClickException(f"Path exists but is not a directory: {data_path}")
    else:
        try:
            data_path.mkdir(parents=True, exist_ok=True)
            click.echo(f"Created directory: {data_path}")
        except OSError as e:
            raise click.ClickException(f"Cannot create directory: {data_path}\n{e}")

    test_file = data_path / ".write_test"
    try:
        test_file.touch()
        test_file.unlink()
    except OSError as e:
        raise click.ClickException(f"Directory is not writable: {data_path}\n{e}")

    set_setting("data_dir", str(data_path))
    click.echo(f"Set data_dir: {data_path}")
    click.echo(f"Saved to: {get_settings_path()}")


@settings.command("team")
@click.argument("team_id", required=False)
def settings_team(team_id):
    """Show or set the default team."""
    if not team_id:
        click.echo(f"Default team: {get_default_team()}")
        return
    try:
        validate_team_id(team_id)
    except ValidationError as e:
        raise click.ClickException(str(e))
    set_setting("team", team_id)
    click.echo(f"Default team set to: {team_id}")


@settings.command("pool")
@_pool_options
@click.pass_context
def settings_pool(ctx, duration, auto_close, align, closing_time, rounding):
    """Show or change the selected team's pool settings.

    Changing settings recomputes the active period's closing time.

    \b
    Examples:
        tip-pool settings pool
        tip-pool settings pool --duration day --closing-time 02:00
        tip-pool settings pool --align --rounding 5
    """
    changes = _changes(duration, auto_close, align, closing_time, rounding)

    async def action(pool):
        if any(v is not None for v in changes.values()):
            settings = await pool.update_settings(**changes)
        else:
            settings = await pool.get_settings()
        return settings, await pool.periods.get_next_auto_close_date()

    settings, next_close = run_pool(ctx, action)
    click.echo(f"Pool settings for team '{(ctx.obj or {}).get('team') or get_default_team()}':")
    _echo_pool_settings(settings)
    if next_close:
        click.echo(f"  next auto-close:     {next_close:%Y-%m-%d %H:%M}")


@settings.command("defaults")
@_pool_options
def settings_defaults(duration, auto_close, align, closing_time, rounding):
    """Show or change pool defaults for new teams (pool.yaml)."""
    changes = _changes(duration, auto_close, align, closing_time, rounding)
    defaults = load_pool_defaults()

    if any(v is not None for v in changes.values()):
        try:
            defaults = update_pool_settings(defaults, **changes)
        except ValidationError as e:
            raise click.ClickException(str(e))
        path = save_pool_defaults(defaults)
        click.echo(f"Saved to: {path}")

    click.echo("Defaults for new teams:")
    _echo_pool_settings(defaults)
