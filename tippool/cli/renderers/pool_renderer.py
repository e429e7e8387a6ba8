"""Rich renderers for periods, members and payouts.

Transforms SDK records into formatted Rich tables.
"""

from typing import Dict, Optional, Sequence

from rich import box
from rich.console import Console
from rich.table import Table

from tippool.sdk import PayoutData, PayoutDistributionItem, Period, PeriodStatus, TeamMember

STATUS_STYLES = {
    PeriodStatus.ACTIVE: "green",
    PeriodStatus.CLOSED: "yellow",
    PeriodStatus.PAID: "dim",
}


def _fmt_dt(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _signed(value: float) -> str:
    if abs(value) < 0.005:
        return "0.00"
    color = "green" if value > 0 else "red"
    return f"[{color}]{value:+,.2f}[/{color}]"


def render_periods(console: Console, periods: Sequence[Period]) -> None:
    """Render the period list."""
    if not periods:
        console.print("No periods yet. Log a tip or run 'tip-pool periods start'.")
        return

    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Start")
    table.add_column("End / closes")
    table.add_column("Tips", justify="right")
    table.add_column("Total", justify="right")

    for period in periods:
        style = STATUS_STYLES[period.status]
        end = _fmt_dt(period.end_date)
        if period.is_active and period.auto_close_date:
            end = f"closes {_fmt_dt(period.auto_close_date)}"
        table.add_row(
            period.id[:8],
            period.label,
            f"[{style}]{period.status.value}[/{style}]",
            _fmt_dt(period.start_date),
            end,
            str(len(period.tips)),
            f"{period.total_tips:,.2f}",
        )

    console.print(table)


def render_tips(console: Console, period: Period) -> None:
    """Render the tips of one period."""
    console.print(f"[bold]{period.label}[/bold] ({period.status.value})")
    if not period.tips:
        console.print("  No tips logged.")
        return

    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("Amount", justify="right")
    table.add_column("Note")

    for tip in period.tips:
        table.add_row(tip.id[:8], _fmt_dt(tip.date), f"{tip.amount:,.2f}", tip.note or "")
    table.add_row("", "[bold]Total[/bold]", f"[bold]{period.total_tips:,.2f}[/bold]", "")
    console.print(table)


def render_members(console: Console, members: Sequence[TeamMember]) -> None:
    """Render the roster with hours and balances."""
    if not members:
        console.print("No team members yet. Add one with 'tip-pool members add NAME'.")
        return

    table = Table(box=box.SIMPLE_HEAD)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Hours", justify="right")
    table.add_column("Registrations", justify="right")
    table.add_column("Balance", justify="right")

    for member in members:
        table.add_row(
            member.id[:8],
            member.name,
            f"{member.hours:g}",
            str(len(member.hour_registrations)),
            _signed(member.balance),
        )
    console.print(table)


def render_distribution(
    console: Console,
    items: Sequence[PayoutDistributionItem],
    names: Dict[str, str],
    title: Optional[str] = None,
) -> None:
    """Render payout lines: share, carried balance, paid and new balance."""
    if not items:
        console.print("Nothing to distribute (no team members).")
        return

    table = Table(title=title, box=box.SIMPLE_HEAD)
    table.add_column("Member")
    table.add_column("Hours", justify="right")
    table.add_column("Share", justify="right")
    table.add_column("Carried", justify="right")
    table.add_column("Paid", justify="right", style="bold")
    table.add_column("New balance", justify="right")

    for item in items:
        table.add_row(
            names.get(item.member_id, item.member_id[:8]),
            f"{item.hours:g}",
            f"{item.amount:,.2f}",
            _signed(item.prior_balance),
            f"{item.actual_amount:,.2f}",
            _signed(item.balance),
        )

    table.add_row(
        "[bold]Total[/bold]",
        f"{sum(i.hours for i in items):g}",
        f"{sum(i.amount for i in items):,.2f}",
        _signed(sum(i.prior_balance for i in items)),
        f"{sum(i.actual_amount for i in items):,.2f}",
        _signed(sum(i.balance for i in items)),
    )
    console.print(table)


def render_payout(console: Console, payout: PayoutData, names: Dict[str, str]) -> None:
    """Render one stored payout."""
    payer = f" by {payout.payer_name}" if payout.payer_name else ""
    title = f"Payout {payout.id[:8]} on {_fmt_dt(payout.date)}{payer} ({len(payout.period_ids)} period(s))"
    render_distribution(console, payout.distribution, names, title=title)
