"""Tip Pool MCP Server - FastMCP implementation for tip pool tools.

The server is long-lived, so each team's TipPool is kept for the life of
the process with auto-close watchers running on the server's event loop.
"""

import logging
import os
from typing import Any, Dict

from mcp.server.fastmcp import FastMCP
from pydantic import Field

from tippool.sdk import JsonPoolStore, TeamLocks, TipPool, TipPoolError, get_default_team

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("tip-pool")

_store = JsonPoolStore()
_locks = TeamLocks()
_pools: Dict[str, TipPool] = {}


async def _pool(team: str | None) -> TipPool:
    team_id = team or get_default_team()
    pool = _pools.get(team_id)
    if pool is None:
        pool = TipPool(team_id, _store, locks=_locks, acting_user=os.environ.get("TIP_POOL_USER"))
        await pool.resume()
        _pools[team_id] = pool
    return pool


def _names(members) -> Dict[str, str]:
    return {m.id: m.name for m in members}


# --- Tools ---

@mcp.tool()
async def add_tip(
    amount: float = Field(description="Tip amount (non-negative)"),
    note: str | None = Field(default=None, description="Optional note, e.g. 'Saturday dinner'"),
    team: str | None = Field(default=None, description="Team id (default team if omitted)"),
) -> dict[str, Any]:
    """Log a tip in the team's active period. A period is started if none is active."""
    try:
        pool = await _pool(team)
        tip = await pool.add_tip(amount, note=note)
        period = await pool.periods.get_period(tip.period_id)
        return {
            "tip": tip.to_dict(),
            "period": {"id": period.id, "name": period.label, "total_tips": round(period.total_tips, 2)},
        }
    except TipPoolError as e:
        logger.error(f"Error adding tip: {e}")
        return {"error": str(e)}


@mcp.tool()
async def current_period(
    team: str | None = Field(default=None, description="Team id (default team if omitted)"),
) -> dict[str, Any]:
    """Get the active period with its tips and auto-close deadline."""
    try:
        pool = await _pool(team)
        period = await pool.periods.current_period()
        return {
            "period": period.to_dict() if period else None,
            "unpaid_closed_periods": await pool.periods.unpaid_period_count(),
            "closing_time": await pool.periods.get_formatted_closing_time(),
        }
    except TipPoolError as e:
        logger.error(f"Error getting current period: {e}")
        return {"error": str(e), "period": None}


@mcp.tool()
async def list_periods(
    status: str | None = Field(default=None, description="Filter by status ('active', 'closed' or 'paid')"),
    limit: int = Field(default=20, description="Maximum number of periods to return (default 20)"),
    team: str | None = Field(default=None, description="Team id (default team if omitted)"),
) -> dict[str, Any]:
    """List periods newest first, without their individual tips."""
    try:
        pool = await _pool(team)
        periods = await pool.periods.list_periods()
        if status:
            periods = [p for p in periods if p.status.value == status.lower()]
        return {
            "periods": [
                {
                    "id": p.id,
                    "name": p.label,
                    "status": p.status.value,
                    "start_date": p.start_date.isoformat(),
                    "end_date": p.end_date.isoformat() if p.end_date else None,
                    "tip_count": len(p.tips),
                    "total_tips": round(p.total_tips, 2),
                }
                for p in periods[:limit]
            ],
            "total_available": len(periods),
        }
    except TipPoolError as e:
        logger.error(f"Error listing periods: {e}")
        return {"error": str(e), "periods": []}


@mcp.tool()
async def end_current_period(
    team: str | None = Field(default=None, description="Team id (default team if omitted)"),
) -> dict[str, Any]:
    """Close the active period so it can be paid out."""
    try:
        pool = await _pool(team)
        period = await pool.end_current_period()
        return {"closed": period.to_dict() if period else None}
    except TipPoolError as e:
        logger.error(f"Error ending period: {e}")
        return {"error": str(e)}


@mcp.tool()
async def preview_payout(
    period_ids: list[str] | None = Field(default=None, description="Period ids (all unpaid periods if omitted)"),
    rounding_step: str | None = Field(default=None, description="Rounding step: none, 0.50, 1, 2, 5 or 10"),
    team: str | None = Field(default=None, description="Team id (default team if omitted)"),
) -> dict[str, Any]:
    """Preview how tips would be paid out by hours worked. Nothing is saved."""
    try:
        pool = await _pool(team)
        items = await pool.preview_payout(period_ids, rounding_step=rounding_step)
        names = _names(await pool.roster.list_members())
        return {
            "distribution": [dict(i.to_dict(), name=names.get(i.member_id)) for i in items],
            "average_tip_per_hour": round(await pool.calculate_average_tip_per_hour(period_ids), 2),
        }
    except TipPoolError as e:
        logger.error(f"Error previewing payout: {e}")
        return {"error": str(e), "distribution": []}


@mcp.tool()
async def average_tip_per_hour(
    period_ids: list[str] | None = Field(default=None, description="Period ids (all unpaid periods if omitted)"),
    team: str | None = Field(default=None, description="Team id (default team if omitted)"),
) -> dict[str, Any]:
    """Average tip per hour worked over the given periods."""
    try:
        pool = await _pool(team)
        return {"average_tip_per_hour": round(await pool.calculate_average_tip_per_hour(period_ids), 2)}
    except TipPoolError as e:
        logger.error(f"Error calculating average tip per hour: {e}")
        return {"error": str(e)}


@mcp.tool()
async def register_hours(
    member: str = Field(description="Member name (case-insensitive) or id"),
    hours: float = Field(description="Hours worked"),
    team: str | None = Field(default=None, description="Team id (default team if omitted)"),
) -> dict[str, Any]:
    """Register hours worked by a team member."""
    try:
        pool = await _pool(team)
        found = await pool.roster.find_member(member)
        registration = await pool.roster.add_hours(found.id, hours)
        updated = await pool.roster.get_member(found.id)
        return {"registration": registration.to_dict(), "member": updated.name, "total_hours": updated.hours}
    except TipPoolError as e:
        logger.error(f"Error registering hours: {e}")
        return {"error": str(e)}


@mcp.tool()
async def payout_history(
    limit: int = Field(default=5, description="Maximum number of payouts to return (default 5)"),
    team: str | None = Field(default=None, description="Team id (default team if omitted)"),
) -> dict[str, Any]:
    """List past payouts, newest first."""
    try:
        pool = await _pool(team)
        payouts = await pool.payouts.list_payouts()
        return {"payouts": [p.to_dict() for p in payouts[:limit]], "count": len(payouts)}
    except TipPoolError as e:
        logger.error(f"Error listing payouts: {e}")
        return {"error": str(e), "payouts": []}


# --- Server Entry Point ---

def run_server():
    """Run the MCP server in stdio mode."""
    mcp.run(transport="stdio")


if __name__ == "__main__":
    run_server()
