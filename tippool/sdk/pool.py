"""TipPool - the operations the tip pool exposes to its callers.

CLI commands and MCP tools should be thin wrappers around this class. It
wires one TeamSession (store, clock, team lock) into the period, roster
and payout controllers so every operation on a team is serialized through
the same lock.

Example:

    pool = TipPool("bar-north", JsonPoolStore())
    await pool.add_tip(42.50, note="Friday")
    await pool.end_current_period()
    payout = await pool.mark_periods_as_paid([period.id])
"""

from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from .distribution import MemberShare
from .models import PayoutData, PayoutDistributionItem, Period, TipEntry
from .payouts import PayoutSettlementController
from .periods import AUTO_CLOSE_POLL_SECONDS, AutoCloseHandle, PeriodLifecycleController, Sleep
from .rounding import RoundingStep
from .schemas import PoolSettings
from .session import Clock, TeamLocks, TeamSession
from .store import PoolStore, validate_team_id
from .team import TeamRoster


class TipPool:
    """Facade over one team's tip pool."""

    def __init__(
        self,
        team_id: str,
        store: PoolStore,
        clock: Optional[Clock] = None,
        locks: Optional[TeamLocks] = None,
        acting_user: Optional[str] = None,
        poll_interval: float = AUTO_CLOSE_POLL_SECONDS,
        sleep: Optional[Sleep] = None,
        watch_auto_close: bool = True,
    ):
        self.session = TeamSession(
            validate_team_id(team_id),
            store,
            clock=clock,
            locks=locks,
            acting_user=acting_user,
        )
        self.periods = PeriodLifecycleController(
            self.session,
            poll_interval=poll_interval,
            sleep=sleep,
            watch_auto_close=watch_auto_close,
        )
        self.roster = TeamRoster(self.session)
        self.payouts = PayoutSettlementController(self.session)

    @property
    def team_id(self) -> str:
        return self.session.team_id

    # --- Tips and periods ---

    async def add_tip(self, amount: Any, note: Optional[str] = None, date: Optional[datetime] = None) -> TipEntry:
        return await self.periods.add_tip(amount, note=note, date=date)

    async def start_new_period(self) -> Period:
        return await self.periods.start_new_period()

    async def end_current_period(self) -> Optional[Period]:
        return await self.periods.end_current_period()

    async def delete_period(self, period_id: str) -> Period:
        return await self.periods.delete_period(period_id)

    async def check_auto_close(self) -> Optional[Period]:
        return await self.periods.check_auto_close()

    async def resume(self) -> Optional[AutoCloseHandle]:
        return await self.periods.resume()

    async def update_settings(self, **changes: Any) -> PoolSettings:
        return await self.periods.update_settings(**changes)

    async def get_settings(self) -> PoolSettings:
        return await self.periods.get_settings()

    # --- Distribution and payouts ---

    async def calculate_tip_distribution(self, period_ids: Optional[Iterable[str]] = None) -> List[MemberShare]:
        return await self.payouts.calculate_tip_distribution(period_ids)

    async def calculate_average_tip_per_hour(self, period_id: Union[str, Iterable[str], None] = None) -> float:
        return await self.payouts.calculate_average_tip_per_hour(period_id)

    async def preview_payout(
        self,
        period_ids: Optional[Iterable[str]] = None,
        rounding_step: Union[RoundingStep, str, float, None] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> List[PayoutDistributionItem]:
        return await self.payouts.preview(period_ids, rounding_step=rounding_step, overrides=overrides)

    def apply_rounding(
        self,
        preview: Sequence[PayoutDistributionItem],
        step: Union[RoundingStep, str, float, None],
    ) -> List[PayoutDistributionItem]:
        return self.payouts.apply_rounding(preview, step)

    async def mark_periods_as_paid(
        self,
        period_ids: Iterable[str],
        overrides: Optional[Mapping[str, Any]] = None,
        payer_name: Optional[str] = None,
        rounding_step: Union[RoundingStep, str, float, None] = None,
    ) -> PayoutData:
        return await self.payouts.mark_periods_as_paid(
            period_ids,
            overrides=overrides,
            payer_name=payer_name,
            rounding_step=rounding_step,
        )

    async def shutdown(self) -> None:
        """Stop background auto-close watchers."""
        await self.periods.shutdown()
