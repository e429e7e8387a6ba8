"""Payout settlement.

Settling a set of closed periods:

1. Check every period is closed and not yet paid (otherwise reject,
   changing nothing).
2. Split the pooled tips over all current members by hours
   (distribution.distribute).
3. Pick what each member actually gets: the payer's override, or the
   amount due (share + carried balance) floored to the rounding step.
4. Carry the difference forward as the member's new balance
   (balance.reconcile).
5. Persist in one write: periods marked paid, balances updated, hours
   cleared, and one immutable PayoutData appended to the history.

Steps 1-4 are pure and produce a SettlementPlan. If the write fails the
plan is kept, and retry_pending() writes that same plan again instead of
recomputing it, so a retry can never pay out a different amount.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .balance import apply_rounding, build_payout_items
from .distribution import MemberShare, average_tip_per_hour, distribute, total_hours
from .errors import PersistenceError, StateConflictError, ValidationError
from .models import (
    PayoutData,
    PayoutDistributionItem,
    Period,
    PeriodStatus,
    TeamMember,
    TeamState,
    coerce_amount,
    new_id,
)
from .rounding import RoundingStep
from .session import TeamSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SettlementPlan:
    """Everything a settlement writes, computed before anything is saved."""

    payout: PayoutData
    period_averages: Tuple[Tuple[str, float], ...]  # (period_id, average tip per hour)

    @property
    def period_ids(self) -> Tuple[str, ...]:
        return self.payout.period_ids


def plan_settlement(
    periods: Sequence[Period],
    members: Sequence[TeamMember],
    step: Union[RoundingStep, str, float, None],
    overrides: Optional[Mapping[str, float]] = None,
    now: Optional[datetime] = None,
    payer_name: Optional[str] = None,
) -> SettlementPlan:
    """Compute a settlement without touching any state."""
    shares = distribute(periods, members)
    prior_balances = {m.id: m.balance for m in members}
    items = build_payout_items(shares, prior_balances, step, overrides)

    hours = total_hours(members)
    averages = tuple(
        (p.id, (p.total_tips / hours) if hours else 0.0)
        for p in periods
    )

    payout = PayoutData(
        id=new_id(),
        period_ids=tuple(p.id for p in periods),
        date=now or datetime.now(),
        distribution=tuple(items),
        payer_name=payer_name,
    )
    return SettlementPlan(payout=payout, period_averages=averages)


def apply_settlement(state: TeamState, plan: SettlementPlan) -> None:
    """Write a plan into team state (caller persists it).

    Hours are cleared by dropping the members' hour registrations.
    """
    averages = dict(plan.period_averages)
    for period_id in plan.period_ids:
        period = state.find_period(period_id)
        period.is_paid = True
        period.average_tip_per_hour = averages.get(period_id)

    for item in plan.payout.distribution:
        member = state.find_member(item.member_id)
        if member is None:
            # Removed after the plan was made; the payout record still has the line
            continue
        member.balance = item.balance
        member.hour_registrations = []

    state.payouts.append(plan.payout)


class PayoutSettlementController:
    """Previews and settles payouts for one team."""

    def __init__(self, session: TeamSession):
        self.session = session
        self._pending: Optional[SettlementPlan] = None

    @property
    def pending(self) -> Optional[SettlementPlan]:
        """Settlement computed but not yet saved, if any."""
        return self._pending

    # --- Read-only calculations ---

    async def calculate_tip_distribution(self, period_ids: Optional[Iterable[str]] = None) -> List[MemberShare]:
        """Each member's share of the given periods (all unpaid periods by default)."""
        state = await self.session.load()
        periods = _select_periods(state, period_ids)
        return distribute(periods, state.members)

    async def calculate_average_tip_per_hour(self, period_id: Union[str, Iterable[str], None] = None) -> float:
        """Tips per hour worked for one or more periods, 0 without hours."""
        if isinstance(period_id, str):
            period_id = [period_id]
        state = await self.session.load()
        periods = _select_periods(state, period_id)
        return average_tip_per_hour(periods, state.members)

    async def preview(
        self,
        period_ids: Optional[Iterable[str]] = None,
        rounding_step: Union[RoundingStep, str, float, None] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> List[PayoutDistributionItem]:
        """Payout lines as they would be settled now. Nothing is saved.

        Args:
            period_ids: Periods to preview (all unpaid periods by default).
            rounding_step: Step to use instead of the team setting.
            overrides: Actual amounts by member id.
        """
        state = await self.session.load()
        periods = _select_periods(state, period_ids)
        step = _resolve_step(rounding_step, state)
        overrides = _check_overrides(state, overrides)
        shares = distribute(periods, state.members)
        prior_balances = {m.id: m.balance for m in state.members}
        return build_payout_items(shares, prior_balances, step, overrides)

    def apply_rounding(
        self,
        preview: Sequence[PayoutDistributionItem],
        step: Union[RoundingStep, str, float, None],
    ) -> List[PayoutDistributionItem]:
        """Re-round a preview to another step. Nothing is saved."""
        try:
            step = RoundingStep.parse(step)
        except ValueError as e:
            raise ValidationError(str(e))
        return apply_rounding(preview, step)

    # --- Settlement ---

    async def mark_periods_as_paid(
        self,
        period_ids: Iterable[str],
        overrides: Optional[Mapping[str, Any]] = None,
        payer_name: Optional[str] = None,
        rounding_step: Union[RoundingStep, str, float, None] = None,
    ) -> PayoutData:
        """Settle closed periods and record the payout.

        Args:
            period_ids: Closed, unpaid periods to settle.
            overrides: Actual amounts by member id, replacing the rounded default.
            payer_name: Who handed out the money.
            rounding_step: Step to use instead of the team setting.

        Returns:
            The stored PayoutData.

        Raises:
            ValidationError: Unknown periods/members or invalid amounts.
            StateConflictError: A period is still active or already paid, or an
                earlier settlement is still waiting to be saved.
            PersistenceError: Saving failed; call retry_pending() to save the
                same settlement again.
        """
        period_ids = _dedupe(period_ids)
        if not period_ids:
            raise ValidationError("Select at least one period to pay out")

        async with self.session.lock:
            if self._pending is not None:
                raise StateConflictError(
                    "A previous payout has not been saved yet; retry it before starting a new one"
                )
            state = await self.session.load_for_update()
            periods = _require_settleable(state, period_ids)
            checked = _check_overrides(state, overrides)
            step = _resolve_step(rounding_step, state)

            plan = plan_settlement(
                periods,
                state.members,
                step,
                checked,
                now=self.session.now(),
                payer_name=payer_name,
            )
            apply_settlement(state, plan)
            try:
                await self.session.commit(state)
            except PersistenceError:
                self._pending = plan
                logger.error(
                    f"Team '{self.session.team_id}': payout {plan.payout.id} computed but not saved"
                )
                raise

        _log_payout(self.session.team_id, plan.payout)
        return plan.payout

    async def retry_pending(self) -> PayoutData:
        """Save the settlement whose write failed, without recomputing it.

        Raises:
            StateConflictError: Nothing is pending, or its periods were
                settled or changed state in the meantime.
            PersistenceError: Saving failed again (still pending).
        """
        async with self.session.lock:
            plan = self._pending
            if plan is None:
                raise StateConflictError("No payout is waiting to be saved")

            state = await self.session.load_for_update()
            if any(p.id == plan.payout.id for p in state.payouts):
                # The earlier write did land
                self._pending = None
                return plan.payout

            try:
                _require_settleable(state, plan.period_ids)
            except (StateConflictError, ValidationError):
                self._pending = None
                raise

            apply_settlement(state, plan)
            await self.session.commit(state)
            self._pending = None

        _log_payout(self.session.team_id, plan.payout)
        return plan.payout

    def discard_pending(self) -> Optional[SettlementPlan]:
        """Forget a settlement that could not be saved."""
        plan, self._pending = self._pending, None
        return plan

    # --- History ---

    async def list_payouts(self) -> List[PayoutData]:
        """Payout history, newest first."""
        state = await self.session.load()
        return sorted(state.payouts, key=lambda p: p.date, reverse=True)

    async def most_recent_payout(self) -> Optional[PayoutData]:
        payouts = await self.list_payouts()
        return payouts[0] if payouts else None


def _dedupe(period_ids: Iterable[str]) -> List[str]:
    if isinstance(period_ids, str):
        period_ids = [period_ids]
    seen = []
    for period_id in period_ids or []:
        if period_id not in seen:
            seen.append(period_id)
    return seen


def _select_periods(state: TeamState, period_ids: Optional[Iterable[str]]) -> List[Period]:
    if period_ids is None:
        return [p for p in state.periods if not p.is_paid]

    periods = []
    for period_id in _dedupe(period_ids):
        period = state.find_period(period_id)
        if period is None:
            raise ValidationError(f"Period not found: {period_id}")
        periods.append(period)
    return periods


def _require_settleable(state: TeamState, period_ids: Sequence[str]) -> List[Period]:
    periods = _select_periods(state, period_ids)
    for period in periods:
        if period.status is PeriodStatus.ACTIVE:
            raise StateConflictError(
                f"Period '{period.label}' is still active; end it before paying out"
            )
        if period.status is PeriodStatus.PAID:
            raise StateConflictError(f"Period '{period.label}' has already been paid out")
    return periods


def _check_overrides(state: TeamState, overrides: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    checked: Dict[str, float] = {}
    errors = []
    for member_id, amount in (overrides or {}).items():
        member = state.find_member(member_id)
        if member is None:
            errors.append(f"Team member not found: {member_id}")
            continue
        try:
            checked[member_id] = coerce_amount(amount, f"Actual amount for {member.name}")
        except ValidationError as e:
            errors.extend(e.errors)
    if errors:
        raise ValidationError(errors)
    return checked


def _resolve_step(step: Union[RoundingStep, str, float, None], state: TeamState) -> RoundingStep:
    if step is None:
        return state.settings.rounding_step
    try:
        return RoundingStep.parse(step)
    except ValueError as e:
        raise ValidationError(str(e))


def _log_payout(team_id: str, payout: PayoutData) -> None:
    logger.info(
        f"Team '{team_id}': payout {payout.id} settled {len(payout.period_ids)} period(s), "
        f"{payout.total_paid:.2f} paid of {payout.total_amount:.2f} calculated"
    )
