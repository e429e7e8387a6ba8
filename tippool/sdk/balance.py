"""Balance carry-forward between payouts.

A member is due their calculated share plus whatever was carried over
from the previous payout. Whatever is not handed out now becomes the new
balance:

    total_due   = amount + prior_balance
    new_balance = total_due - actual_amount

A positive balance is still owed to the member; a negative balance means
they were overpaid and the excess comes off their next payout. Nothing in
this module mutates its inputs, so previews can be recomputed freely.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .distribution import MemberShare
from .models import PayoutDistributionItem
from .rounding import RoundingStep, round_down

CENT = Decimal("0.01")


def _decimal(value: float) -> Decimal:
    # str() gives the shortest repr, as in rounding.round_down
    return Decimal(str(value))


@dataclass(frozen=True)
class MemberBalance:
    member_id: str
    balance: float


def reconcile(
    distribution: Iterable[MemberShare],
    prior_balances: Mapping[str, float],
    actual_amounts: Mapping[str, float],
) -> List[MemberBalance]:
    """Compute each member's balance after paying out actual_amounts.

    Members without a prior balance start from 0; members without an
    actual amount are paid exactly what they are due (new balance 0).

    Balances are kept in cents. Each one is floored to the cent and the
    cents left over are handed out by largest remainder (earlier lines win
    ties), so the balances add up to exactly sum(due) - sum(paid) rounded
    to cents. Three equal shares of 100.00 paid 30.00 each end up with
    balances 3.34, 3.33 and 3.33, never 3.33 three times.

    Returns:
        One MemberBalance per distribution line, in distribution order.
    """
    distribution = list(distribution)
    raw = []
    for share in distribution:
        paid = actual_amounts.get(share.member_id)
        if paid is None:
            raw.append(Decimal(0))
            continue
        prior = prior_balances.get(share.member_id, 0.0)
        raw.append(_decimal(share.tip_amount) + _decimal(prior) - _decimal(paid))

    floored = [value.quantize(CENT, rounding=ROUND_FLOOR) for value in raw]
    target = sum(raw, Decimal(0)).quantize(CENT, rounding=ROUND_HALF_UP)
    leftover = int((target - sum(floored, Decimal(0))) / CENT)

    by_remainder = sorted(range(len(raw)), key=lambda i: (floored[i] - raw[i], i))
    for i in by_remainder[:leftover]:
        floored[i] += CENT

    return [
        MemberBalance(member_id=share.member_id, balance=float(balance))
        for share, balance in zip(distribution, floored)
    ]


def default_actual_amount(total_due: float, step: Union[RoundingStep, str, float, None]) -> float:
    """What to hand out by default: the amount due floored to the step.

    Nothing is paid when nothing is due (a negative total stays as balance).
    """
    if total_due <= 0:
        return 0.0
    return round_down(total_due, step)


def build_payout_items(
    distribution: Sequence[MemberShare],
    prior_balances: Mapping[str, float],
    step: Union[RoundingStep, str, float, None] = RoundingStep.NONE,
    overrides: Optional[Mapping[str, float]] = None,
) -> List[PayoutDistributionItem]:
    """Resolve actual amounts and new balances for a distribution.

    Args:
        distribution: Calculated shares.
        prior_balances: Balances carried over, by member id.
        step: Rounding step used for the default actual amounts.
        overrides: Actual amounts chosen by the payer, by member id.

    Returns:
        Payout lines in distribution order.
    """
    overrides = overrides or {}
    actual_amounts: Dict[str, float] = {}
    for share in distribution:
        if share.member_id in overrides:
            actual_amounts[share.member_id] = overrides[share.member_id]
        else:
            total_due = share.tip_amount + prior_balances.get(share.member_id, 0.0)
            actual_amounts[share.member_id] = default_actual_amount(total_due, step)

    balances = {
        b.member_id: b.balance
        for b in reconcile(distribution, prior_balances, actual_amounts)
    }

    return [
        PayoutDistributionItem(
            member_id=share.member_id,
            amount=share.tip_amount,
            actual_amount=actual_amounts[share.member_id],
            balance=balances[share.member_id],
            prior_balance=prior_balances.get(share.member_id, 0.0),
            hours=share.hours,
        )
        for share in distribution
    ]


def apply_rounding(
    items: Sequence[PayoutDistributionItem],
    step: Union[RoundingStep, str, float, None],
) -> List[PayoutDistributionItem]:
    """Re-round a payout preview to a different step.

    Calculated amounts and prior balances are taken from the preview as is;
    only the actual amounts and resulting balances change.
    """
    distribution = [
        MemberShare(member_id=item.member_id, tip_amount=item.amount, hours=item.hours)
        for item in items
    ]
    prior_balances = {item.member_id: item.prior_balance for item in items}
    return build_payout_items(distribution, prior_balances, step)
