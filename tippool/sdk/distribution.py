"""Proportional tip distribution.

Tips pooled over one or more periods are split by hours worked:

    tip_per_hour = total_tips / total_hours
    share        = member.hours * tip_per_hour

Shares keep full precision here; rounding happens only when a payout is
settled, so the shares always add up to the pooled total.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Sequence

from .models import Period, TeamMember

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MemberShare:
    """A member's calculated share of the pool."""

    member_id: str
    tip_amount: float
    hours: float = 0.0


def total_tips(periods: Iterable[Period]) -> float:
    """Sum of every tip in the given periods."""
    return math.fsum(tip.amount for period in periods for tip in period.tips)


def total_hours(members: Iterable[TeamMember]) -> float:
    """Sum of the members' hours."""
    return math.fsum(member.hours for member in members)


def distribute(periods: Sequence[Period], members: Sequence[TeamMember]) -> List[MemberShare]:
    """Split the tips of the given periods over the members by hours.

    When nobody has logged hours the pool is split evenly over all members.
    Whether that fallback should be limited to members active in the
    periods is an open policy question; the even split is kept as is.

    Args:
        periods: Periods whose tips are pooled.
        members: Members sharing the pool (in output order).

    Returns:
        One MemberShare per member, empty when there are no members.
    """
    tips = total_tips(periods)
    hours = total_hours(members)

    if not members:
        return []

    if hours == 0:
        even = tips / len(members)
        logger.debug(f"No hours logged; splitting {tips:.2f} evenly over {len(members)} member(s)")
        return [MemberShare(member_id=m.id, tip_amount=even, hours=m.hours) for m in members]

    tip_per_hour = tips / hours
    logger.debug(f"Distributing {tips:.2f} over {hours:g} hours ({tip_per_hour:.4f}/hour)")
    return [
        MemberShare(member_id=m.id, tip_amount=m.hours * tip_per_hour, hours=m.hours)
        for m in members
    ]


def average_tip_per_hour(periods: Sequence[Period], members: Sequence[TeamMember]) -> float:
    """Pooled tips per hour worked, 0 when no hours are logged."""
    hours = total_hours(members)
    if hours == 0:
        return 0.0
    return total_tips(periods) / hours
