"""Team roster: members, their hours and balances."""

import logging
from datetime import datetime
from typing import Any, List, Optional

from .errors import ValidationError
from .models import HourRegistration, TeamMember, TeamState, coerce_amount, new_id
from .session import TeamSession

logger = logging.getLogger(__name__)


class TeamRoster:
    """Member and hour bookkeeping for one team."""

    def __init__(self, session: TeamSession):
        self.session = session

    async def list_members(self) -> List[TeamMember]:
        """Members sorted by name (case-insensitive)."""
        state = await self.session.load()
        return sorted(state.members, key=lambda m: m.name.lower())

    async def get_member(self, member_id: str) -> TeamMember:
        state = await self.session.load()
        return _require_member(state, member_id)

    async def find_member(self, name_or_id: str) -> TeamMember:
        """Look a member up by id or by name (case-insensitive)."""
        state = await self.session.load()
        member = state.find_member(name_or_id) or state.find_member_by_name(name_or_id)
        if member is None:
            raise ValidationError(f"Team member not found: {name_or_id}")
        return member

    async def add_member(self, name: str) -> TeamMember:
        """Add a member. Names are unique per team, ignoring case."""
        name = _clean_name(name)
        async with self.session.lock:
            state = await self.session.load_for_update()
            _check_name_free(state, name)
            member = TeamMember(id=new_id(), name=name)
            state.members.append(member)
            await self.session.commit(state)
        logger.info(f"Team '{self.session.team_id}': added member '{name}'")
        return member

    async def rename_member(self, member_id: str, name: str) -> TeamMember:
        name = _clean_name(name)
        async with self.session.lock:
            state = await self.session.load_for_update()
            member = _require_member(state, member_id)
            _check_name_free(state, name, exclude_id=member_id)
            member.name = name
            await self.session.commit(state)
        return member

    async def remove_member(self, member_id: str) -> TeamMember:
        async with self.session.lock:
            state = await self.session.load_for_update()
            member = _require_member(state, member_id)
            state.members = [m for m in state.members if m.id != member_id]
            await self.session.commit(state)
        if member.balance:
            logger.warning(
                f"Team '{self.session.team_id}': removed member '{member.name}' "
                f"with outstanding balance {member.balance:.2f}"
            )
        return member

    async def add_hours(
        self,
        member_id: str,
        hours: Any,
        date: Optional[datetime] = None,
        correction: bool = False,
    ) -> HourRegistration:
        """Register hours for a member.

        Args:
            member_id: Member to register hours for.
            hours: Hours worked. Must be non-negative unless correction is set.
            date: When the hours were worked (defaults to now).
            correction: Allow a negative registration to correct earlier
                entries. The member's total may not drop below zero.

        Raises:
            ValidationError: If hours are invalid or the member does not exist.
        """
        hours = coerce_amount(hours, "Hours", allow_negative=correction)

        async with self.session.lock:
            state = await self.session.load_for_update()
            member = _require_member(state, member_id)
            if member.hours + hours < 0:
                raise ValidationError(
                    f"Correction of {hours:g} hours would leave {member.name} with "
                    f"{member.hours + hours:g} hours"
                )
            registration = HourRegistration(
                id=new_id(),
                hours=hours,
                date=date or self.session.now(),
                added_by=self.session.acting_user,
            )
            member.hour_registrations.append(registration)
            await self.session.commit(state)
        return registration

    async def delete_hour_registration(self, member_id: str, registration_id: str) -> TeamMember:
        """Delete one hour registration; the member's hours follow."""
        async with self.session.lock:
            state = await self.session.load_for_update()
            member = _require_member(state, member_id)
            remaining = [r for r in member.hour_registrations if r.id != registration_id]
            if len(remaining) == len(member.hour_registrations):
                raise ValidationError(f"Hour registration {registration_id} not found for {member.name}")
            member.hour_registrations = remaining
            await self.session.commit(state)
        return member

    async def clear_hours(self, member_id: str) -> TeamMember:
        """Drop all of a member's hour registrations (balance is kept)."""
        async with self.session.lock:
            state = await self.session.load_for_update()
            member = _require_member(state, member_id)
            member.hour_registrations = []
            await self.session.commit(state)
        return member

    async def update_balance(self, member_id: str, balance: Any) -> TeamMember:
        """Set a member's carried balance by hand."""
        balance = coerce_amount(balance, "Balance", allow_negative=True)
        async with self.session.lock:
            state = await self.session.load_for_update()
            member = _require_member(state, member_id)
            member.balance = round(balance, 2)
            await self.session.commit(state)
        return member


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError("Member name is required")
    return name


def _check_name_free(state: TeamState, name: str, exclude_id: Optional[str] = None) -> None:
    existing = state.find_member_by_name(name)
    if existing is not None and existing.id != exclude_id:
        raise ValidationError(f"A team member named '{existing.name}' already exists")


def _require_member(state: TeamState, member_id: str) -> TeamMember:
    member = state.find_member(member_id)
    if member is None:
        raise ValidationError(f"Team member not found: {member_id}")
    return member
