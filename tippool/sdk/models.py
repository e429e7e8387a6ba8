"""Domain records for the tip pool.

Plain dataclasses with to_dict()/from_dict() for the JSON store. A team's
whole state (settings, periods with their tips, members with their hours,
payout history) travels as one TeamState document.
"""

import enum
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .errors import ValidationError
from .schemas import PoolSettings


def new_id() -> str:
    """Generate a record identifier."""
    return uuid.uuid4().hex


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def coerce_amount(value: Any, field_name: str, allow_negative: bool = False) -> float:
    """Validate a monetary or hour input and return it as float.

    Raises:
        ValidationError: If the value is not a finite number, or is negative
            while allow_negative is False.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number, got: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number, got: {value!r}")
    if not math.isfinite(number):
        raise ValidationError(f"{field_name} must be a finite number, got: {value!r}")
    if number < 0 and not allow_negative:
        raise ValidationError(f"{field_name} cannot be negative, got: {number:g}")
    return number


class PeriodStatus(str, enum.Enum):
    ACTIVE = "active"
    CLOSED = "closed"
    PAID = "paid"


@dataclass
class TipEntry:
    """A single logged tip."""

    id: str
    amount: float
    date: datetime
    period_id: str
    note: Optional[str] = None
    added_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount,
            "date": _iso(self.date),
            "period_id": self.period_id,
            "note": self.note,
            "added_by": self.added_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TipEntry":
        return cls(
            id=data["id"],
            amount=float(data["amount"]),
            date=_parse_dt(data["date"]),
            period_id=data["period_id"],
            note=data.get("note"),
            added_by=data.get("added_by"),
        )


@dataclass
class Period:
    """A window during which tips accumulate.

    Status is derived from two flags: active (is_active), closed
    (not active, not paid) and paid (is_paid).
    """

    id: str
    start_date: datetime
    end_date: Optional[datetime] = None
    is_active: bool = True
    is_paid: bool = False
    name: Optional[str] = None
    notes: Optional[str] = None
    auto_close_date: Optional[datetime] = None
    average_tip_per_hour: Optional[float] = None
    tips: List[TipEntry] = field(default_factory=list)

    @property
    def status(self) -> PeriodStatus:
        if self.is_paid:
            return PeriodStatus.PAID
        if self.is_active:
            return PeriodStatus.ACTIVE
        return PeriodStatus.CLOSED

    @property
    def total_tips(self) -> float:
        return sum(tip.amount for tip in self.tips)

    @property
    def label(self) -> str:
        """Name if set, else the start date."""
        return self.name or f"Period from {self.start_date:%Y-%m-%d %H:%M}"

    def find_tip(self, tip_id: str) -> Optional[TipEntry]:
        for tip in self.tips:
            if tip.id == tip_id:
                return tip
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "is_active": self.is_active,
            "is_paid": self.is_paid,
            "name": self.name,
            "notes": self.notes,
            "auto_close_date": _iso(self.auto_close_date),
            "average_tip_per_hour": self.average_tip_per_hour,
            "tips": [tip.to_dict() for tip in self.tips],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Period":
        return cls(
            id=data["id"],
            start_date=_parse_dt(data["start_date"]),
            end_date=_parse_dt(data.get("end_date")),
            is_active=bool(data.get("is_active", False)),
            is_paid=bool(data.get("is_paid", False)),
            name=data.get("name"),
            notes=data.get("notes"),
            auto_close_date=_parse_dt(data.get("auto_close_date")),
            average_tip_per_hour=data.get("average_tip_per_hour"),
            tips=[TipEntry.from_dict(t) for t in data.get("tips", [])],
        )


@dataclass
class HourRegistration:
    """Hours logged by a member. Negative values are corrections."""

    id: str
    hours: float
    date: datetime
    added_by: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "hours": self.hours,
            "date": _iso(self.date),
            "added_by": self.added_by,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HourRegistration":
        return cls(
            id=data["id"],
            hours=float(data["hours"]),
            date=_parse_dt(data["date"]),
            added_by=data.get("added_by"),
        )


@dataclass
class TeamMember:
    """A member of the tip pool.

    balance is the signed carry-forward from earlier payouts: positive means
    the member is still owed money, negative means they were overpaid.
    """

    id: str
    name: str
    balance: float = 0.0
    hour_registrations: List[HourRegistration] = field(default_factory=list)

    @property
    def hours(self) -> float:
        """Cumulative hours, always the sum of the registrations."""
        return sum(reg.hours for reg in self.hour_registrations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "balance": self.balance,
            "hour_registrations": [reg.to_dict() for reg in self.hour_registrations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeamMember":
        return cls(
            id=data["id"],
            name=data["name"],
            balance=float(data.get("balance", 0.0)),
            hour_registrations=[
                HourRegistration.from_dict(r) for r in data.get("hour_registrations", [])
            ],
        )


@dataclass(frozen=True)
class PayoutDistributionItem:
    """One member's line in a payout.

    amount is the calculated share, actual_amount what is handed out and
    balance the carry-forward after this payout:
    balance = (amount + prior_balance) - actual_amount.
    """

    member_id: str
    amount: float
    actual_amount: float
    balance: float
    prior_balance: float = 0.0
    hours: float = 0.0

    @property
    def total_due(self) -> float:
        return self.amount + self.prior_balance

    def to_dict(self) -> Dict[str, Any]:
        return {
            "member_id": self.member_id,
            "amount": self.amount,
            "actual_amount": self.actual_amount,
            "balance": self.balance,
            "prior_balance": self.prior_balance,
            "hours": self.hours,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PayoutDistributionItem":
        return cls(
            member_id=data["member_id"],
            amount=float(data["amount"]),
            actual_amount=float(data["actual_amount"]),
            balance=float(data["balance"]),
            prior_balance=float(data.get("prior_balance", 0.0)),
            hours=float(data.get("hours", 0.0)),
        )


@dataclass(frozen=True)
class PayoutData:
    """Immutable record of one settlement.

    Holds copies of the distribution lines, never live members, so later
    balance edits do not rewrite payout history.
    """

    id: str
    period_ids: Tuple[str, ...]
    date: datetime
    distribution: Tuple[PayoutDistributionItem, ...]
    payer_name: Optional[str] = None

    @property
    def total_amount(self) -> float:
        return sum(item.amount for item in self.distribution)

    @property
    def total_paid(self) -> float:
        return sum(item.actual_amount for item in self.distribution)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "period_ids": list(self.period_ids),
            "date": _iso(self.date),
            "payer_name": self.payer_name,
            "distribution": [item.to_dict() for item in self.distribution],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PayoutData":
        return cls(
            id=data["id"],
            period_ids=tuple(data.get("period_ids", [])),
            date=_parse_dt(data["date"]),
            payer_name=data.get("payer_name"),
            distribution=tuple(
                PayoutDistributionItem.from_dict(d) for d in data.get("distribution", [])
            ),
        )


@dataclass
class TeamState:
    """Everything stored for one team."""

    team_id: str
    settings: PoolSettings = field(default_factory=PoolSettings)
    periods: List[Period] = field(default_factory=list)
    members: List[TeamMember] = field(default_factory=list)
    payouts: List[PayoutData] = field(default_factory=list)

    @property
    def active_period(self) -> Optional[Period]:
        for period in self.periods:
            if period.is_active:
                return period
        return None

    def find_period(self, period_id: str) -> Optional[Period]:
        for period in self.periods:
            if period.id == period_id:
                return period
        return None

    def find_member(self, member_id: str) -> Optional[TeamMember]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    def find_member_by_name(self, name: str) -> Optional[TeamMember]:
        wanted = name.strip().lower()
        for member in self.members:
            if member.name.lower() == wanted:
                return member
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "team_id": self.team_id,
            "settings": self.settings.to_dict(),
            "periods": [p.to_dict() for p in self.periods],
            "members": [m.to_dict() for m in self.members],
            "payouts": [p.to_dict() for p in self.payouts],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], settings: PoolSettings) -> "TeamState":
        """Build state from a stored document.

        Settings are parsed by the caller (see config.load_pool_settings) so a
        malformed settings block falls back to defaults instead of failing the
        whole document.
        """
        return cls(
            team_id=data["team_id"],
            settings=settings,
            periods=[Period.from_dict(p) for p in data.get("periods", [])],
            members=[TeamMember.from_dict(m) for m in data.get("members", [])],
            payouts=[PayoutData.from_dict(p) for p in data.get("payouts", [])],
        )
