"""Pydantic schemas for team pool settings.

Settings use extra='forbid' so a typo in a stored document or a CLI
option causes a clear error rather than being silently ignored.
"""

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .rounding import RoundingStep


class PeriodDuration(str, enum.Enum):
    """Length of a tip period."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class ClosingTime(BaseModel):
    """Wall-clock time at which periods auto-close."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    hour: int = Field(default=0, ge=0, le=23, description="Hour (0-23)")
    minute: int = Field(default=0, ge=0, le=59, description="Minute (0-59)")

    @classmethod
    def parse(cls, text: str) -> "ClosingTime":
        """Parse "HH:MM" (e.g. "09:30", "20:00")."""
        hour, sep, minute = text.strip().partition(":")
        if not sep:
            raise ValueError(f"Closing time must be HH:MM, got: {text!r}")
        return cls(hour=int(hour), minute=int(minute))


class PoolSettings(BaseModel):
    """Team-level period and payout settings.

    Defaults are the documented fallbacks used when stored settings are
    missing or malformed: weekly rolling periods closing at 00:00, no
    payout rounding.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    period_duration: PeriodDuration = Field(
        default=PeriodDuration.WEEK,
        description="Length of a period (day, week, month)",
    )
    auto_close_periods: bool = Field(
        default=True,
        description="Close the active period automatically and start the next one",
    )
    align_with_calendar: bool = Field(
        default=False,
        description="Close on calendar boundaries (Sunday, end of month) instead of rolling windows",
    )
    closing_time: ClosingTime = Field(
        default_factory=ClosingTime,
        description="Closing time; 00:00-11:59 means after midnight of the close day",
    )
    rounding_step: RoundingStep = Field(
        default=RoundingStep.NONE,
        description="Denomination payouts are floored to",
    )

    @field_validator("rounding_step", mode="before")
    @classmethod
    def coerce_rounding_step(cls, value: Any) -> RoundingStep:
        return RoundingStep.parse(value)

    @field_validator("closing_time", mode="before")
    @classmethod
    def coerce_closing_time(cls, value: Any) -> Any:
        if isinstance(value, str):
            return ClosingTime.parse(value)
        return value

    def to_dict(self) -> dict:
        """JSON-ready representation."""
        return self.model_dump(mode="json")
