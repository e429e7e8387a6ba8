"""Denomination rounding for payout amounts.

Payouts are usually handed out in cash, so the amount actually paid is
floored to a practical denomination. The remainder is never lost: it is
carried forward as the member's balance (see balance.py).
"""

import enum
import math
from decimal import Decimal, ROUND_FLOOR
from typing import Optional, Union


class RoundingStep(str, enum.Enum):
    """Denomination a payout is floored to."""

    NONE = "none"
    HALF = "0.50"
    ONE = "1.00"
    TWO = "2.00"
    FIVE = "5.00"
    TEN = "10.00"

    @property
    def amount(self) -> Optional[Decimal]:
        """Step size as a Decimal, or None for no rounding."""
        if self is RoundingStep.NONE:
            return None
        return Decimal(self.value)

    @classmethod
    def parse(cls, value: Union["RoundingStep", str, int, float, None]) -> "RoundingStep":
        """Resolve a step from its enum value, a label or a number.

        Accepts "none", None, "5", "5.00", 5, 0.5, ...

        Raises:
            ValueError: If the value is not one of the supported steps.
        """
        if isinstance(value, cls):
            return value
        if value is None:
            return cls.NONE
        if isinstance(value, str):
            text = value.strip().lower()
            if text in ("", "none", "off"):
                return cls.NONE
            for step in cls:
                if step.value == text:
                    return step
            try:
                number = Decimal(text)
            except ArithmeticError:
                raise ValueError(f"Unknown rounding step: {value!r}")
        elif isinstance(value, bool):
            raise ValueError(f"Unknown rounding step: {value!r}")
        elif isinstance(value, (int, float)):
            if isinstance(value, float) and not math.isfinite(value):
                raise ValueError(f"Unknown rounding step: {value!r}")
            number = Decimal(str(value))
        else:
            raise ValueError(f"Unknown rounding step: {value!r}")

        for step in cls:
            if step.amount is not None and step.amount == number:
                return step
        raise ValueError(f"Unknown rounding step: {value!r}")


def round_down(amount: float, step: Union[RoundingStep, str, int, float, None]) -> float:
    """Floor an amount to a multiple of the rounding step.

    RoundingStep.NONE returns the amount unchanged. Otherwise the result is
    floor(amount / step) * step, computed in Decimal and returned rounded to
    cents, so 73.00 with step 5.00 gives 70.00 and never 70.00000000001.

    Args:
        amount: Monetary amount.
        step: Rounding step (anything RoundingStep.parse accepts).

    Returns:
        The floored amount.
    """
    step = RoundingStep.parse(step)
    size = step.amount
    if size is None:
        return amount

    # str() gives the shortest repr, so Decimal sees 0.3 and not 0.2999...
    value = Decimal(str(amount))
    units = (value / size).to_integral_value(rounding=ROUND_FLOOR)
    floored = (units * size).quantize(Decimal("0.01"))
    return float(floored)
