"""
Money primitives.

Amounts are integers in the smallest currency unit (paise). Decimal is only
used at the edges: parsing client input, percentage math and display.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from kitchen_oms.core.exceptions import ValidationError

MINOR_UNITS = 100
_MINOR_QUANT = Decimal("0.01")


def to_minor(value) -> int:
    """Parse a major-unit amount (e.g. "262.50") into paise. More than two decimals is rejected."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid amount: {value!r}")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise ValidationError(f"Invalid amount: {value!r}")
    scaled = amount * MINOR_UNITS
    if scaled != scaled.to_integral_value():
        raise ValidationError(f"Amount {value} has more than two decimal places")
    return int(scaled)


def to_major(minor: int) -> Decimal:
    return (Decimal(minor) / MINOR_UNITS).quantize(_MINOR_QUANT)


def percentage_of(minor: int, percent: Decimal) -> int:
    """percent% of an amount, rounded half-up to the minor unit"""
    return int((Decimal(minor) * Decimal(percent) / 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def split_half(minor: int) -> tuple[int, int]:
    """Split into two shares that add back up exactly; the odd paisa goes to the first share"""
    second = minor // 2
    return minor - second, second


def ceil_to_unit(minor: int, unit: int = MINOR_UNITS) -> int:
    """Round up to a whole multiple of unit (default: whole rupees)"""
    return -(-minor // unit) * unit


def format_inr(minor: int) -> str:
    sign = "-" if minor < 0 else ""
    return f"{sign}₹{to_major(abs(minor)):,.2f}"


@dataclass(frozen=True, order=True)
class Money:
    minor: int

    def __post_init__(self):
        if isinstance(self.minor, bool) or not isinstance(self.minor, int):
            raise TypeError(f"Money requires an integer minor amount, got {type(self.minor).__name__}")

    @classmethod
    def zero(cls) -> "Money":
        return cls(0)

    @classmethod
    def from_major(cls, value) -> "Money":
        return cls(to_minor(value))

    @property
    def major(self) -> Decimal:
        return to_major(self.minor)

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor + other.minor)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.minor - other.minor)

    def __mul__(self, quantity: int) -> "Money":
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            return NotImplemented
        return Money(self.minor * quantity)

    __rmul__ = __mul__

    def percent(self, rate: Decimal) -> "Money":
        return Money(percentage_of(self.minor, rate))

    def is_zero(self) -> bool:
        return self.minor == 0

    def __str__(self) -> str:
        return format_inr(self.minor)
