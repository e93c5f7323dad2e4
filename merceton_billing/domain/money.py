"""Money value type - integer minor units with explicit major-unit conversion"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

MINOR_UNITS_PER_MAJOR = 100


def round_half_up(numerator: int, denominator: int) -> int:
    """
    Integer division rounded half away from zero.

    Matches JavaScript Math.round for non-negative values, which is how
    historical fees were computed: round_half_up(5, 10) == 1.
    """
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    quotient, remainder = divmod(abs(numerator), denominator)
    if remainder * 2 >= denominator:
        quotient += 1
    return quotient if numerator >= 0 else -quotient


def percent_of(amount_minor: int, rate_percent: Union[int, Decimal]) -> int:
    """Return rate_percent% of amount_minor, rounded half-up to a whole minor unit"""
    value = (Decimal(amount_minor) * Decimal(rate_percent) / Decimal(100))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class Money:
    """
    Amount of money held as an integer count of minor units (paise for INR).

    All arithmetic stays in integers; Decimal is only used at the
    boundaries via from_major/to_major. Floats are rejected outright.
    """

    minor: int
    currency: str = "INR"

    def __post_init__(self) -> None:
        if isinstance(self.minor, bool) or not isinstance(self.minor, int):
            raise TypeError(f"Money.minor must be int, got {type(self.minor).__name__}")

    @classmethod
    def zero(cls, currency: str = "INR") -> "Money":
        return cls(0, currency)

    @classmethod
    def from_major(cls, amount: Union[Decimal, str, int], currency: str = "INR") -> "Money":
        """Convert a major-unit amount (e.g. rupees) to Money; fractional paise are rejected"""
        if isinstance(amount, float):
            raise TypeError("Money.from_major does not accept float; pass Decimal or str")
        minor = Decimal(amount) * MINOR_UNITS_PER_MAJOR
        if minor != minor.to_integral_value():
            raise ValueError(f"{amount} has more precision than one minor unit")
        return cls(int(minor), currency)

    def to_major(self) -> Decimal:
        return (Decimal(self.minor) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))

    def format(self) -> str:
        return f"{self.to_major():.2f}"

    def _check_currency(self, other: "Money") -> None:
        if other.currency != self.currency:
            raise ValueError(f"Currency mismatch: {self.currency} vs {other.currency}")

    def __add__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.minor + other.minor, self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(self.minor - other.minor, self.currency)

    def __neg__(self) -> "Money":
        return Money(-self.minor, self.currency)

    def __str__(self) -> str:
        return f"{self.currency} {self.format()}"
