"""
Money - fixed-point monetary value.

Design principles:
- Amounts are integer minor units (paise/cents), never float
- All arithmetic is integer addition/subtraction, comparisons are exact
- Values are signed so the same type carries balances
- |minor| is capped at MAX_AMOUNT_MAJOR major units
- Decimal strings are converted at the API edge only
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from functools import total_ordering
from typing import List, Union

from pydantic import BaseModel, ConfigDict, StrictInt, field_validator, model_validator

from settleup.core.config import settings
from settleup.core.errors import AmountOutOfRange, CurrencyMismatch, InvariantViolation

MINOR_UNITS = 100
FRACTION_DIGITS = 2


def max_minor_units() -> int:
    return settings.MAX_AMOUNT_MAJOR * MINOR_UNITS


@total_ordering
class Money(BaseModel):
    """Signed amount of `minor` units of `currency`."""
    model_config = ConfigDict(frozen=True)

    minor: StrictInt
    currency: str = settings.DEFAULT_CURRENCY

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        if len(value) != 3 or not value.isalpha():
            raise ValueError(f"Invalid currency code: {value!r}")
        return value.upper()

    @model_validator(mode="after")
    def _check_range(self) -> "Money":
        if abs(self.minor) > max_minor_units():
            raise AmountOutOfRange(
                f"Amount {self.minor} minor units exceeds maximum of {settings.MAX_AMOUNT_MAJOR}"
            )
        return self

    # ===== CONSTRUCTORS =====

    @classmethod
    def zero(cls, currency: str = None) -> "Money":
        return cls(minor=0, currency=currency or settings.DEFAULT_CURRENCY)

    @classmethod
    def of_minor(cls, minor: int, currency: str = None) -> "Money":
        return cls(minor=minor, currency=currency or settings.DEFAULT_CURRENCY)

    @classmethod
    def from_decimal_string(cls, value: str, currency: str = None) -> "Money":
        """
        Parse "12.50" into 1250 minor units.

        Rejects more than two fractional digits and anything that is not a
        plain finite decimal. Raises AmountOutOfRange past the maximum.
        """
        if not isinstance(value, str):
            raise InvariantViolation(f"Expected a decimal string, got {type(value).__name__}")
        try:
            parsed = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {value!r}")
        if not parsed.is_finite():
            raise ValueError(f"Invalid amount: {value!r}")
        if parsed.as_tuple().exponent < -FRACTION_DIGITS:
            raise ValueError(f"Amount {value!r} has more than {FRACTION_DIGITS} decimal places")
        if abs(parsed) > settings.MAX_AMOUNT_MAJOR:
            raise AmountOutOfRange(f"Amount {value} exceeds maximum of {settings.MAX_AMOUNT_MAJOR}")
        return cls.of_minor(int(parsed * MINOR_UNITS), currency)

    # ===== ARITHMETIC =====

    def _check_currency(self, other: "Money") -> None:
        if not isinstance(other, Money):
            raise InvariantViolation(f"Cannot combine Money with {type(other).__name__}")
        if other.currency != self.currency:
            raise CurrencyMismatch(f"Cannot combine {self.currency} with {other.currency}")

    def add(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(minor=self.minor + other.minor, currency=self.currency)

    def subtract(self, other: "Money") -> "Money":
        self._check_currency(other)
        return Money(minor=self.minor - other.minor, currency=self.currency)

    def negate(self) -> "Money":
        return Money(minor=-self.minor, currency=self.currency)

    def abs(self) -> "Money":
        return self if self.minor >= 0 else self.negate()

    def is_zero(self) -> bool:
        return self.minor == 0

    def is_positive(self) -> bool:
        return self.minor > 0

    def is_negative(self) -> bool:
        return self.minor < 0

    def compare(self, other: "Money") -> int:
        """-1, 0 or 1."""
        self._check_currency(other)
        return (self.minor > other.minor) - (self.minor < other.minor)

    def allocate_equally(self, parts: int) -> List["Money"]:
        """
        Split into `parts` amounts that sum exactly to self.

        The remainder is handed out one minor unit at a time to the first
        parts, so shares differ by at most one unit.
        """
        if parts <= 0:
            raise InvariantViolation("Participant count must be positive")
        base, remainder = divmod(self.minor, parts)
        return [
            Money(minor=base + (1 if i < remainder else 0), currency=self.currency)
            for i in range(parts)
        ]

    def percent(self, percentage: Union[Decimal, int, str]) -> "Money":
        """Round-half-up share of `percentage` percent."""
        share = (Decimal(self.minor) * Decimal(percentage) / 100).quantize(
            Decimal(1), rounding=ROUND_HALF_UP
        )
        return Money(minor=int(share), currency=self.currency)

    # ===== FORMATTING =====

    def to_decimal_string(self) -> str:
        """1250 -> "12.50", -5 -> "-0.05"."""
        sign = "-" if self.minor < 0 else ""
        major, minor = divmod(abs(self.minor), MINOR_UNITS)
        return f"{sign}{major}.{minor:0{FRACTION_DIGITS}d}"

    # ===== OPERATORS =====

    def __add__(self, other: "Money") -> "Money":
        return self.add(other)

    def __sub__(self, other: "Money") -> "Money":
        return self.subtract(other)

    def __neg__(self) -> "Money":
        return self.negate()

    def __lt__(self, other: "Money") -> bool:
        return self.compare(other) < 0

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.minor == other.minor and self.currency == other.currency

    def __hash__(self) -> int:
        return hash((self.minor, self.currency))

    def __str__(self) -> str:
        return f"{self.to_decimal_string()} {self.currency}"
