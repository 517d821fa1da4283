"""Domain primitives that enforce validity at creation time."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Self
from uuid import UUID

CENT = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Round an unrounded amount to cents, half-up."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class EventId:
    """Unique identifier for an Event."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(str(value)))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class RegistrationId:
    """Unique identifier for a Registration."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(str(value)))

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class CouponId:
    """Unique identifier for a Coupon."""

    value: UUID

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Money:
    """Non-negative amount in the event currency, always held in cents."""

    amount: Decimal

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError("Money amount cannot be negative")
        object.__setattr__(self, "amount", round_money(self.amount))

    @classmethod
    def of(cls, value: Decimal | int | str) -> Self:
        return cls(amount=Decimal(str(value)))

    @classmethod
    def zero(cls) -> Self:
        return cls(amount=Decimal("0"))

    @property
    def cents(self) -> int:
        return int(self.amount * 100)

    def __add__(self, other: "Money") -> "Money":
        return Money(self.amount + other.amount)

    def __sub__(self, other: "Money") -> "Money":
        return Money(self.amount - other.amount)

    def __mul__(self, count: int) -> "Money":
        return Money(self.amount * count)

    def __lt__(self, other: "Money") -> bool:
        return self.amount < other.amount

    def __le__(self, other: "Money") -> bool:
        return self.amount <= other.amount

    def __bool__(self) -> bool:
        return self.amount != 0

    def __str__(self) -> str:
        return f"{self.amount:.2f}"


@dataclass(frozen=True)
class Percentage:
    """Percentage between 0 and 100 inclusive."""

    value: Decimal

    def __post_init__(self) -> None:
        if not Decimal("0") <= self.value <= Decimal("100"):
            raise ValueError("Percentage must be between 0 and 100")

    def of(self, amount: Decimal) -> Decimal:
        """Return the unrounded share of amount."""
        return amount * self.value / Decimal("100")
