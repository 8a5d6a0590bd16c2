from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Tuple
from uuid import UUID, uuid4

DEFAULT_CURRENCY = "USD"
_CENT = Decimal("0.01")


def _to_cents(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ProductId:
    value: str


@dataclass(frozen=True)
class CustomerId:
    value: str


@dataclass(frozen=True)
class OrderId:
    value: UUID

    @staticmethod
    def new() -> "OrderId":
        return OrderId(uuid4())


@dataclass(frozen=True)
class Money:
    """Non-negative amount in one currency, kept to whole cents."""

    amount: Decimal
    currency: str = DEFAULT_CURRENCY

    @staticmethod
    def of(amount: Decimal | int | str, currency: str = DEFAULT_CURRENCY) -> "Money":
        value = _to_cents(Decimal(str(amount)))
        if value < 0:
            raise ValueError(f"price must be >= 0: {value}")
        return Money(value, currency)

    @staticmethod
    def zero(currency: str = DEFAULT_CURRENCY) -> "Money":
        return Money(Decimal("0.00"), currency)

    def __add__(self, other: "Money") -> "Money":
        if other.currency != self.currency:
            raise ValueError(f"cannot add {other.currency} to {self.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __mul__(self, quantity: int) -> "Money":
        return Money(_to_cents(self.amount * quantity), self.currency)


@dataclass(frozen=True)
class OrderLine:
    """One purchased product with the price locked in at checkout."""

    product_id: ProductId
    name: str
    unit_price: Money
    quantity: int

    def subtotal(self) -> Money:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class Order:
    order_id: OrderId
    customer_id: CustomerId
    lines: Tuple[OrderLine, ...]
    created_at: datetime

    def total(self) -> Money:
        if not self.lines:
            return Money.zero()
        return sum_money(
            (ln.subtotal() for ln in self.lines), self.lines[0].unit_price.currency
        )

    def quantity_of(self, product_id: ProductId) -> int:
        return sum(ln.quantity for ln in self.lines if ln.product_id == product_id)


def sum_money(values: Iterable[Money], currency: str = DEFAULT_CURRENCY) -> Money:
    total = Money.zero(currency)
    for v in values:
        total += v
    return total


def now_utc() -> datetime:
    return datetime.now(timezone.utc)
