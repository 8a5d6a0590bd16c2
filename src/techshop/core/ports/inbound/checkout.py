from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, Tuple, Union

from techshop.core.domain.model.cart import Cart
from techshop.core.domain.model.order import Order
from techshop.core.domain.model.reservation import LineRejection


class CheckoutState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RESERVING = "reserving"
    COMMITTED = "committed"
    REJECTED = "rejected"
    PARTIALLY_COMMITTED = "partially_committed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset(
    {
        CheckoutState.COMMITTED,
        CheckoutState.REJECTED,
        CheckoutState.PARTIALLY_COMMITTED,
        CheckoutState.CANCELLED,
    }
)


@dataclass(frozen=True)
class CheckoutOptions:
    allow_partial: bool = False


@dataclass(frozen=True)
class Committed:
    order: Order


@dataclass(frozen=True)
class CheckoutRejected:
    rejections: Tuple[LineRejection, ...]


@dataclass(frozen=True)
class PartiallyCommitted:
    order: Order
    failed_lines: Tuple[LineRejection, ...]


@dataclass(frozen=True)
class CheckoutCancelled:
    pass


CheckoutOutcome = Union[Committed, CheckoutRejected, PartiallyCommitted, CheckoutCancelled]


class CheckoutUseCase(Protocol):
    async def checkout(
        self,
        cart: Cart,
        customer_id: str,
        options: CheckoutOptions = CheckoutOptions(),
    ) -> CheckoutOutcome: ...
