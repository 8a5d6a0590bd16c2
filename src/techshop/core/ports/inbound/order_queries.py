from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, Sequence

from returns.result import Result

from techshop.core.domain.model.errors import CheckoutError
from techshop.core.domain.model.order import CustomerId, Money, OrderId


@dataclass(frozen=True)
class GetOrderQuery:
    order_id: str


@dataclass(frozen=True)
class ListOrdersQuery:
    offset: int = 0
    limit: int = 50
    customer_id: str | None = None
    sort_by: str = "created_at"
    sort_dir: str = "desc"


@dataclass(frozen=True)
class OrderLineView:
    product_id: str
    name: str
    unit_price: Money
    quantity: int
    subtotal: Money


@dataclass(frozen=True)
class OrderView:
    order_id: OrderId
    customer_id: CustomerId
    created_at: datetime
    total: Money
    lines: Sequence[OrderLineView]


@dataclass(frozen=True)
class OrderSummaryView:
    order_id: OrderId
    customer_id: CustomerId
    created_at: datetime
    total: Money
    line_count: int


class OrderQueryUseCase(Protocol):
    async def get_order(self, query: GetOrderQuery) -> Result[OrderView, CheckoutError]: ...

    async def list_orders(
        self, query: ListOrdersQuery
    ) -> Result[Sequence[OrderSummaryView], CheckoutError]: ...
