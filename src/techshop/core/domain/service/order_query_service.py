"""Read side for placed orders: lookup by id and paged listing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence
from uuid import UUID

from returns.result import Failure, Result, Success

from techshop.core.domain.model.errors import CheckoutError, ValidationError
from techshop.core.domain.model.order import CustomerId, Order, OrderId
from techshop.core.ports.inbound.order_queries import (
    GetOrderQuery,
    ListOrdersQuery,
    OrderLineView,
    OrderQueryUseCase,
    OrderSummaryView,
    OrderView,
)
from techshop.core.ports.outbound.orders import OrderService

MAX_PAGE_SIZE = 100
SORT_FIELDS = ("created_at", "total")
SORT_DIRECTIONS = ("asc", "desc")


@dataclass(frozen=True)
class OrderQueryDeps:
    orders: OrderService


@dataclass(frozen=True)
class _Page:
    offset: int
    limit: int
    customer: CustomerId | None
    sort_by: str
    sort_dir: str


@dataclass(frozen=True)
class OrderQueryService(OrderQueryUseCase):
    deps: OrderQueryDeps

    async def get_order(self, query: GetOrderQuery) -> Result[OrderView, CheckoutError]:
        try:
            order_id = OrderId(UUID(query.order_id))
        except ValueError:
            return Failure(ValidationError(f"not an order id: {query.order_id!r}"))
        found = await self.deps.orders.get(order_id)
        return found.map(_order_view)

    async def list_orders(
        self, query: ListOrdersQuery
    ) -> Result[Sequence[OrderSummaryView], CheckoutError]:
        checked = _page_for(query)
        if isinstance(checked, Failure):
            return checked
        page = checked.unwrap()

        listed = await self.deps.orders.list(
            page.offset,
            page.limit,
            customer_id=page.customer,
            sort_by=page.sort_by,
            sort_dir=page.sort_dir,
        )
        return listed.map(lambda orders: tuple(_summary(o) for o in orders))


def _page_for(query: ListOrdersQuery) -> Result[_Page, CheckoutError]:
    if query.offset < 0:
        return Failure(ValidationError("offset must be >= 0"))
    if not 0 < query.limit <= MAX_PAGE_SIZE:
        return Failure(ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}"))
    if query.sort_by not in SORT_FIELDS:
        return Failure(ValidationError(f"sort_by must be one of: {', '.join(SORT_FIELDS)}"))
    if query.sort_dir not in SORT_DIRECTIONS:
        return Failure(ValidationError("sort_dir must be 'asc' or 'desc'"))

    customer = None
    if query.customer_id is not None:
        if not query.customer_id.strip():
            return Failure(ValidationError("customer_id, when given, must not be blank"))
        customer = CustomerId(query.customer_id.strip())

    return Success(
        _Page(query.offset, query.limit, customer, query.sort_by, query.sort_dir)
    )


def _order_view(order: Order) -> OrderView:
    return OrderView(
        order_id=order.order_id,
        customer_id=order.customer_id,
        created_at=order.created_at,
        total=order.total(),
        lines=tuple(
            OrderLineView(
                product_id=ln.product_id.value,
                name=ln.name,
                unit_price=ln.unit_price,
                quantity=ln.quantity,
                subtotal=ln.subtotal(),
            )
            for ln in order.lines
        ),
    )


def _summary(order: Order) -> OrderSummaryView:
    return OrderSummaryView(
        order_id=order.order_id,
        customer_id=order.customer_id,
        created_at=order.created_at,
        total=order.total(),
        line_count=len(order.lines),
    )
