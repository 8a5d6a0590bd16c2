from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Sequence

from returns.result import Failure, Result, Success

from techshop.core.domain.model.errors import (
    CheckoutError,
    OrderNotFound,
    PersistenceError,
    ServiceUnavailable,
)
from techshop.core.domain.model.order import (
    CustomerId,
    Order,
    OrderId,
    OrderLine,
    now_utc,
)
from techshop.core.ports.outbound.orders import OrderService

_SORT_KEYS: Dict[str, Callable[[Order], Any]] = {
    "created_at": lambda o: o.created_at,
    "total": lambda o: o.total().amount,
}


@dataclass
class InMemoryOrderService(OrderService):
    """Order store kept in a dict keyed by order id.

    ``unavailable`` makes every write fail, for exercising rollback paths.
    """

    unavailable: bool = False
    _orders: Dict[OrderId, Order] = field(default_factory=dict)

    async def create_order(
        self, lines: Sequence[OrderLine], customer_id: CustomerId
    ) -> Result[Order, CheckoutError]:
        if self.unavailable:
            return Failure(ServiceUnavailable("order store is down", service="orders"))
        if not lines:
            return Failure(PersistenceError("an order needs at least one line"))

        order = Order(OrderId.new(), customer_id, tuple(lines), now_utc())
        self._orders[order.order_id] = order
        return Success(order)

    async def get(self, order_id: OrderId) -> Result[Order, CheckoutError]:
        order = self._orders.get(order_id)
        if order is None:
            return Failure(
                OrderNotFound("no such order", order_id=str(order_id.value))
            )
        return Success(order)

    async def list(
        self,
        offset: int,
        limit: int,
        customer_id: CustomerId | None = None,
        sort_by: str = "created_at",
        sort_dir: str = "desc",
    ) -> Result[Sequence[Order], CheckoutError]:
        matching = [
            o
            for o in self._orders.values()
            if customer_id is None or o.customer_id == customer_id
        ]
        matching.sort(key=_SORT_KEYS[sort_by], reverse=sort_dir == "desc")
        return Success(tuple(matching[offset : offset + limit]))
