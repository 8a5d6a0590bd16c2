from __future__ import annotations

from typing import Protocol, Sequence

from returns.result import Result

from techshop.core.domain.model.errors import CheckoutError
from techshop.core.domain.model.order import CustomerId, Order, OrderId, OrderLine


class OrderService(Protocol):
    async def create_order(
        self, lines: Sequence[OrderLine], customer_id: CustomerId
    ) -> Result[Order, CheckoutError]: ...

    async def get(self, order_id: OrderId) -> Result[Order, CheckoutError]: ...

    async def list(
        self,
        offset: int,
        limit: int,
        customer_id: CustomerId | None = None,
        sort_by: str = "created_at",
        sort_dir: str = "desc",
    ) -> Result[Sequence[Order], CheckoutError]: ...
