from __future__ import annotations

from typing import AbstractSet, Mapping, Protocol

from returns.result import Result

from techshop.core.domain.model.errors import CheckoutError
from techshop.core.domain.model.order import ProductId


class InventoryStore(Protocol):
    """Authoritative unit counts.

    ``conditional_decrement`` must check and apply in one indivisible step;
    callers never read-then-write.
    """

    async def get_snapshot(
        self, product_ids: AbstractSet[ProductId]
    ) -> Result[Mapping[ProductId, int], CheckoutError]: ...

    async def conditional_decrement(
        self, product_id: ProductId, amount: int
    ) -> Result[None, CheckoutError]:
        """Failure(InsufficientStock) when fewer than ``amount`` units remain."""
        ...

    async def increment(
        self, product_id: ProductId, amount: int
    ) -> Result[None, CheckoutError]: ...
