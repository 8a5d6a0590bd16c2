from __future__ import annotations

from typing import AbstractSet, Mapping, Protocol, Sequence

from returns.result import Result

from techshop.core.domain.model.errors import CheckoutError
from techshop.core.domain.model.order import ProductId
from techshop.core.domain.model.product import Category, Product


class CatalogService(Protocol):
    async def get_product(self, product_id: ProductId) -> Result[Product, CheckoutError]: ...

    async def get_products(
        self, product_ids: AbstractSet[ProductId]
    ) -> Result[Mapping[ProductId, Product], CheckoutError]:
        """Batched lookup; unknown ids are simply absent from the mapping."""
        ...

    async def list_products(self) -> Result[Sequence[Product], CheckoutError]: ...

    async def list_categories(self) -> Result[Sequence[Category], CheckoutError]: ...
