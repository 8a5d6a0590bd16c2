from __future__ import annotations

from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Iterable, Mapping, Sequence

from returns.result import Failure, Result, Success

from techshop.core.domain.model.errors import CheckoutError, ProductNotFound
from techshop.core.domain.model.order import ProductId
from techshop.core.domain.model.product import Category, Product
from techshop.core.ports.outbound.catalog import CatalogService


@dataclass
class InMemoryCatalog(CatalogService):
    _products: Dict[str, Product] = field(default_factory=dict)

    @classmethod
    def of(cls, products: Iterable[Product]) -> "InMemoryCatalog":
        return cls({p.product_id.value: p for p in products})

    async def get_product(self, product_id: ProductId) -> Result[Product, CheckoutError]:
        product = self._products.get(product_id.value)
        if product is None:
            return Failure(
                ProductNotFound("product not found", product_id=product_id.value)
            )
        return Success(product)

    async def get_products(
        self, product_ids: AbstractSet[ProductId]
    ) -> Result[Mapping[ProductId, Product], CheckoutError]:
        return Success(
            {
                pid: self._products[pid.value]
                for pid in product_ids
                if pid.value in self._products
            }
        )

    async def list_products(self) -> Result[Sequence[Product], CheckoutError]:
        return Success(tuple(self._products.values()))

    async def list_categories(self) -> Result[Sequence[Category], CheckoutError]:
        seen: Dict[str, Category] = {}
        for p in self._products.values():
            seen.setdefault(p.category.category_id, p.category)
        return Success(tuple(seen.values()))
