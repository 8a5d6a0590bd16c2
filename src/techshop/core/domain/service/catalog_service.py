from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Mapping, Sequence

from returns.result import Failure, Result

from techshop.core.domain.model.errors import CheckoutError, ValidationError
from techshop.core.domain.model.order import ProductId
from techshop.core.domain.model.product import Category, Product
from techshop.core.ports.inbound.browse_catalog import (
    BrowseCatalogUseCase,
    SearchProductsQuery,
)
from techshop.core.ports.outbound.catalog import CatalogService
from techshop.core.ports.outbound.inventory import InventoryStore


@dataclass(frozen=True)
class BrowseCatalogDeps:
    catalog: CatalogService
    inventory: InventoryStore


@dataclass(frozen=True)
class BrowseCatalogService(BrowseCatalogUseCase):
    """Read side for the shop screens.

    Stock figures are overlaid from the inventory store, so what a client sees
    is a recent snapshot; checkout still re-validates.
    """

    deps: BrowseCatalogDeps

    async def search_products(
        self, query: SearchProductsQuery
    ) -> Result[Sequence[Product], CheckoutError]:
        listed = await self.deps.catalog.list_products()
        if isinstance(listed, Failure):
            return listed
        return await self._with_live_stock(filter_by_name(listed.unwrap(), query.text))

    async def products_by_category(
        self, query: SearchProductsQuery
    ) -> Result[Mapping[str, Sequence[Product]], CheckoutError]:
        found = await self.search_products(query)
        return found.map(group_by_category)

    async def get_product(self, product_id: str) -> Result[Product, CheckoutError]:
        if not product_id.strip():
            return Failure(ValidationError("product_id is required"))
        found = await self.deps.catalog.get_product(ProductId(product_id))
        if isinstance(found, Failure):
            return found
        with_stock = await self._with_live_stock((found.unwrap(),))
        return with_stock.map(lambda products: products[0])

    async def list_categories(self) -> Result[Sequence[Category], CheckoutError]:
        return await self.deps.catalog.list_categories()

    async def _with_live_stock(
        self, products: Sequence[Product]
    ) -> Result[Sequence[Product], CheckoutError]:
        snapshot = await self.deps.inventory.get_snapshot(
            frozenset(p.product_id for p in products)
        )
        return snapshot.map(
            lambda stock: tuple(
                replace(p, unit_in_stock=stock.get(p.product_id, 0)) for p in products
            )
        )


def filter_by_name(products: Sequence[Product], text: str) -> Sequence[Product]:
    """Case-insensitive substring match on the product name; blank matches all."""
    needle = text.strip().lower()
    if not needle:
        return tuple(products)
    return tuple(p for p in products if needle in p.name.lower())


def group_by_category(products: Sequence[Product]) -> Mapping[str, Sequence[Product]]:
    groups: Dict[str, List[Product]] = {}
    for p in products:
        groups.setdefault(p.category.name, []).append(p)
    return {name: tuple(items) for name, items in groups.items()}
