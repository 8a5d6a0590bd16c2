from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Protocol, Sequence

from returns.result import Result

from techshop.core.domain.model.errors import CheckoutError
from techshop.core.domain.model.product import Category, Product


@dataclass(frozen=True)
class SearchProductsQuery:
    text: str = ""


class BrowseCatalogUseCase(Protocol):
    async def search_products(
        self, query: SearchProductsQuery
    ) -> Result[Sequence[Product], CheckoutError]: ...

    async def products_by_category(
        self, query: SearchProductsQuery
    ) -> Result[Mapping[str, Sequence[Product]], CheckoutError]: ...

    async def get_product(self, product_id: str) -> Result[Product, CheckoutError]: ...

    async def list_categories(self) -> Result[Sequence[Category], CheckoutError]: ...
