from __future__ import annotations

from dataclasses import dataclass

from techshop.core.domain.model.order import Money, ProductId


@dataclass(frozen=True)
class Category:
    category_id: str
    name: str
    description: str | None = None

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ValueError("Category name is required")


@dataclass(frozen=True)
class Product:
    """Catalog entry.

    ``unit_in_stock`` is the value the catalog last reported; the inventory
    store owns the authoritative count.
    """

    product_id: ProductId
    name: str
    price: Money
    brand: str
    category: Category
    unit_in_stock: int
    description: str | None = None
    image: str | None = None

    def __post_init__(self) -> None:
        if self.unit_in_stock < 0:
            raise ValueError(f"unit_in_stock must be >= 0: {self.unit_in_stock}")
