from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable

import pytest

from techshop.adapters.outbound.in_memory_catalog import InMemoryCatalog
from techshop.adapters.outbound.in_memory_inventory import InMemoryInventoryStore
from techshop.adapters.outbound.in_memory_orders import InMemoryOrderService
from techshop.adapters.outbound.logging_events import LoggingEventPublisher
from techshop.core.domain.model.cart import Cart
from techshop.core.domain.model.order import Money, ProductId
from techshop.core.domain.model.product import Category, Product
from techshop.core.domain.service.checkout_service import CheckoutDeps, CheckoutService

GADGETS = Category("cat-gadgets", "Gadgets")


def make_product(
    pid: str,
    name: str | None = None,
    price: str = "10.00",
    stock: int = 0,
    category: Category = GADGETS,
) -> Product:
    return Product(
        product_id=ProductId(pid),
        name=name or f"Product {pid}",
        price=Money.of(price),
        brand="Acme",
        category=category,
        unit_in_stock=stock,
    )


def make_cart(*lines: tuple[str, int]) -> Cart:
    cart = Cart()
    for pid, qty in lines:
        cart.add_or_increment(ProductId(pid), qty)
    return cart


@dataclass
class Shop:
    catalog: InMemoryCatalog
    inventory: InMemoryInventoryStore
    orders: InMemoryOrderService
    events: LoggingEventPublisher
    service: CheckoutService


ShopFactory = Callable[..., Shop]


@pytest.fixture
def shop_factory() -> ShopFactory:
    def build(
        stock: Dict[str, int],
        *,
        inventory: InMemoryInventoryStore | None = None,
        catalog_ids: Iterable[str] | None = None,
        prices: Dict[str, str] | None = None,
        snapshot_timeout: float = 1.0,
        decrement_timeout: float = 1.0,
    ) -> Shop:
        prices = prices or {}
        ids = list(stock) if catalog_ids is None else list(catalog_ids)
        catalog = InMemoryCatalog.of(
            make_product(pid, price=prices.get(pid, "10.00"), stock=stock.get(pid, 0))
            for pid in ids
        )
        inv = inventory or InMemoryInventoryStore(stock_by_product=dict(stock))
        orders = InMemoryOrderService()
        events = LoggingEventPublisher()
        service = CheckoutService(
            CheckoutDeps(
                catalog=catalog,
                inventory=inv,
                orders=orders,
                events=events,
                snapshot_timeout=snapshot_timeout,
                decrement_timeout=decrement_timeout,
            )
        )
        return Shop(catalog, inv, orders, events, service)

    return build
