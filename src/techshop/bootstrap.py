from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Tuple

from techshop.adapters.outbound.in_memory_catalog import InMemoryCatalog
from techshop.adapters.outbound.in_memory_inventory import InMemoryInventoryStore
from techshop.adapters.outbound.in_memory_orders import InMemoryOrderService
from techshop.adapters.outbound.logging_events import LoggingEventPublisher
from techshop.adapters.outbound.sql_inventory import SqlInventoryStore
from techshop.config import Settings
from techshop.core.domain.model.order import Money, ProductId
from techshop.core.domain.model.product import Category, Product
from techshop.core.domain.service.catalog_service import (
    BrowseCatalogDeps,
    BrowseCatalogService,
)
from techshop.core.domain.service.checkout_service import CheckoutDeps, CheckoutService
from techshop.core.domain.service.order_query_service import (
    OrderQueryDeps,
    OrderQueryService,
)
from techshop.core.ports.inbound.checkout import CheckoutOptions
from techshop.core.ports.outbound.inventory import InventoryStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class UseCases:
    checkout: CheckoutService
    browse_catalog: BrowseCatalogService
    order_queries: OrderQueryService
    inventory: InventoryStore
    default_options: CheckoutOptions

    async def startup(self) -> None:
        if isinstance(self.inventory, SqlInventoryStore):
            await self.inventory.create_schema()
            inserted = await self.inventory.seed_missing(initial_stock())
            logger.info("sql inventory ready (%d product row(s) added)", inserted)

    async def shutdown(self) -> None:
        await self.checkout.drain()
        if isinstance(self.inventory, SqlInventoryStore):
            await self.inventory.dispose()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def sample_products() -> Tuple[Product, ...]:
    laptops = Category("cat-laptops", "Laptops", "Notebooks and ultrabooks")
    phones = Category("cat-phones", "Phones")
    accessories = Category("cat-accessories", "Accessories")
    return (
        Product(ProductId("p-1001"), "ZenBook 14", Money.of("999.00"), "Asus", laptops, 5),
        Product(ProductId("p-1002"), "ThinkPad X1", Money.of("1499.00"), "Lenovo", laptops, 2),
        Product(ProductId("p-2001"), "Pixel 8", Money.of("699.00"), "Google", phones, 10),
        Product(ProductId("p-2002"), "Galaxy S24", Money.of("799.00"), "Samsung", phones, 1),
        Product(ProductId("p-3001"), "USB-C Charger", Money.of("29.90"), "Anker", accessories, 50),
    )


def initial_stock() -> Dict[str, int]:
    return {p.product_id.value: p.unit_in_stock for p in sample_products()}


def build_usecases(settings: Settings | None = None) -> UseCases:
    settings = settings or Settings()
    catalog = InMemoryCatalog.of(sample_products())
    inventory: InventoryStore
    if settings.database_url:
        inventory = SqlInventoryStore.from_url(settings.database_url)
    else:
        inventory = InMemoryInventoryStore(stock_by_product=initial_stock())
    orders = InMemoryOrderService()
    events = LoggingEventPublisher()

    checkout = CheckoutService(
        CheckoutDeps(
            catalog=catalog,
            inventory=inventory,
            orders=orders,
            events=events,
            snapshot_timeout=settings.snapshot_timeout,
            decrement_timeout=settings.decrement_timeout,
        )
    )
    return UseCases(
        checkout=checkout,
        browse_catalog=BrowseCatalogService(
            BrowseCatalogDeps(catalog=catalog, inventory=inventory)
        ),
        order_queries=OrderQueryService(OrderQueryDeps(orders=orders)),
        inventory=inventory,
        default_options=CheckoutOptions(allow_partial=settings.allow_partial),
    )
