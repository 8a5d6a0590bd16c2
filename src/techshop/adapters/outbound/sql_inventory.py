"""Inventory store backed by a SQL table via SQLAlchemy's async engine.

The conditional decrement is a single guarded UPDATE, so the database
performs the check and the write atomically:

    UPDATE products SET unit_in_stock = unit_in_stock - :qty
    WHERE id = :id AND unit_in_stock >= :qty
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AbstractSet, Mapping

from returns.result import Failure, Result, Success
from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from techshop.core.domain.model.errors import (
    CheckoutError,
    InsufficientStock,
    ProductNotFound,
    ServiceUnavailable,
    ValidationError,
)
from techshop.core.domain.model.order import ProductId
from techshop.core.ports.outbound.inventory import InventoryStore

logger = logging.getLogger(__name__)

_SELECT_STOCK = text(
    "SELECT id, unit_in_stock FROM products WHERE id IN :ids"
).bindparams(bindparam("ids", expanding=True))

_CONDITIONAL_DECREMENT = text(
    """
    UPDATE products
    SET unit_in_stock = unit_in_stock - :qty
    WHERE id = :id AND unit_in_stock >= :qty
    """
)

_INCREMENT = text(
    "UPDATE products SET unit_in_stock = unit_in_stock + :qty WHERE id = :id"
)

_EXISTS = text("SELECT unit_in_stock FROM products WHERE id = :id")


@dataclass
class SqlInventoryStore(InventoryStore):
    engine: AsyncEngine

    @classmethod
    def from_url(cls, url: str) -> "SqlInventoryStore":
        return cls(create_async_engine(url, echo=False))

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.execute(
                text(
                    """
                    CREATE TABLE IF NOT EXISTS products (
                        id VARCHAR(64) PRIMARY KEY,
                        unit_in_stock INTEGER NOT NULL CHECK (unit_in_stock >= 0)
                    )
                    """
                )
            )

    async def seed_missing(self, stock_by_product: Mapping[str, int]) -> int:
        """Insert rows for products the table does not know yet.

        Existing rows keep their stock, so restarting the service never
        hands out units that were already sold. Returns the number of
        rows inserted.
        """
        inserted = 0
        async with self.engine.begin() as conn:
            for pid, qty in stock_by_product.items():
                result = await conn.execute(
                    text(
                        "INSERT INTO products (id, unit_in_stock) "
                        "SELECT :id, :qty "
                        "WHERE NOT EXISTS (SELECT 1 FROM products WHERE id = :id)"
                    ),
                    {"id": pid, "qty": qty},
                )
                inserted += result.rowcount
        return inserted

    async def seed(self, stock_by_product: Mapping[str, int]) -> None:
        """Overwrite stock for the given products."""
        async with self.engine.begin() as conn:
            for pid, qty in stock_by_product.items():
                await conn.execute(
                    text("DELETE FROM products WHERE id = :id"), {"id": pid}
                )
                await conn.execute(
                    text("INSERT INTO products (id, unit_in_stock) VALUES (:id, :qty)"),
                    {"id": pid, "qty": qty},
                )

    async def dispose(self) -> None:
        await self.engine.dispose()

    async def get_snapshot(
        self, product_ids: AbstractSet[ProductId]
    ) -> Result[Mapping[ProductId, int], CheckoutError]:
        if not product_ids:
            return Success({})
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(
                    _SELECT_STOCK, {"ids": [pid.value for pid in product_ids]}
                )
                rows = result.fetchall()
        except SQLAlchemyError as e:
            logger.warning("inventory snapshot failed: %s", e)
            return Failure(ServiceUnavailable(str(e), service="inventory"))
        return Success({ProductId(row.id): int(row.unit_in_stock) for row in rows})

    async def conditional_decrement(
        self, product_id: ProductId, amount: int
    ) -> Result[None, CheckoutError]:
        if amount <= 0:
            return Failure(ValidationError("amount must be > 0"))
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(
                    _CONDITIONAL_DECREMENT, {"qty": amount, "id": product_id.value}
                )
                if result.rowcount == 1:
                    return Success(None)
                # no row changed: tell "gone" apart from "not enough"
                row = (await conn.execute(_EXISTS, {"id": product_id.value})).fetchone()
        except SQLAlchemyError as e:
            logger.warning("decrement of %s failed: %s", product_id.value, e)
            return Failure(ServiceUnavailable(str(e), service="inventory"))

        if row is None:
            return Failure(ProductNotFound("unknown product", product_id=product_id.value))
        return Failure(
            InsufficientStock(
                f"only {row.unit_in_stock} left",
                product_id=product_id.value,
                requested=amount,
            )
        )

    async def increment(
        self, product_id: ProductId, amount: int
    ) -> Result[None, CheckoutError]:
        if amount <= 0:
            return Failure(ValidationError("amount must be > 0"))
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(
                    _INCREMENT, {"qty": amount, "id": product_id.value}
                )
        except SQLAlchemyError as e:
            logger.warning("increment of %s failed: %s", product_id.value, e)
            return Failure(ServiceUnavailable(str(e), service="inventory"))
        if result.rowcount == 0:
            return Failure(ProductNotFound("unknown product", product_id=product_id.value))
        return Success(None)
