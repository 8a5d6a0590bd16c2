from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Mapping

from returns.result import Failure, Result, Success

from techshop.core.domain.model.errors import (
    CheckoutError,
    InsufficientStock,
    ProductNotFound,
    ServiceUnavailable,
    ValidationError,
)
from techshop.core.domain.model.order import ProductId
from techshop.core.ports.outbound.inventory import InventoryStore


@dataclass
class InMemoryInventoryStore(InventoryStore):
    stock_by_product: Dict[str, int]
    latency: float = 0.0
    unavailable: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    async def get_snapshot(
        self, product_ids: AbstractSet[ProductId]
    ) -> Result[Mapping[ProductId, int], CheckoutError]:
        if self.unavailable:
            return Failure(ServiceUnavailable("inventory is down", service="inventory"))
        await asyncio.sleep(self.latency)
        with self._lock:
            return Success(
                {
                    pid: self.stock_by_product[pid.value]
                    for pid in product_ids
                    if pid.value in self.stock_by_product
                }
            )

    async def conditional_decrement(
        self, product_id: ProductId, amount: int
    ) -> Result[None, CheckoutError]:
        if amount <= 0:
            return Failure(ValidationError("amount must be > 0"))
        if self.unavailable:
            return Failure(ServiceUnavailable("inventory is down", service="inventory"))
        await asyncio.sleep(self.latency)

        # check and apply under one lock, no await in between
        with self._lock:
            available = self.stock_by_product.get(product_id.value)
            if available is None:
                return Failure(
                    ProductNotFound("unknown product", product_id=product_id.value)
                )
            if available < amount:
                return Failure(
                    InsufficientStock(
                        f"only {available} left",
                        product_id=product_id.value,
                        requested=amount,
                    )
                )
            self.stock_by_product[product_id.value] = available - amount
        return Success(None)

    async def increment(
        self, product_id: ProductId, amount: int
    ) -> Result[None, CheckoutError]:
        if amount <= 0:
            return Failure(ValidationError("amount must be > 0"))
        if self.unavailable:
            return Failure(ServiceUnavailable("inventory is down", service="inventory"))
        with self._lock:
            if product_id.value not in self.stock_by_product:
                return Failure(
                    ProductNotFound("unknown product", product_id=product_id.value)
                )
            self.stock_by_product[product_id.value] += amount
        return Success(None)

    def stock_of(self, product_id: str) -> int:
        with self._lock:
            return self.stock_by_product.get(product_id, 0)
