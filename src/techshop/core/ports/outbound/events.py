from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from returns.result import Result

from techshop.core.domain.model.errors import CheckoutError
from techshop.core.domain.model.order import CustomerId, OrderId


@dataclass(frozen=True)
class OrderPlaced:
    order_id: OrderId
    customer_id: CustomerId
    partial: bool = False


class EventPublisher(Protocol):
    async def publish(self, event: OrderPlaced) -> Result[None, CheckoutError]: ...
