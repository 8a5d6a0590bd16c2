from __future__ import annotations

import logging
from dataclasses import dataclass

from returns.result import Failure, Result, Success

from techshop.core.domain.model.errors import CheckoutError, PublishError
from techshop.core.ports.outbound.events import EventPublisher, OrderPlaced

logger = logging.getLogger(__name__)


@dataclass
class LoggingEventPublisher(EventPublisher):
    fail: bool = False

    async def publish(self, event: OrderPlaced) -> Result[None, CheckoutError]:
        if self.fail:
            return Failure(PublishError(message="publisher is down"))
        logger.info(
            "[event] order_placed: %s customer=%s partial=%s",
            event.order_id.value,
            event.customer_id.value,
            event.partial,
        )
        return Success(None)
