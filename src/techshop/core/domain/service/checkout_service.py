"""Checkout coordination: validate, reserve, then commit or roll back.

An attempt moves IDLE -> VALIDATING -> RESERVING and ends COMMITTED,
PARTIALLY_COMMITTED, REJECTED or CANCELLED. Inventory is only touched in
RESERVING, and only through the store's conditional decrement. Once RESERVING
starts the attempt is shielded from cancellation and always finishes with
either an order or a full rollback.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Mapping, Sequence, Set, Tuple
from uuid import uuid4

from returns.result import Failure, Result, Success

from techshop.core.domain.model.cart import Cart, CartLine
from techshop.core.domain.model.errors import (
    CheckoutError,
    CheckoutInProgress,
    OutOfStock,
    ProductNotFound,
    ServiceUnavailable,
    ValidationError,
)
from techshop.core.domain.model.order import CustomerId, Order, OrderLine, ProductId
from techshop.core.domain.model.product import Product
from techshop.core.domain.model.reservation import (
    LineRejection,
    PlannedReservation,
    RejectReason,
)
from techshop.core.domain.service.reservation import plan_reservations, reconcile
from techshop.core.ports.inbound.checkout import (
    TERMINAL_STATES,
    CheckoutCancelled,
    CheckoutOptions,
    CheckoutOutcome,
    CheckoutRejected,
    CheckoutState,
    CheckoutUseCase,
    Committed,
    PartiallyCommitted,
)
from techshop.core.ports.outbound.catalog import CatalogService
from techshop.core.ports.outbound.events import EventPublisher, OrderPlaced
from techshop.core.ports.outbound.inventory import InventoryStore
from techshop.core.ports.outbound.orders import OrderService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutDeps:
    catalog: CatalogService
    inventory: InventoryStore
    orders: OrderService
    events: EventPublisher
    snapshot_timeout: float = 5.0
    decrement_timeout: float = 2.0


@dataclass(frozen=True)
class _Validated:
    snapshot: Mapping[ProductId, int]
    products: Mapping[ProductId, Product]


@dataclass(frozen=True)
class CheckoutService(CheckoutUseCase):
    deps: CheckoutDeps
    _late: Set[asyncio.Task[None]] = field(
        default_factory=set, init=False, repr=False, compare=False
    )

    def begin(
        self,
        cart: Cart,
        customer_id: str,
        options: CheckoutOptions = CheckoutOptions(),
    ) -> "CheckoutAttempt":
        if not customer_id.strip():
            raise ValidationError("customer_id is required")
        if cart.is_empty():
            raise ValidationError("cart is empty")
        return CheckoutAttempt(
            self.deps, cart, CustomerId(customer_id), options, late=self._late
        )

    async def checkout(
        self,
        cart: Cart,
        customer_id: str,
        options: CheckoutOptions = CheckoutOptions(),
    ) -> CheckoutOutcome:
        return await self.begin(cart, customer_id, options).run()

    async def drain(self) -> None:
        """Wait for releases of decrements that finished after their timeout."""
        await _drain(self._late)


class CheckoutAttempt:
    def __init__(
        self,
        deps: CheckoutDeps,
        cart: Cart,
        customer_id: CustomerId,
        options: CheckoutOptions,
        late: Set[asyncio.Task[None]] | None = None,
    ) -> None:
        self.attempt_id = uuid4().hex[:12]
        self._deps = deps
        self._cart = cart
        self._customer_id = customer_id
        self._options = options
        self._state = CheckoutState.IDLE
        self._cancel_requested = False
        self._validation: asyncio.Future[Result[_Validated, CheckoutError]] | None = None
        self._outcome: CheckoutOutcome | None = None
        self._late: Set[asyncio.Task[None]] = set() if late is None else late

    @property
    def state(self) -> CheckoutState:
        return self._state

    @property
    def outcome(self) -> CheckoutOutcome | None:
        return self._outcome

    async def drain(self) -> None:
        await _drain(self._late)

    def cancel(self) -> Result[None, CheckoutError]:
        if self._state in (CheckoutState.IDLE, CheckoutState.VALIDATING):
            self._cancel_requested = True
            if self._validation is not None:
                self._validation.cancel()
            return Success(None)
        if self._state in TERMINAL_STATES:
            return Failure(CheckoutInProgress(f"checkout already {self._state.value}"))
        return Failure(
            CheckoutInProgress("inventory is being reserved; checkout cannot be cancelled")
        )

    async def run(self) -> CheckoutOutcome:
        if self._state is not CheckoutState.IDLE:
            raise CheckoutInProgress(f"checkout attempt is {self._state.value}")

        lines = self._cart.lines()
        if self._cancel_requested:
            return self._finish(CheckoutState.CANCELLED, CheckoutCancelled())

        # ---- validating ----------------------------------------------------
        self._transition(CheckoutState.VALIDATING)
        self._validation = asyncio.ensure_future(self._fetch(lines))
        try:
            fetched = await self._validation
        except asyncio.CancelledError:
            cancelled = self._finish(CheckoutState.CANCELLED, CheckoutCancelled())
            if self._cancel_requested:
                return cancelled
            raise
        if self._cancel_requested:
            return self._finish(CheckoutState.CANCELLED, CheckoutCancelled())

        if isinstance(fetched, Failure):
            err = fetched.failure()
            logger.warning("checkout %s: snapshot unavailable: %s", self.attempt_id, err)
            return self._finish(
                CheckoutState.REJECTED,
                CheckoutRejected(_reject_all(lines, RejectReason.SERVICE_UNAVAILABLE)),
            )

        validated = fetched.unwrap()
        # a product without a catalog entry has no price to lock in
        snapshot = {
            pid: stock
            for pid, stock in validated.snapshot.items()
            if pid in validated.products
        }
        planned, rejections = plan_reservations(
            reconcile(lines, snapshot), self._options.allow_partial
        )

        if rejections and not self._options.allow_partial:
            return self._finish(CheckoutState.REJECTED, CheckoutRejected(rejections))
        if not planned:
            return self._finish(CheckoutState.REJECTED, CheckoutRejected(rejections))

        # ---- reserving -----------------------------------------------------
        self._transition(CheckoutState.RESERVING)
        return await asyncio.shield(
            self._reserve(planned, rejections, validated.products)
        )

    # ---- validating helpers ------------------------------------------------

    async def _fetch(
        self, lines: Sequence[CartLine]
    ) -> Result[_Validated, CheckoutError]:
        ids = frozenset(ln.product_id for ln in lines)
        try:
            snapshot, products = await asyncio.wait_for(
                asyncio.gather(
                    self._deps.inventory.get_snapshot(ids),
                    self._deps.catalog.get_products(ids),
                ),
                timeout=self._deps.snapshot_timeout,
            )
        except asyncio.TimeoutError:
            return Failure(
                ServiceUnavailable("snapshot read timed out", service="inventory")
            )

        if isinstance(snapshot, Failure):
            return snapshot
        if isinstance(products, Failure):
            return products
        return Success(_Validated(snapshot.unwrap(), products.unwrap()))

    # ---- reserving helpers -------------------------------------------------

    async def _reserve(
        self,
        planned: Tuple[PlannedReservation, ...],
        rejections: Tuple[LineRejection, ...],
        products: Mapping[ProductId, Product],
    ) -> CheckoutOutcome:
        results = await asyncio.gather(
            *(self._decrement(p) for p in planned), return_exceptions=True
        )

        reserved: list[PlannedReservation] = []
        failed: list[LineRejection] = []
        for p, r in zip(planned, results):
            if isinstance(r, Success):
                reserved.append(p)
                continue
            if isinstance(r, BaseException):
                logger.error(
                    "checkout %s: decrement of %s raised",
                    self.attempt_id,
                    p.product_id.value,
                    exc_info=r,
                )
                reason = RejectReason.SERVICE_UNAVAILABLE
            else:
                reason = _reason_for(r.failure())
            logger.warning(
                "checkout %s: could not reserve %d x %s (%s)",
                self.attempt_id,
                p.quantity,
                p.product_id.value,
                reason.value,
            )
            failed.append(LineRejection(p.product_id, reason, requested=p.requested))

        if failed and (not self._options.allow_partial or not reserved):
            await self._release(reserved)
            return self._finish(
                CheckoutState.REJECTED, CheckoutRejected(rejections + tuple(failed))
            )

        order_lines = tuple(
            OrderLine(
                product_id=p.product_id,
                name=products[p.product_id].name,
                unit_price=products[p.product_id].price,
                quantity=p.quantity,
            )
            for p in reserved
        )
        created = await self._deps.orders.create_order(order_lines, self._customer_id)
        if isinstance(created, Failure):
            logger.warning(
                "checkout %s: order creation failed: %s",
                self.attempt_id,
                created.failure(),
            )
            await self._release(reserved)
            unavailable = tuple(
                LineRejection(
                    p.product_id, RejectReason.SERVICE_UNAVAILABLE, requested=p.requested
                )
                for p in reserved
            )
            return self._finish(
                CheckoutState.REJECTED,
                CheckoutRejected(rejections + tuple(failed) + unavailable),
            )

        order = created.unwrap()
        shortfalls = tuple(
            LineRejection(
                p.product_id,
                RejectReason.OUT_OF_STOCK,
                requested=p.requested,
                available=p.quantity,
            )
            for p in reserved
            if p.quantity < p.requested
        )
        not_bought = rejections + tuple(failed) + shortfalls

        # only what was bought leaves the cart; lines added meanwhile stay
        self._consume(reserved)
        if not_bought:
            outcome: CheckoutOutcome = PartiallyCommitted(order, not_bought)
            state = CheckoutState.PARTIALLY_COMMITTED
        else:
            outcome = Committed(order)
            state = CheckoutState.COMMITTED

        published = await self._deps.events.publish(
            OrderPlaced(order.order_id, order.customer_id, partial=bool(not_bought))
        )
        if isinstance(published, Failure):
            logger.warning(
                "checkout %s: order %s placed but event not published: %s",
                self.attempt_id,
                order.order_id.value,
                published.failure(),
            )
        return self._finish(state, outcome)

    async def _decrement(self, p: PlannedReservation) -> Result[None, CheckoutError]:
        # the timeout bounds our wait, not the store call: a decrement that
        # still lands afterwards is released by _release_if_applied
        pending = asyncio.ensure_future(
            self._deps.inventory.conditional_decrement(p.product_id, p.quantity)
        )
        try:
            return await asyncio.wait_for(
                asyncio.shield(pending), timeout=self._deps.decrement_timeout
            )
        except asyncio.TimeoutError:
            late = asyncio.ensure_future(self._release_if_applied(p, pending))
            self._late.add(late)
            late.add_done_callback(self._late.discard)
            return Failure(
                ServiceUnavailable(
                    f"decrement of {p.product_id.value} timed out", service="inventory"
                )
            )

    async def _release_if_applied(
        self,
        p: PlannedReservation,
        pending: asyncio.Future[Result[None, CheckoutError]],
    ) -> None:
        try:
            result = await pending
        except Exception:
            logger.error(
                "checkout %s: timed-out decrement of %s raised",
                self.attempt_id,
                p.product_id.value,
                exc_info=True,
            )
            return
        if isinstance(result, Success):
            logger.warning(
                "checkout %s: decrement of %d x %s landed after its timeout",
                self.attempt_id,
                p.quantity,
                p.product_id.value,
            )
            await self._release((p,))

    async def _release(self, reserved: Sequence[PlannedReservation]) -> None:
        if not reserved:
            return
        logger.warning(
            "checkout %s: rolling back %d reservation(s)", self.attempt_id, len(reserved)
        )
        results = await asyncio.gather(
            *(self._increment(p) for p in reserved), return_exceptions=True
        )
        for p, r in zip(reserved, results):
            if isinstance(r, BaseException):
                logger.error(
                    "checkout %s: rollback of %d x %s raised",
                    self.attempt_id,
                    p.quantity,
                    p.product_id.value,
                    exc_info=r,
                )
            elif isinstance(r, Failure):
                logger.error(
                    "checkout %s: rollback of %d x %s failed: %s",
                    self.attempt_id,
                    p.quantity,
                    p.product_id.value,
                    r.failure(),
                )

    async def _increment(self, p: PlannedReservation) -> Result[None, CheckoutError]:
        try:
            return await asyncio.wait_for(
                self._deps.inventory.increment(p.product_id, p.quantity),
                timeout=self._deps.decrement_timeout,
            )
        except asyncio.TimeoutError:
            return Failure(
                ServiceUnavailable(
                    f"release of {p.product_id.value} timed out", service="inventory"
                )
            )

    def _consume(self, reserved: Sequence[PlannedReservation]) -> None:
        for p in reserved:
            remaining = self._cart.quantity_of(p.product_id) - p.quantity
            if remaining > 0:
                self._cart.set_quantity(p.product_id, remaining)
            else:
                self._cart.remove(p.product_id)

    # ---- state -------------------------------------------------------------

    def _transition(self, state: CheckoutState) -> None:
        logger.info(
            "checkout %s: %s -> %s", self.attempt_id, self._state.value, state.value
        )
        self._state = state

    def _finish(self, state: CheckoutState, outcome: CheckoutOutcome) -> CheckoutOutcome:
        self._transition(state)
        self._outcome = outcome
        return outcome


def _reason_for(err: CheckoutError) -> RejectReason:
    if isinstance(err, OutOfStock):
        return RejectReason.INSUFFICIENT_STOCK
    if isinstance(err, ProductNotFound):
        return RejectReason.NOT_FOUND
    return RejectReason.SERVICE_UNAVAILABLE


def _reject_all(
    lines: Sequence[CartLine], reason: RejectReason
) -> Tuple[LineRejection, ...]:
    return tuple(LineRejection(ln.product_id, reason, requested=ln.quantity) for ln in lines)


async def _drain(tasks: Set[asyncio.Task[None]]) -> None:
    # done callbacks remove finished tasks from the set
    while tasks:
        await asyncio.gather(*list(tasks), return_exceptions=True)
