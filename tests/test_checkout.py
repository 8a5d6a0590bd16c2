import asyncio
from dataclasses import dataclass, field
from typing import Dict, Set

import pytest
from returns.result import Failure, Success

from techshop.adapters.outbound.in_memory_inventory import InMemoryInventoryStore
from techshop.core.domain.model.errors import (
    CheckoutInProgress,
    ServiceUnavailable,
    ValidationError,
)
from techshop.core.domain.model.order import ProductId
from techshop.core.domain.model.reservation import LineRejection, RejectReason
from techshop.core.ports.inbound.checkout import (
    CheckoutCancelled,
    CheckoutOptions,
    CheckoutRejected,
    CheckoutState,
    Committed,
    PartiallyCommitted,
)

from conftest import make_cart

A = ProductId("A")
B = ProductId("B")
C = ProductId("C")

PARTIAL = CheckoutOptions(allow_partial=True)


@dataclass
class DepletingInventory(InMemoryInventoryStore):
    """Another customer buys ``victim`` out between snapshot and decrement."""

    victim: str = ""

    async def conditional_decrement(self, product_id, amount):
        if product_id.value == self.victim:
            with self._lock:
                self.stock_by_product[self.victim] = 0
        return await super().conditional_decrement(product_id, amount)


@dataclass
class SlowInventory(InMemoryInventoryStore):
    slow: Set[str] = field(default_factory=set)

    async def conditional_decrement(self, product_id, amount):
        if product_id.value in self.slow:
            await asyncio.sleep(5)
        return await super().conditional_decrement(product_id, amount)


@dataclass
class LaggingInventory(InMemoryInventoryStore):
    """Applies the decrement at once but answers after ``lag`` seconds."""

    lag: Dict[str, float] = field(default_factory=dict)

    async def conditional_decrement(self, product_id, amount):
        result = await super().conditional_decrement(product_id, amount)
        await asyncio.sleep(self.lag.get(product_id.value, 0))
        return result


@dataclass
class BrokenReleaseInventory(DepletingInventory):
    """Loses the race on ``victim`` and cannot put stock back."""

    hang: bool = False

    async def increment(self, product_id, amount):
        if self.hang:
            await asyncio.Event().wait()
        raise RuntimeError("inventory connection reset")


@dataclass
class GatedInventory(InMemoryInventoryStore):
    gate: asyncio.Event | None = None

    async def conditional_decrement(self, product_id, amount):
        if self.gate is not None:
            await self.gate.wait()
        return await super().conditional_decrement(product_id, amount)


class TestScenarios:
    def test_enough_stock_commits_and_clears_cart(self, shop_factory):
        shop = shop_factory({"A": 5})
        cart = make_cart(("A", 2))

        outcome = asyncio.run(shop.service.checkout(cart, "c-1"))

        assert isinstance(outcome, Committed)
        assert shop.inventory.stock_of("A") == 3
        assert cart.is_empty()
        assert outcome.order.quantity_of(A) == 2
        assert outcome.order.customer_id.value == "c-1"

    def test_short_stock_without_partial_is_rejected_and_changes_nothing(
        self, shop_factory
    ):
        shop = shop_factory({"B": 1})
        cart = make_cart(("B", 3))

        outcome = asyncio.run(shop.service.checkout(cart, "c-1"))

        assert outcome == CheckoutRejected(
            (LineRejection(B, RejectReason.OUT_OF_STOCK, requested=3, available=1),)
        )
        assert shop.inventory.stock_of("B") == 1
        assert cart.quantity_of(B) == 3

    def test_lost_race_rolls_back_the_other_lines(self, shop_factory):
        inventory = DepletingInventory(stock_by_product={"A": 5, "B": 5}, victim="B")
        shop = shop_factory({"A": 5, "B": 5}, inventory=inventory)
        cart = make_cart(("A", 2), ("B", 1))

        outcome = asyncio.run(shop.service.checkout(cart, "c-1"))

        assert isinstance(outcome, CheckoutRejected)
        assert [(r.product_id, r.reason) for r in outcome.rejections] == [
            (B, RejectReason.INSUFFICIENT_STOCK)
        ]
        assert inventory.stock_of("A") == 5
        assert cart.quantity_of(A) == 2
        assert cart.quantity_of(B) == 1
        assert asyncio.run(shop.orders.list(0, 10)).unwrap() == ()


class TestCommitted:
    def test_decrements_equal_order_quantities(self, shop_factory):
        shop = shop_factory({"A": 10, "B": 4, "C": 1}, prices={"A": "2.50"})
        cart = make_cart(("A", 3), ("B", 4), ("C", 1))

        outcome = asyncio.run(shop.service.checkout(cart, "c-1"))

        assert isinstance(outcome, Committed)
        order = outcome.order
        assert 10 - shop.inventory.stock_of("A") == order.quantity_of(A) == 3
        assert 4 - shop.inventory.stock_of("B") == order.quantity_of(B) == 4
        assert 1 - shop.inventory.stock_of("C") == order.quantity_of(C) == 1

    def test_locks_in_catalog_price(self, shop_factory):
        shop = shop_factory({"A": 10}, prices={"A": "2.50"})

        outcome = asyncio.run(shop.service.checkout(make_cart(("A", 3)), "c-1"))

        line = outcome.order.lines[0]
        assert str(line.unit_price.amount) == "2.50"
        assert str(outcome.order.total().amount) == "7.50"

    def test_order_is_stored(self, shop_factory):
        shop = shop_factory({"A": 1})

        outcome = asyncio.run(shop.service.checkout(make_cart(("A", 1)), "c-1"))

        stored = asyncio.run(shop.orders.get(outcome.order.order_id))
        assert stored.unwrap() == outcome.order

    def test_event_publish_failure_does_not_undo_the_order(self, shop_factory):
        shop = shop_factory({"A": 1})
        shop.events.fail = True

        outcome = asyncio.run(shop.service.checkout(make_cart(("A", 1)), "c-1"))

        assert isinstance(outcome, Committed)
        assert shop.inventory.stock_of("A") == 0


class TestRejected:
    def test_unknown_product_is_not_found_and_others_untouched(self, shop_factory):
        shop = shop_factory({"A": 5})
        cart = make_cart(("A", 1), ("Z", 1))

        outcome = asyncio.run(shop.service.checkout(cart, "c-1"))

        assert outcome == CheckoutRejected(
            (LineRejection(ProductId("Z"), RejectReason.NOT_FOUND, requested=1),)
        )
        assert shop.inventory.stock_of("A") == 5

    def test_product_missing_from_catalog_is_not_found(self, shop_factory):
        shop = shop_factory({"A": 5, "B": 5}, catalog_ids=["A"])

        outcome = asyncio.run(
            shop.service.checkout(make_cart(("A", 1), ("B", 1)), "c-1")
        )

        assert isinstance(outcome, CheckoutRejected)
        assert outcome.rejections[0].product_id == B
        assert outcome.rejections[0].reason is RejectReason.NOT_FOUND

    def test_all_problems_are_reported_at_once(self, shop_factory):
        shop = shop_factory({"A": 0, "B": 1, "C": 9})
        cart = make_cart(("A", 1), ("B", 2), ("C", 1), ("Z", 1))

        outcome = asyncio.run(shop.service.checkout(cart, "c-1"))

        assert [r.product_id.value for r in outcome.rejections] == ["A", "B", "Z"]
        assert shop.inventory.stock_of("C") == 9

    def test_unavailable_inventory_rejects_every_line(self, shop_factory):
        inventory = InMemoryInventoryStore(stock_by_product={"A": 5}, unavailable=True)
        shop = shop_factory({"A": 5}, inventory=inventory)
        cart = make_cart(("A", 1))

        outcome = asyncio.run(shop.service.checkout(cart, "c-1"))

        assert outcome == CheckoutRejected(
            (LineRejection(A, RejectReason.SERVICE_UNAVAILABLE, requested=1),)
        )
        assert cart.quantity_of(A) == 1

    def test_snapshot_timeout_is_service_unavailable(self, shop_factory):
        inventory = InMemoryInventoryStore(stock_by_product={"A": 5}, latency=1.0)
        shop = shop_factory({"A": 5}, inventory=inventory, snapshot_timeout=0.05)

        outcome = asyncio.run(shop.service.checkout(make_cart(("A", 1)), "c-1"))

        assert isinstance(outcome, CheckoutRejected)
        assert outcome.rejections[0].reason is RejectReason.SERVICE_UNAVAILABLE

    def test_decrement_timeout_rolls_back(self, shop_factory):
        inventory = SlowInventory(stock_by_product={"A": 5, "B": 5}, slow={"B"})
        shop = shop_factory(
            {"A": 5, "B": 5}, inventory=inventory, decrement_timeout=0.05
        )

        outcome = asyncio.run(
            shop.service.checkout(make_cart(("A", 2), ("B", 1)), "c-1")
        )

        assert isinstance(outcome, CheckoutRejected)
        assert [(r.product_id, r.reason) for r in outcome.rejections] == [
            (B, RejectReason.SERVICE_UNAVAILABLE)
        ]
        assert inventory.stock_of("A") == 5
        assert inventory.stock_of("B") == 5

    def test_order_creation_failure_rolls_back(self, shop_factory):
        shop = shop_factory({"A": 5, "B": 5})
        shop.orders.unavailable = True
        cart = make_cart(("A", 2), ("B", 3))

        outcome = asyncio.run(shop.service.checkout(cart, "c-1"))

        assert isinstance(outcome, CheckoutRejected)
        assert {r.reason for r in outcome.rejections} == {
            RejectReason.SERVICE_UNAVAILABLE
        }
        assert shop.inventory.stock_of("A") == 5
        assert shop.inventory.stock_of("B") == 5
        assert len(cart) == 2

    def test_decrement_landing_after_timeout_is_released(self, shop_factory):
        inventory = LaggingInventory(stock_by_product={"A": 5, "B": 5}, lag={"B": 0.3})
        shop = shop_factory(
            {"A": 5, "B": 5}, inventory=inventory, decrement_timeout=0.05
        )

        async def scenario():
            outcome = await shop.service.checkout(
                make_cart(("A", 2), ("B", 1)), "c-1"
            )
            held = inventory.stock_of("B")
            await shop.service.drain()
            return outcome, held

        outcome, held = asyncio.run(scenario())

        assert isinstance(outcome, CheckoutRejected)
        assert held == 4
        assert inventory.stock_of("A") == 5
        assert inventory.stock_of("B") == 5

    @pytest.mark.parametrize("hang", [False, True])
    def test_failed_rollback_still_rejects(self, shop_factory, hang):
        inventory = BrokenReleaseInventory(
            stock_by_product={"A": 5, "B": 5}, victim="B", hang=hang
        )
        shop = shop_factory(
            {"A": 5, "B": 5}, inventory=inventory, decrement_timeout=0.05
        )
        cart = make_cart(("A", 2), ("B", 1))
        attempt = shop.service.begin(cart, "c-1")

        outcome = asyncio.run(asyncio.wait_for(attempt.run(), timeout=5))

        assert isinstance(outcome, CheckoutRejected)
        assert attempt.state is CheckoutState.REJECTED
        assert cart.quantity_of(A) == 2
        assert asyncio.run(shop.orders.list(0, 10)).unwrap() == ()


class TestPartial:
    def test_partial_line_reserves_available_units(self, shop_factory):
        shop = shop_factory({"A": 5, "B": 1})
        cart = make_cart(("A", 2), ("B", 3))

        outcome = asyncio.run(shop.service.checkout(cart, "c-1", PARTIAL))

        assert isinstance(outcome, PartiallyCommitted)
        assert outcome.order.quantity_of(A) == 2
        assert outcome.order.quantity_of(B) == 1
        assert outcome.failed_lines == (
            LineRejection(B, RejectReason.OUT_OF_STOCK, requested=3, available=1),
        )
        assert shop.inventory.stock_of("B") == 0
        assert [(ln.product_id, ln.quantity) for ln in cart.lines()] == [(B, 2)]

    def test_rejected_lines_stay_in_cart(self, shop_factory):
        shop = shop_factory({"A": 5, "B": 0})
        cart = make_cart(("A", 1), ("B", 1), ("Z", 2))

        outcome = asyncio.run(shop.service.checkout(cart, "c-1", PARTIAL))

        assert isinstance(outcome, PartiallyCommitted)
        assert [r.product_id.value for r in outcome.failed_lines] == ["B", "Z"]
        assert [ln.product_id.value for ln in cart.lines()] == ["B", "Z"]

    def test_lost_race_keeps_successful_lines(self, shop_factory):
        inventory = DepletingInventory(stock_by_product={"A": 5, "B": 5}, victim="B")
        shop = shop_factory({"A": 5, "B": 5}, inventory=inventory)
        cart = make_cart(("A", 2), ("B", 1))

        outcome = asyncio.run(shop.service.checkout(cart, "c-1", PARTIAL))

        assert isinstance(outcome, PartiallyCommitted)
        assert outcome.order.quantity_of(A) == 2
        assert outcome.order.quantity_of(B) == 0
        assert inventory.stock_of("A") == 3
        assert [(ln.product_id, ln.quantity) for ln in cart.lines()] == [(B, 1)]

    def test_nothing_reservable_is_rejected(self, shop_factory):
        shop = shop_factory({"A": 0})

        outcome = asyncio.run(
            shop.service.checkout(make_cart(("A", 1)), "c-1", PARTIAL)
        )

        assert isinstance(outcome, CheckoutRejected)

    def test_all_decrements_lost_is_rejected(self, shop_factory):
        inventory = DepletingInventory(stock_by_product={"A": 5}, victim="A")
        shop = shop_factory({"A": 5}, inventory=inventory)

        outcome = asyncio.run(
            shop.service.checkout(make_cart(("A", 1)), "c-1", PARTIAL)
        )

        assert isinstance(outcome, CheckoutRejected)
        assert asyncio.run(shop.orders.list(0, 10)).unwrap() == ()

    def test_fully_satisfied_cart_still_commits(self, shop_factory):
        shop = shop_factory({"A": 5})
        cart = make_cart(("A", 5))

        outcome = asyncio.run(shop.service.checkout(cart, "c-1", PARTIAL))

        assert isinstance(outcome, Committed)
        assert cart.is_empty()


    def test_late_decrement_of_a_dropped_line_is_released(self, shop_factory):
        inventory = LaggingInventory(stock_by_product={"A": 5, "B": 5}, lag={"B": 0.3})
        shop = shop_factory(
            {"A": 5, "B": 5}, inventory=inventory, decrement_timeout=0.05
        )

        async def scenario():
            outcome = await shop.service.checkout(
                make_cart(("A", 2), ("B", 1)), "c-1", PARTIAL
            )
            await shop.service.drain()
            return outcome

        outcome = asyncio.run(scenario())

        assert isinstance(outcome, PartiallyCommitted)
        assert outcome.order.quantity_of(B) == 0
        assert inventory.stock_of("A") == 3
        assert inventory.stock_of("B") == 5


class TestInputValidation:
    def test_empty_cart(self, shop_factory):
        shop = shop_factory({"A": 5})
        with pytest.raises(ValidationError):
            asyncio.run(shop.service.checkout(make_cart(), "c-1"))

    def test_blank_customer(self, shop_factory):
        shop = shop_factory({"A": 5})
        with pytest.raises(ValidationError):
            asyncio.run(shop.service.checkout(make_cart(("A", 1)), "  "))


class TestAttemptLifecycle:
    def test_states_end_in_committed(self, shop_factory):
        shop = shop_factory({"A": 5})
        attempt = shop.service.begin(make_cart(("A", 1)), "c-1")

        assert attempt.state is CheckoutState.IDLE
        outcome = asyncio.run(attempt.run())

        assert attempt.state is CheckoutState.COMMITTED
        assert attempt.outcome is outcome

    def test_attempt_runs_only_once(self, shop_factory):
        shop = shop_factory({"A": 5})
        attempt = shop.service.begin(make_cart(("A", 1)), "c-1")
        asyncio.run(attempt.run())

        with pytest.raises(CheckoutInProgress):
            asyncio.run(attempt.run())
        assert shop.inventory.stock_of("A") == 4

    def test_cancel_before_run(self, shop_factory):
        shop = shop_factory({"A": 5})
        cart = make_cart(("A", 1))
        attempt = shop.service.begin(cart, "c-1")

        assert isinstance(attempt.cancel(), Success)
        outcome = asyncio.run(attempt.run())

        assert outcome == CheckoutCancelled()
        assert attempt.state is CheckoutState.CANCELLED
        assert shop.inventory.stock_of("A") == 5
        assert cart.quantity_of(A) == 1

    def test_cancel_while_validating(self, shop_factory):
        inventory = InMemoryInventoryStore(stock_by_product={"A": 5}, latency=0.5)
        shop = shop_factory({"A": 5}, inventory=inventory)
        cart = make_cart(("A", 1))
        attempt = shop.service.begin(cart, "c-1")

        async def scenario():
            task = asyncio.ensure_future(attempt.run())
            await asyncio.sleep(0.01)
            assert attempt.state is CheckoutState.VALIDATING
            assert isinstance(attempt.cancel(), Success)
            return await task

        outcome = asyncio.run(scenario())

        assert outcome == CheckoutCancelled()
        assert inventory.stock_of("A") == 5
        assert cart.quantity_of(A) == 1

    def test_cancel_while_reserving_is_refused(self, shop_factory):
        inventory = GatedInventory(stock_by_product={"A": 5})
        shop = shop_factory({"A": 5}, inventory=inventory)
        cart = make_cart(("A", 2))
        attempt = shop.service.begin(cart, "c-1")

        async def scenario():
            inventory.gate = asyncio.Event()
            task = asyncio.ensure_future(attempt.run())
            for _ in range(1000):
                if attempt.state is CheckoutState.RESERVING:
                    break
                await asyncio.sleep(0)
            assert attempt.state is CheckoutState.RESERVING

            refused = attempt.cancel()
            inventory.gate.set()
            return refused, await task

        refused, outcome = asyncio.run(scenario())

        assert isinstance(refused, Failure)
        assert isinstance(refused.failure(), CheckoutInProgress)
        assert isinstance(outcome, Committed)
        assert inventory.stock_of("A") == 3

    def test_reserving_survives_task_cancellation(self, shop_factory):
        inventory = GatedInventory(stock_by_product={"A": 5})
        shop = shop_factory({"A": 5}, inventory=inventory)
        cart = make_cart(("A", 2))
        attempt = shop.service.begin(cart, "c-1")

        async def scenario():
            inventory.gate = asyncio.Event()
            task = asyncio.ensure_future(attempt.run())
            for _ in range(1000):
                if attempt.state is CheckoutState.RESERVING:
                    break
                await asyncio.sleep(0)

            task.cancel()
            inventory.gate.set()
            with pytest.raises(asyncio.CancelledError):
                await task
            for _ in range(1000):
                if attempt.state is CheckoutState.COMMITTED:
                    break
                await asyncio.sleep(0)

        asyncio.run(scenario())

        assert attempt.state is CheckoutState.COMMITTED
        assert inventory.stock_of("A") == 3
        assert cart.is_empty()

    def test_lines_added_while_reserving_stay_in_cart(self, shop_factory):
        inventory = GatedInventory(stock_by_product={"A": 5, "B": 5})
        shop = shop_factory({"A": 5, "B": 5}, inventory=inventory)
        cart = make_cart(("A", 2))
        attempt = shop.service.begin(cart, "c-1")

        async def scenario():
            inventory.gate = asyncio.Event()
            task = asyncio.ensure_future(attempt.run())
            for _ in range(1000):
                if attempt.state is CheckoutState.RESERVING:
                    break
                await asyncio.sleep(0)
            assert attempt.state is CheckoutState.RESERVING

            cart.add_or_increment(B, 1)
            cart.add_or_increment(A, 1)
            inventory.gate.set()
            return await task

        outcome = asyncio.run(scenario())

        assert isinstance(outcome, Committed)
        assert outcome.order.quantity_of(A) == 2
        assert outcome.order.quantity_of(B) == 0
        assert cart.quantity_of(A) == 1
        assert cart.quantity_of(B) == 1
        assert inventory.stock_of("B") == 5

    def test_cancel_after_finish_is_refused(self, shop_factory):
        shop = shop_factory({"A": 5})
        attempt = shop.service.begin(make_cart(("A", 1)), "c-1")
        asyncio.run(attempt.run())

        refused = attempt.cancel()

        assert isinstance(refused, Failure)
        assert isinstance(refused.failure(), CheckoutInProgress)


def test_service_unavailable_error_names_the_service():
    err = ServiceUnavailable("down", service="inventory")
    assert str(err) == "service_unavailable: inventory (down)"
