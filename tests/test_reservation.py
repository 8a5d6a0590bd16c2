import pytest

from techshop.core.domain.model.cart import CartLine
from techshop.core.domain.model.order import ProductId
from techshop.core.domain.model.reservation import (
    LineRejection,
    PartiallySatisfied,
    PlannedReservation,
    RejectReason,
    Rejected,
    Satisfied,
)
from techshop.core.domain.service.reservation import plan_reservations, reconcile

A = ProductId("A")
B = ProductId("B")
C = ProductId("C")
D = ProductId("D")


class TestReconcile:
    def test_missing_product_is_not_found(self):
        assert reconcile([CartLine(A, 1)], {}) == (
            Rejected(A, 1, RejectReason.NOT_FOUND),
        )

    def test_enough_stock_is_satisfied(self):
        assert reconcile([CartLine(A, 2)], {A: 5}) == (Satisfied(A, 2),)

    def test_exact_stock_is_satisfied(self):
        assert reconcile([CartLine(A, 5)], {A: 5}) == (Satisfied(A, 5),)

    def test_some_stock_is_partially_satisfied(self):
        assert reconcile([CartLine(B, 3)], {B: 1}) == (PartiallySatisfied(B, 3, 1),)

    @pytest.mark.parametrize("qty", [1, 2, 10, 1000])
    def test_zero_stock_is_out_of_stock(self, qty):
        assert reconcile([CartLine(A, qty)], {A: 0}) == (
            Rejected(A, qty, RejectReason.OUT_OF_STOCK),
        )

    def test_one_result_per_line_in_order(self):
        lines = [CartLine(C, 1), CartLine(A, 4), CartLine(D, 1), CartLine(B, 1)]
        snapshot = {A: 2, B: 0, C: 9}

        assert reconcile(lines, snapshot) == (
            Satisfied(C, 1),
            PartiallySatisfied(A, 4, 2),
            Rejected(D, 1, RejectReason.NOT_FOUND),
            Rejected(B, 1, RejectReason.OUT_OF_STOCK),
        )

    def test_is_deterministic(self):
        lines = [CartLine(A, 3), CartLine(B, 1), CartLine(C, 2)]
        snapshot = {A: 1, B: 0}

        assert reconcile(lines, snapshot) == reconcile(lines, snapshot)

    def test_does_not_touch_inputs(self):
        lines = [CartLine(A, 3)]
        snapshot = {A: 1}
        reconcile(lines, snapshot)

        assert snapshot == {A: 1}
        assert lines == [CartLine(A, 3)]


class TestPlanReservations:
    results = (
        Satisfied(A, 2),
        PartiallySatisfied(B, 3, 1),
        Rejected(C, 1, RejectReason.OUT_OF_STOCK),
        Rejected(D, 4, RejectReason.NOT_FOUND),
    )

    def test_all_or_nothing_refuses_partial_lines(self):
        planned, rejections = plan_reservations(self.results, allow_partial=False)

        assert planned == (PlannedReservation(A, 2, 2),)
        assert rejections == (
            LineRejection(B, RejectReason.OUT_OF_STOCK, requested=3, available=1),
            LineRejection(C, RejectReason.OUT_OF_STOCK, requested=1, available=0),
            LineRejection(D, RejectReason.NOT_FOUND, requested=4, available=None),
        )

    def test_allow_partial_reserves_what_is_available(self):
        planned, rejections = plan_reservations(self.results, allow_partial=True)

        assert planned == (PlannedReservation(A, 2, 2), PlannedReservation(B, 3, 1))
        assert [r.product_id for r in rejections] == [C, D]

    def test_everything_satisfied_has_no_rejections(self):
        planned, rejections = plan_reservations(
            (Satisfied(A, 1), Satisfied(B, 2)), allow_partial=False
        )

        assert len(planned) == 2
        assert rejections == ()
