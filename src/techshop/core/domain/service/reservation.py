"""Reconciliation of cart lines against an inventory snapshot.

Everything here is pure: the same lines and snapshot always give the same
results, so the checkout coordinator may re-run it freely.
"""

from __future__ import annotations

from typing import Mapping, Sequence, Tuple

from techshop.core.domain.model.cart import CartLine
from techshop.core.domain.model.order import ProductId
from techshop.core.domain.model.reservation import (
    LineRejection,
    PartiallySatisfied,
    PlannedReservation,
    RejectReason,
    Rejected,
    ReservationResult,
    Satisfied,
)

InventorySnapshot = Mapping[ProductId, int]


def reconcile_line(line: CartLine, snapshot: InventorySnapshot) -> ReservationResult:
    stock = snapshot.get(line.product_id)
    if stock is None:
        return Rejected(line.product_id, line.quantity, RejectReason.NOT_FOUND)
    if stock >= line.quantity:
        return Satisfied(line.product_id, line.quantity)
    if stock > 0:
        return PartiallySatisfied(line.product_id, line.quantity, stock)
    return Rejected(line.product_id, line.quantity, RejectReason.OUT_OF_STOCK)


def reconcile(
    lines: Sequence[CartLine], snapshot: InventorySnapshot
) -> Tuple[ReservationResult, ...]:
    return tuple(reconcile_line(ln, snapshot) for ln in lines)


def plan_reservations(
    results: Sequence[ReservationResult], allow_partial: bool
) -> Tuple[Tuple[PlannedReservation, ...], Tuple[LineRejection, ...]]:
    """Split reconciliation results into what to reserve and what to refuse.

    Without ``allow_partial`` a line that can only be partly served is refused
    as out of stock. With it, the available units are reserved instead.
    """
    planned: list[PlannedReservation] = []
    rejections: list[LineRejection] = []

    for r in results:
        if isinstance(r, Satisfied):
            planned.append(PlannedReservation(r.product_id, r.quantity, r.quantity))
        elif isinstance(r, PartiallySatisfied):
            if allow_partial:
                planned.append(
                    PlannedReservation(r.product_id, r.requested, r.available)
                )
            else:
                rejections.append(
                    LineRejection(
                        r.product_id,
                        RejectReason.OUT_OF_STOCK,
                        requested=r.requested,
                        available=r.available,
                    )
                )
        else:
            rejections.append(
                LineRejection(
                    r.product_id,
                    r.reason,
                    requested=r.requested,
                    available=0 if r.reason is RejectReason.OUT_OF_STOCK else None,
                )
            )

    return tuple(planned), tuple(rejections)
