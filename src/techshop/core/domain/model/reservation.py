from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

from techshop.core.domain.model.order import ProductId


class RejectReason(str, Enum):
    NOT_FOUND = "not_found"
    OUT_OF_STOCK = "out_of_stock"
    INSUFFICIENT_STOCK = "insufficient_stock"
    SERVICE_UNAVAILABLE = "service_unavailable"


@dataclass(frozen=True)
class Satisfied:
    product_id: ProductId
    quantity: int


@dataclass(frozen=True)
class PartiallySatisfied:
    product_id: ProductId
    requested: int
    available: int


@dataclass(frozen=True)
class Rejected:
    product_id: ProductId
    requested: int
    reason: RejectReason


ReservationResult = Union[Satisfied, PartiallySatisfied, Rejected]


@dataclass(frozen=True)
class LineRejection:
    product_id: ProductId
    reason: RejectReason
    requested: int
    available: int | None = None


@dataclass(frozen=True)
class PlannedReservation:
    product_id: ProductId
    requested: int
    quantity: int
