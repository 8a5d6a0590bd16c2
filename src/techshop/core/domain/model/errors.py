from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class CheckoutError(Exception):
    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ValidationError(CheckoutError):
    pass


@dataclass(frozen=True)
class InvalidQuantity(ValidationError):
    product_id: str
    quantity: int

    def __str__(self) -> str:
        return (
            f"invalid_quantity: product={self.product_id} "
            f"quantity={self.quantity} ({self.message})"
        )


@dataclass(frozen=True)
class ProductNotFound(CheckoutError):
    product_id: str

    def __str__(self) -> str:
        return f"product_not_found: {self.product_id} ({self.message})"


@dataclass(frozen=True)
class OutOfStock(CheckoutError):
    product_id: str

    def __str__(self) -> str:
        return f"out_of_stock: product={self.product_id} ({self.message})"


@dataclass(frozen=True)
class InsufficientStock(OutOfStock):
    """Conditional decrement refused: fewer units remain than requested."""

    requested: int = 0

    def __str__(self) -> str:
        return (
            f"insufficient_stock: product={self.product_id} "
            f"requested={self.requested} ({self.message})"
        )


@dataclass(frozen=True)
class CheckoutInProgress(CheckoutError):
    pass


@dataclass(frozen=True)
class ServiceUnavailable(CheckoutError):
    service: str

    def __str__(self) -> str:
        return f"service_unavailable: {self.service} ({self.message})"


@dataclass(frozen=True)
class PersistenceError(CheckoutError):
    pass


@dataclass(frozen=True)
class OrderNotFound(PersistenceError):
    order_id: str

    def __str__(self) -> str:
        return f"order_not_found: {self.order_id} ({self.message})"


@dataclass(frozen=True)
class PublishError(CheckoutError):
    pass
