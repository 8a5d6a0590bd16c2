"""Wire shapes for the HTTP adapter. Money travels as decimal strings."""

from __future__ import annotations

from typing import Any, Sequence

from pydantic import BaseModel, Field

from techshop.core.domain.model.cart import CartLine
from techshop.core.domain.model.order import Order
from techshop.core.domain.model.product import Category, Product
from techshop.core.domain.model.reservation import LineRejection
from techshop.core.ports.inbound.order_queries import OrderSummaryView, OrderView

# ---- requests ----------------------------------------------------------------


class CartLineIn(BaseModel):
    product_id: str = Field(min_length=1, examples=["p-1001"])
    quantity: int = Field(gt=0, examples=[2])


class CheckoutRequest(BaseModel):
    customer_id: str = Field(min_length=1, examples=["c-1"])
    allow_partial: bool | None = Field(
        default=None, description="Overrides the server default when given."
    )
    lines: list[CartLineIn] = Field(min_length=1)


# ---- responses ---------------------------------------------------------------


class CategoryOut(BaseModel):
    category_id: str
    name: str
    description: str | None = None

    @classmethod
    def from_domain(cls, c: Category) -> "CategoryOut":
        return cls(category_id=c.category_id, name=c.name, description=c.description)


class ProductOut(BaseModel):
    product_id: str
    name: str
    price: str
    currency: str
    brand: str
    category: CategoryOut
    unit_in_stock: int
    description: str | None = None
    image: str | None = None

    @classmethod
    def from_domain(cls, p: Product) -> "ProductOut":
        return cls(
            product_id=p.product_id.value,
            name=p.name,
            price=str(p.price.amount),
            currency=p.price.currency,
            brand=p.brand,
            category=CategoryOut.from_domain(p.category),
            unit_in_stock=p.unit_in_stock,
            description=p.description,
            image=p.image,
        )


class OrderLineOut(BaseModel):
    product_id: str
    name: str
    unit_price: str
    quantity: int
    subtotal: str


class OrderOut(BaseModel):
    order_id: str
    customer_id: str
    created_at: str
    total: str
    currency: str
    lines: list[OrderLineOut]

    @classmethod
    def from_order(cls, order: Order) -> "OrderOut":
        total = order.total()
        return cls(
            order_id=str(order.order_id.value),
            customer_id=order.customer_id.value,
            created_at=order.created_at.isoformat(),
            total=str(total.amount),
            currency=total.currency,
            lines=[
                OrderLineOut(
                    product_id=ln.product_id.value,
                    name=ln.name,
                    unit_price=str(ln.unit_price.amount),
                    quantity=ln.quantity,
                    subtotal=str(ln.subtotal().amount),
                )
                for ln in order.lines
            ],
        )

    @classmethod
    def from_view(cls, view: OrderView) -> "OrderOut":
        return cls(
            order_id=str(view.order_id.value),
            customer_id=view.customer_id.value,
            created_at=view.created_at.isoformat(),
            total=str(view.total.amount),
            currency=view.total.currency,
            lines=[
                OrderLineOut(
                    product_id=ln.product_id,
                    name=ln.name,
                    unit_price=str(ln.unit_price.amount),
                    quantity=ln.quantity,
                    subtotal=str(ln.subtotal.amount),
                )
                for ln in view.lines
            ],
        )


class LineRejectionOut(BaseModel):
    product_id: str
    reason: str
    requested: int
    available: int | None = None

    @classmethod
    def many(cls, rejections: Sequence[LineRejection]) -> list["LineRejectionOut"]:
        return [
            cls(
                product_id=r.product_id.value,
                reason=r.reason.value,
                requested=r.requested,
                available=r.available,
            )
            for r in rejections
        ]


class CartLineOut(BaseModel):
    product_id: str
    quantity: int

    @classmethod
    def many(cls, lines: Sequence[CartLine]) -> list["CartLineOut"]:
        return [cls(product_id=ln.product_id.value, quantity=ln.quantity) for ln in lines]


class CheckoutResponse(BaseModel):
    status: str
    order: OrderOut | None = None
    failed_lines: list[LineRejectionOut] = Field(default_factory=list)
    remaining_cart: list[CartLineOut] = Field(default_factory=list)


class OrderSummaryOut(BaseModel):
    order_id: str
    customer_id: str
    created_at: str
    total: str
    currency: str
    line_count: int

    @classmethod
    def from_view(cls, v: OrderSummaryView) -> "OrderSummaryOut":
        return cls(
            order_id=str(v.order_id.value),
            customer_id=v.customer_id.value,
            created_at=v.created_at.isoformat(),
            total=str(v.total.amount),
            currency=v.total.currency,
            line_count=v.line_count,
        )


class OrderListResponse(BaseModel):
    offset: int
    limit: int
    items: list[OrderSummaryOut]


class ErrorResponse(BaseModel):
    type: str
    message: str
    details: list[dict[str, Any]] | None = None
