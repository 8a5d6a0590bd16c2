from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, List, Tuple

from techshop.core.domain.model.errors import InvalidQuantity
from techshop.core.domain.model.order import ProductId, now_utc


@dataclass(frozen=True)
class CartLine:
    product_id: ProductId
    quantity: int
    known_stock: int | None = None


@dataclass(frozen=True)
class CartOperation:
    op: str  # add | set | remove | clear
    product_id: ProductId | None
    quantity: int
    at: datetime


@dataclass
class Cart:
    """Client-held cart owned by one session.

    Lines keep insertion order, which is also the display order. The cart
    never talks to inventory; ``known_stock`` is only what the client last
    saw and may be stale by checkout time.
    """

    _lines: Dict[ProductId, CartLine] = field(default_factory=dict)
    _history: List[CartOperation] = field(default_factory=list)

    def add_or_increment(
        self,
        product_id: ProductId,
        quantity: int = 1,
        known_stock: int | None = None,
    ) -> CartLine:
        _require_int(product_id, quantity)
        current = self._lines.get(product_id)
        new_quantity = quantity if current is None else current.quantity + quantity
        if new_quantity <= 0:
            raise InvalidQuantity(
                message="resulting quantity must be > 0",
                product_id=product_id.value,
                quantity=new_quantity,
            )

        stock = known_stock
        if stock is None and current is not None:
            stock = current.known_stock
        if stock is not None and new_quantity > stock:
            raise InvalidQuantity(
                message=f"only {stock} in stock",
                product_id=product_id.value,
                quantity=new_quantity,
            )

        if current is None:
            line = CartLine(product_id, new_quantity, stock)
        else:
            line = replace(current, quantity=new_quantity, known_stock=stock)
        self._lines[product_id] = line
        self._record("add", product_id, quantity)
        return line

    def set_quantity(self, product_id: ProductId, quantity: int) -> CartLine | None:
        _require_int(product_id, quantity)
        if quantity < 0:
            raise InvalidQuantity(
                message="quantity must be >= 0",
                product_id=product_id.value,
                quantity=quantity,
            )
        if quantity == 0:
            self.remove(product_id)
            return None

        current = self._lines.get(product_id)
        if current is None:
            line = CartLine(product_id, quantity)
        else:
            if current.known_stock is not None and quantity > current.known_stock:
                raise InvalidQuantity(
                    message=f"only {current.known_stock} in stock",
                    product_id=product_id.value,
                    quantity=quantity,
                )
            line = replace(current, quantity=quantity)
        self._lines[product_id] = line
        self._record("set", product_id, quantity)
        return line

    def remove(self, product_id: ProductId) -> None:
        if self._lines.pop(product_id, None) is not None:
            self._record("remove", product_id, 0)

    def clear(self) -> None:
        self._lines.clear()
        self._record("clear", None, 0)

    def lines(self) -> Tuple[CartLine, ...]:
        return tuple(self._lines.values())

    def quantity_of(self, product_id: ProductId) -> int:
        line = self._lines.get(product_id)
        return 0 if line is None else line.quantity

    def is_empty(self) -> bool:
        return not self._lines

    def history(self) -> Tuple[CartOperation, ...]:
        return tuple(self._history)

    def __len__(self) -> int:
        return len(self._lines)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._lines

    def _record(self, op: str, product_id: ProductId | None, quantity: int) -> None:
        self._history.append(CartOperation(op, product_id, quantity, now_utc()))


def _require_int(product_id: ProductId, quantity: object) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantity(
            message="quantity must be an integer",
            product_id=product_id.value,
            quantity=0,
        )
