from __future__ import annotations

import json
from typing import Any

from techshop.core.domain.model.cart import Cart
from techshop.core.domain.model.errors import CheckoutError
from techshop.core.domain.model.order import ProductId
from techshop.core.ports.inbound.checkout import (
    CheckoutOptions,
    CheckoutRejected,
    CheckoutUseCase,
    Committed,
    PartiallyCommitted,
)


async def run_cli(
    usecase: CheckoutUseCase,
    raw: str,
    default_options: CheckoutOptions = CheckoutOptions(),
) -> int:
    """
    raw: JSON string.
    Example:
      {"customer_id":"c-1","allow_partial":false,
       "lines":[{"product_id":"p-1001","quantity":2}]}
    """
    try:
        payload = json.loads(raw)
        customer_id, cart, options = _parse_payload(payload, default_options)
    except (ValueError, KeyError, TypeError, CheckoutError) as e:
        print(f"invalid_input: {e}")
        return 2

    try:
        outcome = await usecase.checkout(cart, customer_id, options)
    except CheckoutError as e:
        print("[ng]", str(e))
        return 1

    if isinstance(outcome, Committed):
        order = outcome.order
        print(
            "[ok]",
            {
                "order_id": str(order.order_id.value),
                "customer_id": order.customer_id.value,
                "total": str(order.total().amount),
                "currency": order.total().currency,
            },
        )
        return 0

    if isinstance(outcome, PartiallyCommitted):
        order = outcome.order
        print(
            "[partial]",
            {
                "order_id": str(order.order_id.value),
                "bought": {ln.product_id.value: ln.quantity for ln in order.lines},
                "not_bought": {
                    r.product_id.value: r.reason.value for r in outcome.failed_lines
                },
            },
        )
        return 0

    if isinstance(outcome, CheckoutRejected):
        print(
            "[ng]",
            {r.product_id.value: r.reason.value for r in outcome.rejections},
        )
        return 1

    print("[ng] cancelled")
    return 1


def _parse_payload(
    payload: Any, default_options: CheckoutOptions
) -> tuple[str, Cart, CheckoutOptions]:
    if not isinstance(payload, dict):
        raise ValueError("payload must be a JSON object")
    cart = Cart()
    for x in payload.get("lines", []):
        cart.add_or_increment(ProductId(str(x["product_id"])), int(x["quantity"]))

    options = default_options
    if "allow_partial" in payload:
        options = CheckoutOptions(allow_partial=bool(payload["allow_partial"]))
    return str(payload.get("customer_id", "")), cart, options
