from __future__ import annotations

import logging
from typing import Any, AsyncContextManager, Callable

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from returns.result import Success

from techshop.adapters.inbound.web.schemas import (
    CartLineOut,
    CategoryOut,
    CheckoutRequest,
    CheckoutResponse,
    ErrorResponse,
    LineRejectionOut,
    OrderListResponse,
    OrderOut,
    OrderSummaryOut,
    ProductOut,
)
from techshop.core.domain.model.cart import Cart
from techshop.core.domain.model.errors import (
    CheckoutError,
    CheckoutInProgress,
    OrderNotFound,
    OutOfStock,
    ProductNotFound,
    PublishError,
    ServiceUnavailable,
    ValidationError,
)
from techshop.core.domain.model.order import ProductId
from techshop.core.domain.model.reservation import RejectReason
from techshop.core.ports.inbound.browse_catalog import (
    BrowseCatalogUseCase,
    SearchProductsQuery,
)
from techshop.core.ports.inbound.checkout import (
    CheckoutOptions,
    CheckoutOutcome,
    CheckoutRejected,
    CheckoutUseCase,
    Committed,
    PartiallyCommitted,
)
from techshop.core.ports.inbound.order_queries import (
    GetOrderQuery,
    ListOrdersQuery,
    OrderQueryUseCase,
)

logger = logging.getLogger(__name__)

# first match wins, so subclasses go before their bases
_STATUS_BY_ERROR: tuple[tuple[type[CheckoutError], int], ...] = (
    (ValidationError, 400),
    (ProductNotFound, 404),
    (OrderNotFound, 404),
    (OutOfStock, 409),
    (CheckoutInProgress, 409),
    (ServiceUnavailable, 503),
    (PublishError, 503),
)


def http_status_for(err: CheckoutError) -> int:
    for kind, status in _STATUS_BY_ERROR:
        if isinstance(err, kind):
            return status
    return 500


def checkout_status_for(outcome: CheckoutOutcome) -> int:
    if isinstance(outcome, (Committed, PartiallyCommitted)):
        return 201
    if isinstance(outcome, CheckoutRejected) and all(
        r.reason is RejectReason.SERVICE_UNAVAILABLE for r in outcome.rejections
    ):
        return 503
    return 409


def _checkout_response(outcome: CheckoutOutcome, cart: Cart) -> CheckoutResponse:
    remaining = CartLineOut.many(cart.lines())
    if isinstance(outcome, Committed):
        return CheckoutResponse(
            status="committed",
            order=OrderOut.from_order(outcome.order),
            remaining_cart=remaining,
        )
    if isinstance(outcome, PartiallyCommitted):
        return CheckoutResponse(
            status="partially_committed",
            order=OrderOut.from_order(outcome.order),
            failed_lines=LineRejectionOut.many(outcome.failed_lines),
            remaining_cart=remaining,
        )
    if isinstance(outcome, CheckoutRejected):
        return CheckoutResponse(
            status="rejected",
            failed_lines=LineRejectionOut.many(outcome.rejections),
            remaining_cart=remaining,
        )
    return CheckoutResponse(status="cancelled", remaining_cart=remaining)


# ---- routers -------------------------------------------------------------------


def catalog_router(browse_uc: BrowseCatalogUseCase) -> APIRouter:
    router = APIRouter(tags=["catalog"])

    @router.get("/categories", response_model=list[CategoryOut])
    async def list_categories() -> Any:
        result = await browse_uc.list_categories()
        if isinstance(result, Success):
            return [CategoryOut.from_domain(c) for c in result.unwrap()]
        raise result.failure()

    @router.get("/products", response_model=list[ProductOut])
    async def search_products(search: str = Query("")) -> Any:
        result = await browse_uc.search_products(SearchProductsQuery(text=search))
        if isinstance(result, Success):
            return [ProductOut.from_domain(p) for p in result.unwrap()]
        raise result.failure()

    @router.get("/products/grouped", response_model=dict[str, list[ProductOut]])
    async def products_by_category(search: str = Query("")) -> Any:
        result = await browse_uc.products_by_category(SearchProductsQuery(text=search))
        if isinstance(result, Success):
            return {
                category: [ProductOut.from_domain(p) for p in products]
                for category, products in result.unwrap().items()
            }
        raise result.failure()

    @router.get(
        "/products/{product_id}",
        response_model=ProductOut,
        responses={404: {"model": ErrorResponse}},
    )
    async def get_product(product_id: str) -> Any:
        result = await browse_uc.get_product(product_id)
        if isinstance(result, Success):
            return ProductOut.from_domain(result.unwrap())
        raise result.failure()

    return router


def checkout_router(
    checkout_uc: CheckoutUseCase, default_options: CheckoutOptions
) -> APIRouter:
    router = APIRouter(tags=["checkout"])

    @router.post(
        "/checkout",
        response_model=CheckoutResponse,
        status_code=201,
        responses={
            400: {"model": ErrorResponse},
            409: {"model": CheckoutResponse},
            503: {"model": CheckoutResponse},
        },
    )
    async def checkout(req: CheckoutRequest) -> Any:
        cart = Cart()
        for line in req.lines:
            cart.add_or_increment(ProductId(line.product_id), line.quantity)

        options = default_options
        if req.allow_partial is not None:
            options = CheckoutOptions(allow_partial=req.allow_partial)

        outcome = await checkout_uc.checkout(cart, req.customer_id, options)
        return JSONResponse(
            status_code=checkout_status_for(outcome),
            content=_checkout_response(outcome, cart).model_dump(),
        )

    return router


def orders_router(order_uc: OrderQueryUseCase) -> APIRouter:
    router = APIRouter(prefix="/orders", tags=["orders"])

    @router.get(
        "",
        response_model=OrderListResponse,
        responses={400: {"model": ErrorResponse}},
    )
    async def list_orders(
        offset: int = Query(0, ge=0),
        limit: int = Query(50, ge=1, le=100),
        customer_id: str | None = Query(None, min_length=1),
        sort_by: str = Query("created_at"),
        sort_dir: str = Query("desc"),
    ) -> Any:
        query = ListOrdersQuery(offset, limit, customer_id, sort_by, sort_dir)
        result = await order_uc.list_orders(query)
        if isinstance(result, Success):
            return OrderListResponse(
                offset=offset,
                limit=limit,
                items=[OrderSummaryOut.from_view(v) for v in result.unwrap()],
            )
        raise result.failure()

    @router.get(
        "/{order_id}",
        response_model=OrderOut,
        responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    )
    async def get_order(order_id: str) -> Any:
        result = await order_uc.get_order(GetOrderQuery(order_id=order_id))
        if isinstance(result, Success):
            return OrderOut.from_view(result.unwrap())
        raise result.failure()

    return router


# ---- app factory ---------------------------------------------------------------


def create_app(
    checkout_uc: CheckoutUseCase,
    browse_uc: BrowseCatalogUseCase,
    order_uc: OrderQueryUseCase,
    default_options: CheckoutOptions = CheckoutOptions(),
    lifespan: Callable[[FastAPI], AsyncContextManager[None]] | None = None,
) -> FastAPI:
    app = FastAPI(title="techshop", lifespan=lifespan)

    @app.exception_handler(CheckoutError)
    async def handle_domain_error(_: Request, exc: CheckoutError) -> JSONResponse:
        body = ErrorResponse(type=type(exc).__name__, message=str(exc))
        return JSONResponse(status_code=http_status_for(exc), content=body.model_dump())

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        _: Request, exc: RequestValidationError
    ) -> JSONResponse:
        body = ErrorResponse(
            type="RequestValidationError",
            message="invalid request",
            details=[{"loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()],
        )
        return JSONResponse(status_code=400, content=body.model_dump())

    @app.exception_handler(Exception)
    async def handle_unexpected(_: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled error")
        body = ErrorResponse(type=type(exc).__name__, message="internal server error")
        return JSONResponse(status_code=500, content=body.model_dump())

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(catalog_router(browse_uc))
    app.include_router(checkout_router(checkout_uc, default_options))
    app.include_router(orders_router(order_uc))
    return app
