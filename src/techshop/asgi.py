from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from techshop.adapters.inbound.web.fastapi_app import create_app
from techshop.bootstrap import UseCases, build_usecases, configure_logging
from techshop.config import Settings


def create_asgi_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    usecases = build_usecases(settings)
    return _app_for(usecases)


def _app_for(usecases: UseCases) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        await usecases.startup()
        yield
        await usecases.shutdown()

    return create_app(
        usecases.checkout,
        usecases.browse_catalog,
        usecases.order_queries,
        default_options=usecases.default_options,
        lifespan=lifespan,
    )
