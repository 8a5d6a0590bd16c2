from __future__ import annotations

import asyncio
import sys

import uvicorn

from techshop.adapters.inbound.cli import run_cli
from techshop.bootstrap import build_usecases, configure_logging
from techshop.config import Settings


def main() -> None:
    settings = Settings.from_env()
    uvicorn.run(
        "techshop.asgi:create_asgi_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )


def cli_main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    if not argv:
        print("usage: techshop-checkout '<json>'")
        return 2

    settings = Settings.from_env()
    configure_logging(settings.log_level)
    usecases = build_usecases(settings)

    async def _run() -> int:
        await usecases.startup()
        try:
            return await run_cli(usecases.checkout, argv[0], usecases.default_options)
        finally:
            await usecases.shutdown()

    return asyncio.run(_run())


if __name__ == "__main__":
    raise SystemExit(cli_main())
