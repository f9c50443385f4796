"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import get_settings
from app.core.exceptions import register_exception_handlers
from app.core.health import router as health_router
from app.core.logging import configure_logging, get_logger
from app.core.middleware import RequestIdMiddleware
from app.features.alias.client import close_alias_client
from app.features.alias.routes import router as alias_router
from app.features.fx.routes import router as fx_router
from app.features.inventory.routes import router as inventory_router
from app.features.inventory.routes import sales_router
from app.features.market.routes import router as market_router
from app.features.pricing.routes import router as pricing_router
from app.features.sku.routes import router as sku_router
from app.features.stockx.client import close_stockx_clients
from app.features.sync_queue.routes import router as sync_router

logger = get_logger(__name__)

DESCRIPTION = """
Inventory, sales and market pricing for sneaker resellers.

- **inventory / sales**: items held, mark-sold with an FX snapshot, realised P&L
- **market**: StockX and Alias asks, bids and last sales per size
- **pricing**: one market price per item reconciled across providers
- **sync**: queued provider refreshes with retry and backoff
- **alias**: catalog matching and signed webhooks
"""


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging on startup and close provider HTTP clients on shutdown."""
    settings = get_settings()

    configure_logging()
    logger.info(
        "app.startup_started",
        app_name=settings.app_name,
        app_env=settings.app_env,
        base_currency=settings.base_currency,
    )

    yield

    await close_stockx_clients()
    await close_alias_client()
    logger.info("app.shutdown_completed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=DESCRIPTION,
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # First added = outermost
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"]
        if settings.is_development
        else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(sku_router)
    app.include_router(fx_router)
    app.include_router(pricing_router)
    app.include_router(market_router)
    app.include_router(inventory_router)
    app.include_router(sales_router)
    app.include_router(sync_router)
    app.include_router(alias_router)

    return app


app = create_app()
