"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from config.settings import settings
from sltax.api.routes import router
from sltax.db.session import close_pool, get_pool
from sltax.rate_cache import RateTableCache
from sltax.settings_sources import build_settings_provider

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: connect the settings store and load rates. Shutdown: close pool."""
    logging.basicConfig(level=settings.log_level)
    logger.info("Starting up...")

    pool = await get_pool() if settings.settings_source == "postgres" else None
    provider = build_settings_provider(settings, pool)
    app.state.rate_cache = RateTableCache(provider, settings.rate_refresh_seconds)
    # An inconsistent rate table must stop startup rather than mis-tax requests.
    await app.state.rate_cache.load()

    yield

    logger.info("Shutting down...")
    await close_pool()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(title="Sierra Leone Tax Engine", lifespan=lifespan)
    app.include_router(router)
    return app
