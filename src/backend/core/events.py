"""
Application lifecycle event handlers.

Manages startup and shutdown tasks for the Cosmos DB connection, the
per-application repository and cache, and the background scheduler.
"""

from typing import Callable

import structlog
from fastapi import FastAPI

from core.config import settings
from db.cosmos_session import close_cosmos, init_cosmos
from repositories.provider import create_product_vote_repository, is_cosmos_enabled
from services.cache_service import CacheService

logger = structlog.get_logger(__name__)


def create_start_app_handler(app: FastAPI) -> Callable:
    """Create startup event handler."""

    async def start_app() -> None:
        logger.info("Starting ProductScout API...")

        if is_cosmos_enabled():
            await init_cosmos()
            logger.info("Cosmos DB initialized")

        # Tests install their own repository and cache before startup
        if getattr(app.state, "product_vote_repository", None) is None:
            app.state.product_vote_repository = create_product_vote_repository()
        if getattr(app.state, "cache", None) is None:
            app.state.cache = CacheService(default_ttl_seconds=settings.CACHE_TTL_SECONDS)

        try:
            from services.background_scheduler import start_scheduler

            if await start_scheduler(app.state.product_vote_repository, app.state.cache):
                logger.info("Background scheduler started successfully")
        except Exception as e:
            logger.exception("Failed to start background scheduler", error=str(e))
            logger.warning("Product enrichment will only run on demand")

        logger.info("ProductScout API started successfully")

    return start_app


def create_stop_app_handler(app: FastAPI) -> Callable:
    """Create shutdown event handler."""

    async def stop_app() -> None:
        logger.info("Shutting down ProductScout API...")

        try:
            from services.background_scheduler import stop_scheduler

            await stop_scheduler()
        except Exception as e:
            logger.warning(f"Background scheduler cleanup failed: {e}")

        if is_cosmos_enabled():
            await close_cosmos()
            logger.info("Cosmos DB connection closed")

        logger.info("ProductScout API shutdown complete")

    return stop_app
