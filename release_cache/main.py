"""
Application wiring for the release cache.

The FastAPI lifespan owns the process-wide CacheManager and its janitor:
both are created on startup, exposed on ``app.state`` and released on
shutdown. Route handlers get the manager through ``get_cache_manager``.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request

from .core.config import Settings, get_settings
from .core.logging import configure_logging
from .services.cache.cache_manager import CacheManager
from .services.cache.janitor import CacheJanitor

logger = structlog.get_logger()


def build_lifespan(
    settings: Optional[Settings] = None, cache_manager: Optional[CacheManager] = None
):
    """Create a lifespan handler bound to ``settings``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_settings = settings or get_settings()
        manager = cache_manager
        if manager is None:
            manager = CacheManager(settings=app_settings)
        await manager.distributed.ensure_initialized()

        janitor = None
        if app_settings.CACHE_CLEANUP_ENABLED:
            janitor = CacheJanitor(manager, interval=app_settings.CACHE_CLEANUP_INTERVAL)
            janitor.start()

        app.state.cache_manager = manager
        app.state.cache_janitor = janitor

        logger.info(
            "Release cache started",
            environment=app_settings.ENVIRONMENT,
            redis_state=manager.distributed.state.value,
            janitor=janitor is not None,
        )

        try:
            yield
        finally:
            logger.info("Shutting down release cache")
            if janitor is not None:
                await janitor.stop()
            await manager.close()
            app.state.cache_janitor = None

    return lifespan


def create_app(
    settings: Optional[Settings] = None, cache_manager: Optional[CacheManager] = None
) -> FastAPI:
    """Create a FastAPI application that owns the cache lifecycle."""
    settings = settings or get_settings()
    configure_logging(settings)
    return FastAPI(
        title="Release Cache",
        lifespan=build_lifespan(settings, cache_manager),
    )


def get_cache_manager(request: Request) -> CacheManager:
    """FastAPI dependency returning the application's CacheManager."""
    return request.app.state.cache_manager
