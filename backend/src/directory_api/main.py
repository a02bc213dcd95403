"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from directory_api.config import get_settings
from directory_api.middleware.error_handler import register_exception_handlers
from directory_api.routers import sync
from directory_api.tasks.scheduler import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)


async def _recover_stale_syncs() -> None:
    """Fail runs left behind by a process that died mid-sync."""
    from directory_api.database import get_session_maker
    from directory_api.services.sync_service import SyncService

    try:
        await SyncService(get_session_maker()).recover_stale_locks()
    except Exception as e:
        logger.warning(f"Failed to recover stale sync locks: {type(e).__name__}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    await _recover_stale_syncs()
    await start_scheduler()
    yield
    # Shutdown
    await stop_scheduler()

    from directory_api.database import get_engine

    await get_engine().dispose()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    config = get_settings()

    app = FastAPI(
        title=config.app_name,
        version="0.1.0",
        description="HR Directory Sync API",
        lifespan=lifespan,
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
    )

    # Security: Sanitized error handlers to prevent information disclosure
    register_exception_handlers(app)

    app.include_router(sync.router, prefix="/api/sync", tags=["Sync"])

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()
