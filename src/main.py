"""Main FastAPI application entry point."""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.middleware import api_key_middleware, request_logging_middleware
from src.api.routes import contracts_router
from src.config.settings import Settings, load_settings
from src.utils.logging import configure_logging, get_logger
from src.workers.contract_pipeline import ContractPollerWorker, build_pipeline

logger = get_logger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Application lifespan manager."""
    settings: Settings = app.state.settings
    logger.info("Starting Contract Intake API", env=settings.app.env)

    poller_task: Optional[asyncio.Task] = None
    poller: Optional[ContractPollerWorker] = None
    if settings.admin.poller_enabled:
        poller = ContractPollerWorker(build_pipeline, settings.gmail.poll_interval_seconds)
        poller_task = asyncio.create_task(poller.run())
        logger.info("Contract poller started in background")

    app.state.poller_running = poller_task is not None
    yield

    if poller and poller_task:
        await poller.stop()
        poller_task.cancel()
        try:
            await poller_task
        except asyncio.CancelledError:
            logger.info("Contract poller stopped")

    logger.info("Application shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the API application."""
    settings = settings or load_settings()
    configure_logging(settings.app)

    app = FastAPI(
        title="Contract Intake",
        description="Purchase agreement extraction results backed by Google Sheets",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.admin.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    # Last added runs first: logging wraps auth
    app.middleware("http")(api_key_middleware)
    app.middleware("http")(request_logging_middleware)

    app.include_router(contracts_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Basic health check."""
        return {
            "status": "healthy",
            "version": VERSION,
            "poller": "running" if getattr(app.state, "poller_running", False) else "stopped",
        }

    return app


if __name__ == "__main__":
    import uvicorn

    _settings = load_settings()
    uvicorn.run(
        "src.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=_settings.admin.port,
        reload=_settings.app.debug,
        log_level=_settings.app.log_level.lower(),
    )
