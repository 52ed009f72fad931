"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from printbroker import __version__
from printbroker.api.routes import (
    clients_router,
    health_router,
    jobs_router,
    print_router,
    storage_router,
)
from printbroker.config import get_settings
from printbroker.db import close_db, init_db
from printbroker.observability.logging import setup_logging
from printbroker.observability.metrics import setup_metrics
from printbroker.observability.tracing import instrument_fastapi, setup_tracing
from printbroker.storage import get_blob_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    setup_logging()
    setup_metrics()
    setup_tracing()
    await init_db()
    get_blob_store()

    if not get_settings().api_key:
        logger.warning("API_KEY not set; the API accepts unauthenticated requests")

    logger.info("Application started")

    yield

    # Shutdown
    await close_db()
    logger.info("Application shutdown")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: The configured application instance.
    """
    app = FastAPI(
        title="Print Broker API",
        description="Print job ingress, job status and payload downloads for print workers",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(print_router)
    app.include_router(jobs_router)
    app.include_router(clients_router)
    app.include_router(storage_router)

    # Instrument with OpenTelemetry
    instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()
    app = create_app()

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


# Create app instance for uvicorn
app = create_app()


if __name__ == "__main__":
    run()
