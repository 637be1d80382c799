"""
Main FastAPI application entry point.

Uses Application Factory Pattern. The claim sweeper and batch scheduler
run as background tasks inside the API process.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from monnayeur import __version__
from monnayeur.config.settings import Settings, get_settings
from monnayeur.di import get_container, initialize_container, shutdown_container
from monnayeur.domain.exceptions import LedgerError, MonnayeurException
from monnayeur.infrastructure.monitoring import get_logger, setup_logging
from monnayeur.presentation.api.middleware import (
    MetricsMiddleware,
    RequestIDMiddleware,
    monnayeur_exception_handler,
)
from monnayeur.presentation.api.routes import admin, claims, health


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory - creates and configures FastAPI app.

    Args:
        settings: Optional Settings instance (for testing)

    Returns:
        Configured FastAPI application
    """
    if settings is None:
        settings = get_settings()

    setup_logging(level=settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
    logger = get_logger(__name__)

    logger.info(f"Creating Monnayeur application (ENV={settings.ENV})")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: connections, chain sync, background jobs."""
        logger.info("Starting Monnayeur application...")
        container = await initialize_container()

        if settings.SYNC_ON_STARTUP:
            try:
                synced = await container.batch_scheduler.sync_with_chain()
                logger.info(f"Startup chain sync marked {synced} claims")
            except LedgerError as e:
                logger.warning(f"Startup chain sync skipped: {e.message}")

        if settings.SCHEDULER_ENABLED:
            container.start_background()
            logger.info(
                f"Background jobs started (sweep every "
                f"{settings.SWEEP_INTERVAL_SECONDS}s, batch every "
                f"{settings.BATCH_INTERVAL_MINUTES}min)"
            )

        logger.info("Monnayeur application started successfully")

        yield

        logger.info("Shutting down Monnayeur application...")
        await shutdown_container()
        logger.info("Monnayeur application shutdown complete")

    app = FastAPI(
        title="Monnayeur API",
        description="Token claim and mint pipeline",
        version=__version__,
        lifespan=lifespan,
    )

    # Middleware chain (last added runs first)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(MonnayeurException, monnayeur_exception_handler)

    app.include_router(health.router)
    app.include_router(claims.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")

    @app.get("/", tags=["health"])
    async def root():
        """Root endpoint."""
        return {
            "service": "Monnayeur",
            "status": "running",
            "version": __version__,
        }

    if settings.METRICS_ENABLED:

        @app.get("/metrics", tags=["monitoring"])
        async def metrics():
            """Prometheus metrics endpoint."""
            return Response(
                content=generate_latest(),
                media_type=CONTENT_TYPE_LATEST,
            )

    logger.info("Monnayeur application created successfully")
    return app


def get_app() -> FastAPI:
    """
    Get or create application instance.

    For uvicorn: uvicorn monnayeur.main:get_app --factory
    """
    return create_app()


def main():
    """Run the application with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "monnayeur.main:get_app",
        factory=True,
        host=settings.API_HOST,
        port=settings.API_PORT,
    )


if __name__ == "__main__":
    main()
