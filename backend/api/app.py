"""
FastAPI application factory.

Creates and configures the FastAPI application instance.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from modules.credits.routes import router as credits_router
from modules.jobs.routes import router as jobs_router
from modules.jobs.routes import webhook_router
from modules.payments.routes import router as payments_router
from shared.config import get_settings
from shared.logging_config import configure_logging

from .dependencies import get_container
from .errors import register_exception_handlers
from .routes import health
from .services.sweeper import Sweeper

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Starts the background sweeper on startup and stops it on shutdown.
    """
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} on {settings.host}:{settings.port}")

    sweeper = None
    if settings.sweeper_enabled:
        container = get_container()
        sweeper = Sweeper(
            poller=container.poller,
            reconciler=container.reconciler,
            interval_seconds=settings.sweeper_interval_seconds,
        )
        sweeper.start()
    app.state.sweeper = sweeper

    yield

    if sweeper is not None:
        await sweeper.stop()
    logger.info(f"Shutting down {settings.app_name}")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI instance
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=settings.app_name,
        description="Paid photo training and generation jobs with a prepaid credit ledger",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    register_exception_handlers(app)

    # Register routes
    app.include_router(health.router, prefix="/api", tags=["health"])
    app.include_router(jobs_router, prefix="/api/jobs", tags=["jobs"])
    app.include_router(webhook_router, prefix="/api/webhooks", tags=["webhooks"])
    app.include_router(payments_router, prefix="/api/payments", tags=["payments"])
    app.include_router(credits_router, prefix="/api/credits", tags=["credits"])

    return app


# Application instance for uvicorn
app = create_app()
