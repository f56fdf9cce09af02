from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from pegplug_api.core.settings import settings
from pegplug_api.db.session import engine
from .api.routes import api_router
from .core.logging import configure_logging
from .observability.tracing import configure_tracing


APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "PegPlug API starting",
        environment=settings.environment,
        validity_minutes=settings.redemption_validity_minutes,
        notifications_dry_run=settings.notifications_dry_run,
    )
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("PegPlug API stopped")


def create_app() -> FastAPI:
    """Application factory for the PegPlug rewards service."""
    configure_logging(
        service_name="pegplug-api",
        environment=settings.environment,
        version=APP_VERSION,
        level=settings.log_level,
    )

    app = FastAPI(
        title="PegPlug API",
        version=APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    configure_tracing(
        app,
        service_name="pegplug-api",
        service_version=APP_VERSION,
        environment=settings.environment,
    )

    app.include_router(api_router)

    @app.get("/healthz", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "ok",
            "environment": settings.environment,
            "version": APP_VERSION,
        }

    return app
