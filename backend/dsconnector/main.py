"""
Connector HTTP entry point.

Exposes the IDS message endpoints under ``{api_prefix}/ids`` and a plain
``/health`` probe.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from dsconnector.core.config import Settings, get_settings
from dsconnector.core.logging import configure_logging, get_logger
from dsconnector.core.middleware import REQUEST_ID_HEADER, SecurityHeadersMiddleware
from dsconnector.modules.ids.router import MESSAGE_TYPE_HEADER
from dsconnector.modules.ids.router import router as ids_router

configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info(
        "connector_started",
        environment=settings.environment,
        version=settings.version,
        sender_agent=settings.effective_sender_agent,
        model_version=settings.ids_model_version,
    )
    yield
    logger.info("connector_stopped")


def _install_middleware(app: FastAPI, settings: Settings) -> None:
    # Starlette runs the last added middleware first
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Accept", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, MESSAGE_TYPE_HEADER],
    )


def create_application() -> FastAPI:
    """Build the connector application from the current settings."""
    settings = get_settings()

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=None,
        lifespan=lifespan,
    )
    _install_middleware(app, settings)

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        return {
            "status": "healthy",
            "version": settings.version,
            "connector_id": settings.connector_id,
        }

    app.include_router(ids_router, prefix=f"{settings.api_prefix}/ids", tags=["IDS Messages"])
    return app


app = create_application()
