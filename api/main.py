"""FastAPI application for the PR updater.

This module creates and configures the webhook service, including
routers, middleware and lifecycle events, and provides the process
entry point.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from .config import Config, get_settings, load_config
from .dependencies import init_dependencies, shutdown_dependencies
from .logging import configure_logging
from .middleware import RequestLoggingMiddleware, TimingMiddleware
from .routers import health_router, webhooks_router

logger = structlog.get_logger(__name__)

APP_NAME = "PR Updater"
APP_VERSION = "1.0.0"


def create_app(config: Config) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Validated configuration document.

    Returns:
        Configured FastAPI application instance.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Build dependencies on startup and release them on shutdown."""
        logger.info(
            "Starting PR updater",
            version=APP_VERSION,
            address=config.server.address,
            port=config.server.port,
        )
        await init_dependencies(config)

        yield

        logger.info("Shutting down PR updater")
        await shutdown_dependencies()

    app = FastAPI(
        title=APP_NAME,
        description=(
            "GitHub App that keeps open pull requests up to date with their "
            "repository's default branch."
        ),
        version=APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(TimingMiddleware)

    app.include_router(health_router)
    app.include_router(webhooks_router)

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Root endpoint returning service information."""
        return JSONResponse(
            content={
                "name": APP_NAME,
                "version": APP_VERSION,
                "health": "/health",
            }
        )

    return app


def run() -> None:
    """Start the service.

    Reads process settings from the environment, loads the configuration
    document and serves the application with uvicorn. Configuration errors
    propagate and abort the process.
    """
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)

    config = load_config(settings.config_path)
    logger.info(
        "Starting server",
        address=f"{config.server.address}:{config.server.port}",
        config_path=str(settings.config_path),
    )

    uvicorn.run(
        create_app(config),
        host=config.server.address,
        port=config.server.port,
        log_config=None,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
