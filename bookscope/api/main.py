"""
BookScope API

FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from fastapi import Depends, FastAPI

from bookscope import __version__
from bookscope.llm import MockGateway
from .schemas import HealthResponse
from .routes import detection
from .middleware import (
    setup_logging,
    setup_exception_handlers,
    LoggingConfig,
)
from .dependencies import (
    get_settings,
    get_service_container,
    init_services,
    ServiceContainer,
    Settings,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Creates the service container on startup and closes network clients on
    shutdown.
    """
    settings = get_settings()
    logger.info(f"Starting BookScope in {settings.environment} mode")

    services = init_services(settings)
    app.state.services = services
    app.state.settings = settings

    logger.info(
        f"LLM provider={settings.llm_provider}, "
        f"detector variant={settings.detector_variant}"
    )

    try:
        yield
    finally:
        logger.info("Shutting down BookScope...")
        await services.close()
        logger.info("Shutdown complete")


# =============================================================================
# Application Factory
# =============================================================================

def create_app(settings: Settings = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings. If None, loads from environment.

    Returns:
        Configured FastAPI application.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="BookScope",
        description="Identify the books in a photograph.",
        version=__version__,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # ==========================================================================
    # Middleware
    # ==========================================================================

    setup_logging(
        app,
        config=LoggingConfig(enabled=True),
        structured=settings.environment != "development",
    )
    setup_exception_handlers(app)

    # ==========================================================================
    # Routers
    # ==========================================================================

    api_prefix = "/api/v1"
    app.include_router(detection.router, prefix=api_prefix)

    # ==========================================================================
    # Root Routes
    # ==========================================================================

    @app.get("/", include_in_schema=False)
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "BookScope",
            "version": __version__,
            "status": "running",
            "docs": "/docs" if settings.debug else None,
        }

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check(
        services: ServiceContainer = Depends(get_service_container),
    ) -> HealthResponse:
        """
        Health check endpoint.

        Reports whether an LLM provider is configured; a missing key means
        every detection answers with the mock reply.
        """
        components = {
            "llm_api": "not_configured" if isinstance(services.gateway, MockGateway) else "configured",
            "detector_variant": services.default_variant.value,
            "lookup": services.settings.openlibrary_base_url,
        }

        return HealthResponse(
            status="healthy",
            version=__version__,
            components=components,
        )

    return app


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

def main():
    """Run the application using uvicorn."""
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "bookscope.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
