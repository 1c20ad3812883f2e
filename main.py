# ============================================================================
# RUNTIME DIAGNOSTICS SIDECAR - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - RUNTIME DIAGNOSTICS
# STATUS: Core - FastAPI application entry point
# PURPOSE: Wire diagnostics services into an HTTP app with a lifespan
# CREATED: 19 OCT 2026
# ============================================================================
"""
Runtime Diagnostics Sidecar Main Application

FastAPI application that:
1. Loads DiagnosticsConfig from the environment
2. Builds DiagnosticsServices (registry, aggregator, retry, dump components)
3. Exposes health and diagnostics endpoints
4. Installs task tracking on startup and removes it on shutdown

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from __version__ import __version__, BUILD_DATE, EPOCH
from api.routes import router, set_services
from core.config import DiagnosticsConfig
from core.logging import configure_logging, get_logger
from services import DiagnosticsServices

logger = get_logger(__name__)


def create_app(
    config: Optional[DiagnosticsConfig] = None,
    services: Optional[DiagnosticsServices] = None,
) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        config: Configuration (from environment if None)
        services: Prebuilt services (built from config if None)
    """
    if services is None:
        config = config or DiagnosticsConfig.from_env()
        services = DiagnosticsServices.create(config)
    config = services.config

    configure_logging(
        level=config.logging.level,
        json_output=config.logging.json_output,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler.

        Starts task tracking on startup, tears it down on shutdown.
        """
        logger.info(f"Starting Runtime Diagnostics v{__version__} (Epoch {EPOCH}, Build {BUILD_DATE})")

        set_services(services)
        services.start()
        logger.info(f"Health indicators registered: {[i['name'] for i in services.registry.list_all()]}")

        yield

        logger.info("Shutting down Runtime Diagnostics...")
        services.shutdown()
        set_services(None)

    app = FastAPI(
        title="Runtime Diagnostics",
        description=f"Epoch {EPOCH} health aggregation and process diagnostics",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.services = services

    app.include_router(router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "Runtime Diagnostics",
            "version": __version__,
            "epoch": EPOCH,
            "build_date": BUILD_DATE,
            "status": "running",
            "docs": "/docs",
        }

    return app


app = create_app()


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
