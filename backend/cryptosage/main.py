"""
CryptoSage Backend - FastAPI Application

Main entry point for the market data API.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cryptosage.api.v1 import router as api_v1_router
from cryptosage.core.config import Settings, get_settings
from cryptosage.services.base import ChainExhaustedError
from cryptosage.services.container import ServiceContainer

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")
        logger.info(f"Environment: {settings.environment}")

        services = ServiceContainer(settings)
        await services.start()
        app.state.services = services
        logger.info(f"Auto-refresh: {settings.enable_auto_refresh}")

        yield

        logger.info("Shutting down...")
        await services.stop()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="""
        CryptoSage Market Data API

        ## Architecture
        - **Fallback chains**: every capability tries its providers in priority order
        - **Snapshot cache**: last good market list and global stats survive restarts
        - **Auto-refresh**: coin list every minute, global stats every three minutes
        - **Live data**: spot price with backoff and order book depth for one watched symbol
        - **News**: streaming RSS/Atom aggregation with pagination
        """,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ChainExhaustedError)
    async def chain_exhausted_handler(request: Request, exc: ChainExhaustedError):
        return JSONResponse(
            status_code=503,
            content={"detail": exc.message, "providers": exc.details.get("providers", [])},
        )

    # Include API routes
    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "app": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "CryptoSage Market Data API",
            "docs": "/docs",
            "health": "/health",
        }

    return app


app = create_app()
