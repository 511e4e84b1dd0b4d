"""
PAR Brink Bridge - Main Application Entry Point

Hourly sales and labor reporting on top of the PAR Brink POS.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from backend.config import get_settings
from backend.middleware.audit_log import AuditLogMiddleware
from backend.routers.v1 import brink
from backend.services import cache
from backend.services.locations import get_location_directory

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Initialize Sentry for error monitoring
if settings.sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        release=f"brink-bridge@{settings.app_version}",
        traces_sample_rate=0.1 if settings.environment == "production" else 1.0,
        integrations=[FastApiIntegration()],
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    # Startup: fail early on a broken location directory
    get_location_directory()
    yield
    # Shutdown
    await cache.close_redis()


app = FastAPI(
    title=settings.app_name,
    description=(
        "Reporting bridge for the PAR Brink POS. Reduces orders, shifts and "
        "employee rosters into timezone-correct hourly sales and labor metrics."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/api/docs" if settings.debug else None,
    redoc_url="/api/redoc" if settings.debug else None,
    openapi_url="/api/openapi.json" if settings.debug else None,
)

# Audit logging middleware (outermost, captures all requests)
app.add_middleware(AuditLogMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoints
@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "healthy", "service": "brink-bridge-api"}


@app.get("/health/ready", tags=["Health"])
async def readiness_check() -> dict[str, str | int]:
    """Readiness check with dependency verification."""
    redis_status = "disabled"
    if settings.cache_enabled:
        redis_status = "ok" if await cache.ping() else "unavailable"

    return {
        "status": "ready",
        "service": "brink-bridge-api",
        "version": settings.app_version,
        "environment": settings.environment,
        "locations": len(get_location_directory()),
        "cache": redis_status,
    }


# API v1 routes
app.include_router(
    brink.router,
    prefix=f"{settings.api_v1_prefix}/brink",
    tags=["PAR Brink"],
)
