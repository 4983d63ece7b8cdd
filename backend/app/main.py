"""FastAPI application for the Pediatric Safety Engine."""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import patients_router, safety_router, vitals_router
from app.core.config import settings
from app.core.database import close_db, init_db
from app.services.reference_ranges import REFERENCE_RANGES, validate_reference_ranges
from app.services.safety_catalog import validate_catalog
from app.services.safety_guardrails import get_safety_evaluator

logger = logging.getLogger(__name__)


def prewarm_all_services() -> dict[str, Any]:
    """Validate the clinical tables and pre-warm the singleton services.

    Raises:
        ConfigurationError: If the drug catalog or the reference range
            table is inconsistent. The application must not start.
    """
    start_time = time.perf_counter()

    validate_catalog()
    validate_reference_ranges()

    services_loaded = {
        "safety_guardrails": get_safety_evaluator().get_stats(),
        "reference_ranges": {"bands": len(REFERENCE_RANGES)},
    }

    total_time_ms = (time.perf_counter() - start_time) * 1000

    return {
        "services_loaded": len(services_loaded),
        "total_prewarm_time_ms": round(total_time_ms, 2),
        "services": services_loaded,
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Handles startup and shutdown events:
    - Startup: Validate clinical tables, initialize database (debug), prewarm services
    - Shutdown: Close database connections
    """
    startup_start = time.perf_counter()

    try:
        prewarm_stats = prewarm_all_services()
    except Exception as e:
        logger.error(f"Startup validation failed: {e}")
        raise

    logger.info(
        f"Services pre-warmed: {prewarm_stats['services_loaded']} services "
        f"in {prewarm_stats['total_prewarm_time_ms']}ms"
    )

    if settings.debug:
        init_db()

    total_startup_ms = (time.perf_counter() - startup_start) * 1000
    logger.info(f"Server ready - total startup time: {total_startup_ms:.0f}ms")

    # Store prewarm stats for the readiness endpoint
    app.state.prewarm_stats = prewarm_stats
    app.state.startup_time_ms = total_startup_ms

    yield

    # Shutdown
    close_db()


app = FastAPI(
    title=settings.app_name,
    description="Clinical safety checks, dose calculation and deterioration risk scoring for pediatric patients.",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(patients_router)
app.include_router(safety_router)
app.include_router(vitals_router)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check endpoint (liveness probe).

    Returns service status and basic info for monitoring.
    Use /ready for readiness checks.
    """
    return {
        "status": "healthy",
        "service": "pediatric-safety-engine",
        "version": "0.1.0",
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, Any]:
    """Readiness check endpoint.

    Confirms the clinical tables were validated and services are warm.
    """
    prewarm_stats = getattr(app.state, "prewarm_stats", {})
    startup_time = getattr(app.state, "startup_time_ms", 0)

    return {
        "status": "ready",
        "service": "pediatric-safety-engine",
        "version": "0.1.0",
        "timestamp": datetime.now(UTC).isoformat(),
        "startup_time_ms": startup_time,
        "safety_catalog": get_safety_evaluator().get_stats(),
        "prewarmed_services": prewarm_stats.get("services_loaded", 0),
        "prewarm_time_ms": prewarm_stats.get("total_prewarm_time_ms", 0),
    }


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "service": "Pediatric Safety Engine API",
        "version": "0.1.0",
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
    }
