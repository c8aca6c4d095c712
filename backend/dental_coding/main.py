"""FastAPI application for the Dental Procedure Coding Assistant."""

import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dental_coding.api import nza_codes_router, treatment_chat_router
from dental_coding.core.config import settings
from dental_coding.core.database import close_db, get_session_maker
from dental_coding.services.catalog import get_code_catalog, load_catalog_from_db, set_code_catalog
from dental_coding.services.llm_client import get_llm_client

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


async def load_catalog() -> dict[str, Any]:
    """Load the NZa catalog from the configured source."""
    if settings.catalog_source == "database":
        async with get_session_maker()() as session:
            set_code_catalog(await load_catalog_from_db(session))
    return get_code_catalog().get_stats()


def prewarm_services() -> dict[str, Any]:
    """Create the remaining singletons so no request hits a cold service."""
    start_time = time.perf_counter()
    services_loaded: dict[str, Any] = {}

    try:
        from dental_coding.services.treatment_chat import get_treatment_chat_pipeline
        get_treatment_chat_pipeline()
        services_loaded["treatment_chat"] = "loaded"
    except Exception as e:
        logger.warning(f"Failed to prewarm treatment_chat: {e}")

    llm = get_llm_client()
    services_loaded["llm_client"] = "configured" if llm.is_configured else "missing_api_key"
    if not llm.is_configured:
        logger.warning("GEMINI_API_KEY not set; treatment chat will return 503")

    total_time_ms = (time.perf_counter() - start_time) * 1000
    return {
        "services_loaded": len(services_loaded),
        "total_prewarm_time_ms": round(total_time_ms, 2),
        "services": services_loaded,
    }


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    - Startup: load the catalog, prewarm services
    - Shutdown: close the LLM client and database connections
    """
    startup_start = time.perf_counter()

    catalog_stats: dict[str, Any] = {}
    try:
        catalog_stats = await load_catalog()
        logger.info(f"NZa catalog ready: {catalog_stats['total_codes']} codes")
    except Exception as e:
        logger.error(f"Failed to load NZa catalog: {e}")

    prewarm_stats = prewarm_services()
    logger.info(
        f"Services pre-warmed: {prewarm_stats['services_loaded']} services "
        f"in {prewarm_stats['total_prewarm_time_ms']}ms"
    )

    total_startup_ms = (time.perf_counter() - startup_start) * 1000
    logger.info(f"Server ready - total startup time: {total_startup_ms:.0f}ms")

    app.state.catalog_stats = catalog_stats
    app.state.prewarm_stats = prewarm_stats
    app.state.startup_time_ms = total_startup_ms

    yield

    await get_llm_client().close()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    description="Suggests NZa tariff codes from dental clinician shorthand and corrects them with fixed KNMT rules.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:3001"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(treatment_chat_router, prefix=settings.api_prefix)
app.include_router(nza_codes_router, prefix=settings.api_prefix)


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, Any]:
    """Health check endpoint (liveness probe).

    Use /ready for readiness checks.
    """
    return {
        "status": "healthy",
        "service": "dental-procedure-coding",
        "version": VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/ready", tags=["Health"])
async def readiness_check() -> dict[str, Any]:
    """Readiness check endpoint.

    Ready once the catalog is loaded and the Gemini key is configured.
    """
    prewarm_stats = getattr(app.state, "prewarm_stats", {})
    startup_time = getattr(app.state, "startup_time_ms", 0)

    try:
        catalog_stats = get_code_catalog().get_stats()
    except Exception as e:
        logger.warning(f"Catalog unavailable: {e}")
        catalog_stats = {}

    llm_configured = get_llm_client().is_configured
    ready = bool(catalog_stats) and llm_configured

    return {
        "status": "ready" if ready else "degraded",
        "service": "dental-procedure-coding",
        "version": VERSION,
        "timestamp": datetime.now(UTC).isoformat(),
        "startup_time_ms": startup_time,
        "catalog": catalog_stats,
        "llm_configured": llm_configured,
        "prewarmed_services": prewarm_stats.get("services_loaded", 0),
        "prewarm_time_ms": prewarm_stats.get("total_prewarm_time_ms", 0),
    }


@app.get("/", tags=["Health"])
async def root() -> dict[str, str]:
    """Root endpoint with API info."""
    return {
        "service": "Dental Procedure Coding Assistant API",
        "version": VERSION,
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
    }
