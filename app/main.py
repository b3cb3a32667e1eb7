"""
FastAPI Application Entry Point

Restaurant POS Backend - two API surfaces over one set of services:
    - /api     (v0): in-memory store
    - /api/v1  (v1): SQL store, stock checked and reserved on checkout

Endpoints (under each prefix):
    - /menu: Menu catalog CRUD, categories, low-stock report
    - /billing: Checkout, bill CRUD, sales summaries, top items
    - /settings/{type}: Keyed configuration blobs
    - GET /health: System health check (top level)

Run:
    uvicorn app.main:app --port 5000
"""

import asyncio
import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.exceptions import HTTPException as StarletteHTTPException

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from app.api import build_api_router
from app.core.config import Settings, get_settings, setup_logging
from app.core.exceptions import POSError
from app.database import build_session_maker, engine as default_engine, init_db
from app.repositories import RepositorySet, build_memory_repositories, build_sql_repositories
from app.schemas import HealthResponse
from app.services import MEMORY_POLICY, PERSISTENT_POLICY, build_services

logger = logging.getLogger(__name__)


def _format_validation_error(exc: RequestValidationError) -> str:
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else error.get("msg"))
    return "Validation failed - " + "; ".join(problems)


async def _check_redis(url: str) -> str:
    client = aioredis.from_url(url, socket_timeout=2)
    try:
        await client.ping()
        return "healthy"
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return f"unhealthy: {e}"
    finally:
        await client.aclose()


def create_app(
    settings: Optional[Settings] = None,
    memory_repositories: Optional[RepositorySet] = None,
    sql_engine: Optional[AsyncEngine] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Application settings (cached settings if None)
        memory_repositories: Store for the v0 surface (fresh in-memory if None)
        sql_engine: Engine for the v1 surface (DATABASE_URL engine if None)
    """
    settings = settings or get_settings()
    setup_logging()

    sql_engine = sql_engine or default_engine
    v0 = build_services(
        memory_repositories or build_memory_repositories(seed_menu=settings.seed_memory_menu),
        MEMORY_POLICY,
        tz=settings.timezone,
        top_items_limit=settings.top_items_default_limit,
    )
    v1 = build_services(
        build_sql_repositories(build_session_maker(sql_engine)),
        PERSISTENT_POLICY,
        tz=settings.timezone,
        top_items_limit=settings.top_items_default_limit,
    )

    # =========================================================================
    # APPLICATION LIFECYCLE
    # =========================================================================

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("=" * 60)
        logger.info(f"🚀 Starting {settings.app_name}")
        logger.info(f"   Version: {settings.app_version}")
        logger.info(f"   Environment: {settings.env_mode.value}")
        logger.info(f"   Debug: {settings.debug}")
        logger.info(f"   Business time zone: {settings.business_timezone}")
        logger.info("=" * 60)

        await init_db(sql_engine)
        logger.info("✅ Database initialized")

        logger.info("Available API versions:")
        logger.info("  v0 (In-Memory): /api/menu, /api/billing, /api/settings")
        logger.info("  v1 (SQL): /api/v1/menu, /api/v1/billing, /api/v1/settings")
        logger.info(f"✅ Ledger export: {'enabled' if settings.ledger_export_enabled else 'disabled'}")
        logger.info("=" * 60)

        yield  # Application runs

        logger.info("Shutting down...")
        await sql_engine.dispose()
        logger.info("✅ Cleanup complete")

    # =========================================================================
    # APPLICATION INSTANCE
    # =========================================================================

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Restaurant point-of-sale backend: per-gram menu catalog, billing "
            "with stock deduction, sales summaries and settings."
        ),
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.services = {"v0": v0, "v1": v1}

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        client = request.client.host if request.client else "-"
        logger.info(f"[{request.method}] {request.url.path} - Client: {client}")
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"[{request.method}] {request.url.path} - Status: {response.status_code} "
            f"- Duration: {duration_ms:.0f}ms"
        )
        return response

    # =========================================================================
    # ROUTES
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="System Health Check",
    )
    async def health_check() -> HealthResponse:
        """Verify the SQL store and, when ledger export is on, Redis."""
        db_status = "healthy" if await v1.repositories.menu.health_check() else "unhealthy"

        redis_status = "disabled"
        if settings.ledger_export_enabled:
            redis_status = await _check_redis(settings.redis_url)

        overall = "operational" if all(
            s in ("healthy", "disabled") for s in [db_status, redis_status]
        ) else "degraded"

        return HealthResponse(
            message="Server is running",
            status=overall,
            environment=settings.env_mode.value,
            database=db_status,
            redis=redis_status,
            timestamp=datetime.now(timezone.utc),
        )

    app.include_router(build_api_router(v0, "/api"))
    app.include_router(build_api_router(v1, "/api/v1"))

    # =========================================================================
    # ERROR HANDLERS
    # =========================================================================

    @app.exception_handler(POSError)
    async def pos_error_handler(request: Request, exc: POSError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"❌ {request.method} {request.url.path} failed - {exc.message}")
        else:
            logger.warning(f"⚠️ {request.method} {request.url.path} rejected - {exc.message}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = _format_validation_error(exc)
        logger.warning(f"⚠️ {request.method} {request.url.path} rejected - {message}")
        return JSONResponse(status_code=400, content={"success": False, "error": message})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        error = exc.detail
        if exc.status_code == 404 and exc.detail == "Not Found":
            error = "Route not found"
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": error},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch-all exception handler."""
        logger.exception(f"Unhandled exception: {exc}")

        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal Server Error",
                "detail": str(exc) if settings.debug else "An unexpected error occurred",
            },
        )

    return app


app = create_app()
