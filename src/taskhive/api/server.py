"""FastAPI server for TaskHive."""

import logging
import os
import sys
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from starlette.middleware.base import BaseHTTPMiddleware

from taskhive import __version__
from taskhive.api.auth import auth_router
from taskhive.api.messages import messages_router
from taskhive.api.notifications import notifications_router
from taskhive.api.rate_limit import limiter
from taskhive.api.tasks import tasks_router
from taskhive.api.websocket import websocket_router
from taskhive.api.workspaces import workspaces_router
from taskhive.db import close_db, get_engine, init_db
from taskhive.notifications import broker

logger = logging.getLogger(__name__)

# --- Logging configuration ---
_log_level = os.environ.get("TASKHIVE_LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, _log_level, logging.INFO),
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# --- CORS configuration ---
_DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"


def _get_cors_origins() -> list[str]:
    """Parse CORS origins from TASKHIVE_CORS_ORIGINS env var.

    Rejects wildcard '*' when credentials are enabled.
    """
    raw = os.environ.get("TASKHIVE_CORS_ORIGINS", _DEFAULT_CORS_ORIGINS)
    if raw.strip() == "*":
        logger.warning(
            "TASKHIVE_CORS_ORIGINS='*' is insecure with credentials. "
            "Using default dev origins instead."
        )
        raw = _DEFAULT_CORS_ORIGINS
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


# --- Security headers middleware ---
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        if os.environ.get("TASKHIVE_ENV") == "production":
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains"
        return response


# --- Request logging middleware ---
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all API requests with their duration."""

    async def dispatch(self, request: Request, call_next):
        start = datetime.utcnow()
        response = await call_next(request)
        duration = (datetime.utcnow() - start).total_seconds() * 1000
        if request.url.path.startswith("/api/"):
            logger.info(
                "%s %s %d %.0fms",
                request.method,
                request.url.path,
                response.status_code,
                duration,
            )
        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting TaskHive server")
    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down TaskHive server")
    await close_db()


app = FastAPI(
    title="TaskHive API",
    description="Workspaces, tasks and chat with per-user notification fan-out",
    version=__version__,
    lifespan=lifespan,
)

# Attach limiter to app state (required by slowapi)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=_get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Health / Readiness / Metrics endpoints ---
@app.get("/health")
async def health_check():
    """Health check endpoint for orchestration."""
    return {"status": "healthy"}


@app.get("/ready")
async def readiness_check():
    """Readiness check - verifies database is accessible."""
    engine = get_engine()
    if engine is None:
        return JSONResponse(
            status_code=503, content={"status": "not ready", "reason": "database not initialized"}
        )
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ready"}
    except Exception as e:
        logger.error("Readiness check failed: %s", e)
        return JSONResponse(
            status_code=503, content={"status": "not ready", "reason": "database error"}
        )


@app.get("/metrics")
async def metrics():
    """Basic application metrics endpoint."""
    engine = get_engine()
    pool_status = {}
    if engine is not None:
        pool = engine.sync_engine.pool
        pool_status = {
            "pool": pool.status(),
            "checked_out": pool.checkedout() if hasattr(pool, "checkedout") else 0,
        }

    return {
        "python_version": sys.version,
        "realtime_subscribers": broker.subscriber_count(),
        "realtime_users": len(broker.subscribers),
        "database": pool_status,
    }


# Include API routes with /api prefix
app.include_router(auth_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(workspaces_router, prefix="/api")
app.include_router(tasks_router, prefix="/api")
app.include_router(messages_router, prefix="/api")
app.include_router(websocket_router)
