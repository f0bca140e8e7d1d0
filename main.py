"""FastAPI application entrypoint for the Viticult Whisky API.

Serves the lead-capture forms, blog, site configuration, visitor tracking,
GDPR requests and the admin dashboard.
"""
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from viticult.api.routes import admin, auth, blog, config, consultation, contact, gdpr, sell_whisky, tracking
from viticult.core.config import settings
from viticult.core.errors import register_exception_handlers
from viticult.core.logging import get_logger, setup_logging
from viticult.infrastructure.mongo import close_client, ensure_indexes, get_database, ping
from viticult.infrastructure.redis import MemoryTokenStore, get_token_store
from viticult.services.admin import AdminService

# Initialize structured logging
log_format = settings.is_production
setup_logging(level=settings.log_level, json_format=log_format)
logger = get_logger(__name__)

# Application metadata
APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Prepare MongoDB on startup and release the client on shutdown.

    A database that is down at startup is logged, not fatal; requests report
    503 until it becomes reachable.
    """
    logger.info("Application starting up", extra={"operation": "startup"})
    try:
        db = get_database()
        ensure_indexes(db)
        if AdminService(db, get_token_store()).ensure_default_admin():
            logger.info(f"Default admin created: {settings.admin_email}", extra={"admin_email": settings.admin_email})
    except PyMongoError as e:
        logger.error(f"MongoDB unavailable at startup: {e}", extra={"error_type": type(e).__name__})

    yield

    logger.info("Application shutting down", extra={"operation": "shutdown"})
    close_client()


app = FastAPI(
    title=settings.app_name,
    description="Whisky cask investment lead capture, blog and admin dashboard API",
    version=APP_VERSION,
    debug=settings.debug,
    docs_url="/docs" if not settings.is_production else None,  # Disable in prod
    redoc_url="/redoc" if not settings.is_production else None,
    lifespan=lifespan,
)

register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Middleware to log all requests with timing and status code."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.debug(
        f"Request started: {request.method} {request.url.path}",
        extra={
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }
    )

    try:
        response = await call_next(request)
        duration_ms = (time.time() - start_time) * 1000

        logger.info(
            f"Request completed: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
                "admin_email": getattr(request.state, "admin_email", None),
            }
        )

        # Add request ID to response headers
        response.headers["X-Request-ID"] = request_id
        return response

    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(
            f"Request failed: {request.method} {request.url.path}: {e}",
            extra={
                "request_id": request_id,
                "method": request.method,
                "path": request.url.path,
                "duration_ms": round(duration_ms, 2),
                "error_type": type(e).__name__,
            },
            exc_info=True
        )
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error", "request_id": request_id},
            headers={"X-Request-ID": request_id},
        )


for module in (contact, sell_whisky, consultation, blog, config, tracking, gdpr, admin, auth):
    app.include_router(module.router)


@app.get("/")
def root():
    """Root endpoint with basic service info."""
    return {
        "service": settings.app_name,
        "version": APP_VERSION,
        "status": "running",
        "environment": settings.environment
    }


@app.get("/api/health")
def health_check():
    """Liveness probe including the MongoDB connection state."""
    return {
        "status": "OK",
        "environment": settings.environment,
        "version": APP_VERSION,
        "database": "connected" if ping() else "disconnected",
    }


@app.get("/ready")
def readiness_check():
    """Readiness check - verifies external dependencies are accessible."""
    store = get_token_store()
    checks = {
        "mongodb": "ok" if ping() else "error",
        "token_store": "fallback_memory" if isinstance(store, MemoryTokenStore) else "redis",
    }

    all_ok = checks["mongodb"] == "ok"

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={"status": "ready" if all_ok else "degraded", "checks": checks},
    )
