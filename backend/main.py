from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
from contextlib import asynccontextmanager
import asyncio
import logging
from api import albums, auth, invites, photos, share, tags
from middleware.security import (
    SecurityHeadersMiddleware,
    RateLimitMiddleware,
    RequestSizeMiddleware,
    SecurityLoggingMiddleware,
    redact_path
)
from services.auth import clear_session_cookie
from services.db import SessionLocal
from services.exceptions import Unauthenticated
from services.file_storage import storage
from services.rate_limiter import cleanup_rate_limiter
from services.security import security_config, SecurityUtils

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create media directories and run the rate limiter cleanup for the app's lifetime."""
    storage.ensure_directories()
    cleanup_task = asyncio.create_task(cleanup_rate_limiter())

    logger.info("Starting photo gallery API")
    logger.info(f"  - Media root: {storage.base_path} (delivery: {storage.delivery})")
    logger.info(f"  - Security headers: {security_config.enable_security_headers}")
    logger.info(f"  - Session lifetime: {security_config.session_expires_days} days")

    yield

    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        logger.info("Background tasks stopped")

    logger.info("Photo gallery API shutdown complete")

app = FastAPI(
    title="Photo Gallery API",
    description="Private photo gallery with invite-only accounts and expiring share links",
    version="1.0.0",
    lifespan=lifespan
)

# Order matters - last added is executed first
app.add_middleware(SecurityLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestSizeMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[security_config.cors_origin],
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"]
)

for module in (auth, photos, albums, tags, share, invites):
    app.include_router(module.router, prefix="/api", tags=[module.__name__.split(".")[-1]])

@app.get("/health")
async def health_check():
    """Health check for load balancers; includes a database round trip."""
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "unreachable"})

    return {"status": "healthy", "version": "1.0.0", "timestamp": SecurityUtils.get_utc_now().isoformat()}

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies and query strings are plain 400s."""
    SecurityUtils.log_security_event(
        "request_validation_error",
        {
            "path": redact_path(request.url.path),
            "method": request.method,
            "fields": [".".join(str(part) for part in error.get("loc", ())) for error in exc.errors()]
        },
        client_ip=SecurityUtils.get_client_ip(request)
    )

    return JSONResponse(status_code=400, content={"error": "Invalid request"})

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render every HTTP error as {"error": message}."""
    if exc.status_code in (401, 403, 429):
        SecurityUtils.log_security_event(
            "http_exception",
            {
                "status_code": exc.status_code,
                "path": redact_path(request.url.path),
                "method": request.method
            },
            client_ip=SecurityUtils.get_client_ip(request)
        )

    response = JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail if isinstance(exc.detail, str) else "Request failed"},
        headers=getattr(exc, "headers", None)
    )
    if isinstance(exc, Unauthenticated) and exc.clear_session_cookie:
        clear_session_cookie(response)
    return response

@app.exception_handler(Exception)
async def internal_server_error_handler(request: Request, exc: Exception):
    """No stack traces leave the server."""
    SecurityUtils.log_security_event(
        "internal_server_error",
        {
            "path": redact_path(request.url.path),
            "method": request.method,
            "error_type": type(exc).__name__
        },
        client_ip=SecurityUtils.get_client_ip(request)
    )

    logger.exception(f"Internal server error: {exc}")

    return JSONResponse(status_code=500, content={"error": "Internal server error"})
