# app/main.py
"""
FastAPI application entry point.
Includes API key middleware, global error handlers, and all routers.
"""

import hmac
import time

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import visitors, email_actions, notifications, health
from app.database import create_tables
from app.config import settings
from app.services.action_tokens import get_action_token_service
from app.services.notification_service import get_visitor_notifier
from app.utils.logger import get_logger

logger = get_logger(__name__)

API_PREFIX = "/api/v1"

app = FastAPI(
    title="Visitor Check-in API",
    description="Visitor registration, approval workflow and email approve/reject links.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (allow the reception kiosk / admin dashboard to call the API) ───────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to dashboard origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Lightweight API key auth for the admin endpoints.
    Open without a key: health, docs, the public registration form (POST /visitors)
    and email action links, which carry their own token.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    open_paths = {f"{API_PREFIX}/health", "/docs", "/redoc", "/openapi.json"}
    open_prefixes = (f"{API_PREFIX}/email-actions/",)

    def is_open(self, request: Request) -> bool:
        path = request.url.path
        if path in self.open_paths or path.startswith(self.open_prefixes):
            return True
        return request.method == "POST" and path == f"{API_PREFIX}/visitors"

    async def dispatch(self, request: Request, call_next):
        if self.is_open(request) or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key") or ""
        if not hmac.compare_digest(api_key.encode(), settings.API_KEY.encode()):
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(visitors.router,      prefix=API_PREFIX, tags=["🧾 Visitors"])
app.include_router(email_actions.router, prefix=API_PREFIX, tags=["✉️  Email Actions"])
app.include_router(notifications.router, prefix=API_PREFIX, tags=["🔔 Notifications"])
app.include_router(health.router,        prefix=API_PREFIX, tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Visitor check-in backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    try:
        get_action_token_service()
        logger.info("🔑 Email action links enabled")
    except ValueError as e:
        logger.error(f"🔑 Email action links disabled: {e}")
    if not settings.SMTP_HOST:
        logger.warning("✉️  SMTP_HOST not set - notifications will be logged as failed")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Visitor check-in backend shutting down - flushing pending notifications...")
    await get_visitor_notifier().drain()
