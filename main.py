"""
Marketing Agents Backend
AI marketing tools behind plan/trial access control, with a usage ledger and admin console
"""

import logging
import time
import traceback
from datetime import datetime

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from auth import auth_router
from config.settings import IS_PRODUCTION, LOGS_DIR, require_jwt_secret, settings
from database import init_db
from dependencies import get_ledger_stats
from routers.admin_router import admin_router
from routers.ai_tools_router import ai_tools_router
from routers.analytics_router import analytics_router
from routers.users_router import users_router
from services.generation_service import GenerationService
from services.usage_ledger import LedgerStats
from utils.errors import AppError
from utils.rate_limit import RateLimiterMiddleware, build_rate_limiter

# Logging setup - write ALL events to /logs/app.log
LOGS_DIR.mkdir(exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(LOGS_DIR / "app.log"),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)

# Tokens cannot be signed or verified without a secret
require_jwt_secret()

# ============================================================================
# FASTAPI APP SETUP
# ============================================================================

app = FastAPI(title="Marketing Agents API")

# Process-wide services, injected into routes through dependencies.py
app.state.tool_rate_limiter = build_rate_limiter(
    settings.tool_rate_limit, settings.tool_rate_window_seconds, "tool", settings.redis_url
)
app.state.login_rate_limiter = build_rate_limiter(
    settings.login_rate_limit, settings.login_rate_window_seconds, "login", settings.redis_url
)
app.state.generation_service = GenerationService.from_settings(settings)
app.state.ledger_stats = LedgerStats()
app.state.started_at = time.monotonic()


# Uncaught exception middleware - logs all unhandled exceptions and returns 500
class UncaughtExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(f"Uncaught exception: {e}\n{traceback.format_exc()}")
            return JSONResponse(
                status_code=500,
                content={
                    "message": "Something went wrong!",
                    "error": "Internal Server Error" if IS_PRODUCTION else str(e),
                }
            )


# Security headers middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses: HSTS, X-Frame-Options, X-Content-Type-Options"""
    async def dispatch(self, request, call_next):
        response = await call_next(request)

        # JSON API only: nothing may be loaded or framed from responses
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        # Strict-Transport-Security: only in production where HTTPS is guaranteed
        if IS_PRODUCTION:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        # X-Frame-Options: Prevent clickjacking attacks
        response.headers["X-Frame-Options"] = "DENY"

        # X-Content-Type-Options: Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        return response


app.add_middleware(UncaughtExceptionMiddleware)
app.add_middleware(
    RateLimiterMiddleware,
    limiter=build_rate_limiter(settings.api_rate_limit, settings.api_rate_window_seconds, "api", settings.redis_url),
)
app.add_middleware(SecurityHeadersMiddleware)

# CORS MUST be near the bottom
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================================================
# ERROR HANDLERS
# ============================================================================


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code}: {exc.message}")
    content = exc.to_dict()
    # Server-side failure details stay in the logs outside development
    if exc.status_code >= 500 and IS_PRODUCTION:
        content["error"] = "Internal Server Error"
    headers = None
    if "retryAfter" in exc.extra:
        headers = {"Retry-After": str(exc.extra["retryAfter"])}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())[1:]), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"message": "Validation failed", "error": "VALIDATION_ERROR", "errors": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    if exc.status_code == 404 and message == "Not Found":
        message = "Route not found"
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": message, "error": "HTTP_ERROR"},
        headers=getattr(exc, "headers", None),
    )

# ============================================================================
# STARTUP
# ============================================================================


@app.on_event("startup")
async def check_env_keys_on_startup():
    """Report optional integrations that are not configured (non-fatal)"""
    if not settings.openai_api_key:
        logger.warning("Startup check: OPENAI_API_KEY is not set. AI tools will return placeholder output.")
    if not settings.redis_url:
        logger.info("Startup check: REDIS_URL is not set. Rate limits are per process.")


# Initialize database on startup
@app.on_event("startup")
async def initialize_database():
    """Create all tables."""
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

# ============================================================================
# INCLUDE ROUTERS
# ============================================================================
app.include_router(auth_router)
app.include_router(users_router)
app.include_router(ai_tools_router)
app.include_router(admin_router)
app.include_router(analytics_router)


@app.get("/api/health")
async def health(request: Request, ledger_stats: LedgerStats = Depends(get_ledger_stats)):
    return {
        "status": "OK",
        "timestamp": datetime.utcnow().isoformat(),
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "ledgerWriteFailures": ledger_stats.failed_writes,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
