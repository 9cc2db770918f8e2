"""
AuthFlow Backend
FastAPI application entry point

- Rate limiting with SlowAPI
- Error sanitization middleware + uniform failure envelope
- Health endpoint with DB ping
- HTTP client lifecycle management (SendGrid client closed on shutdown)
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from authflow.api.deps import close_email_service
from authflow.api.routes import auth
from authflow.core.config import settings
from authflow.core.database import AsyncSessionLocal, init_models
from authflow.core.error_handler import ErrorSanitizationMiddleware, register_error_handlers
from authflow.core.rate_limit import limiter, rate_limit_exceeded_handler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Create tables on startup (SQL store only) and close HTTP clients on shutdown.
    """
    if settings.ACCOUNT_STORE_BACKEND == "sql" and settings.DB_AUTO_CREATE_TABLES:
        await init_models()
        logger.info("Database tables ensured")
    else:
        logger.info(f"Using {settings.ACCOUNT_STORE_BACKEND} account store, table creation skipped")

    if not settings.email_configured:
        logger.warning("SENDGRID_API_KEY not set - auth emails will be logged, not sent")

    yield

    await close_email_service()
    logger.info("Email HTTP client closed")


app = FastAPI(
    lifespan=lifespan,
    title=f"{settings.APP_NAME} API",
    description="""
## AuthFlow API

Account signup, email verification, login/logout and password reset.

### Authentication
`/api/auth/login` and `/api/auth/signup` set an HttpOnly `token` cookie.
API clients may send the same token as `Authorization: Bearer <token>`.

### Responses
Every auth endpoint answers with `{"success": bool, "message"?: str, "user"?: {...}}`.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Authentication", "description": "Signup, verification, login and password reset"},
    ],
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Domain errors and malformed bodies -> failure envelope
register_error_handlers(app)

# Error sanitization (catches unhandled exceptions)
app.add_middleware(ErrorSanitizationMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": f"{settings.APP_NAME} API",
        "version": "1.0.0",
        "status": "operational"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check with an actual DB ping when the SQL store is in use.
    Returns 503 if database is unreachable.
    """
    health_status = {
        "status": "healthy",
        "account_store": settings.ACCOUNT_STORE_BACKEND,
        "database": "not used",
        "email": "configured" if settings.email_configured else "log only",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if settings.ACCOUNT_STORE_BACKEND != "sql":
        return health_status

    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["database"] = f"error: {type(e).__name__}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
