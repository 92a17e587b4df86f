"""Main FastAPI application for the HireBuddy referral API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from hirebuddy import __version__
from hirebuddy.api.rate_limit import limiter
from hirebuddy.api.v1.health import router as health_router
from hirebuddy.api.v1.referral import router as referral_router
from hirebuddy.auth.tokens import TokenService
from hirebuddy.logging_config import configure_logging, get_logger
from hirebuddy.referral.errors import ReferralError, StorageError, Unauthenticated
from hirebuddy.referral.service import ReferralService, referral_service
from hirebuddy.settings import settings

configure_logging()
logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("app_starting", env=settings.env)

    app.state.referral_service.database.create_tables()
    logger.info("database_tables_created")

    yield

    logger.info("app_shutting_down")


def create_app(
    service: ReferralService | None = None,
    tokens: TokenService | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        service: Referral service (defaults to the module singleton)
        tokens: Token service (defaults to one over the service's database)

    Returns:
        Configured FastAPI app
    """
    service = service or referral_service
    is_production = settings.is_production

    app = FastAPI(
        title="HireBuddy Referral API",
        description="Referral codes, referral tracking and premium rewards",
        version=__version__,
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan,
    )

    app.state.referral_service = service
    app.state.token_service = tokens or TokenService(service.database)

    # Security Headers middleware (must be added before CORS)
    app.add_middleware(SecurityHeadersMiddleware)

    allowed_origins = [
        origin.strip()
        for origin in settings.allowed_origins.split(",")
        if origin.strip()
    ]

    # Block wildcard in production
    if is_production and "*" in allowed_origins:
        logger.error("cors_wildcard_blocked", message="Wildcard CORS not allowed in production")
        allowed_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
        max_age=3600,
    )

    # Rate limiting (shared instance from rate_limit module)
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many requests. Please try again later."},
        )

    @app.exception_handler(ReferralError)
    async def referral_error_handler(request: Request, exc: ReferralError):
        detail = exc.message
        headers = None
        if isinstance(exc, StorageError):
            # Storage details stay in the logs
            detail = StorageError.default_message
            logger.error("storage_error_response", path=request.url.path)
        elif isinstance(exc, Unauthenticated):
            headers = {"WWW-Authenticate": "Bearer"}
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": detail, "kind": exc.kind},
            headers=headers,
        )

    app.include_router(referral_router, prefix="/api/v1")
    app.include_router(health_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "env": settings.env,
        }

    return app


# Create app instance
app = create_app()
