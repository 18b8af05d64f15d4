# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Sealdrop API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import settings
from app.exceptions import (
    SealdropException,
    sealdrop_exception_handler,
    validation_exception_handler,
)
from app.rate_limit import limiter
from app.routers import (
    cronjobs,
    deliveries,
    early_adopter,
    health,
    organization,
    subscription,
    waitlist,
)
from app.auth import routes as auth_routes
from lib.supabase_client import SupabaseClientError

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Every connection is created lazily on first use, so startup and
    shutdown only log.
    """
    logger.info(f"Starting Sealdrop API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    if not settings.RATE_LIMIT_ENABLED:
        logger.warning("Rate limiting is disabled")

    yield

    logger.info("Shutting down Sealdrop API")


# Create FastAPI application
app = FastAPI(
    title="Sealdrop API",
    description="""
## Secure File Delivery API

Sealdrop lets organizations send time-limited, access-controlled file
deliveries to external recipients.

### How It Works

1. **Upload** - A sender uploads a file with a recipient, expiry and quotas
2. **Notify** - The recipient gets a link by email
3. **Verify** - The recipient requests a one-time 6-digit code and enters it
4. **Download** - Downloads count against the quota; the delivery expires
   when the quota or the date runs out
5. **Purge** - A daily job deletes expired and revoked deliveries and their files
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Sign in, sign up, OAuth and token checks"},
        {"name": "Deliveries", "description": "Create, share and download deliveries"},
        {"name": "Organization", "description": "Members, invitations and settings"},
        {"name": "Subscription", "description": "Plan usage and checkout"},
        {"name": "Early Adopter", "description": "Early adopter program slots"},
        {"name": "Cron", "description": "Housekeeping triggers"},
        {"name": "Waitlist", "description": "Landing page sign-ups"},
        {"name": "Health", "description": "API health and readiness checks"},
    ],
)

app.state.limiter = limiter


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(SealdropException)
async def handle_sealdrop_exception(request: Request, exc: SealdropException):
    """Handle custom Sealdrop exceptions."""
    return await sealdrop_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    """Render request validation failures as 400 with field details."""
    return await validation_exception_handler(request, exc)


app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(SupabaseClientError)
async def handle_supabase_error(request: Request, exc: SupabaseClientError):
    """Database failures: log the detail, return a generic 500."""
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "Internal server error",
            "code": "DATABASE_ERROR",
        }
    )


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "message": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Authentication endpoints (router carries its own /auth prefix)
app.include_router(auth_routes.router, prefix="/api")

# Health check endpoints
app.include_router(health.router, prefix="/api", tags=["Health"])

# Delivery endpoints
app.include_router(deliveries.router, prefix="/api/deliveries", tags=["Deliveries"])

# Organization membership endpoints
app.include_router(organization.router, prefix="/api/organization", tags=["Organization"])

# Subscription endpoints
app.include_router(subscription.router, prefix="/api/subscription", tags=["Subscription"])

# Early adopter endpoints
app.include_router(early_adopter.router, prefix="/api/early-adopter", tags=["Early Adopter"])

# Scheduled job trigger
app.include_router(cronjobs.router, prefix="/api/cronjobs", tags=["Cron"])

# Waitlist
app.include_router(waitlist.router, prefix="/api/waitlist", tags=["Waitlist"])


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "Sealdrop API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }
