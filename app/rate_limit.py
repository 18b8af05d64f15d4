# =============================================================================
# app/rate_limit.py - Per-Client Rate Limiting
# =============================================================================
# slowapi Limiter shared by all routers. Storage is Redis when it answers a
# ping at startup (so limits hold across workers), memory otherwise.
#
# Presets:
#   STRICT    5/minute        login, register, access-code requests
#   STANDARD  60/minute       ordinary authenticated calls
#   RELAXED   30/minute       file reads
#   UPLOAD    10 per 5 min    delivery uploads
#
# Usage:
#   @router.post("/login")
#   @limiter.limit(STRICT)
#   async def login(request: Request, ...): ...
# =============================================================================

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.config import settings

logger = logging.getLogger(__name__)

STRICT = "5/minute"
STANDARD = "60/minute"
RELAXED = "30/minute"
UPLOAD = "10 per 5 minutes"

# Enough of the Authorization header to tell tokens apart behind one IP
AUTH_KEY_PREFIX_LENGTH = 20


def client_key(request: Request) -> str:
    """
    Identify the caller for rate limiting.

    Proxy headers first (first X-Forwarded-For hop, X-Real-IP,
    CF-Connecting-IP), then the socket address. Authenticated requests
    also carry a prefix of their Authorization header.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    ip = (
        (forwarded_for.split(",")[0].strip() if forwarded_for else None)
        or request.headers.get("x-real-ip")
        or request.headers.get("cf-connecting-ip")
        or get_remote_address(request)
        or "unknown"
    )

    auth_header = request.headers.get("authorization")
    if auth_header:
        return f"{ip}-{auth_header[:AUTH_KEY_PREFIX_LENGTH]}"
    return ip


def _storage_uri() -> str:
    if not settings.RATE_LIMIT_ENABLED:
        return "memory://"
    try:
        import redis

        connection = redis.from_url(settings.REDIS_URL, socket_connect_timeout=1)
        connection.ping()
        return settings.REDIS_URL
    except Exception as e:
        logger.warning(f"Redis unavailable for rate limiting, using in-memory: {e}")
        return "memory://"


limiter = Limiter(
    key_func=client_key,
    storage_uri=_storage_uri(),
    enabled=settings.RATE_LIMIT_ENABLED,
    headers_enabled=False,
)
