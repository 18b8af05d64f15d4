# =============================================================================
# app/dependencies.py - Shared Dependencies
# =============================================================================
# FastAPI dependency injection for shared resources.
# These are injected into route handlers using Depends().
# =============================================================================

from typing import Annotated

from fastapi import Depends, Request

from app.auth import AuthUser, get_current_user


CurrentUser = Annotated[AuthUser, Depends(get_current_user)]


def client_ip(request: Request) -> str:
    """Best-known client address, for access logs."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return (
        request.headers.get("x-real-ip")
        or (request.client.host if request.client else None)
        or "unknown"
    )


def user_agent(request: Request) -> str:
    return request.headers.get("user-agent") or "unknown"
