# =============================================================================
# app/auth/routes.py - Authentication Routes
# =============================================================================
# Wraps Supabase Auth for the web app:
# - POST /credentials/login     email + password sign-in
# - POST /credentials/register  email + password sign-up
# - POST /google                Google OAuth URL
# - POST /logout                revoke the caller's session
# - GET  /me, GET /verify       current user / token check
#
# Sign-in calls run on a throwaway anon-key client so the shared
# service-role client never holds a user session.
# =============================================================================

import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Request

from app.auth.dependencies import get_bearer_token, get_current_user
from app.auth.models import (
    AuthUser,
    GoogleAuthRequest,
    LoginRequest,
    RegisterRequest,
    SessionTokens,
    UserResponse,
)
from app.config import settings
from app.exceptions import AccountExistsError, AuthProviderError, InvalidCredentialsError
from app.rate_limit import STRICT, limiter
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])


def _tokens(session) -> SessionTokens | None:
    if session is None:
        return None
    return SessionTokens(
        access_token=session.access_token,
        refresh_token=session.refresh_token,
        expires_at=getattr(session, "expires_at", None),
    )


def _profile_or_none(user_id) -> dict | None:
    try:
        return SupabaseClient.fetch_profile(user_id)
    except SupabaseClientError as e:
        logger.warning(f"Could not fetch profile for {user_id}: {e}")
        return None


@router.post("/credentials/login")
@limiter.limit(STRICT)
async def login(request: Request, body: LoginRequest) -> dict:
    """
    Sign in with email and password.

    Returns the user, their profile and the session tokens.

    Raises:
        401: Invalid email or password
    """
    client = SupabaseClient.create_auth_client()

    try:
        response = client.auth.sign_in_with_password({
            "email": str(body.email),
            "password": body.password,
        })
    except Exception as e:
        logger.info(f"Sign-in rejected for {body.email}: {e}")
        raise InvalidCredentialsError()

    if response.user is None or response.session is None:
        raise InvalidCredentialsError()

    return {
        "success": True,
        "user": {"id": response.user.id, "email": response.user.email},
        "profile": _profile_or_none(response.user.id),
        "session": _tokens(response.session),
    }


@router.post("/credentials/register")
@limiter.limit(STRICT)
async def register(request: Request, body: RegisterRequest) -> dict:
    """
    Create an account with email and password.

    When the project requires email confirmation no session is returned
    and `requires_email_confirmation` is true.

    Raises:
        409: Email already registered
        400: Any other provider rejection
    """
    client = SupabaseClient.create_auth_client()
    email = str(body.email)

    try:
        response = client.auth.sign_up({
            "email": email,
            "password": body.password,
            "options": {
                "data": {
                    "full_name": body.name,
                    "name": body.name,
                    "company": body.company,
                },
                "email_redirect_to": f"{settings.APP_URL.rstrip('/')}/auth/callback",
            },
        })
    except Exception as e:
        message = str(e)
        if "already registered" in message.lower():
            raise AccountExistsError(email)
        logger.warning(f"Sign-up rejected for {email}: {message}")
        raise AuthProviderError(message)

    user = response.user
    if user is None:
        raise AuthProviderError("Failed to create user")

    # With confirmations on, GoTrue answers an existing address with an
    # identity-less user instead of an error
    if getattr(user, "identities", None) == []:
        raise AccountExistsError(email)

    logger.info(f"Registered user {user.id}")

    if response.session is None:
        return {
            "success": True,
            "requires_email_confirmation": True,
            "message": "Please check your email to confirm your account",
            "user": {"id": user.id, "email": user.email},
        }

    return {
        "success": True,
        "requires_email_confirmation": False,
        "message": "Account created successfully",
        "user": {"id": user.id, "email": user.email},
        "session": _tokens(response.session),
    }


@router.post("/google")
async def google_oauth(body: GoogleAuthRequest | None = None) -> dict:
    """
    Start the Google OAuth flow.

    Returns the provider URL; the browser comes back to
    {APP_URL}/auth/callback?next=<redirect_to>.
    """
    body = body or GoogleAuthRequest()
    client = SupabaseClient.create_auth_client()
    callback = f"{settings.APP_URL.rstrip('/')}/auth/callback?next={quote(body.redirect_to, safe='')}"

    try:
        response = client.auth.sign_in_with_oauth({
            "provider": "google",
            "options": {
                "redirect_to": callback,
                "query_params": {"access_type": "offline", "prompt": "consent"},
            },
        })
    except Exception as e:
        logger.error(f"Google OAuth start failed: {e}")
        raise AuthProviderError(str(e))

    return {"success": True, "url": response.url}


@router.post("/logout")
async def logout(token: str = Depends(get_bearer_token)) -> dict:
    """
    Revoke the session behind the bearer token.

    Raises:
        401: No token
        400: Provider refused the sign-out
    """
    client = SupabaseClient.get_client()

    try:
        client.auth.admin.sign_out(token)
    except Exception as e:
        logger.warning(f"Sign-out failed: {e}")
        raise AuthProviderError(str(e))

    return {"success": True, "message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    user: AuthUser = Depends(get_current_user)
) -> UserResponse:
    """
    Get the current authenticated user's profile.

    Raises:
        401: If not authenticated
    """
    profile = _profile_or_none(user.id)
    if profile:
        return UserResponse(**{**profile, "id": user.id, "email": profile.get("email") or user.email})

    # Auth user exists but the profile trigger hasn't run yet
    return UserResponse(id=user.id, email=user.email)


@router.get("/verify")
async def verify_token(
    user: AuthUser = Depends(get_current_user)
) -> dict:
    """
    Verify that the current token is valid.

    Raises:
        401: If token is invalid or expired
    """
    return {
        "valid": True,
        "user_id": str(user.id),
        "email": user.email
    }
