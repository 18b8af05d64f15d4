# =============================================================================
# app/auth/models.py - Authentication Models
# =============================================================================
# Pydantic models for authentication data and the credential endpoints.
# =============================================================================

import re
from uuid import UUID
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from lib.utils import sanitize_email, sanitize_text

PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
)


class AuthUser(BaseModel):
    """
    Authenticated user extracted from Supabase JWT.

    This is the minimal user info available from the token itself,
    without querying the database.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID
    email: Optional[str] = None


class UserResponse(BaseModel):
    """
    Current user with their profile row from public.profiles.
    """
    id: UUID
    email: Optional[str] = None
    full_name: Optional[str] = None
    organization_id: Optional[UUID] = None
    role: Optional[str] = None
    is_active: Optional[bool] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def clean_email(cls, value):
        return sanitize_email(value) if isinstance(value, str) else value


class RegisterRequest(BaseModel):
    """
    Body of POST /auth/credentials/register.

    Password: at least 8 characters with upper, lower and a digit.
    """
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str
    company: Optional[str] = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def clean_name(cls, value: str) -> str:
        cleaned = sanitize_text(value)
        if len(cleaned) < 2:
            raise ValueError("Name must be at least 2 characters")
        return cleaned

    @field_validator("email", mode="before")
    @classmethod
    def clean_email(cls, value):
        return sanitize_email(value) if isinstance(value, str) else value

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        for pattern, message in PASSWORD_RULES:
            if not pattern.search(value):
                raise ValueError(message)
        return value

    @model_validator(mode="after")
    def passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class GoogleAuthRequest(BaseModel):
    # Path inside the web app to land on after the OAuth callback
    redirect_to: str = Field(default="/dashboard", max_length=512)

    @field_validator("redirect_to")
    @classmethod
    def relative_only(cls, value: str) -> str:
        # Open redirects: only same-site paths
        if not value.startswith("/") or value.startswith("//"):
            return "/dashboard"
        return value


class SessionTokens(BaseModel):
    access_token: str
    refresh_token: str
    expires_at: Optional[int] = None
