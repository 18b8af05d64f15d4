# =============================================================================
# core/models/access_code.py - Access Code Schemas
# =============================================================================
# One-time 6-digit codes that gate a recipient's access to a delivery.
# A code is bound to (delivery, recipient email), lives 15 minutes and
# allows 3 verification attempts.
# =============================================================================

from datetime import datetime, timedelta

from pydantic import BaseModel, EmailStr, Field, field_validator

from lib.utils import sanitize_email

ACCESS_CODE_TTL = timedelta(minutes=15)
ACCESS_CODE_MAX_ATTEMPTS = 3
ACCESS_CODE_MIN = 100000
ACCESS_CODE_MAX = 999999


class RequestAccessRequest(BaseModel):
    """Body of POST /deliveries/{id}/request-access."""

    email: EmailStr

    @field_validator("email", mode="before")
    @classmethod
    def clean_email(cls, value):
        return sanitize_email(value) if isinstance(value, str) else value


class RequestAccessResponse(BaseModel):
    """
    Returned when a code was issued.

    The message differs when the email could not be sent; the code is
    stored either way so the recipient can simply retry.
    """

    success: bool = True
    message: str
    expires_at: datetime


class VerifyAccessRequest(BaseModel):
    """Body of POST /deliveries/{id}/verify-access."""

    code: str = Field(..., min_length=1, max_length=6)
    email: EmailStr

    @field_validator("code")
    @classmethod
    def strip_code(cls, value: str) -> str:
        return value.strip()

    @field_validator("email", mode="before")
    @classmethod
    def clean_email(cls, value):
        return sanitize_email(value) if isinstance(value, str) else value


class VerifyAccessResponse(BaseModel):
    success: bool = True
    message: str = "Access granted"
    verified: bool = True
