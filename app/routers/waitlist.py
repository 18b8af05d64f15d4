# =============================================================================
# app/routers/waitlist.py - Landing Page Waitlist
# =============================================================================
# Forwards sign-ups to a Google Sheets Apps Script webhook. The visitor
# always gets a success answer; sync problems only add a warning.
# =============================================================================

import logging
import re

import httpx
from fastapi import APIRouter, Request
from pydantic import BaseModel, Field, field_validator

from app.config import settings
from app.rate_limit import STRICT, limiter
from lib.utils import sanitize_email, sanitize_text, utc_now

logger = logging.getLogger(__name__)

router = APIRouter()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
WEBHOOK_TIMEOUT_SECONDS = 10.0


class WaitlistRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=254)
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("email")
    @classmethod
    def valid_email(cls, value: str) -> str:
        cleaned = sanitize_email(value)
        if not EMAIL_PATTERN.match(cleaned):
            raise ValueError("Invalid email format")
        return cleaned

    @field_validator("name")
    @classmethod
    def clean_name(cls, value: str) -> str:
        cleaned = sanitize_text(value)
        if not cleaned:
            raise ValueError("Name is required")
        return cleaned


@router.post("")
@limiter.limit(STRICT)
async def join_waitlist(request: Request, body: WaitlistRequest) -> dict:
    """
    Add an email to the waitlist.

    Raises:
        400: Missing name or malformed email
    """
    if not settings.GOOGLE_SHEETS_WEBHOOK_URL:
        logger.error("GOOGLE_SHEETS_WEBHOOK_URL not configured")
        return {
            "success": True,
            "message": "Added to waitlist!",
            "warning": "Sheet integration not configured",
        }

    payload = {
        "email": body.email,
        "name": body.name,
        "timestamp": utc_now().isoformat(),
        "source": "landing-page",
    }

    try:
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT_SECONDS) as client:
            response = await client.post(settings.GOOGLE_SHEETS_WEBHOOK_URL, json=payload)
        synced = response.is_success
        if not synced:
            logger.error(f"Google Sheets webhook returned {response.status_code}: {response.text[:200]}")
    except httpx.HTTPError as e:
        logger.error(f"Google Sheets webhook failed: {e}")
        synced = False

    if not synced:
        return {
            "success": True,
            "message": "Added to waitlist!",
            "warning": "Sheet sync pending",
        }

    return {"success": True, "message": "Successfully added to waitlist!"}
