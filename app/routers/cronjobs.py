# =============================================================================
# app/routers/cronjobs.py - Scheduled Job Trigger
# =============================================================================
# HTTP entry point for an external scheduler. The same cleanup also runs
# from Celery beat (workers/tasks.py).
# =============================================================================

import hmac
import logging

from fastapi import APIRouter, Header

from app.config import settings
from app.exceptions import UnauthorizedError
from core.services.cleanup_service import CleanupService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def run_cleanup(authorization: str | None = Header(default=None)) -> dict:
    """
    Purge expired and revoked deliveries with their stored files.

    When CRON_SECRET is set the caller must send it as a bearer token.

    Returns:
        deleted/failed delivery counts and files_deleted/files_failed
    """
    if settings.CRON_SECRET:
        expected = f"Bearer {settings.CRON_SECRET}"
        if not authorization or not hmac.compare_digest(authorization, expected):
            raise UnauthorizedError("Invalid cron secret")

    result = CleanupService.run()
    return {
        "success": True,
        "message": f"Cleanup finished: {result.deleted} deleted, {result.failed} failed",
        **result.to_dict(),
    }
