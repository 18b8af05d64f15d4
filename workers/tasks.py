# =============================================================================
# workers/tasks.py - Celery Task Definitions
# =============================================================================
# Tasks:
# - cleanup_expired_deliveries: Daily purge of expired/revoked deliveries
# - healthcheck: Verifies a worker is consuming
# =============================================================================

import logging
from typing import Any

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(bind=True, name="workers.tasks.cleanup_expired_deliveries")
def cleanup_expired_deliveries(self) -> dict[str, Any]:
    """
    Delete expired and revoked deliveries together with their S3 objects.

    Per-delivery failures are counted, not raised, so one bad row does
    not stop the rest of the run.

    Returns:
        Dict with success flag and deleted/failed/files_deleted/files_failed
    """
    from core.services.cleanup_service import CleanupService

    try:
        result = CleanupService.run()
    except Exception as e:
        logger.exception(f"Cleanup run failed: {e}")
        return {"success": False, "error": str(e)}

    logger.info(
        f"Cleanup finished: {result.deleted} deleted, {result.failed} failed, "
        f"{result.files_deleted} files removed"
    )
    return {"success": True, **result.to_dict()}


@shared_task(bind=True, name="workers.healthcheck")
def healthcheck(self) -> str:
    """
    Simple healthcheck task to verify worker is running.

    Usage:
        result = healthcheck.delay()
        result.get(timeout=5)  # "OK"
    """
    return "OK"
