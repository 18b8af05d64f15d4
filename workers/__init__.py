# =============================================================================
# workers/ - Celery Background Task Workers
# =============================================================================
# This package contains the Celery configuration and task definitions for
# scheduled housekeeping.
#
# Components:
# - celery_app.py: Celery application configuration and lifecycle logging
# - tasks.py: Task definitions (delivery cleanup)
# - config.py: Worker settings and the beat schedule
#
# Usage:
#   # Start worker
#   celery -A workers.celery_app worker --loglevel=info
#
#   # Start the scheduler (daily cleanup at midnight UTC)
#   celery -A workers.celery_app beat --loglevel=info
#
#   # Trigger cleanup by hand
#   from workers.tasks import cleanup_expired_deliveries
#   cleanup_expired_deliveries.delay()
# =============================================================================

from .celery_app import celery_app
from . import tasks

__all__ = [
    "celery_app",
    "tasks",
]
