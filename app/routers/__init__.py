# =============================================================================
# app/routers/ - API Route Definitions
# =============================================================================
# This package contains FastAPI routers organized by feature:
# - health.py: Health check endpoints
# - deliveries.py: Delivery CRUD, upload, access codes, downloads
# - organization.py: Members, invitations and settings
# - early_adopter.py: Early adopter availability and claim
# - subscription.py: Subscription usage and checkout
# - cronjobs.py: Cleanup trigger for external schedulers
# - waitlist.py: Landing page waitlist
#
# Each router is mounted in main.py with a URL prefix.
# =============================================================================

from . import health
from . import deliveries
from . import organization
from . import early_adopter
from . import subscription
from . import cronjobs
from . import waitlist

__all__ = [
    "health",
    "deliveries",
    "organization",
    "early_adopter",
    "subscription",
    "cronjobs",
    "waitlist",
]
