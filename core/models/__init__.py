# =============================================================================
# core/models/ - Pydantic Data Models
# =============================================================================
# This package contains Pydantic schemas for data validation:
# - delivery.py: Delivery CRUD schemas and status enum
# - access_code.py: One-time access code constants and request bodies
# - organization.py: Roles, membership and settings schemas
# - subscription.py: Plans, usage snapshot, early-adopter grant
#
# These models define the "contract" between API and clients.
# =============================================================================

# -----------------------------------------------------------------------------
# Delivery Models
# -----------------------------------------------------------------------------
from .delivery import (
    DEFAULT_MAX_DOWNLOADS,
    DEFAULT_MAX_VIEWS,
    DeliveryCreate,
    DeliveryFileResponse,
    DeliveryResponse,
    DeliveryStatus,
    DeliveryStatusUpdate,
)

# -----------------------------------------------------------------------------
# Access Code Models
# -----------------------------------------------------------------------------
from .access_code import (
    ACCESS_CODE_MAX,
    ACCESS_CODE_MAX_ATTEMPTS,
    ACCESS_CODE_MIN,
    ACCESS_CODE_TTL,
    RequestAccessRequest,
    RequestAccessResponse,
    VerifyAccessRequest,
    VerifyAccessResponse,
)

# -----------------------------------------------------------------------------
# Organization Models
# -----------------------------------------------------------------------------
from .organization import (
    ASSIGNABLE_ROLES,
    InvitationResponse,
    MemberAdd,
    MemberResponse,
    OrganizationSettings,
    OrganizationSettingsUpdate,
    Role,
    RoleUpdate,
)

# -----------------------------------------------------------------------------
# Subscription Models
# -----------------------------------------------------------------------------
from .subscription import (
    BILLABLE_PLANS,
    EARLY_ADOPTER_SUBSCRIPTION,
    UNMETERED_DELIVERY_PLANS,
    CheckoutRequest,
    CheckoutResponse,
    EarlyAdopterAvailability,
    Plan,
    SubscriptionInfo,
)

__all__ = [
    # Delivery
    "DEFAULT_MAX_DOWNLOADS",
    "DEFAULT_MAX_VIEWS",
    "DeliveryCreate",
    "DeliveryFileResponse",
    "DeliveryResponse",
    "DeliveryStatus",
    "DeliveryStatusUpdate",
    # Access codes
    "ACCESS_CODE_MAX",
    "ACCESS_CODE_MAX_ATTEMPTS",
    "ACCESS_CODE_MIN",
    "ACCESS_CODE_TTL",
    "RequestAccessRequest",
    "RequestAccessResponse",
    "VerifyAccessRequest",
    "VerifyAccessResponse",
    # Organization
    "ASSIGNABLE_ROLES",
    "InvitationResponse",
    "MemberAdd",
    "MemberResponse",
    "OrganizationSettings",
    "OrganizationSettingsUpdate",
    "Role",
    "RoleUpdate",
    # Subscription
    "BILLABLE_PLANS",
    "EARLY_ADOPTER_SUBSCRIPTION",
    "UNMETERED_DELIVERY_PLANS",
    "CheckoutRequest",
    "CheckoutResponse",
    "EarlyAdopterAvailability",
    "Plan",
    "SubscriptionInfo",
]
