# =============================================================================
# core/models/subscription.py - Subscription Schemas
# =============================================================================
# Plans, the usage snapshot returned by get_subscription_info, and the
# fixed early-adopter grant.
# =============================================================================

from enum import Enum

from pydantic import BaseModel, Field


class Plan(str, Enum):
    STARTER = "starter"
    PRO = "pro"
    ENTERPRISE = "enterprise"
    EARLY_ADOPTER = "early_adopter"


# Plans sold through checkout
BILLABLE_PLANS = (Plan.STARTER, Plan.PRO, Plan.ENTERPRISE)

# Plans whose monthly delivery quota isn't enforced at upload
UNMETERED_DELIVERY_PLANS = (Plan.EARLY_ADOPTER.value, Plan.ENTERPRISE.value)


class SubscriptionInfo(BaseModel):
    """
    Usage and limits for one organization.

    Defaults describe a starter trial, which is what an organization
    without a subscription row gets.
    """

    plan: str = Plan.STARTER.value
    status: str = "trial"
    max_deliveries_per_month: int = 50
    max_storage_gb: float = 5
    max_users: int = 3
    max_file_size: int = 25
    ai_compliance_enabled: bool = False
    deliveries_this_month: int = 0
    storage_used_gb: float = 0

    model_config = {"extra": "allow"}


class CheckoutRequest(BaseModel):
    """Body of POST /subscription/checkout."""

    plan: str = Field(..., description="starter, pro or enterprise")


class CheckoutResponse(BaseModel):
    success: bool = True
    checkout_url: str


class EarlyAdopterAvailability(BaseModel):
    available: bool = False
    slots_remaining: int = 0
    program_active: bool = False


# Subscription row written when an early-adopter slot is claimed
EARLY_ADOPTER_SUBSCRIPTION = {
    "plan": Plan.EARLY_ADOPTER.value,
    "status": "active",
    "deliveries_limit": 10,
    "storage_limit_gb": 0.5,
    "users_limit": 1,
    "max_file_size_mb": 10,
    "ai_compliance_enabled": False,
    "custom_branding": False,
    "api_access": False,
}
