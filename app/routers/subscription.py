# =============================================================================
# app/routers/subscription.py - Subscription & Checkout Endpoints
# =============================================================================

from fastapi import APIRouter, Request

from app.dependencies import CurrentUser
from app.rate_limit import STANDARD, limiter
from core.models.subscription import CheckoutRequest, CheckoutResponse
from core.services.billing_service import BillingService
from core.services.organization_service import OrganizationService
from core.services.subscription_service import SubscriptionService

router = APIRouter()


@router.get("")
async def get_subscription(user: CurrentUser) -> dict:
    """
    Plan, limits and usage of the caller's organization.

    Organizations without a subscription see starter trial values.
    """
    profile = OrganizationService.get_actor(user.id)
    return {
        "success": True,
        "subscription": SubscriptionService.get_subscription(profile["organization_id"]),
    }


@router.post("/checkout", response_model=CheckoutResponse)
@limiter.limit(STANDARD)
async def create_checkout(request: Request, body: CheckoutRequest, user: CurrentUser):
    """
    Start a Lemon Squeezy checkout for a plan (owner only).

    Raises:
        400: Unknown plan
        403: Caller isn't the owner
        503: Plan has no variant configured
    """
    profile = OrganizationService.get_actor(user.id)
    url = BillingService.create_checkout(user.id, user.email, profile, body.plan)
    return CheckoutResponse(checkout_url=url)
