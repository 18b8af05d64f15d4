# =============================================================================
# app/routers/early_adopter.py - Early Adopter Program Endpoints
# =============================================================================

from fastapi import APIRouter

from app.dependencies import CurrentUser
from core.models.subscription import EarlyAdopterAvailability
from core.services.organization_service import OrganizationService
from core.services.subscription_service import SubscriptionService

router = APIRouter()


@router.get("/availability", response_model=EarlyAdopterAvailability)
async def availability():
    """Whether early adopter slots remain. Public."""
    return SubscriptionService.early_adopter_availability()


@router.post("/claim")
async def claim(user: CurrentUser) -> dict:
    """
    Claim an early adopter slot for the caller's organization.

    Raises:
        400: No slots left, or the organization already has one
        403: Caller is a plain member
        404: Caller has no organization
    """
    profile = OrganizationService.get_actor(user.id)
    return SubscriptionService.claim_early_adopter(user.id, profile)
