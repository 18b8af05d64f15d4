# =============================================================================
# core/services/billing_service.py - Lemon Squeezy Checkout
# =============================================================================
# Creates hosted checkout sessions. The organization and user ids travel in
# checkout_data.custom so the payment webhook can reconcile the purchase.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

import httpx

from app.config import settings
from app.exceptions import (
    CheckoutError,
    InsufficientPermissionsError,
    InvalidPlanError,
    PlanNotConfiguredError,
)
from core.models.organization import Role
from core.models.subscription import BILLABLE_PLANS

logger = logging.getLogger(__name__)

LEMONSQUEEZY_CHECKOUTS_URL = "https://api.lemonsqueezy.com/v1/checkouts"
LEMONSQUEEZY_TIMEOUT_SECONDS = 15.0


class BillingService:

    @staticmethod
    def _variant_for(plan: str | None) -> str:
        if plan not in {p.value for p in BILLABLE_PLANS}:
            raise InvalidPlanError(plan)
        variant_id = settings.plan_variant_ids.get(plan)
        if not variant_id:
            raise PlanNotConfiguredError(plan)
        return variant_id

    @staticmethod
    def create_checkout(
        user_id: str | UUID,
        user_email: str | None,
        profile: dict[str, Any],
        plan: str | None,
    ) -> str:
        """
        Create a checkout for `plan` and return its URL.

        Raises:
            InsufficientPermissionsError: Caller isn't the owner
            InvalidPlanError: Unknown plan (400)
            PlanNotConfiguredError: No variant id for the plan (503)
            CheckoutError: Lemon Squeezy failed
        """
        if profile.get("role") != Role.OWNER.value:
            raise InsufficientPermissionsError(
                "Only organization owner can manage billing",
                required_role=Role.OWNER.value,
            )

        variant_id = BillingService._variant_for(plan)

        body = {
            "data": {
                "type": "checkouts",
                "attributes": {
                    "checkout_data": {
                        "email": user_email or profile.get("email"),
                        "name": profile.get("full_name") or "",
                        "custom": {
                            "organization_id": str(profile.get("organization_id")),
                            "user_id": str(user_id),
                        },
                    },
                    "product_options": {
                        "redirect_url": f"{settings.APP_URL.rstrip('/')}/subscription?checkout=success",
                    },
                },
                "relationships": {
                    "store": {"data": {"type": "stores", "id": str(settings.LEMONSQUEEZY_STORE_ID)}},
                    "variant": {"data": {"type": "variants", "id": str(variant_id)}},
                },
            }
        }
        headers = {
            "Accept": "application/vnd.api+json",
            "Content-Type": "application/vnd.api+json",
            "Authorization": f"Bearer {settings.LEMONSQUEEZY_API_KEY}",
        }

        try:
            response = httpx.post(
                LEMONSQUEEZY_CHECKOUTS_URL,
                headers=headers,
                json=body,
                timeout=LEMONSQUEEZY_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            url = response.json()["data"]["attributes"]["url"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Checkout creation failed for plan {plan}: {e}")
            raise CheckoutError(str(e))

        logger.info(f"Created {plan} checkout for organization {profile.get('organization_id')}")
        return url
