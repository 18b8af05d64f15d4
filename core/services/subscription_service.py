# =============================================================================
# core/services/subscription_service.py - Plan Limits & Early Adopter Program
# =============================================================================
# Reads an organization's subscription through the get_subscription_info
# database function and enforces plan limits before uploads and member
# additions. Also wraps the early-adopter slot functions.
#
# Quota accounting and slot atomicity live in the database; this layer only
# reads their results and maps them to HTTP errors.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.exceptions import (
    EarlyAdopterClaimError,
    InsufficientPermissionsError,
    SubscriptionLimitError,
)
from core.models.organization import Role
from core.models.subscription import (
    EARLY_ADOPTER_SUBSCRIPTION,
    UNMETERED_DELIVERY_PLANS,
    EarlyAdopterAvailability,
    SubscriptionInfo,
)
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024
BYTES_PER_GB = 1024 * 1024 * 1024


def _first_row(data: Any) -> dict[str, Any] | None:
    """RPCs may return one object or a one-row set; normalize to a dict."""
    if isinstance(data, list):
        return data[0] if data else None
    return data or None


class SubscriptionService:
    """
    Service for subscription reads and plan-limit checks.
    """

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @staticmethod
    def fetch_info(organization_id: str | UUID) -> dict[str, Any] | None:
        """Raw get_subscription_info row, or None if the org has none."""
        data = SupabaseClient.call_rpc("get_subscription_info", {"org_id": str(organization_id)})
        return _first_row(data)

    @staticmethod
    def get_subscription(organization_id: str | UUID) -> dict[str, Any]:
        """
        Subscription and usage for display.

        Organizations without a subscription get the starter trial defaults.
        """
        info = SubscriptionService.fetch_info(organization_id)
        if info is None:
            logger.info(f"No subscription for organization {organization_id}, returning starter trial")
            return SubscriptionInfo().model_dump()
        return SubscriptionInfo(**info).model_dump()

    # -------------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------------

    @staticmethod
    def _require_active(organization_id: str | UUID) -> dict[str, Any]:
        try:
            info = SubscriptionService.fetch_info(organization_id)
        except SupabaseClientError as e:
            logger.error(f"Subscription lookup failed for {organization_id}: {e}")
            info = None

        if not info:
            raise SubscriptionLimitError(
                "Failed to fetch subscription information",
                status_code=500,
            )

        status = info.get("status")
        if status != "active":
            raise SubscriptionLimitError(
                f"Subscription is {status}. Please update your payment method.",
                details={"plan": info.get("plan")},
            )
        return info

    @staticmethod
    def check_upload_allowed(organization_id: str | UUID, file_size_bytes: int) -> dict[str, Any]:
        """
        Check an upload against the organization's plan.

        Raises:
            SubscriptionLimitError: 402 inactive or delivery quota used up,
                413 file over plan size, 507 storage quota exceeded
        """
        info = SubscriptionService._require_active(organization_id)
        plan = info.get("plan")

        if plan not in UNMETERED_DELIVERY_PLANS:
            used = info.get("deliveries_used") or 0
            limit = info.get("deliveries_limit") or 0
            if used >= limit:
                raise SubscriptionLimitError(
                    f"Delivery limit reached ({used}/{limit}). Please upgrade your plan.",
                    details={"plan": plan, "deliveries_used": used, "deliveries_limit": limit},
                )

        if file_size_bytes:
            size_mb = file_size_bytes / BYTES_PER_MB
            max_mb = info.get("max_file_size_mb") or 0
            if size_mb > max_mb:
                raise SubscriptionLimitError(
                    f"File size ({size_mb:.2f} MB) exceeds your plan limit of {max_mb} MB",
                    status_code=413,
                    details={"file_size_mb": round(size_mb, 2), "max_file_size_mb": max_mb},
                )

            current_gb = info.get("storage_used_gb") or 0
            limit_gb = info.get("storage_limit_gb") or 0
            new_gb = current_gb + file_size_bytes / BYTES_PER_GB
            if new_gb > limit_gb:
                raise SubscriptionLimitError(
                    f"Storage limit exceeded. This file would use {new_gb:.2f} GB of your {limit_gb} GB limit",
                    status_code=507,
                    details={"current_storage_gb": round(current_gb, 2), "storage_limit_gb": limit_gb},
                )

        return info

    @staticmethod
    def check_member_allowed(organization_id: str | UUID) -> None:
        """
        Check the organization has room for one more member.

        Raises:
            SubscriptionLimitError: 402 when the user limit is reached
        """
        info = SubscriptionService._require_active(organization_id)
        users_limit = info.get("users_limit") or 0

        client = SupabaseClient.get_client()
        response = (
            client.table("profiles")
            .select("id", count="exact")
            .eq("organization_id", str(organization_id))
            .execute()
        )
        current = response.count if response.count is not None else len(response.data or [])

        if current >= users_limit:
            raise SubscriptionLimitError(
                f"User limit reached ({current}/{users_limit}). Please upgrade your plan to add more members.",
                details={"current_members": current, "users_limit": users_limit},
            )

    @staticmethod
    def increment_delivery_usage(organization_id: str | UUID) -> bool:
        """Bump the monthly delivery counter. Failures are logged, never raised."""
        try:
            SupabaseClient.call_rpc("increment_delivery_usage", {"org_id": str(organization_id)})
            return True
        except SupabaseClientError as e:
            logger.error(f"Failed to increment delivery usage for {organization_id} (non-critical): {e}")
            return False

    # -------------------------------------------------------------------------
    # Early adopter program
    # -------------------------------------------------------------------------

    @staticmethod
    def early_adopter_availability() -> EarlyAdopterAvailability:
        data = SupabaseClient.call_rpc("check_early_adopter_availability")
        row = _first_row(data)
        if not row:
            return EarlyAdopterAvailability()
        return EarlyAdopterAvailability(
            available=bool(row.get("available", False)),
            slots_remaining=int(row.get("slots_remaining") or 0),
            program_active=bool(row.get("program_active", False)),
        )

    @staticmethod
    def claim_early_adopter(user_id: str | UUID, profile: dict[str, Any]) -> dict[str, Any]:
        """
        Claim an early-adopter slot for the caller's organization.

        The slot claim itself is atomic in claim_early_adopter_slot. The
        subscription upsert that follows is not rolled into it; an upsert
        failure is logged and the claim stands.

        Raises:
            InsufficientPermissionsError: Caller is a plain member
            EarlyAdopterClaimError: The database refused the claim
        """
        role = Role(profile.get("role") or Role.MEMBER.value)
        if not role.at_least(Role.ADMIN):
            raise InsufficientPermissionsError(
                "Only owners and admins can claim early adopter slots",
                required_role=Role.ADMIN.value,
            )

        organization_id = profile["organization_id"]
        result = _first_row(
            SupabaseClient.call_rpc("claim_early_adopter_slot", {"org_id": str(organization_id)})
        ) or {}

        if not result.get("success"):
            message = result.get("message") or "Failed to claim early adopter slot"
            logger.info(f"Early adopter claim refused for {organization_id}: {message}")
            raise EarlyAdopterClaimError(message)

        client = SupabaseClient.get_client()
        try:
            client.table("subscriptions").upsert(
                {"organization_id": str(organization_id), **EARLY_ADOPTER_SUBSCRIPTION},
                on_conflict="organization_id",
            ).execute()
        except Exception as e:
            logger.error(f"Slot claimed but subscription upsert failed for {organization_id}: {e}")

        logger.info(f"Organization {organization_id} claimed an early adopter slot (user {user_id})")
        return {
            "success": True,
            "message": result.get("message") or "Early adopter slot claimed",
            "is_early_adopter": True,
        }
