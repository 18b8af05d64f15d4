# =============================================================================
# core/services/organization_service.py - Membership & Settings
# =============================================================================
# Role-gated operations over an organization's members, invitations and
# settings. Role hierarchy: member < admin < owner.
#
#   list/add/remove members, list/cancel invitations, settings -> admin+
#   change a role, remove an admin                             -> owner
#   remove yourself, touch the owner                           -> never
#
# The caller's profile is re-read on every call; nothing is cached between
# requests. Removing a member is a soft removal: the profile row stays.
# =============================================================================

import logging
from typing import Any
from uuid import UUID

from app.exceptions import (
    InsufficientPermissionsError,
    InvalidSettingsError,
    InvitationNotFoundError,
    MemberNotFoundError,
    MemberNotInOrganizationError,
    MembershipRuleError,
    OrganizationNotFoundError,
)
from core.models.organization import (
    ASSIGNABLE_ROLES,
    OrganizationSettings,
    OrganizationSettingsUpdate,
    Role,
)
from core.services.subscription_service import SubscriptionService
from lib.supabase_client import SupabaseClient, is_no_rows_error
from lib.utils import normalize_uuid, utc_now

logger = logging.getLogger(__name__)

MEMBER_COLUMNS = "id, email, full_name, role, is_active, created_at"
INVITATION_COLUMNS = "id, email, full_name, role, invited_at, invited_by"
SETTINGS_COLUMNS = (
    "name, domain, logo_url, max_expiration_hours, min_expiration_hours, "
    "max_views, max_downloads"
)


def _role_of(profile: dict[str, Any]) -> Role:
    try:
        return Role(profile.get("role") or Role.MEMBER.value)
    except ValueError:
        return Role.MEMBER


class MembershipRules:
    """
    Pure role checks, kept free of I/O so every role pair can be tested.

    Each check raises the matching SealdropException or returns None.
    """

    @staticmethod
    def require_manager(actor: dict[str, Any]) -> None:
        if not _role_of(actor).at_least(Role.ADMIN):
            raise InsufficientPermissionsError(required_role=Role.ADMIN.value)

    @staticmethod
    def check_target(actor: dict[str, Any], target: dict[str, Any] | None, member_id: str) -> dict[str, Any]:
        if not target:
            raise MemberNotFoundError(member_id)
        if str(target.get("organization_id")) != str(actor.get("organization_id")):
            raise MemberNotInOrganizationError(member_id)
        return target

    @staticmethod
    def check_removal(actor: dict[str, Any], target: dict[str, Any]) -> None:
        target_role = _role_of(target)
        if target_role is Role.OWNER:
            raise MembershipRuleError("Cannot remove the organization owner", code="OWNER_PROTECTED")
        if target_role is Role.ADMIN and _role_of(actor) is not Role.OWNER:
            raise InsufficientPermissionsError(
                "Only the owner can remove admins",
                required_role=Role.OWNER.value,
            )

    @staticmethod
    def require_owner_for_role_change(actor: dict[str, Any]) -> None:
        if _role_of(actor) is not Role.OWNER:
            raise InsufficientPermissionsError(
                "Only the owner can change member roles",
                required_role=Role.OWNER.value,
            )

    @staticmethod
    def parse_assignable_role(role: str | None) -> Role:
        if not role:
            raise MembershipRuleError("Role is required", code="ROLE_REQUIRED")
        if role not in {r.value for r in ASSIGNABLE_ROLES}:
            raise MembershipRuleError("Invalid role. Must be 'admin' or 'member'", code="INVALID_ROLE")
        return Role(role)

    @staticmethod
    def check_role_change(target: dict[str, Any]) -> None:
        if _role_of(target) is Role.OWNER:
            raise MembershipRuleError("Cannot change owner role", code="OWNER_PROTECTED")


class OrganizationService:
    """
    Service for organization membership and settings.
    """

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    @staticmethod
    def get_actor(user_id: str | UUID) -> dict[str, Any]:
        """
        Re-read the caller's profile.

        Raises:
            OrganizationNotFoundError: No profile, or no organization
        """
        profile = SupabaseClient.fetch_profile(user_id)
        if not profile or not profile.get("organization_id"):
            raise OrganizationNotFoundError()
        return profile

    @staticmethod
    def _fetch_target(member_id: str) -> dict[str, Any] | None:
        return SupabaseClient.fetch_profile(member_id, columns="id, organization_id, role, email")

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    @staticmethod
    def list_members(user_id: str | UUID) -> list[dict[str, Any]]:
        actor = OrganizationService.get_actor(user_id)
        MembershipRules.require_manager(actor)

        client = SupabaseClient.get_client()
        response = (
            client.table("profiles")
            .select(MEMBER_COLUMNS)
            .eq("organization_id", str(actor["organization_id"]))
            .order("created_at", desc=False)
            .execute()
        )
        return response.data or []

    @staticmethod
    def add_member(user_id: str | UUID, email: str, role: Role) -> dict[str, Any]:
        """
        Attach a user to the caller's organization by email.

        Users who haven't signed up yet get `requires_registration`; they
        join when they first sign in with the organization's SSO domain.

        Raises:
            InsufficientPermissionsError, MembershipRuleError (400),
            SubscriptionLimitError (402)
        """
        actor = OrganizationService.get_actor(user_id)
        MembershipRules.require_manager(actor)
        role = MembershipRules.parse_assignable_role(role.value if isinstance(role, Role) else role)

        organization_id = str(actor["organization_id"])
        email = email.strip().lower()
        email_domain = email.rsplit("@", 1)[-1]

        organization = SupabaseClient.fetch_organization(organization_id)
        if not organization:
            raise OrganizationNotFoundError()

        domain = organization.get("domain")
        if domain and email_domain != domain.lower():
            raise MembershipRuleError(
                f"Email domain must match organization domain (@{domain})",
                code="DOMAIN_MISMATCH",
            )

        SubscriptionService.check_member_allowed(organization_id)

        client = SupabaseClient.get_client()
        try:
            existing = (
                client.table("profiles")
                .select("id, organization_id, email")
                .eq("email", email)
                .single()
                .execute()
            ).data
        except Exception as e:
            if not is_no_rows_error(e):
                raise
            existing = None

        if existing and existing.get("organization_id"):
            raise MembershipRuleError(
                "User already belongs to an organization",
                code="ALREADY_IN_ORGANIZATION",
            )

        if existing:
            client.table("profiles").update({
                "organization_id": organization_id,
                "role": role.value,
                "is_active": True,
            }).eq("id", existing["id"]).execute()
            logger.info(f"Added existing user {existing['id']} to organization {organization_id} as {role.value}")
            return {
                "success": True,
                "message": f"{email} has been added to your organization",
                "requires_registration": False,
            }

        logger.info(f"{email} has no account yet; will join {organization_id} on first SSO sign-in")
        return {
            "success": True,
            "message": (
                f"{email} has been registered. They will be automatically added to "
                "your organization when they sign in with SSO."
            ),
            "requires_registration": True,
        }

    @staticmethod
    def remove_member(user_id: str | UUID, member_id: str | UUID) -> dict[str, Any]:
        """
        Soft-remove a member: clear organization, downgrade to member,
        deactivate. The profile row is never deleted.
        """
        actor = OrganizationService.get_actor(user_id)
        MembershipRules.require_manager(actor)

        member_id_str = normalize_uuid(member_id)
        if member_id_str == str(actor["id"]):
            raise MembershipRuleError(
                "Cannot remove yourself from the organization",
                code="SELF_REMOVAL",
            )

        target = MembershipRules.check_target(
            actor, OrganizationService._fetch_target(member_id_str), member_id_str
        )
        MembershipRules.check_removal(actor, target)

        client = SupabaseClient.get_client()
        client.table("profiles").update({
            "organization_id": None,
            "role": Role.MEMBER.value,
            "is_active": False,
        }).eq("id", member_id_str).execute()

        logger.info(f"Member {member_id_str} removed from organization {actor['organization_id']} by {actor['id']}")
        return {"success": True, "message": "Member removed from organization successfully"}

    @staticmethod
    def change_role(user_id: str | UUID, member_id: str | UUID, role: str | None) -> dict[str, Any]:
        actor = OrganizationService.get_actor(user_id)
        MembershipRules.require_owner_for_role_change(actor)
        new_role = MembershipRules.parse_assignable_role(role)

        member_id_str = normalize_uuid(member_id)
        target = MembershipRules.check_target(
            actor, OrganizationService._fetch_target(member_id_str), member_id_str
        )
        MembershipRules.check_role_change(target)

        client = SupabaseClient.get_client()
        client.table("profiles").update({"role": new_role.value}).eq("id", member_id_str).execute()

        logger.info(f"Member {member_id_str} role -> {new_role.value}")
        return {
            "success": True,
            "message": "Member role updated successfully",
            "role": new_role.value,
        }

    # -------------------------------------------------------------------------
    # Invitations
    # -------------------------------------------------------------------------

    @staticmethod
    def list_invitations(user_id: str | UUID) -> list[dict[str, Any]]:
        actor = OrganizationService.get_actor(user_id)
        MembershipRules.require_manager(actor)

        client = SupabaseClient.get_client()
        response = (
            client.table("organization_invitations")
            .select(INVITATION_COLUMNS)
            .eq("organization_id", str(actor["organization_id"]))
            .eq("is_accepted", False)
            .order("invited_at", desc=True)
            .execute()
        )
        return response.data or []

    @staticmethod
    def cancel_invitation(user_id: str | UUID, invitation_id: str | UUID) -> dict[str, Any]:
        actor = OrganizationService.get_actor(user_id)
        MembershipRules.require_manager(actor)

        invitation_id_str = normalize_uuid(invitation_id)
        client = SupabaseClient.get_client()
        try:
            invitation = (
                client.table("organization_invitations")
                .select("id, organization_id")
                .eq("id", invitation_id_str)
                .single()
                .execute()
            ).data
        except Exception as e:
            if not is_no_rows_error(e):
                raise
            invitation = None

        if not invitation:
            raise InvitationNotFoundError(invitation_id_str)
        if str(invitation.get("organization_id")) != str(actor["organization_id"]):
            raise InsufficientPermissionsError("Invitation belongs to another organization")

        client.table("organization_invitations").delete().eq("id", invitation_id_str).execute()

        logger.info(f"Invitation {invitation_id_str} cancelled by {actor['id']}")
        return {"success": True, "message": "Invitation cancelled successfully"}

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    @staticmethod
    def get_settings(user_id: str | UUID) -> OrganizationSettings:
        actor = OrganizationService.get_actor(user_id)
        MembershipRules.require_manager(actor)

        organization = SupabaseClient.fetch_organization(actor["organization_id"])
        if not organization:
            raise OrganizationNotFoundError()
        return OrganizationSettings(**organization)

    @staticmethod
    def update_settings(user_id: str | UUID, update: OrganizationSettingsUpdate) -> OrganizationSettings:
        """
        Write only the fields present in the request.

        Raises:
            InvalidSettingsError: Resulting min expiration exceeds max
        """
        actor = OrganizationService.get_actor(user_id)
        MembershipRules.require_manager(actor)

        organization_id = str(actor["organization_id"])
        changes = update.model_dump(exclude_unset=True)

        current = SupabaseClient.fetch_organization(organization_id)
        if not current:
            raise OrganizationNotFoundError()

        merged = {**current, **changes}
        min_hours = merged.get("min_expiration_hours")
        max_hours = merged.get("max_expiration_hours")
        if min_hours is not None and max_hours is not None and min_hours > max_hours:
            raise InvalidSettingsError("Min expiration hours cannot be greater than max expiration hours")

        if changes:
            changes["updated_at"] = utc_now().isoformat()
            client = SupabaseClient.get_client()
            response = (
                client.table("organizations")
                .update(changes)
                .eq("id", organization_id)
                .execute()
            )
            if response.data:
                merged = response.data[0]
            logger.info(f"Organization {organization_id} settings updated: {sorted(changes)}")

        return OrganizationSettings(**merged)
