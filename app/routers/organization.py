# =============================================================================
# app/routers/organization.py - Organization Membership Endpoints
# =============================================================================
# Role-gated member, invitation and settings management.
# All endpoints require authentication; rules live in OrganizationService.
# =============================================================================

from uuid import UUID

from fastapi import APIRouter, Path, Request

from app.dependencies import CurrentUser
from app.rate_limit import STANDARD, limiter
from core.models.organization import (
    InvitationResponse,
    MemberAdd,
    MemberResponse,
    OrganizationSettings,
    OrganizationSettingsUpdate,
    RoleUpdate,
)
from core.services.organization_service import OrganizationService

router = APIRouter()


# =============================================================================
# Members
# =============================================================================

@router.get("/members")
async def list_members(user: CurrentUser) -> dict:
    """
    List members of the caller's organization (admin+).

    Raises:
        403: Caller is a plain member
        404: Caller has no organization
    """
    members = OrganizationService.list_members(user.id)
    return {
        "success": True,
        "members": [MemberResponse(**m) for m in members],
    }


@router.post("/members")
@limiter.limit(STANDARD)
async def add_member(request: Request, body: MemberAdd, user: CurrentUser) -> dict:
    """
    Add a user to the organization by email (admin+).

    Raises:
        400: Domain mismatch, user already in an organization, bad role
        402: Plan's user limit reached
        403: Caller is a plain member
    """
    return OrganizationService.add_member(user.id, str(body.email), body.role)


@router.delete("/members/{member_id}")
async def remove_member(user: CurrentUser, member_id: UUID = Path(...)) -> dict:
    """
    Remove a member (admin+; removing an admin needs the owner).

    The member's profile is kept: organization cleared, role reset to
    member, account deactivated.

    Raises:
        400: Removing yourself or the owner
        403: Insufficient role, or member of another organization
        404: Member not found
    """
    return OrganizationService.remove_member(user.id, member_id)


@router.patch("/members/{member_id}/role")
async def change_member_role(
    body: RoleUpdate,
    user: CurrentUser,
    member_id: UUID = Path(...),
) -> dict:
    """
    Change a member's role (owner only).

    Raises:
        400: Role missing or not admin/member, or target is the owner
        403: Caller isn't the owner, or member of another organization
        404: Member not found
    """
    return OrganizationService.change_role(user.id, member_id, body.role)


# =============================================================================
# Invitations
# =============================================================================

@router.get("/invitations")
async def list_invitations(user: CurrentUser) -> dict:
    """Pending invitations of the caller's organization (admin+)."""
    invitations = OrganizationService.list_invitations(user.id)
    return {
        "success": True,
        "invitations": [InvitationResponse(**i) for i in invitations],
    }


@router.delete("/invitations/{invitation_id}")
async def cancel_invitation(user: CurrentUser, invitation_id: UUID = Path(...)) -> dict:
    """
    Cancel a pending invitation (admin+).

    Raises:
        403: Invitation belongs to another organization
        404: Invitation not found
    """
    return OrganizationService.cancel_invitation(user.id, invitation_id)


# =============================================================================
# Settings
# =============================================================================

@router.get("/settings")
async def get_settings(user: CurrentUser) -> dict:
    settings = OrganizationService.get_settings(user.id)
    return {"success": True, "settings": settings}


@router.put("/settings")
async def update_settings(body: OrganizationSettingsUpdate, user: CurrentUser) -> dict:
    """
    Update organization settings (admin+). Omitted fields are unchanged.

    Raises:
        400: min_expiration_hours greater than max_expiration_hours
    """
    settings: OrganizationSettings = OrganizationService.update_settings(user.id, body)
    return {
        "success": True,
        "message": "Organization settings updated successfully",
        "settings": settings,
    }
