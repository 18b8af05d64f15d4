# =============================================================================
# core/models/organization.py - Organization & Membership Schemas
# =============================================================================
# - Role: member < admin < owner
# - MemberAdd / RoleUpdate: Membership mutations
# - OrganizationSettingsUpdate: Partial settings update
# - MemberResponse / InvitationResponse / OrganizationSettings: Output shapes
# =============================================================================

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from lib.utils import sanitize_email, sanitize_text


class Role(str, Enum):
    """
    Organization-scoped permission level.

    Ordered: member < admin < owner. Compare with `rank`, never with
    string ordering.
    """
    MEMBER = "member"
    ADMIN = "admin"
    OWNER = "owner"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def at_least(self, other: "Role") -> bool:
        return self.rank >= other.rank


_ROLE_RANK = {Role.MEMBER: 0, Role.ADMIN: 1, Role.OWNER: 2}

# Roles that can be handed out; ownership is never assigned this way
ASSIGNABLE_ROLES = (Role.ADMIN, Role.MEMBER)


class MemberAdd(BaseModel):
    """Body of POST /organization/members."""

    email: EmailStr
    role: Role = Role.MEMBER

    @field_validator("email", mode="before")
    @classmethod
    def clean_email(cls, value):
        return sanitize_email(value) if isinstance(value, str) else value


class RoleUpdate(BaseModel):
    """Body of PATCH /organization/members/{id}/role."""

    # Plain string: the membership rules produce the error for bad values
    role: str | None = None


class MemberResponse(BaseModel):
    id: UUID
    email: str | None = None
    full_name: str | None = None
    role: Role
    is_active: bool = True
    created_at: datetime | None = None


class InvitationResponse(BaseModel):
    id: UUID
    email: str
    full_name: str | None = None
    role: Role
    invited_at: datetime | None = None
    invited_by: UUID | None = None


class OrganizationSettings(BaseModel):
    """Settings shown on the organization page."""

    name: str
    domain: str | None = None
    logo_url: str | None = None
    max_expiration_hours: int | None = None
    min_expiration_hours: int | None = None
    max_views: int | None = None
    max_downloads: int | None = None


class OrganizationSettingsUpdate(BaseModel):
    """
    Partial update of organization settings.

    Only fields present in the request body are written.
    """

    name: str | None = Field(default=None, min_length=1, max_length=100)
    domain: str | None = Field(default=None, max_length=255)
    logo_url: str | None = Field(default=None, max_length=2048)
    max_expiration_hours: int | None = Field(default=None, ge=1)
    min_expiration_hours: int | None = Field(default=None, ge=1)
    max_views: int | None = Field(default=None, ge=1)
    max_downloads: int | None = Field(default=None, ge=1)

    @field_validator("name")
    @classmethod
    def clean_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = sanitize_text(value)
        if not cleaned:
            raise ValueError("Name cannot be blank")
        return cleaned

    @field_validator("domain")
    @classmethod
    def clean_domain(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().lower() or None
