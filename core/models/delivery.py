# =============================================================================
# core/models/delivery.py - Delivery Schemas
# =============================================================================
# These models define the API contract for delivery operations:
# - DeliveryStatus: Enum for delivery states
# - DeliveryCreate: Input for creating a delivery
# - DeliveryStatusUpdate: Input for changing a delivery's status
# - DeliveryResponse / DeliveryFileResponse: Output shapes
#
# A delivery is one set of files shared with one external recipient under
# an expiry date and view/download quotas.
# =============================================================================

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from lib.utils import sanitize_email, sanitize_text


class DeliveryStatus(str, Enum):
    """
    Possible states for a delivery.

    - active: Recipient can request codes, view and download
    - expired: Past expiry or quota; terminal
    - revoked: Withdrawn by the sender; terminal

    Flow: active -> expired | revoked (never back)
    """
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"

    @property
    def is_terminal(self) -> bool:
        return self is not DeliveryStatus.ACTIVE


# Default quotas when the sender doesn't set them
DEFAULT_MAX_VIEWS = 10
DEFAULT_MAX_DOWNLOADS = 5


class DeliveryCreate(BaseModel):
    """
    Schema for creating a new delivery.

    Example:
        {
            "title": "Q3 contract",
            "recipient_email": "client@example.com",
            "message": "Signed copy attached",
            "expires_at": "2024-02-01T00:00:00Z",
            "max_views": 10,
            "max_downloads": 5
        }
    """

    title: str = Field(
        ...,
        max_length=200,
        description="Title shown to the recipient"
    )

    recipient_email: EmailStr = Field(
        ...,
        description="Only this address can unlock the delivery"
    )

    message: str | None = Field(
        default=None,
        max_length=2000,
        description="Optional note shown alongside the files"
    )

    expires_at: datetime = Field(
        ...,
        description="When the delivery stops being accessible"
    )

    max_views: int = Field(default=DEFAULT_MAX_VIEWS, ge=1)

    max_downloads: int = Field(default=DEFAULT_MAX_DOWNLOADS, ge=1)

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        cleaned = sanitize_text(value)
        if not cleaned:
            raise ValueError("Title is required")
        return cleaned

    @field_validator("recipient_email", mode="before")
    @classmethod
    def clean_recipient(cls, value):
        return sanitize_email(value) if isinstance(value, str) else value

    @field_validator("message")
    @classmethod
    def clean_message(cls, value: str | None) -> str | None:
        return sanitize_text(value) or None


class DeliveryStatusUpdate(BaseModel):
    """Schema for POST /deliveries/{id}/status.

    Status is a plain string; DeliveryStatus validation happens in the service.
    """

    status: str = Field(..., description="active, expired or revoked")


class DeliveryFileResponse(BaseModel):
    """A file attached to a delivery."""

    id: UUID
    delivery_id: UUID
    filename: str
    original_name: str
    mime_type: str
    size: int
    storage_path: str
    hash: str | None = None


class DeliveryResponse(BaseModel):
    """
    Schema for returning delivery data to clients.

    Returned by:
    - POST /deliveries
    - POST /deliveries/upload
    - GET /deliveries, GET /deliveries/{id}
    - POST /deliveries/{id}/status
    """

    id: UUID
    title: str
    message: str | None = None
    recipient_email: str
    expires_at: datetime
    status: DeliveryStatus
    current_views: int = 0
    max_views: int = DEFAULT_MAX_VIEWS
    current_downloads: int = 0
    max_downloads: int = DEFAULT_MAX_DOWNLOADS
    sender_id: UUID | None = None
    organization_id: UUID | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    delivery_files: list[DeliveryFileResponse] = Field(default_factory=list)
