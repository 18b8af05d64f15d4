# =============================================================================
# core/services/delivery_service.py - Delivery Business Logic
# =============================================================================
# Handles delivery creation, listing, status changes, uploads and downloads.
# Separates HTTP concerns from database/storage logic.
#
# The Supabase client uses the service-role key, so row-level security does
# not apply here: every sender-side operation checks the caller's
# organization explicitly, and every recipient-side operation checks the
# recipient email.
# =============================================================================

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any
from uuid import UUID

from app.exceptions import (
    DeliveryFileNotFoundError,
    DeliveryNotFoundError,
    DeliveryUnavailableError,
    DownloadLimitReachedError,
    EmailVerificationRequiredError,
    FileMetadataError,
    InvalidStatusTransitionError,
    InvalidStatusError,
    OrganizationRequiredError,
    RecipientMismatchError,
)
from core.models.delivery import DeliveryCreate, DeliveryStatus
from core.services.email_service import EmailSendError, EmailService
from core.services.storage_service import StorageService
from core.services.subscription_service import SubscriptionService
from lib.supabase_client import SupabaseClient, SupabaseClientError, is_no_rows_error
from lib.utils import normalize_uuid, parse_timestamp, storage_safe_name, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadedFile:
    """A file body ready to stream back to the recipient."""
    content: bytes
    original_name: str
    mime_type: str


class DeliveryService:
    """
    Service for delivery management operations.

    Provides a clean interface between API routes and database.
    """

    # -------------------------------------------------------------------------
    # Shared checks
    # -------------------------------------------------------------------------

    @staticmethod
    def require_organization(user_id: str | UUID) -> str:
        """
        Resolve the caller's organization id.

        Raises:
            OrganizationRequiredError: Caller has no organization
        """
        profile = SupabaseClient.fetch_profile(user_id, columns="id, organization_id")
        if not profile or not profile.get("organization_id"):
            raise OrganizationRequiredError()
        return str(profile["organization_id"])

    @staticmethod
    def check_recipient(
        delivery: dict[str, Any],
        email: str | None,
        status_code: int = 403,
    ) -> None:
        """
        Check the email is the delivery's recipient, ignoring case.

        Raises:
            RecipientMismatchError: On mismatch
        """
        recipient = (delivery.get("recipient_email") or "").strip().lower()
        if not email or email.strip().lower() != recipient:
            raise RecipientMismatchError(status_code=status_code)

    @staticmethod
    def check_accessible(delivery: dict[str, Any], now: datetime | None = None) -> None:
        """
        Check a delivery can still be accessed.

        Raises:
            DeliveryUnavailableError: Status isn't active, or past expiry
        """
        now = now or utc_now()
        if delivery.get("status") != DeliveryStatus.ACTIVE.value:
            raise DeliveryUnavailableError("Delivery is not active", code="DELIVERY_NOT_ACTIVE")
        if parse_timestamp(delivery["expires_at"]) < now:
            raise DeliveryUnavailableError("Delivery has expired", code="DELIVERY_EXPIRED")

    # -------------------------------------------------------------------------
    # Sender side
    # -------------------------------------------------------------------------

    @staticmethod
    def _insert_delivery(
        sender_id: str | UUID,
        organization_id: str,
        data: DeliveryCreate,
    ) -> dict[str, Any]:
        client = SupabaseClient.get_client()

        row = {
            "title": data.title,
            "message": data.message,
            "recipient_email": str(data.recipient_email).lower(),
            "expires_at": data.expires_at.isoformat(),
            "status": DeliveryStatus.ACTIVE.value,
            "max_views": data.max_views,
            "max_downloads": data.max_downloads,
            "current_views": 0,
            "current_downloads": 0,
            "sender_id": normalize_uuid(sender_id),
            "organization_id": organization_id,
        }

        response = client.table("deliveries").insert(row).execute()
        if not response.data:
            raise SupabaseClientError("Insert returned no data", code="CREATE_DELIVERY_FAILED")

        delivery = response.data[0]
        delivery.setdefault("delivery_files", [])
        logger.info(f"Created delivery: {delivery['id']} for organization: {organization_id}")
        return delivery

    @staticmethod
    def create_delivery(user_id: str | UUID, data: DeliveryCreate) -> dict[str, Any]:
        """
        Create a delivery without files.

        Raises:
            OrganizationRequiredError: Caller has no organization
        """
        organization_id = DeliveryService.require_organization(user_id)
        return DeliveryService._insert_delivery(user_id, organization_id, data)

    @staticmethod
    def list_deliveries(
        user_id: str | UUID,
        status: DeliveryStatus | None = None,
        sender_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """List the caller's organization's deliveries, newest first."""
        organization_id = DeliveryService.require_organization(user_id)
        client = SupabaseClient.get_client()

        query = (
            client.table("deliveries")
            .select("*, delivery_files(*)")
            .eq("organization_id", organization_id)
        )
        if status:
            query = query.eq("status", status.value)
        if sender_id:
            query = query.eq("sender_id", sender_id)

        response = query.order("created_at", desc=True).execute()
        return response.data or []

    @staticmethod
    def update_status(
        delivery_id: str | UUID,
        user_id: str | UUID,
        status: str,
    ) -> dict[str, Any]:
        """
        Change a delivery's status.

        Raises:
            InvalidStatusError: Unknown status (400)
            DeliveryNotFoundError: Delivery missing or owned by another organization
            InvalidStatusTransitionError: Delivery is already expired or revoked
        """
        try:
            new_status = DeliveryStatus(status)
        except ValueError:
            raise InvalidStatusError(status)

        organization_id = DeliveryService.require_organization(user_id)
        delivery = SupabaseClient.fetch_delivery(delivery_id, with_files=False)
        delivery_id_str = normalize_uuid(delivery_id)

        if not delivery or str(delivery.get("organization_id")) != organization_id:
            raise DeliveryNotFoundError(delivery_id_str)

        current = DeliveryStatus(delivery["status"])
        if current == new_status:
            return delivery
        if current.is_terminal:
            raise InvalidStatusTransitionError(current.value, new_status.value)

        client = SupabaseClient.get_client()
        response = (
            client.table("deliveries")
            .update({"status": new_status.value, "updated_at": utc_now().isoformat()})
            .eq("id", delivery_id_str)
            .execute()
        )
        if not response.data:
            raise DeliveryNotFoundError(delivery_id_str)

        logger.info(f"Delivery {delivery_id_str} status: {current.value} -> {new_status.value}")
        return response.data[0]

    @staticmethod
    def upload_delivery(
        user_id: str | UUID,
        sender_email: str | None,
        data: DeliveryCreate,
        filename: str,
        content: bytes,
        content_type: str | None,
    ) -> dict[str, Any]:
        """
        Create a delivery with one file.

        Steps:
        1. Resolve organization and check plan limits
        2. Insert the delivery row
        3. Put the file in S3 (encrypted) and hash it
        4. Insert the delivery_files row, deleting the object if that fails
        5. Bump usage and email the recipient (both best effort)

        Raises:
            OrganizationRequiredError, SubscriptionLimitError,
            StorageUploadError, FileMetadataError
        """
        organization_id = DeliveryService.require_organization(user_id)
        SubscriptionService.check_upload_allowed(organization_id, len(content))

        delivery = DeliveryService._insert_delivery(user_id, organization_id, data)
        delivery_id = str(delivery["id"])

        file_id = str(uuid.uuid4())
        original_name = filename or "file"
        mime_type = content_type or "application/octet-stream"
        key = StorageService.build_key(organization_id, delivery_id, file_id, original_name)
        stored = StorageService.upload_file(key, content, mime_type)

        file_row = {
            "id": file_id,
            "delivery_id": delivery_id,
            "filename": storage_safe_name(original_name),
            "original_name": original_name,
            "mime_type": mime_type,
            "size": stored.size,
            "storage_path": stored.key,
            "hash": stored.sha256,
        }

        client = SupabaseClient.get_client()
        try:
            client.table("delivery_files").insert(file_row).execute()
        except Exception as e:
            logger.error(f"Failed to save delivery_files row for {delivery_id}, rolling back {key}: {e}")
            try:
                StorageService.delete_file(key)
            except Exception as rollback_error:
                logger.error(f"S3 rollback failed, orphaned object may remain at {key}: {rollback_error}")
            raise FileMetadataError(str(e))

        SubscriptionService.increment_delivery_usage(organization_id)

        try:
            EmailService.send_delivery_notification(
                recipient_email=delivery["recipient_email"],
                sender_email=sender_email or "unknown@sender.com",
                delivery_id=delivery_id,
                delivery_title=delivery["title"],
                delivery_message=delivery.get("message"),
                expires_at=delivery["expires_at"],
                max_views=delivery["max_views"],
                max_downloads=delivery["max_downloads"],
                file_count=1,
            )
        except EmailSendError as e:
            logger.error(f"Failed to send delivery notification for {delivery_id} (non-critical): {e}")

        delivery["delivery_files"] = [file_row]
        logger.info(f"Delivery upload completed: {delivery_id} ({stored.size} bytes)")
        return delivery

    # -------------------------------------------------------------------------
    # Recipient side
    # -------------------------------------------------------------------------

    @staticmethod
    def get_for_recipient(delivery_id: str | UUID, email: str | None) -> dict[str, Any]:
        """
        Fetch a delivery for its recipient.

        Raises:
            DeliveryNotFoundError: Delivery missing
            EmailVerificationRequiredError: Email absent or not the recipient
        """
        delivery = SupabaseClient.fetch_delivery(delivery_id)
        if not delivery:
            raise DeliveryNotFoundError(normalize_uuid(delivery_id))

        recipient = (delivery.get("recipient_email") or "").lower()
        if not email or email.strip().lower() != recipient:
            raise EmailVerificationRequiredError()
        return delivery

    @staticmethod
    def download_file(
        delivery_id: str | UUID,
        file_id: str | UUID,
        email: str | None,
        ip_address: str = "unknown",
        user_agent: str = "unknown",
        now: datetime | None = None,
    ) -> DownloadedFile:
        """
        Fetch a file body for the recipient and count the download.

        Raises:
            EmailVerificationRequiredError: No email supplied
            DeliveryNotFoundError / DeliveryFileNotFoundError
            RecipientMismatchError: Email isn't the recipient (401)
            DeliveryUnavailableError: Not active, or expired (and marked so)
            DownloadLimitReachedError: Quota used up
            StorageDownloadError: S3 read failed
        """
        now = now or utc_now()
        if not email:
            raise EmailVerificationRequiredError()

        delivery_id_str = normalize_uuid(delivery_id)
        file_id_str = normalize_uuid(file_id)

        delivery = SupabaseClient.fetch_delivery(delivery_id_str, with_files=False)
        if not delivery:
            raise DeliveryNotFoundError(delivery_id_str)

        DeliveryService.check_recipient(delivery, email, status_code=401)

        client = SupabaseClient.get_client()

        if delivery.get("status") != DeliveryStatus.ACTIVE.value:
            raise DeliveryUnavailableError("Delivery is not active", code="DELIVERY_NOT_ACTIVE")

        if parse_timestamp(delivery["expires_at"]) < now:
            client.table("deliveries").update(
                {"status": DeliveryStatus.EXPIRED.value}
            ).eq("id", delivery_id_str).execute()
            logger.info(f"Delivery {delivery_id_str} passed its expiry; marked expired")
            raise DeliveryUnavailableError("Delivery has expired", code="DELIVERY_EXPIRED")

        current_downloads = delivery.get("current_downloads") or 0
        max_downloads = delivery.get("max_downloads") or 0
        if current_downloads >= max_downloads:
            raise DownloadLimitReachedError(max_downloads)

        try:
            response = (
                client.table("delivery_files")
                .select("*")
                .eq("id", file_id_str)
                .eq("delivery_id", delivery_id_str)
                .single()
                .execute()
            )
            file_row = response.data
        except Exception as e:
            if not is_no_rows_error(e):
                raise
            file_row = None

        if not file_row:
            raise DeliveryFileNotFoundError(file_id_str)

        content = StorageService.download_file(file_row["storage_path"])

        new_count = current_downloads + 1
        update: dict[str, Any] = {"current_downloads": new_count}
        if new_count >= max_downloads:
            update["status"] = DeliveryStatus.EXPIRED.value
        client.table("deliveries").update(update).eq("id", delivery_id_str).execute()

        SupabaseClient.insert_access_log(
            delivery_id_str,
            action="download",
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={
                "email": email.lower(),
                "file_id": file_id_str,
                "file_name": file_row.get("original_name"),
                "downloads": new_count,
            },
        )

        logger.info(f"Download {new_count}/{max_downloads} of delivery {delivery_id_str}")
        return DownloadedFile(
            content=content,
            original_name=file_row.get("original_name") or file_row.get("filename") or "download",
            mime_type=file_row.get("mime_type") or "application/octet-stream",
        )
