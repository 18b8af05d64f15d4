# =============================================================================
# core/services/access_code_service.py - One-Time Access Codes
# =============================================================================
# Issues and verifies the 6-digit codes that prove a viewer controls the
# recipient mailbox of a delivery.
#
# Issue:  recipient + active delivery -> random code, 15 min TTL, 3 attempts,
#         emailed (send failure doesn't undo the code)
# Verify: newest unverified code for (delivery, email) -> expiry, attempt
#         budget, constant-time compare -> verified_at + access log
# =============================================================================

import hmac
import logging
import secrets
from datetime import datetime
from typing import Any
from uuid import UUID

from app.exceptions import (
    AccessCodeAttemptsExceededError,
    AccessCodeExpiredError,
    AccessCodeNotFoundError,
    AccessCodeStorageError,
    DeliveryNotFoundError,
    InvalidAccessCodeError,
)
from core.models.access_code import (
    ACCESS_CODE_MAX,
    ACCESS_CODE_MAX_ATTEMPTS,
    ACCESS_CODE_MIN,
    ACCESS_CODE_TTL,
)
from core.services.delivery_service import DeliveryService
from core.services.email_service import EmailSendError, EmailService
from lib.supabase_client import SupabaseClient
from lib.utils import normalize_uuid, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

CODE_SENT_MESSAGE = "Access code sent to your email"
CODE_NOT_SENT_MESSAGE = "Access code generated but email failed to send. Please try again."


def generate_code() -> str:
    """Cryptographically random code in [100000, 999999]."""
    return str(secrets.randbelow(ACCESS_CODE_MAX - ACCESS_CODE_MIN + 1) + ACCESS_CODE_MIN)


class AccessCodeService:

    @staticmethod
    def request_access(
        delivery_id: str | UUID,
        email: str,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Issue a code for the delivery's recipient and email it.

        Returns:
            {"message", "expires_at", "email_sent"}

        Raises:
            DeliveryNotFoundError: Delivery missing (404)
            RecipientMismatchError: Email isn't the recipient (403)
            DeliveryUnavailableError: Not active or past expiry (403)
            AccessCodeStorageError: Code row couldn't be written (500)
        """
        now = now or utc_now()
        delivery_id_str = normalize_uuid(delivery_id)
        email = email.strip().lower()

        delivery = SupabaseClient.fetch_delivery(delivery_id_str, with_files=False)
        if not delivery:
            raise DeliveryNotFoundError(delivery_id_str)

        DeliveryService.check_recipient(delivery, email)
        DeliveryService.check_accessible(delivery, now)

        code = generate_code()
        expires_at = now + ACCESS_CODE_TTL

        client = SupabaseClient.get_client()
        try:
            client.table("delivery_access_codes").insert({
                "delivery_id": delivery_id_str,
                "code": code,
                "recipient_email": email,
                "expires_at": expires_at.isoformat(),
                "max_attempts": ACCESS_CODE_MAX_ATTEMPTS,
            }).execute()
        except Exception as e:
            logger.error(f"Failed to store access code for delivery {delivery_id_str}: {e}")
            raise AccessCodeStorageError(str(e))

        try:
            EmailService.send_access_code(
                recipient_email=email,
                access_code=code,
                delivery_title=delivery.get("title") or "your delivery",
                expires_in_minutes=int(ACCESS_CODE_TTL.total_seconds() // 60),
            )
            email_sent = True
        except EmailSendError as e:
            logger.warning(f"Access code stored but email failed for delivery {delivery_id_str}: {e}")
            email_sent = False

        logger.info(f"Issued access code for delivery {delivery_id_str}")
        return {
            "message": CODE_SENT_MESSAGE if email_sent else CODE_NOT_SENT_MESSAGE,
            "expires_at": expires_at,
            "email_sent": email_sent,
        }

    @staticmethod
    def verify_access(
        delivery_id: str | UUID,
        email: str,
        code: str,
        ip_address: str = "unknown",
        user_agent: str = "unknown",
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """
        Check a submitted code against the newest pending one.

        A wrong code burns one attempt. A right code is marked verified and
        can't be used again.

        Raises:
            AccessCodeNotFoundError: No pending code (404)
            AccessCodeExpiredError: Past its TTL (403)
            AccessCodeAttemptsExceededError: Attempt budget used up (403)
            InvalidAccessCodeError: Wrong code (401)
        """
        now = now or utc_now()
        delivery_id_str = normalize_uuid(delivery_id)
        email = email.strip().lower()
        client = SupabaseClient.get_client()

        response = (
            client.table("delivery_access_codes")
            .select("*")
            .eq("delivery_id", delivery_id_str)
            .eq("recipient_email", email)
            .is_("verified_at", "null")
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise AccessCodeNotFoundError()

        record = response.data[0]

        if parse_timestamp(record["expires_at"]) < now:
            raise AccessCodeExpiredError()

        attempts = record.get("attempts") or 0
        max_attempts = record.get("max_attempts") or ACCESS_CODE_MAX_ATTEMPTS
        if attempts >= max_attempts:
            raise AccessCodeAttemptsExceededError()

        if not hmac.compare_digest(str(record["code"]).encode(), code.strip().encode()):
            attempts += 1
            client.table("delivery_access_codes").update(
                {"attempts": attempts}
            ).eq("id", record["id"]).execute()
            logger.info(f"Wrong access code for delivery {delivery_id_str} ({attempts}/{max_attempts})")
            raise InvalidAccessCodeError(max(max_attempts - attempts, 0))

        client.table("delivery_access_codes").update(
            {"verified_at": now.isoformat()}
        ).eq("id", record["id"]).execute()

        SupabaseClient.insert_access_log(
            delivery_id_str,
            action="code_verified",
            ip_address=ip_address,
            user_agent=user_agent,
            metadata={"email": email, "code_id": record["id"], "viewer_type": "recipient"},
        )

        logger.info(f"Access code verified for delivery {delivery_id_str}")
        return {"message": "Access granted", "verified": True}
