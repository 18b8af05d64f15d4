# =============================================================================
# core/services/cleanup_service.py - Purge Finished Deliveries
# =============================================================================
# Deletes expired and revoked deliveries: their S3 objects first, then the
# delivery row (delivery_files rows go with it by cascade).
#
# Sequential, no retries. One failing object or row is logged and counted;
# it never stops the rest of the batch.
# =============================================================================

import logging
from dataclasses import asdict, dataclass

from core.models.delivery import DeliveryStatus
from core.services.storage_service import StorageService
from lib.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

PURGEABLE_STATUSES = [DeliveryStatus.EXPIRED.value, DeliveryStatus.REVOKED.value]


@dataclass
class CleanupResult:
    """Counts from one cleanup run. deleted + failed == deliveries scanned."""
    deleted: int = 0
    failed: int = 0
    files_deleted: int = 0
    files_failed: int = 0

    @property
    def total(self) -> int:
        return self.deleted + self.failed

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class CleanupService:

    @staticmethod
    def run() -> CleanupResult:
        """
        Purge every expired or revoked delivery.

        Raises:
            Exception: Only if the initial query fails; per-item failures
                are counted instead.
        """
        client = SupabaseClient.get_client()
        response = (
            client.table("deliveries")
            .select("id, delivery_files(id, storage_path)")
            .in_("status", PURGEABLE_STATUSES)
            .execute()
        )
        deliveries = response.data or []
        result = CleanupResult()

        logger.info(f"Cleanup: {len(deliveries)} expired/revoked deliveries to purge")

        for delivery in deliveries:
            delivery_id = delivery["id"]

            for file_row in delivery.get("delivery_files") or []:
                path = file_row.get("storage_path")
                try:
                    StorageService.delete_file(path)
                    result.files_deleted += 1
                except Exception as e:
                    result.files_failed += 1
                    logger.error(f"Cleanup: failed to delete object {path} of delivery {delivery_id}: {e}")

            try:
                client.table("deliveries").delete().eq("id", delivery_id).execute()
                result.deleted += 1
            except Exception as e:
                result.failed += 1
                logger.error(f"Cleanup: failed to delete delivery {delivery_id}: {e}")

        logger.info(
            f"Cleanup done: {result.deleted} deleted, {result.failed} failed, "
            f"{result.files_deleted} objects removed, {result.files_failed} objects failed"
        )
        return result
