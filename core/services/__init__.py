# =============================================================================
# core/services/__init__.py - Service Layer Exports
# =============================================================================

from .storage_service import StorageService, StoredObject
from .email_service import EmailService, EmailSendError
from .subscription_service import SubscriptionService
from .billing_service import BillingService
from .delivery_service import DeliveryService, DownloadedFile
from .access_code_service import AccessCodeService, generate_code
from .organization_service import MembershipRules, OrganizationService
from .cleanup_service import CleanupResult, CleanupService

__all__ = [
    "StorageService",
    "StoredObject",
    "EmailService",
    "EmailSendError",
    "SubscriptionService",
    "BillingService",
    "DeliveryService",
    "DownloadedFile",
    "AccessCodeService",
    "generate_code",
    "MembershipRules",
    "OrganizationService",
    "CleanupResult",
    "CleanupService",
]
