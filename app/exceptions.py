# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every error tells the caller HOW to fix it, not just WHAT failed.
#
# Error body shape:
#   {"success": false, "message": "...", "code": "...", "suggestion": "...", "details": {...}}
# =============================================================================

from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class SealdropException(Exception):
    """
    Base exception for the Sealdrop API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "SEALDROP_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result: dict[str, Any] = {
            "success": False,
            "message": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Auth Exceptions
# =============================================================================

class UnauthorizedError(SealdropException):
    """Raised when the request carries no valid session."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            code="UNAUTHORIZED",
            status_code=401,
            suggestion="Sign in and send the access token as 'Authorization: Bearer <token>'",
        )


class InvalidCredentialsError(SealdropException):
    """Raised when email/password sign-in is rejected."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(
            message=message,
            code="INVALID_CREDENTIALS",
            status_code=401,
        )


class AccountExistsError(SealdropException):
    """Raised when registering an email that already has an account."""

    def __init__(self, email: str):
        super().__init__(
            message="An account with this email already exists",
            code="ACCOUNT_EXISTS",
            status_code=409,
            suggestion="Sign in instead, or reset your password",
            details={"email": email},
        )


class AuthProviderError(SealdropException):
    """Raised when the auth provider rejects a request for another reason."""

    def __init__(self, message: str):
        super().__init__(message=message, code="AUTH_PROVIDER_ERROR", status_code=400)


# =============================================================================
# Organization Exceptions
# =============================================================================

class OrganizationNotFoundError(SealdropException):
    """Raised when the caller's profile has no organization (membership flows)."""

    def __init__(self):
        super().__init__(
            message="Organization not found",
            code="ORGANIZATION_NOT_FOUND",
            status_code=404,
            suggestion="Create or join an organization first",
        )


class OrganizationRequiredError(SealdropException):
    """Raised when sending a delivery from an account without an organization."""

    def __init__(self):
        super().__init__(
            message="User without organization",
            code="ORGANIZATION_REQUIRED",
            status_code=400,
            suggestion="Create or join an organization before sending deliveries",
        )


class InsufficientPermissionsError(SealdropException):
    """Raised when the caller's role is too low for the operation."""

    def __init__(self, message: str = "Insufficient permissions", required_role: str | None = None):
        super().__init__(
            message=message,
            code="INSUFFICIENT_PERMISSIONS",
            status_code=403,
            suggestion=f"Ask a user with the '{required_role}' role to do this" if required_role else None,
            details={"required_role": required_role} if required_role else None,
        )


class MemberNotFoundError(SealdropException):
    """Raised when a target profile doesn't exist."""

    def __init__(self, member_id: str):
        super().__init__(
            message="Member not found",
            code="MEMBER_NOT_FOUND",
            status_code=404,
            details={"member_id": member_id},
        )


class MemberNotInOrganizationError(SealdropException):
    """Raised when a target profile belongs to another organization."""

    def __init__(self, member_id: str):
        super().__init__(
            message="Member not in your organization",
            code="MEMBER_NOT_IN_ORGANIZATION",
            status_code=403,
            details={"member_id": member_id},
        )


class MembershipRuleError(SealdropException):
    """Raised when a membership change breaks a fixed rule (owner, self-removal, role value)."""

    def __init__(self, message: str, code: str = "MEMBERSHIP_RULE"):
        super().__init__(message=message, code=code, status_code=400)


class InvitationNotFoundError(SealdropException):
    """Raised when an invitation id doesn't exist."""

    def __init__(self, invitation_id: str):
        super().__init__(
            message="Invitation not found",
            code="INVITATION_NOT_FOUND",
            status_code=404,
            details={"invitation_id": invitation_id},
        )


class InvalidSettingsError(SealdropException):
    """Raised when organization settings are inconsistent."""

    def __init__(self, message: str):
        super().__init__(message=message, code="INVALID_SETTINGS", status_code=400)


# =============================================================================
# Delivery Exceptions
# =============================================================================

class DeliveryNotFoundError(SealdropException):
    """Raised when a delivery ID doesn't exist (or isn't visible to the caller)."""

    def __init__(self, delivery_id: str):
        super().__init__(
            message="Delivery not found",
            code="DELIVERY_NOT_FOUND",
            status_code=404,
            suggestion="Check that the delivery link is complete and hasn't been purged",
            details={"delivery_id": delivery_id},
        )


class RecipientMismatchError(SealdropException):
    """Raised when the supplied email is not the delivery's recipient."""

    def __init__(self, status_code: int = 403, message: str = "Email does not match recipient"):
        super().__init__(
            message=message,
            code="RECIPIENT_MISMATCH",
            status_code=status_code,
            suggestion="Use the email address the delivery was sent to",
        )


class EmailVerificationRequiredError(SealdropException):
    """Raised when a viewer hasn't proven they are the recipient."""

    def __init__(self):
        super().__init__(
            message="Email verification required",
            code="EMAIL_VERIFICATION_REQUIRED",
            status_code=401,
            suggestion="Request an access code for this delivery and verify it",
        )


class DeliveryUnavailableError(SealdropException):
    """Raised when a delivery is not active or is past its expiry."""

    def __init__(self, message: str, code: str = "DELIVERY_UNAVAILABLE"):
        super().__init__(
            message=message,
            code=code,
            status_code=403,
            suggestion="Ask the sender to create a new delivery",
        )


class InvalidStatusError(SealdropException):
    """Raised when a status value isn't one of active, expired, revoked."""

    def __init__(self, status: str):
        super().__init__(
            message="Invalid status",
            code="INVALID_STATUS",
            status_code=400,
            suggestion="Use one of: active, expired, revoked",
            details={"status": status},
        )


class InvalidStatusTransitionError(SealdropException):
    """Raised when moving a delivery out of a terminal status."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            message=f"Cannot change delivery status from '{current}' to '{requested}'",
            code="INVALID_STATUS_TRANSITION",
            status_code=409,
            suggestion="Expired and revoked deliveries are final; create a new delivery instead",
            details={"current_status": current, "requested_status": requested},
        )


class DownloadLimitReachedError(SealdropException):
    """Raised when a delivery's download quota is used up."""

    def __init__(self, max_downloads: int):
        super().__init__(
            message="Download limit reached",
            code="DOWNLOAD_LIMIT_REACHED",
            status_code=403,
            details={"max_downloads": max_downloads},
        )


class DeliveryFileNotFoundError(SealdropException):
    """Raised when a file id doesn't belong to the delivery."""

    def __init__(self, file_id: str):
        super().__init__(
            message="File not found",
            code="FILE_NOT_FOUND",
            status_code=404,
            details={"file_id": file_id},
        )


# =============================================================================
# Access Code Exceptions
# =============================================================================

class AccessCodeNotFoundError(SealdropException):
    """Raised when no pending access code exists for the delivery and email."""

    def __init__(self):
        super().__init__(
            message="No valid access code found. Please request a new one.",
            code="ACCESS_CODE_NOT_FOUND",
            status_code=404,
        )


class AccessCodeExpiredError(SealdropException):
    """Raised when the newest access code is past its expiry."""

    def __init__(self):
        super().__init__(
            message="Access code has expired. Please request a new one.",
            code="ACCESS_CODE_EXPIRED",
            status_code=403,
        )


class AccessCodeAttemptsExceededError(SealdropException):
    """Raised when the access code's attempt budget is used up."""

    def __init__(self):
        super().__init__(
            message="Maximum verification attempts reached. Please request a new code.",
            code="ACCESS_CODE_LOCKED",
            status_code=403,
            details={"attempts_remaining": 0},
        )


class InvalidAccessCodeError(SealdropException):
    """Raised when a submitted code doesn't match."""

    def __init__(self, attempts_remaining: int):
        super().__init__(
            message=f"Invalid code. {attempts_remaining} attempt(s) remaining.",
            code="INVALID_ACCESS_CODE",
            status_code=401,
            details={"attempts_remaining": attempts_remaining},
        )


class AccessCodeStorageError(SealdropException):
    """Raised when an access code can't be persisted."""

    def __init__(self, error: str):
        super().__init__(
            message="Failed to generate access code",
            code="ACCESS_CODE_STORAGE_ERROR",
            status_code=500,
            suggestion="Try again in a moment",
            details={"error": error},
        )


# =============================================================================
# Storage Exceptions
# =============================================================================

class StorageUploadError(SealdropException):
    """Raised when file upload to storage fails."""

    def __init__(self, error: str):
        super().__init__(
            message=f"Failed to upload file to storage: {error}",
            code="STORAGE_UPLOAD_ERROR",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            details={"error": error},
        )


class StorageDownloadError(SealdropException):
    """Raised when file download from storage fails."""

    def __init__(self, path: str, error: str):
        super().__init__(
            message="Failed to download file from storage",
            code="STORAGE_DOWNLOAD_ERROR",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            details={"path": path, "error": error},
        )


class StorageNotConfiguredError(SealdropException):
    """Raised when S3 settings are missing."""

    def __init__(self, missing: list[str]):
        super().__init__(
            message=f"Missing required AWS settings: {', '.join(missing)}",
            code="STORAGE_NOT_CONFIGURED",
            status_code=503,
            suggestion="Set the AWS_* variables in the environment",
            details={"missing": missing},
        )


class FileTooLargeError(SealdropException):
    """Raised when an uploaded file exceeds the hard size limit."""

    def __init__(self, size_mb: float, max_mb: int):
        super().__init__(
            message=f"File too large: {size_mb:.1f}MB (max: {max_mb}MB)",
            code="FILE_TOO_LARGE",
            status_code=413,
            suggestion=f"Upload a file smaller than {max_mb}MB",
            details={"size_mb": size_mb, "max_mb": max_mb},
        )


class FileMetadataError(SealdropException):
    """Raised when the delivery_files row can't be written after upload."""

    def __init__(self, error: str):
        super().__init__(
            message="Error saving file metadata",
            code="FILE_METADATA_ERROR",
            status_code=500,
            details={"error": error},
        )


# =============================================================================
# Subscription / Billing Exceptions
# =============================================================================

class SubscriptionLimitError(SealdropException):
    """Raised when the organization's plan doesn't allow the action."""

    def __init__(self, message: str, status_code: int = 402, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="SUBSCRIPTION_LIMIT",
            status_code=status_code,
            suggestion="Upgrade your plan from the subscription page",
            details=details,
        )


class InvalidPlanError(SealdropException):
    """Raised when checkout is requested for a plan that isn't sold."""

    def __init__(self, plan: str | None):
        super().__init__(
            message="Invalid plan. Must be starter, pro, or enterprise",
            code="INVALID_PLAN",
            status_code=400,
            details={"plan": plan},
        )


class PlanNotConfiguredError(SealdropException):
    """Raised when a plan has no Lemon Squeezy variant configured."""

    def __init__(self, plan: str):
        super().__init__(
            message=f"Plan {plan} not configured yet. Please configure variant ID in environment variables.",
            code="PLAN_NOT_CONFIGURED",
            status_code=503,
            details={"plan": plan},
        )


class CheckoutError(SealdropException):
    """Raised when the payment provider can't create a checkout."""

    def __init__(self, error: str):
        super().__init__(
            message="Failed to create checkout session",
            code="CHECKOUT_FAILED",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            details={"error": error},
        )


class EarlyAdopterClaimError(SealdropException):
    """Raised when the database refuses an early-adopter claim."""

    def __init__(self, message: str):
        super().__init__(message=message, code="EARLY_ADOPTER_UNAVAILABLE", status_code=400)


# =============================================================================
# Exception Handlers
# =============================================================================

async def sealdrop_exception_handler(
    request: Request,
    exc: SealdropException
) -> JSONResponse:
    """
    Convert SealdropException to JSON response.

    Returns structured error with:
    - success: always false
    - message: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors.

    Returns 400 with the field-level error list from pydantic.
    """
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg"),
            "type": error.get("type"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Invalid input",
            "code": "VALIDATION_ERROR",
            "details": errors,
        }
    )
