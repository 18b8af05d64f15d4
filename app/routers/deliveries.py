# =============================================================================
# app/routers/deliveries.py - Delivery Endpoints
# =============================================================================
# Sender side (authenticated):
#   POST /deliveries                  create a delivery
#   POST /deliveries/upload           create a delivery with one file
#   GET  /deliveries                  list the organization's deliveries
#   POST /deliveries/{id}/status      revoke / expire
#
# Recipient side (email-gated):
#   GET  /deliveries/{id}?email=               view
#   POST /deliveries/{id}/request-access       email a one-time code
#   POST /deliveries/{id}/verify-access        check the code
#   GET  /deliveries/{id}/download/{file_id}   download one file
# =============================================================================

from datetime import datetime
from urllib.parse import quote
from uuid import UUID

from fastapi import APIRouter, File, Form, Path, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from pydantic import ValidationError

from app.config import settings
from app.dependencies import CurrentUser, client_ip, user_agent
from app.exceptions import FileTooLargeError
from app.rate_limit import RELAXED, STANDARD, STRICT, UPLOAD, limiter
from core.models.access_code import (
    RequestAccessRequest,
    RequestAccessResponse,
    VerifyAccessRequest,
    VerifyAccessResponse,
)
from core.models.delivery import (
    DEFAULT_MAX_DOWNLOADS,
    DEFAULT_MAX_VIEWS,
    DeliveryCreate,
    DeliveryResponse,
    DeliveryStatus,
    DeliveryStatusUpdate,
)
from core.services.access_code_service import AccessCodeService
from core.services.delivery_service import DeliveryService
from lib.utils import sanitize_filename

router = APIRouter()


# =============================================================================
# Sender Endpoints
# =============================================================================

@router.post("", response_model=DeliveryResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(STANDARD)
async def create_delivery(request: Request, body: DeliveryCreate, user: CurrentUser):
    """
    Create a delivery for the caller's organization.

    Raises:
        400: Missing fields, or caller has no organization
        401: Not authenticated
    """
    return DeliveryService.create_delivery(user.id, body)


@router.post("/upload", response_model=DeliveryResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(UPLOAD)
async def upload_delivery(
    request: Request,
    user: CurrentUser,
    file: UploadFile = File(..., description="File to deliver"),
    title: str = Form(...),
    recipient_email: str = Form(...),
    expires_at: datetime = Form(...),
    message: str | None = Form(default=None),
    max_views: int = Form(default=DEFAULT_MAX_VIEWS),
    max_downloads: int = Form(default=DEFAULT_MAX_DOWNLOADS),
):
    """
    Create a delivery and attach one file.

    The file goes to S3 encrypted; the recipient gets a notification email.

    Raises:
        400: Invalid form, or caller has no organization
        402: Subscription inactive or delivery quota used up
        413: File over the plan's (or the server's) size limit
        507: Storage quota exceeded
    """
    try:
        data = DeliveryCreate(
            title=title,
            recipient_email=recipient_email,
            message=message,
            expires_at=expires_at,
            max_views=max_views,
            max_downloads=max_downloads,
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())

    content = await file.read()
    if len(content) > settings.max_upload_size_bytes:
        raise FileTooLargeError(len(content) / (1024 * 1024), settings.MAX_UPLOAD_SIZE_MB)

    return DeliveryService.upload_delivery(
        user_id=user.id,
        sender_email=user.email,
        data=data,
        filename=sanitize_filename(file.filename) or "file",
        content=content,
        content_type=file.content_type,
    )


@router.get("", response_model=list[DeliveryResponse])
async def list_deliveries(
    user: CurrentUser,
    status_filter: DeliveryStatus | None = Query(default=None, alias="status"),
    sender_id: UUID | None = Query(default=None),
):
    """List the caller's organization's deliveries, newest first."""
    return DeliveryService.list_deliveries(
        user.id,
        status=status_filter,
        sender_id=str(sender_id) if sender_id else None,
    )


@router.post("/{delivery_id}/status", response_model=DeliveryResponse)
async def update_delivery_status(
    body: DeliveryStatusUpdate,
    user: CurrentUser,
    delivery_id: UUID = Path(...),
):
    """
    Set a delivery's status.

    Raises:
        400: Unknown status
        404: Delivery not in the caller's organization
        409: Delivery already expired or revoked
    """
    return DeliveryService.update_status(delivery_id, user.id, body.status)


# =============================================================================
# Recipient Endpoints
# =============================================================================

@router.get("/{delivery_id}", response_model=DeliveryResponse)
@limiter.limit(RELAXED)
async def get_delivery(
    request: Request,
    delivery_id: UUID = Path(...),
    email: str | None = Query(default=None),
):
    """
    View a delivery as its recipient.

    Raises:
        401: Email missing or not the recipient
        404: Delivery not found
    """
    return DeliveryService.get_for_recipient(delivery_id, email)


@router.post("/{delivery_id}/request-access", response_model=RequestAccessResponse)
@limiter.limit(STRICT)
async def request_access(
    request: Request,
    body: RequestAccessRequest,
    delivery_id: UUID = Path(...),
):
    """
    Email a one-time access code to the delivery's recipient.

    An email send failure still returns 200; the message says so.

    Raises:
        403: Email isn't the recipient, or delivery inactive/expired
        404: Delivery not found
        429: Too many requests
    """
    result = AccessCodeService.request_access(delivery_id, str(body.email))
    return RequestAccessResponse(message=result["message"], expires_at=result["expires_at"])


@router.post("/{delivery_id}/verify-access", response_model=VerifyAccessResponse)
@limiter.limit(STRICT)
async def verify_access(
    request: Request,
    body: VerifyAccessRequest,
    delivery_id: UUID = Path(...),
):
    """
    Check a one-time access code.

    Raises:
        401: Wrong code (attempts remaining in details)
        403: Code expired or attempts used up
        404: No pending code
    """
    return AccessCodeService.verify_access(
        delivery_id,
        email=str(body.email),
        code=body.code,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )


@router.get("/{delivery_id}/download/{file_id}")
@limiter.limit(RELAXED)
async def download_file(
    request: Request,
    delivery_id: UUID = Path(...),
    file_id: UUID = Path(...),
    email: str | None = Query(default=None),
):
    """
    Download one file of a delivery as its recipient.

    Raises:
        401: Email missing or not the recipient
        403: Delivery inactive, expired or out of downloads
        404: Delivery or file not found
    """
    downloaded = DeliveryService.download_file(
        delivery_id,
        file_id,
        email=email,
        ip_address=client_ip(request),
        user_agent=user_agent(request),
    )
    filename = downloaded.original_name
    ascii_name = filename.encode("ascii", "ignore").decode().replace('"', "") or "download"
    return Response(
        content=downloaded.content,
        media_type=downloaded.mime_type,
        headers={
            "Content-Disposition": (
                f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"
            )
        },
    )
