# =============================================================================
# core/services/storage_service.py - S3 Object Storage Operations
# =============================================================================
# Handles put/get/delete of delivery file bodies in an S3 bucket.
# Objects are keyed {organization_id}/{delivery_id}/{file_id}-{safe_name}
# and written with server-side encryption.
# =============================================================================

import hashlib
import logging
from dataclasses import dataclass

import boto3
from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from app.config import settings
from app.exceptions import (
    StorageDownloadError,
    StorageNotConfiguredError,
    StorageUploadError,
)
from lib.utils import storage_safe_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredObject:
    """Result of a successful upload."""
    key: str
    size: int
    sha256: str


class StorageService:
    """
    Service for S3 operations.

    The boto3 client is created once and reused; tests replace it with
    `StorageService.set_client(mock)`.
    """

    _client: BaseClient | None = None

    @classmethod
    def get_client(cls) -> BaseClient:
        """
        Get or create the S3 client.

        Raises:
            StorageNotConfiguredError: If bucket or credentials are missing
        """
        if cls._client is None:
            missing = [
                name for name in ("AWS_S3_BUCKET", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY")
                if not getattr(settings, name)
            ]
            if missing:
                raise StorageNotConfiguredError(missing)

            endpoint = settings.S3_ENDPOINT_URL.rstrip("/") if settings.S3_ENDPOINT_URL else None
            cls._client = boto3.client(
                "s3",
                region_name=settings.AWS_S3_REGION,
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                endpoint_url=endpoint,
            )
            logger.info(f"S3 client initialized for bucket {settings.AWS_S3_BUCKET}")
        return cls._client

    @classmethod
    def set_client(cls, client: BaseClient | None) -> None:
        cls._client = client

    @staticmethod
    def build_key(organization_id: str, delivery_id: str, file_id: str, filename: str) -> str:
        """
        Build the object key for a delivery file.

        Example:
            build_key("org", "dlv", "f1", "Q3 report.pdf") -> "org/dlv/f1-Q3_report.pdf"
        """
        return f"{organization_id}/{delivery_id}/{file_id}-{storage_safe_name(filename)}"

    @staticmethod
    def upload_file(key: str, content: bytes, content_type: str) -> StoredObject:
        """
        Upload a file body with server-side encryption.

        Returns:
            StoredObject with the key, size and SHA-256 hex digest

        Raises:
            StorageUploadError: If the put fails
        """
        client = StorageService.get_client()
        digest = hashlib.sha256(content).hexdigest()

        try:
            client.put_object(
                Bucket=settings.AWS_S3_BUCKET,
                Key=key,
                Body=content,
                ContentType=content_type,
                ServerSideEncryption=settings.AWS_S3_SSE,
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload failed for {key}: {e}")
            raise StorageUploadError(str(e))

        logger.info(f"Uploaded {len(content)} bytes to s3://{settings.AWS_S3_BUCKET}/{key}")
        return StoredObject(key=key, size=len(content), sha256=digest)

    @staticmethod
    def download_file(key: str) -> bytes:
        """
        Read a file body.

        Raises:
            StorageDownloadError: If the object can't be fetched
        """
        client = StorageService.get_client()

        try:
            response = client.get_object(Bucket=settings.AWS_S3_BUCKET, Key=key)
            return response["Body"].read()
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 download failed for {key}: {e}")
            raise StorageDownloadError(key, str(e))

    @staticmethod
    def delete_file(key: str) -> None:
        """
        Delete a file body.

        Raises:
            botocore errors unchanged; callers decide whether a failure matters.
        """
        client = StorageService.get_client()
        client.delete_object(Bucket=settings.AWS_S3_BUCKET, Key=key)
        logger.debug(f"Deleted s3://{settings.AWS_S3_BUCKET}/{key}")
