# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application:
# - UUID normalization
# - Timestamp parsing for PostgREST values
# - Input sanitizers for free text, emails and filenames
# =============================================================================

import re
from datetime import datetime, timezone
from uuid import UUID


# =============================================================================
# UUID Utilities
# =============================================================================

def normalize_uuid(value: str | UUID) -> str:
    """
    Normalize a UUID to string format.

    Example:
        delivery_id = normalize_uuid(uuid_obj)  # "550e8400-..."
        delivery_id = normalize_uuid("550e8400-...")  # "550e8400-..."
    """
    return str(value) if isinstance(value, UUID) else value


# =============================================================================
# Time Utilities
# =============================================================================

def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime) -> datetime:
    """
    Parse a PostgREST timestamp into an aware datetime.

    Naive values are assumed to be UTC.

    Example:
        parse_timestamp("2024-01-15T10:30:00Z")
        parse_timestamp("2024-01-15T10:30:00.123456+00:00")
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# Sanitizers
# =============================================================================

_CONTROL_CHARS = re.compile(r"[\x00-\x1F\x7F]")
_WHITESPACE_RUN = re.compile(r"\s+")
_EMAIL_DISALLOWED = re.compile(r"[^a-z0-9@._+-]")
_FILENAME_DISALLOWED = re.compile(r"[<>:\"|?*\x00-\x1F]")
_STORAGE_KEY_DISALLOWED = re.compile(r"[^\w.\-]")


def sanitize_text(value: str | None) -> str:
    """Strip control characters and collapse whitespace."""
    if not value:
        return ""
    cleaned = _CONTROL_CHARS.sub("", value).strip()
    return _WHITESPACE_RUN.sub(" ", cleaned)


def sanitize_email(value: str | None) -> str:
    """Lowercase, trim, and drop characters that can't appear in an address."""
    if not value:
        return ""
    return _EMAIL_DISALLOWED.sub("", value.strip().lower())


def sanitize_filename(value: str | None) -> str:
    """Remove path traversal and characters unsafe in a download filename."""
    if not value:
        return ""
    cleaned = value.replace("..", "")
    cleaned = cleaned.replace("/", "").replace("\\", "")
    cleaned = _FILENAME_DISALLOWED.sub("", cleaned)
    return cleaned[:255].strip()


def storage_safe_name(filename: str) -> str:
    """Reduce a filename to characters safe inside an S3 key."""
    return _STORAGE_KEY_DISALLOWED.sub("_", filename)
