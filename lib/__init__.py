# =============================================================================
# lib/ - Standalone Utility Modules
# =============================================================================
# This package contains reusable utilities:
# - supabase_client.py: Typed Supabase wrapper for database operations
# - utils.py: Shared utilities (UUIDs, timestamps, input sanitizers)
#
# These modules are self-contained and can be tested in isolation.
# =============================================================================

from lib.supabase_client import SupabaseClient, SupabaseClientError, is_no_rows_error
from lib.utils import (
    normalize_uuid,
    parse_timestamp,
    sanitize_email,
    sanitize_filename,
    sanitize_text,
    storage_safe_name,
    utc_now,
)

__all__ = [
    # Supabase
    "SupabaseClient",
    "SupabaseClientError",
    "is_no_rows_error",
    # Utils
    "normalize_uuid",
    "parse_timestamp",
    "sanitize_email",
    "sanitize_filename",
    "sanitize_text",
    "storage_safe_name",
    "utc_now",
]
