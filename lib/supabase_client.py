# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
# It implements the singleton pattern to reuse a single service-role client
# and provides the lookups every request handler needs:
# - Caller profiles (organization + role)
# - Deliveries with their files
# - Organizations
# - Stored procedure (RPC) calls
#
# Auth flows (sign in, sign up, OAuth) mutate the client's session, so they
# get a fresh anon-key client per call instead of the shared singleton.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   profile = SupabaseClient.fetch_profile(user_id)
# =============================================================================

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from supabase import create_client, Client

from app.config import settings

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code for ".single()" matching no rows
NO_ROWS_CODE = "PGRST116"

DELIVERY_WITH_FILES = "*, delivery_files(*)"


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Errors tell HOW to fix, not just WHAT failed.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


def is_no_rows_error(error: Exception) -> bool:
    """True when a .single() query failed only because nothing matched."""
    return NO_ROWS_CODE in str(error)


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one service-role client instance is shared
    across the application. All methods are class methods for easy access
    without instantiation.

    Example:
        profile = SupabaseClient.fetch_profile(user.id)
        if profile and profile.get("organization_id"):
            ...
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        Handlers therefore do their own organization checks.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @classmethod
    def create_auth_client(cls) -> Client:
        """
        Create a short-lived anon-key client for auth calls.

        Never cached: signing in stores the user's session on the client.
        """
        try:
            return create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to create Supabase auth client: {e}",
                code="AUTH_CLIENT_INIT_FAILED",
                suggestion="Check SUPABASE_URL and SUPABASE_ANON_KEY in your .env file"
            )

    @classmethod
    def _normalize_uuid(cls, uuid_value: str | UUID) -> str:
        """Convert UUID to string for queries."""
        return str(uuid_value) if isinstance(uuid_value, UUID) else uuid_value

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_profile(
        cls,
        user_id: str | UUID,
        columns: str = "id, email, full_name, organization_id, role, is_active",
    ) -> dict[str, Any] | None:
        """
        Fetch a profile row by user id.

        Returns:
            Profile dict, or None if the user has no profile yet

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        user_id_str = cls._normalize_uuid(user_id)

        try:
            response = (
                client.table("profiles")
                .select(columns)
                .eq("id", user_id_str)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch profile: {e}",
                code="FETCH_PROFILE_FAILED",
                details={"user_id": user_id_str}
            )

    # -------------------------------------------------------------------------
    # Deliveries
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_delivery(
        cls,
        delivery_id: str | UUID,
        with_files: bool = True,
    ) -> dict[str, Any] | None:
        """
        Fetch a delivery by ID, optionally embedding its delivery_files rows.

        Returns:
            Delivery dict (with a "delivery_files" list when requested),
            or None if not found

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        delivery_id_str = cls._normalize_uuid(delivery_id)

        try:
            response = (
                client.table("deliveries")
                .select(DELIVERY_WITH_FILES if with_files else "*")
                .eq("id", delivery_id_str)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch delivery: {e}",
                code="FETCH_DELIVERY_FAILED",
                suggestion="Check that the delivery id is a valid UUID",
                details={"delivery_id": delivery_id_str}
            )

    # -------------------------------------------------------------------------
    # Organizations
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_organization(cls, organization_id: str | UUID) -> dict[str, Any] | None:
        """
        Fetch an organization by ID.

        Raises:
            SupabaseClientError: If query fails
        """
        client = cls.get_client()
        org_id_str = cls._normalize_uuid(organization_id)

        try:
            response = (
                client.table("organizations")
                .select("*")
                .eq("id", org_id_str)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch organization: {e}",
                code="FETCH_ORGANIZATION_FAILED",
                details={"organization_id": org_id_str}
            )

    # -------------------------------------------------------------------------
    # Stored Procedures
    # -------------------------------------------------------------------------

    @classmethod
    def call_rpc(cls, function_name: str, params: dict[str, Any] | None = None) -> Any:
        """
        Call a Postgres function exposed through PostgREST.

        Set-returning functions come back as a list of rows; scalar or
        JSON-returning functions come back as the bare value.

        Raises:
            SupabaseClientError: If the call fails
        """
        client = cls.get_client()

        try:
            response = client.rpc(function_name, params or {}).execute()
            return response.data

        except Exception as e:
            raise SupabaseClientError(
                message=f"RPC {function_name} failed: {e}",
                code="RPC_FAILED",
                details={"function": function_name}
            )

    # -------------------------------------------------------------------------
    # Audit Trail
    # -------------------------------------------------------------------------

    @classmethod
    def insert_access_log(
        cls,
        delivery_id: str | UUID,
        action: str,
        ip_address: str = "unknown",
        user_agent: str = "unknown",
        metadata: dict[str, Any] | None = None,
        success: bool = True,
    ) -> bool:
        """
        Record an access event for a delivery.

        Best effort: failures are logged and reported as False, never raised.
        """
        client = cls.get_client()

        try:
            client.table("access_logs").insert({
                "delivery_id": cls._normalize_uuid(delivery_id),
                "action": action,
                "ip_address": ip_address,
                "user_agent": user_agent,
                "metadata": metadata or {},
                "success": success,
            }).execute()
            return True

        except Exception as e:
            logger.error(f"Failed to insert access log ({action}) for delivery {delivery_id}: {e}")
            return False
