# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# This module provides pytest fixtures and configuration for all tests.
#
# Key features:
# - Sets up mock environment variables before any imports
# - An in-memory stand-in for the Supabase query builder
# - Mocked S3 client and email sender
# - A TestClient with authentication overridden
# =============================================================================

import io
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import MagicMock

# =============================================================================
# Set up test environment BEFORE any imports
# =============================================================================
# This must happen before importing app.config which loads settings immediately

os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-service-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DEBUG", "true")
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ.setdefault("AWS_S3_BUCKET", "sealdrop-test")
os.environ.setdefault("APP_URL", "https://app.sealdrop.test")

import pytest
from fastapi.testclient import TestClient


# =============================================================================
# In-memory Supabase
# =============================================================================

class FakeResponse:
    def __init__(self, data: Any, count: int | None = None):
        self.data = data
        self.count = count


class FakeQuery:
    """
    Chainable query over one in-memory table.

    Supports the subset of the postgrest builder the services use.
    """

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.action = "select"
        self.columns = "*"
        self.count_mode = None
        self.filters: list = []
        self.order_by: tuple[str, bool] | None = None
        self.max_rows: int | None = None
        self.expect_single = False
        self.payload: Any = None

    # -- actions ---------------------------------------------------------

    def select(self, columns: str = "*", count: str | None = None):
        self.action = "select"
        self.columns = columns
        self.count_mode = count
        return self

    def insert(self, payload):
        self.action = "insert"
        self.payload = payload
        return self

    def upsert(self, payload, on_conflict: str = "id"):
        self.action = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        return self

    def update(self, payload):
        self.action = "update"
        self.payload = payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    # -- filters ---------------------------------------------------------

    def eq(self, column, value):
        self.filters.append(lambda row: _same(row.get(column), value))
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: not _same(row.get(column), value))
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: any(_same(row.get(column), v) for v in values))
        return self

    def is_(self, column, value):
        if value == "null":
            self.filters.append(lambda row: row.get(column) is None)
        else:
            self.filters.append(lambda row: _same(row.get(column), value))
        return self

    def order(self, column, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def limit(self, n: int):
        self.max_rows = n
        return self

    def single(self):
        self.expect_single = True
        return self

    # -- execution -------------------------------------------------------

    def _matching(self) -> list[dict]:
        rows = self.db.tables.setdefault(self.table, [])
        return [row for row in rows if all(f(row) for f in self.filters)]

    def execute(self) -> FakeResponse:
        failure = self.db.failures.get((self.table, self.action))
        if failure is not None:
            raise failure

        self.db.calls.append((self.table, self.action, self.payload))
        handler = getattr(self, f"_execute_{self.action}")
        return handler()

    def _execute_select(self) -> FakeResponse:
        rows = self._matching()
        if self.order_by:
            column, desc = self.order_by
            rows = sorted(rows, key=lambda row: str(row.get(column) or ""), reverse=desc)
        if self.max_rows is not None:
            rows = rows[: self.max_rows]

        result = [self.db.embed(self.table, self.columns, dict(row)) for row in rows]
        count = len(result) if self.count_mode else None

        if self.expect_single:
            if len(result) != 1:
                raise Exception(
                    "{'code': 'PGRST116', 'message': 'JSON object requested, multiple (or no) rows returned'}"
                )
            return FakeResponse(result[0], count)
        return FakeResponse(result, count)

    def _execute_insert(self) -> FakeResponse:
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        inserted = [self.db.seed(self.table, dict(row)) for row in payload]
        return FakeResponse([dict(row) for row in inserted])

    def _execute_upsert(self) -> FakeResponse:
        key = self.on_conflict
        rows = self.db.tables.setdefault(self.table, [])
        existing = next((row for row in rows if _same(row.get(key), self.payload.get(key))), None)
        if existing is not None:
            existing.update(self.payload)
            return FakeResponse([dict(existing)])
        return FakeResponse([dict(self.db.seed(self.table, dict(self.payload)))])

    def _execute_update(self) -> FakeResponse:
        updated = []
        for row in self._matching():
            row.update(self.payload)
            updated.append(dict(row))
        return FakeResponse(updated)

    def _execute_delete(self) -> FakeResponse:
        doomed = self._matching()
        self.db.tables[self.table] = [
            row for row in self.db.tables[self.table] if row not in doomed
        ]
        return FakeResponse([dict(row) for row in doomed])


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: dict):
        self.db = db
        self.name = name
        self.params = params

    def execute(self) -> FakeResponse:
        self.db.rpc_calls.append((self.name, self.params))
        result = self.db.rpc_results.get(self.name)
        if isinstance(result, Exception):
            raise result
        if callable(result):
            result = result(self.params)
        return FakeResponse(result)


class FakeSupabase:
    """Drop-in for supabase.Client backed by dicts."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.failures: dict[tuple[str, str], Exception] = {}
        self.rpc_results: dict[str, Any] = {}
        self.rpc_calls: list[tuple[str, dict]] = []
        self.calls: list[tuple[str, str, Any]] = []
        self.auth = MagicMock()
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: dict | None = None) -> FakeRpc:
        return FakeRpc(self, name, params or {})

    def seed(self, table: str, row: dict) -> dict:
        """Insert a row, filling id and a strictly increasing created_at."""
        self._clock += timedelta(seconds=1)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self._clock.isoformat())
        self.tables.setdefault(table, []).append(row)
        return row

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])

    def embed(self, table: str, columns: str, row: dict) -> dict:
        if table == "deliveries" and "delivery_files(" in columns:
            row["delivery_files"] = [
                dict(f) for f in self.rows("delivery_files")
                if _same(f.get("delivery_id"), row["id"])
            ]
        return row


def _same(left, right) -> bool:
    if left is None or right is None:
        return left is right
    if isinstance(left, bool) or isinstance(right, bool):
        return left is right
    return str(left) == str(right)


# =============================================================================
# Constants
# =============================================================================

ORG_ID = "11111111-1111-1111-1111-111111111111"
OTHER_ORG_ID = "22222222-2222-2222-2222-222222222222"
USER_ID = "33333333-3333-3333-3333-333333333333"
USER_EMAIL = "owner@acme.com"
RECIPIENT = "client@example.com"

ACTIVE_PRO_SUBSCRIPTION = {
    "plan": "pro",
    "status": "active",
    "deliveries_used": 3,
    "deliveries_limit": 100,
    "max_file_size_mb": 50,
    "storage_used_gb": 1.0,
    "storage_limit_gb": 20,
    "users_limit": 10,
}


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def fake_db(monkeypatch):
    """Replace the Supabase singleton with an in-memory database."""
    from lib.supabase_client import SupabaseClient

    db = FakeSupabase()
    monkeypatch.setattr(SupabaseClient, "_instance", db)
    monkeypatch.setattr(SupabaseClient, "create_auth_client", classmethod(lambda cls: db))
    return db


@pytest.fixture
def s3():
    """Mocked boto3 S3 client."""
    from core.services.storage_service import StorageService

    client = MagicMock()
    client.get_object.return_value = {"Body": io.BytesIO(b"file-bytes")}
    StorageService.set_client(client)
    yield client
    StorageService.set_client(None)


@pytest.fixture
def emails(monkeypatch):
    """Capture outgoing email instead of calling Resend."""
    from core.services.email_service import EmailService

    sent = MagicMock()
    monkeypatch.setattr(EmailService, "send_access_code", sent.send_access_code)
    monkeypatch.setattr(EmailService, "send_delivery_notification", sent.send_delivery_notification)
    return sent


@pytest.fixture
def org(fake_db):
    """An organization owned by the test user, on an active pro plan."""
    fake_db.seed("organizations", {
        "id": ORG_ID,
        "name": "Acme",
        "domain": "acme.com",
        "logo_url": None,
        "max_expiration_hours": 720,
        "min_expiration_hours": 1,
        "max_views": 10,
        "max_downloads": 5,
    })
    fake_db.seed("profiles", {
        "id": USER_ID,
        "email": USER_EMAIL,
        "full_name": "Olive Owner",
        "organization_id": ORG_ID,
        "role": "owner",
        "is_active": True,
    })
    fake_db.rpc_results["get_subscription_info"] = [dict(ACTIVE_PRO_SUBSCRIPTION)]
    fake_db.rpc_results["increment_delivery_usage"] = None
    return fake_db


@pytest.fixture
def make_delivery(fake_db):
    """Seed a delivery (and optionally one file) in the test organization."""

    def _make(**overrides) -> dict:
        files = overrides.pop("files", [])
        row = {
            "title": "Q3 contract",
            "message": None,
            "recipient_email": RECIPIENT,
            "expires_at": (datetime.now(timezone.utc) + timedelta(days=7)).isoformat(),
            "status": "active",
            "max_views": 10,
            "max_downloads": 5,
            "current_views": 0,
            "current_downloads": 0,
            "sender_id": USER_ID,
            "organization_id": ORG_ID,
        }
        row.update(overrides)
        delivery = fake_db.seed("deliveries", row)
        for file_row in files:
            fake_db.seed("delivery_files", {
                "delivery_id": delivery["id"],
                "filename": "report.pdf",
                "original_name": "report.pdf",
                "mime_type": "application/pdf",
                "size": 10,
                "storage_path": f"{ORG_ID}/{delivery['id']}/x-report.pdf",
                "hash": None,
                **file_row,
            })
        return delivery

    return _make


@pytest.fixture
def app():
    from app.main import app as fastapi_app

    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Unauthenticated client; unhandled errors come back as 500s."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth_client(app, client):
    """Client whose requests are authenticated as the organization owner."""
    from uuid import UUID

    from app.auth import AuthUser, get_current_user

    app.dependency_overrides[get_current_user] = lambda: AuthUser(id=UUID(USER_ID), email=USER_EMAIL)
    return client
