# =============================================================================
# tests/test_deliveries_api.py - Delivery Endpoint Tests
# =============================================================================
# Sender and recipient flows through the FastAPI app with Supabase, S3 and
# email replaced by fakes (see conftest.py).
# =============================================================================

from datetime import datetime, timedelta, timezone

import pytest

from core.services.email_service import EmailSendError
from tests.conftest import ORG_ID, OTHER_ORG_ID, RECIPIENT, USER_ID


def _future(days: int = 7) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def _delivery_row(db, delivery_id):
    return next(d for d in db.rows("deliveries") if d["id"] == delivery_id)


# =============================================================================
# Authentication
# =============================================================================

def test_sender_endpoints_require_token(client, fake_db):
    response = client.get("/api/deliveries")

    assert response.status_code == 401
    assert response.json()["success"] is False


# =============================================================================
# Create / list
# =============================================================================

class TestCreateDelivery:

    def test_creates_active_delivery(self, auth_client, org):
        response = auth_client.post("/api/deliveries", json={
            "title": "Contract",
            "recipient_email": "Client@Example.com",
            "expires_at": _future(),
        })

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "active"
        assert body["recipient_email"] == RECIPIENT
        assert body["organization_id"] == ORG_ID
        assert body["sender_id"] == USER_ID
        assert body["current_downloads"] == 0
        assert body["delivery_files"] == []

    def test_missing_fields_return_validation_error(self, auth_client, org):
        response = auth_client.post("/api/deliveries", json={"title": "Contract"})

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        fields = {d["field"] for d in body["details"]}
        assert "recipient_email" in fields

    def test_user_without_organization(self, auth_client, fake_db):
        fake_db.seed("profiles", {"id": USER_ID, "organization_id": None})

        response = auth_client.post("/api/deliveries", json={
            "title": "Contract", "recipient_email": RECIPIENT, "expires_at": _future(),
        })

        assert response.status_code == 400
        assert response.json()["message"] == "User without organization"


class TestListDeliveries:

    def test_scoped_to_organization_newest_first(self, auth_client, org, make_delivery):
        first = make_delivery(title="First")
        second = make_delivery(title="Second", files=[{}])
        make_delivery(title="Foreign", organization_id=OTHER_ORG_ID)

        response = auth_client.get("/api/deliveries")

        assert response.status_code == 200
        body = response.json()
        assert [d["id"] for d in body] == [second["id"], first["id"]]
        assert len(body[0]["delivery_files"]) == 1

    def test_status_filter(self, auth_client, org, make_delivery):
        make_delivery(title="Live")
        revoked = make_delivery(title="Gone", status="revoked")

        response = auth_client.get("/api/deliveries", params={"status": "revoked"})

        assert [d["id"] for d in response.json()] == [revoked["id"]]


# =============================================================================
# Status changes
# =============================================================================

class TestUpdateStatus:

    def test_revoke(self, auth_client, org, make_delivery):
        delivery = make_delivery()

        response = auth_client.post(f"/api/deliveries/{delivery['id']}/status", json={"status": "revoked"})

        assert response.status_code == 200
        assert response.json()["status"] == "revoked"
        assert _delivery_row(org, delivery["id"])["updated_at"]

    def test_unknown_status(self, auth_client, org, make_delivery):
        delivery = make_delivery()

        response = auth_client.post(f"/api/deliveries/{delivery['id']}/status", json={"status": "paused"})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid status"

    def test_terminal_status_cannot_be_reopened(self, auth_client, org, make_delivery):
        delivery = make_delivery(status="expired")

        response = auth_client.post(f"/api/deliveries/{delivery['id']}/status", json={"status": "active"})

        assert response.status_code == 409
        assert _delivery_row(org, delivery["id"])["status"] == "expired"

    def test_same_status_is_noop(self, auth_client, org, make_delivery):
        delivery = make_delivery(status="revoked")

        response = auth_client.post(f"/api/deliveries/{delivery['id']}/status", json={"status": "revoked"})

        assert response.status_code == 200
        assert "updated_at" not in _delivery_row(org, delivery["id"])

    def test_other_organization_looks_missing(self, auth_client, org, make_delivery):
        delivery = make_delivery(organization_id=OTHER_ORG_ID)

        response = auth_client.post(f"/api/deliveries/{delivery['id']}/status", json={"status": "revoked"})

        assert response.status_code == 404
        assert _delivery_row(org, delivery["id"])["status"] == "active"


# =============================================================================
# Upload
# =============================================================================

class TestUpload:

    def _post(self, client, content=b"%PDF-1.4 hello", filename="Q3 report.pdf"):
        return client.post(
            "/api/deliveries/upload",
            data={"title": "Q3", "recipient_email": RECIPIENT, "expires_at": _future()},
            files={"file": (filename, content, "application/pdf")},
        )

    def test_upload_stores_encrypted_object_and_metadata(self, auth_client, org, s3, emails):
        response = self._post(auth_client)

        assert response.status_code == 201
        body = response.json()
        file_row = body["delivery_files"][0]
        assert file_row["original_name"] == "Q3 report.pdf"
        assert file_row["filename"] == "Q3_report.pdf"
        assert file_row["size"] == len(b"%PDF-1.4 hello")
        assert file_row["storage_path"].startswith(f"{ORG_ID}/{body['id']}/")

        put = s3.put_object.call_args.kwargs
        assert put["ServerSideEncryption"] == "AES256"
        assert put["Key"] == file_row["storage_path"]

        assert ("increment_delivery_usage", {"org_id": ORG_ID}) in org.rpc_calls
        emails.send_delivery_notification.assert_called_once()

    def test_email_failure_does_not_fail_upload(self, auth_client, org, s3, emails):
        emails.send_delivery_notification.side_effect = EmailSendError("resend down")

        assert self._post(auth_client).status_code == 201

    def test_metadata_failure_rolls_back_object(self, auth_client, org, s3, emails):
        org.failures[("delivery_files", "insert")] = Exception("insert failed")

        response = self._post(auth_client)

        assert response.status_code == 500
        assert response.json()["message"] == "Error saving file metadata"
        s3.delete_object.assert_called_once()

    def test_inactive_subscription_blocks_upload(self, auth_client, org, s3, emails):
        org.rpc_results["get_subscription_info"] = [{"plan": "pro", "status": "past_due"}]

        response = self._post(auth_client)

        assert response.status_code == 402
        s3.put_object.assert_not_called()

    def test_delivery_quota_reached(self, auth_client, org, s3, emails):
        org.rpc_results["get_subscription_info"] = [{
            "plan": "starter", "status": "active", "deliveries_used": 50, "deliveries_limit": 50,
            "max_file_size_mb": 25, "storage_used_gb": 0, "storage_limit_gb": 5,
        }]

        assert self._post(auth_client).status_code == 402

    def test_file_over_plan_size(self, auth_client, org, s3, emails):
        org.rpc_results["get_subscription_info"] = [{
            "plan": "early_adopter", "status": "active", "max_file_size_mb": 0.000001,
            "storage_used_gb": 0, "storage_limit_gb": 5,
        }]

        assert self._post(auth_client).status_code == 413

    def test_storage_quota_exceeded(self, auth_client, org, s3, emails):
        org.rpc_results["get_subscription_info"] = [{
            "plan": "enterprise", "status": "active", "max_file_size_mb": 100,
            "storage_used_gb": 5, "storage_limit_gb": 5,
        }]

        assert self._post(auth_client).status_code == 507


# =============================================================================
# Recipient view
# =============================================================================

class TestRecipientView:

    def test_recipient_sees_delivery(self, client, org, make_delivery):
        delivery = make_delivery(files=[{}])

        response = client.get(f"/api/deliveries/{delivery['id']}", params={"email": "CLIENT@example.com"})

        assert response.status_code == 200
        assert len(response.json()["delivery_files"]) == 1

    @pytest.mark.parametrize("params", [{}, {"email": "someone@else.com"}])
    def test_email_required(self, client, org, make_delivery, params):
        delivery = make_delivery()

        response = client.get(f"/api/deliveries/{delivery['id']}", params=params)

        assert response.status_code == 401
        assert response.json()["message"] == "Email verification required"

    def test_unknown_delivery(self, client, fake_db):
        response = client.get(
            "/api/deliveries/99999999-9999-9999-9999-999999999999", params={"email": RECIPIENT}
        )
        assert response.status_code == 404


# =============================================================================
# Download
# =============================================================================

class TestDownload:

    def _url(self, delivery, file_id=None):
        file_id = file_id or delivery_file_id(delivery)
        return f"/api/deliveries/{delivery['id']}/download/{file_id}"

    def test_download_counts_and_logs(self, client, org, make_delivery, s3):
        delivery = make_delivery(files=[{"original_name": "Relatório.pdf"}])

        response = client.get(self._url(delivery), params={"email": RECIPIENT})

        assert response.status_code == 200
        assert response.content == b"file-bytes"
        assert response.headers["content-type"] == "application/pdf"
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="Relatrio.pdf"')
        assert "filename*=UTF-8''Relat%C3%B3rio.pdf" in disposition

        row = _delivery_row(org, delivery["id"])
        assert row["current_downloads"] == 1
        assert row["status"] == "active"
        log = org.rows("access_logs")[0]
        assert log["action"] == "download"

    def test_last_allowed_download_expires_delivery(self, client, org, make_delivery, s3):
        delivery = make_delivery(files=[{}], current_downloads=4, max_downloads=5)

        assert client.get(self._url(delivery), params={"email": RECIPIENT}).status_code == 200
        assert _delivery_row(org, delivery["id"])["status"] == "expired"

        again = client.get(self._url(delivery), params={"email": RECIPIENT})
        assert again.status_code == 403

    def test_quota_used_up(self, client, org, make_delivery, s3):
        delivery = make_delivery(files=[{}], current_downloads=5, max_downloads=5)

        response = client.get(self._url(delivery), params={"email": RECIPIENT})

        assert response.status_code == 403
        assert response.json()["code"] == "DOWNLOAD_LIMIT_REACHED"
        s3.get_object.assert_not_called()

    def test_past_expiry_marks_expired(self, client, org, make_delivery, s3):
        delivery = make_delivery(files=[{}], expires_at="2020-01-01T00:00:00Z")

        response = client.get(self._url(delivery), params={"email": RECIPIENT})

        assert response.status_code == 403
        assert _delivery_row(org, delivery["id"])["status"] == "expired"

    def test_wrong_recipient(self, client, org, make_delivery, s3):
        delivery = make_delivery(files=[{}])

        response = client.get(self._url(delivery), params={"email": "other@example.com"})

        assert response.status_code == 401
        assert _delivery_row(org, delivery["id"])["current_downloads"] == 0

    def test_missing_email(self, client, org, make_delivery, s3):
        delivery = make_delivery(files=[{}])

        assert client.get(self._url(delivery)).status_code == 401

    def test_unknown_file(self, client, org, make_delivery, s3):
        delivery = make_delivery(files=[{}])

        response = client.get(
            self._url(delivery, "88888888-8888-8888-8888-888888888888"), params={"email": RECIPIENT}
        )

        assert response.status_code == 404
        assert _delivery_row(org, delivery["id"])["current_downloads"] == 0


def delivery_file_id(delivery: dict) -> str:
    from lib.supabase_client import SupabaseClient

    files = SupabaseClient.get_client().rows("delivery_files")
    return next(f["id"] for f in files if f["delivery_id"] == delivery["id"])
