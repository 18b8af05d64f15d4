# =============================================================================
# tests/test_auth.py - Authentication Tests
# =============================================================================
# JWT verification (HS256 path) and the credential endpoints, with the
# Supabase auth client mocked.
# =============================================================================

import time
from types import SimpleNamespace

import pytest
from jose import jwt

from app.auth import decode_access_token
from app.exceptions import UnauthorizedError
from tests.conftest import USER_EMAIL, USER_ID

SECRET = "test-jwt-secret-with-enough-length"


def _token(**overrides) -> str:
    claims = {
        "sub": USER_ID,
        "email": USER_EMAIL,
        "aud": "authenticated",
        "exp": int(time.time()) + 3600,
    }
    claims.update(overrides)
    return jwt.encode(claims, SECRET, algorithm="HS256")


def _session():
    return SimpleNamespace(access_token="access", refresh_token="refresh", expires_at=123)


# =============================================================================
# Token verification
# =============================================================================

class TestDecodeAccessToken:

    def test_valid_token(self):
        user = decode_access_token(_token())

        assert str(user.id) == USER_ID
        assert user.email == USER_EMAIL

    def test_expired_token(self):
        with pytest.raises(UnauthorizedError) as exc:
            decode_access_token(_token(exp=int(time.time()) - 10))
        assert exc.value.message == "Token has expired"

    def test_wrong_audience(self):
        with pytest.raises(UnauthorizedError):
            decode_access_token(_token(aud="anon"))

    def test_bad_signature(self):
        forged = jwt.encode({"sub": USER_ID, "aud": "authenticated"}, "other-secret", algorithm="HS256")

        with pytest.raises(UnauthorizedError):
            decode_access_token(forged)

    def test_malformed_subject(self):
        with pytest.raises(UnauthorizedError):
            decode_access_token(_token(sub="not-a-uuid"))


def test_verify_endpoint_with_real_token(client, fake_db):
    response = client.get("/api/auth/verify", headers={"Authorization": f"Bearer {_token()}"})

    assert response.status_code == 200
    assert response.json() == {"valid": True, "user_id": USER_ID, "email": USER_EMAIL}


def test_me_returns_profile(auth_client, org):
    response = auth_client.get("/api/auth/me")

    assert response.status_code == 200
    assert response.json()["role"] == "owner"


# =============================================================================
# Credential endpoints
# =============================================================================

class TestLogin:

    def test_success(self, client, org):
        org.auth.sign_in_with_password.return_value = SimpleNamespace(
            user=SimpleNamespace(id=USER_ID, email=USER_EMAIL),
            session=_session(),
        )

        response = client.post("/api/auth/credentials/login", json={"email": USER_EMAIL, "password": "pw"})

        assert response.status_code == 200
        body = response.json()
        assert body["session"]["access_token"] == "access"
        assert body["profile"]["organization_id"]

    def test_invalid_credentials(self, client, fake_db):
        fake_db.auth.sign_in_with_password.side_effect = Exception("Invalid login credentials")

        response = client.post("/api/auth/credentials/login", json={"email": USER_EMAIL, "password": "pw"})

        assert response.status_code == 401
        assert response.json()["code"] == "INVALID_CREDENTIALS"


class TestRegister:

    BODY = {
        "name": "Ada Lovelace",
        "email": "ada@acme.com",
        "password": "Secret123",
        "confirm_password": "Secret123",
    }

    def test_requires_confirmation(self, client, fake_db):
        fake_db.auth.sign_up.return_value = SimpleNamespace(
            user=SimpleNamespace(id=USER_ID, email="ada@acme.com", identities=[{"id": "x"}]),
            session=None,
        )

        response = client.post("/api/auth/credentials/register", json=self.BODY)

        assert response.status_code == 200
        assert response.json()["requires_email_confirmation"] is True

    def test_existing_account_without_identities(self, client, fake_db):
        fake_db.auth.sign_up.return_value = SimpleNamespace(
            user=SimpleNamespace(id=USER_ID, email="ada@acme.com", identities=[]),
            session=None,
        )

        assert client.post("/api/auth/credentials/register", json=self.BODY).status_code == 409

    def test_existing_account_error(self, client, fake_db):
        fake_db.auth.sign_up.side_effect = Exception("User already registered")

        assert client.post("/api/auth/credentials/register", json=self.BODY).status_code == 409

    def test_weak_password_is_validation_error(self, client, fake_db):
        body = {**self.BODY, "password": "weak", "confirm_password": "weak"}

        response = client.post("/api/auth/credentials/register", json=body)

        assert response.status_code == 400
        fake_db.auth.sign_up.assert_not_called()


def test_google_oauth_redirect(client, fake_db):
    fake_db.auth.sign_in_with_oauth.return_value = SimpleNamespace(url="https://accounts.google.com/o/oauth2")

    response = client.post("/api/auth/google", json={"redirect_to": "/deliveries"})

    assert response.status_code == 200
    options = fake_db.auth.sign_in_with_oauth.call_args.args[0]["options"]
    assert options["redirect_to"].endswith("/auth/callback?next=%2Fdeliveries")
    assert options["query_params"] == {"access_type": "offline", "prompt": "consent"}


def test_logout_requires_token(client, fake_db):
    assert client.post("/api/auth/logout").status_code == 401


def test_logout_revokes_session(client, fake_db):
    response = client.post("/api/auth/logout", headers={"Authorization": "Bearer abc"})

    assert response.status_code == 200
    fake_db.auth.admin.sign_out.assert_called_once_with("abc")
