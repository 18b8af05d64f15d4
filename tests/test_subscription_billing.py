# =============================================================================
# tests/test_subscription_billing.py - Plans, Checkout & Early Adopter Tests
# =============================================================================

from unittest.mock import MagicMock

import httpx
import pytest

from app.exceptions import (
    CheckoutError,
    EarlyAdopterClaimError,
    InsufficientPermissionsError,
    InvalidPlanError,
    PlanNotConfiguredError,
    SubscriptionLimitError,
)
from core.services import BillingService, SubscriptionService
from tests.conftest import ORG_ID, USER_EMAIL, USER_ID

OWNER = {"id": USER_ID, "role": "owner", "organization_id": ORG_ID, "full_name": "Olive", "email": USER_EMAIL}


# =============================================================================
# Subscription reads
# =============================================================================

class TestGetSubscription:

    def test_active_subscription(self, auth_client, org):
        response = auth_client.get("/api/subscription")

        assert response.status_code == 200
        assert response.json()["subscription"]["plan"] == "pro"

    def test_no_subscription_falls_back_to_trial(self, auth_client, org):
        org.rpc_results["get_subscription_info"] = []

        subscription = auth_client.get("/api/subscription").json()["subscription"]

        assert subscription["plan"] == "starter"
        assert subscription["status"] == "trial"

    def test_lookup_failure_blocks_uploads(self, org):
        from lib.supabase_client import SupabaseClientError

        org.rpc_results["get_subscription_info"] = SupabaseClientError("rpc failed")

        with pytest.raises(SubscriptionLimitError) as exc:
            SubscriptionService.check_upload_allowed(ORG_ID, 10)
        assert exc.value.status_code == 500


def test_usage_increment_failure_is_swallowed(org):
    from lib.supabase_client import SupabaseClientError

    org.rpc_results["increment_delivery_usage"] = SupabaseClientError("rpc failed")

    assert SubscriptionService.increment_delivery_usage(ORG_ID) is False


# =============================================================================
# Checkout
# =============================================================================

@pytest.fixture
def variants(monkeypatch):
    from app.config import settings

    monkeypatch.setattr(settings, "LEMONSQUEEZY_PRO_VARIANT_ID", "222")
    monkeypatch.setattr(settings, "LEMONSQUEEZY_STORE_ID", "9")
    monkeypatch.setattr(settings, "LEMONSQUEEZY_API_KEY", "ls-key")


class TestCheckout:

    def test_creates_checkout(self, variants, monkeypatch):
        response = MagicMock()
        response.json.return_value = {"data": {"attributes": {"url": "https://pay.example/checkout/1"}}}
        post = MagicMock(return_value=response)
        monkeypatch.setattr(httpx, "post", post)

        url = BillingService.create_checkout(USER_ID, USER_EMAIL, OWNER, "pro")

        assert url == "https://pay.example/checkout/1"
        body = post.call_args.kwargs["json"]["data"]
        assert body["relationships"]["variant"]["data"]["id"] == "222"
        assert body["attributes"]["checkout_data"]["custom"] == {"organization_id": ORG_ID, "user_id": USER_ID}
        assert body["attributes"]["product_options"]["redirect_url"].endswith("/subscription?checkout=success")

    def test_non_owner_forbidden(self, variants):
        with pytest.raises(InsufficientPermissionsError) as exc:
            BillingService.create_checkout(USER_ID, USER_EMAIL, {**OWNER, "role": "admin"}, "pro")
        assert exc.value.message == "Only organization owner can manage billing"

    def test_invalid_plan(self, variants):
        with pytest.raises(InvalidPlanError):
            BillingService.create_checkout(USER_ID, USER_EMAIL, OWNER, "platinum")

    def test_unconfigured_plan(self, variants):
        with pytest.raises(PlanNotConfiguredError) as exc:
            BillingService.create_checkout(USER_ID, USER_EMAIL, OWNER, "enterprise")
        assert exc.value.status_code == 503

    def test_provider_failure(self, variants, monkeypatch):
        monkeypatch.setattr(httpx, "post", MagicMock(side_effect=httpx.ConnectError("down")))

        with pytest.raises(CheckoutError):
            BillingService.create_checkout(USER_ID, USER_EMAIL, OWNER, "pro")

    def test_checkout_endpoint(self, auth_client, org, variants, monkeypatch):
        response = MagicMock()
        response.json.return_value = {"data": {"attributes": {"url": "https://pay.example/c"}}}
        monkeypatch.setattr(httpx, "post", MagicMock(return_value=response))

        result = auth_client.post("/api/subscription/checkout", json={"plan": "pro"})

        assert result.status_code == 200
        assert result.json() == {"success": True, "checkout_url": "https://pay.example/c"}


# =============================================================================
# Early adopter
# =============================================================================

class TestEarlyAdopter:

    def test_availability_is_public(self, client, fake_db):
        fake_db.rpc_results["check_early_adopter_availability"] = [
            {"available": True, "slots_remaining": 12, "program_active": True}
        ]

        response = client.get("/api/early-adopter/availability")

        assert response.status_code == 200
        assert response.json() == {"available": True, "slots_remaining": 12, "program_active": True}

    def test_claim_upserts_subscription(self, auth_client, org):
        org.rpc_results["claim_early_adopter_slot"] = {"success": True, "message": "Welcome aboard"}

        response = auth_client.post("/api/early-adopter/claim")

        assert response.status_code == 200
        assert response.json()["is_early_adopter"] is True
        subscription = org.rows("subscriptions")[0]
        assert subscription["organization_id"] == ORG_ID
        assert subscription["plan"] == "early_adopter"

    def test_claim_refused(self, org):
        org.rpc_results["claim_early_adopter_slot"] = {"success": False, "message": "No slots left"}

        with pytest.raises(EarlyAdopterClaimError) as exc:
            SubscriptionService.claim_early_adopter(USER_ID, OWNER)
        assert exc.value.message == "No slots left"
        assert org.rows("subscriptions") == []

    def test_members_cannot_claim(self, org):
        with pytest.raises(InsufficientPermissionsError):
            SubscriptionService.claim_early_adopter(USER_ID, {**OWNER, "role": "member"})
        assert org.rpc_calls == []

    def test_claim_survives_subscription_upsert_failure(self, auth_client, org):
        org.rpc_results["claim_early_adopter_slot"] = {"success": True, "message": "Welcome aboard"}
        org.failures[("subscriptions", "upsert")] = Exception("upsert failed")

        response = auth_client.post("/api/early-adopter/claim")

        assert response.status_code == 200
        assert response.json()["is_early_adopter"] is True
        assert org.rows("subscriptions") == []
