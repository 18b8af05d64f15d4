# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Sealdrop API:
# - conftest.py: Environment setup, in-memory Supabase, S3/email mocks
# - test_models.py / test_utils.py: Validation and helpers
# - test_deliveries_api.py / test_access_codes.py: Delivery lifecycle
# - test_membership_rules.py: Role checks and organization endpoints
# - test_subscription_billing.py: Plan limits, checkout, early adopter
# - test_cleanup.py: Purge job (service, HTTP trigger, Celery task)
# - test_auth.py / test_integrations.py: Auth, S3, Resend, waitlist, health
#
# Run tests with: pytest
# =============================================================================
