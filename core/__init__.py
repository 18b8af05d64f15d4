# =============================================================================
# core/ - Business Logic Package
# =============================================================================
# This package contains the business logic behind the API:
# - models/: Pydantic schemas for data validation
# - services/: Deliveries, access codes, membership, subscriptions,
#   billing, storage, email and cleanup
#
# Code in this package should NOT import from FastAPI or Celery.
# Errors are raised as app.exceptions types and rendered by the app layer.
# =============================================================================
