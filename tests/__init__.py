# =============================================================================
# tests/ - Test Suite
# =============================================================================
# This package contains all tests for the Bigtable API:
# - test_models.py: Row, cell, mutation and table model validation
# - test_filters.py: Filter builders and SDK filter conversion
# - test_bigtable_client.py: Client wrapper against mocked SDK clients
# - test_bigtable_service.py: Async gateway against the in-memory client
# - test_api.py: HTTP endpoints through TestClient
# - test_config.py: Settings defaults and validation
#
# Run tests with: poetry run pytest
# =============================================================================
