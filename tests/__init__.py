"""
PillWatch Test Suite
====================

Test Structure:
- test_actions/: reminder engine, dedup ledger, scheduler and insights
- test_services/: document store, patient and adherence services
- test_tools/: notification dispatch and transports
- test_api/: API endpoint tests for FastAPI routes
- conftest.py: Shared pytest fixtures

Running Tests:
    # Run all tests
    pytest

    # Run specific test module
    pytest tests/test_actions/

    # Run only marked tests
    pytest -m "unit"
    pytest -m "api"
"""
