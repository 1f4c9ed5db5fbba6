"""
MedDrop Test Suite
==================

Tests for the MedDrop dose scheduling and adherence engine.

Test Structure:
- test_tools/: clock helpers, record stores, notification sink
- test_services/: expander, status resolver, adherence calculator, sync queue, write paths
- test_actions/: reminder reconciler and risk sweep
- test_api/: API endpoint tests for FastAPI routes
- conftest.py: Shared pytest fixtures

Running Tests:
    # Run all tests
    pytest

    # Run one package
    pytest tests/test_services/

    # Run only marked tests
    pytest -m "unit"
    pytest -m "api"
"""
