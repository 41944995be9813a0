"""
Root pytest configuration for the Django project.

pytest-django loads config.settings_test (see pyproject.toml). This module
provides project-wide fixtures; app-specific fixtures are defined in each
app's tests/conftest.py.
"""

import pytest
from django.apps import apps
from rest_framework.test import APIClient


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_integration.py → e2e (full user journey workflows)
    - test_views.py, test_services.py, test_tasks.py, etc. → integration
    - test_models.py, test_registry.py, test_managers.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_integration.py"]

    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_consumers.py",
        "test_dispatcher.py",
        "test_broadcast.py",
        "test_receipts.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_serializers.py",
        "test_managers.py",
        "test_signals.py",
        "test_exceptions.py",
        "test_registry.py",
        "test_transport.py",
        "test_dto.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        # Check patterns in priority order
        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            # Default: integration (safe for Django where most tests hit DB)
            item.add_marker(pytest.mark.integration)


@pytest.fixture(autouse=True)
def messaging_runtime():
    """
    Give every test a freshly started messaging runtime.

    The in-memory room registry would otherwise carry connections from one
    test into the next.
    """
    runtime = apps.get_app_config("messaging").runtime
    runtime.stop()
    runtime.start()
    yield runtime
    runtime.stop()
    runtime.start()


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    return APIClient()


@pytest.fixture
def client_for():
    """Return a helper that builds a DRF client authenticated as a user."""

    def _make(user):
        client = APIClient()
        client.force_authenticate(user=user)
        return client

    return _make
