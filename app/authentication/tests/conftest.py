"""
Test configuration and fixtures for authentication tests.

Usage:
    def test_example(volunteer, access_token_for):
        token = access_token_for(volunteer)
"""

import pytest
from rest_framework_simplejwt.tokens import AccessToken

from authentication.models import User, UserRole
from authentication.tests.factories import UserFactory


@pytest.fixture
def volunteer(db):
    """Create an active volunteer."""
    return UserFactory(role=UserRole.VOLUNTEER)


@pytest.fixture
def event_manager(db):
    """Create an active event manager."""
    return UserFactory(role=UserRole.EVENT_MANAGER)


@pytest.fixture
def superuser(db):
    """Create a superuser with admin privileges."""
    return User.objects.create_superuser(
        email="admin@example.com", password="AdminPass123!"
    )


@pytest.fixture
def deactivated_user(db):
    """Create a deactivated user (is_active=False)."""
    return UserFactory(is_active=False)


@pytest.fixture
def access_token_for():
    """Return a helper that mints a JWT access token string for a user."""

    def _make(user):
        return str(AccessToken.for_user(user))

    return _make
