"""
Tests for principal resolution.

Covers:
- resolve_principal() for authenticated, anonymous and inactive users
- user_from_access_token() for valid, malformed and orphaned tokens
"""

import pytest
from django.contrib.auth.models import AnonymousUser

from authentication.models import UserRole
from authentication.principal import (
    Principal,
    Unauthenticated,
    resolve_principal,
    user_from_access_token,
)


class TestResolvePrincipal:
    """Tests for resolve_principal()."""

    def test_returns_user_id_and_role(self, volunteer):
        principal = resolve_principal(volunteer)

        assert principal == Principal(user_id=volunteer.pk, role=UserRole.VOLUNTEER)
        assert principal.is_event_manager is False

    def test_event_manager_flag(self, event_manager):
        assert resolve_principal(event_manager).is_event_manager is True

    def test_anonymous_user_is_rejected(self):
        """
        Anonymous users cannot become principals.

        Why it matters: Messaging operations trust the principal's id as
        the sender, so it must come from a verified credential.
        """
        with pytest.raises(Unauthenticated) as exc_info:
            resolve_principal(AnonymousUser())

        assert exc_info.value.error_code == "UNAUTHENTICATED"
        assert exc_info.value.http_status == 401

    def test_none_is_rejected(self):
        with pytest.raises(Unauthenticated):
            resolve_principal(None)

    def test_inactive_user_is_rejected(self, deactivated_user):
        with pytest.raises(Unauthenticated) as exc_info:
            resolve_principal(deactivated_user)

        assert exc_info.value.error_code == "USER_INACTIVE"


class TestUserFromAccessToken:
    """Tests for user_from_access_token()."""

    def test_valid_token_returns_user(self, volunteer, access_token_for):
        token = access_token_for(volunteer)

        assert user_from_access_token(token) == volunteer

    def test_malformed_token_is_rejected(self, db):
        with pytest.raises(Unauthenticated) as exc_info:
            user_from_access_token("not-a-jwt")

        assert exc_info.value.error_code == "INVALID_TOKEN"

    def test_token_for_deleted_user_is_rejected(self, volunteer, access_token_for):
        token = access_token_for(volunteer)
        volunteer.delete()

        with pytest.raises(Unauthenticated) as exc_info:
            user_from_access_token(token)

        assert exc_info.value.error_code == "USER_NOT_FOUND"

    def test_token_for_inactive_user_is_rejected(self, volunteer, access_token_for):
        token = access_token_for(volunteer)
        volunteer.is_active = False
        volunteer.save(update_fields=["is_active"])

        with pytest.raises(Unauthenticated):
            user_from_access_token(token)
