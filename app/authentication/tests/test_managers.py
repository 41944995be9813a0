"""
Tests for UserManager.

The UserManager provides:
- create_user(): Creates users with a display name and role
- create_superuser(): Creates admin users with elevated privileges

Related files:
    - managers.py: Implementation under test
    - models.py: User model that uses this manager
"""

import pytest

from authentication.models import User, UserRole


class TestUserManagerCreateUser:
    """Tests for UserManager.create_user() method."""

    def test_creates_user_with_email_and_password(self, db):
        """
        Given valid email and password
        When create_user is called
        Then a user is created with those credentials
        """
        user = User.objects.create_user(
            email="mgr_create_user@example.com", password="SecurePass123!"
        )

        assert user.pk is not None
        assert user.email == "mgr_create_user@example.com"
        assert user.check_password("SecurePass123!") is True

    def test_normalizes_email_domain_to_lowercase(self, db):
        """
        Given an email with uppercase characters in domain
        When create_user is called
        Then the domain portion is normalized to lowercase
        """
        user = User.objects.create_user(email="Test.User@EXAMPLE.COM", password="x1!")

        assert user.email == "Test.User@example.com"

    def test_raises_valueerror_when_email_is_empty(self, db):
        with pytest.raises(ValueError) as exc_info:
            User.objects.create_user(email="", password="TestPass123!")

        assert "Email field must be set" in str(exc_info.value)

    def test_defaults_to_volunteer_role(self, db):
        """
        Given no role
        When create_user is called
        Then the user is a volunteer

        Why it matters: Self-registered accounts must not gain
        event-manager rights by accident.
        """
        user = User.objects.create_user(email="vol@example.com", password="x1!")

        assert user.role == UserRole.VOLUNTEER
        assert user.is_event_manager is False

    def test_name_defaults_to_email_local_part(self, db):
        """
        Given no name
        When create_user is called
        Then the display name is the email local part

        Why it matters: Message payloads always carry a sender name.
        """
        user = User.objects.create_user(email="sam.lee@example.com", password="x1!")

        assert user.name == "sam.lee"
        assert user.display_name == "sam.lee"

    def test_keeps_explicit_name_and_role(self, db):
        user = User.objects.create_user(
            email="morgan@example.com",
            password="x1!",
            name="Morgan Manager",
            role=UserRole.EVENT_MANAGER,
        )

        assert user.name == "Morgan Manager"
        assert user.is_event_manager is True

    def test_creates_user_without_password(self, db):
        user = User.objects.create_user(email="nopass@example.com", password=None)

        assert user.has_usable_password() is False


class TestUserManagerCreateSuperuser:
    """Tests for UserManager.create_superuser() method."""

    def test_creates_superuser_with_admin_role(self, db):
        admin = User.objects.create_superuser(
            email="admin@example.com", password="AdminPass123!"
        )

        assert admin.is_staff is True
        assert admin.is_superuser is True
        assert admin.role == UserRole.ADMIN

    def test_raises_valueerror_when_is_staff_is_false(self, db):
        with pytest.raises(ValueError) as exc_info:
            User.objects.create_superuser(
                email="bad@example.com", password="x1!", is_staff=False
            )

        assert "is_staff=True" in str(exc_info.value)

    def test_raises_valueerror_when_is_superuser_is_false(self, db):
        with pytest.raises(ValueError) as exc_info:
            User.objects.create_superuser(
                email="bad2@example.com", password="x1!", is_superuser=False
            )

        assert "is_superuser=True" in str(exc_info.value)
