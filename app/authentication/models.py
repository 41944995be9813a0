"""
Authentication models.

This module defines the user model for the volunteer hub:
- User: Email-based login with a display name and a role

Related files:
    - managers.py: Custom user manager for email-based creation
    - principal.py: Principal resolution for requests and sockets

Security:
    - User passwords hashed with Django's PBKDF2
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class UserRole(models.TextChoices):
    """Roles a user can hold in the volunteer hub."""

    VOLUNTEER = "volunteer", "Volunteer"
    EVENT_MANAGER = "event_manager", "Event Manager"
    ADMIN = "admin", "Admin"


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        name: Display name shown on messages and sender lists
        role: volunteer, event_manager or admin
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified

    Note:
        Unread counters are not stored on the user row; they live in
        messaging.UnreadLedgerEntry so concurrent senders never rewrite
        this record.
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    name = models.CharField(
        max_length=150,
        blank=True,
        help_text="Display name shown to other users",
    )
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.VOLUNTEER,
        db_index=True,
        help_text="Role in the volunteer hub",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        return self.name or self.email

    def get_short_name(self):
        return self.name or self.email.split("@")[0]

    @property
    def display_name(self) -> str:
        """Name used in message payloads."""
        return self.get_full_name()

    @property
    def is_event_manager(self) -> bool:
        return self.role in (UserRole.EVENT_MANAGER, UserRole.ADMIN)
