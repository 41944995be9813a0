"""
Principal resolution for HTTP and WebSocket requests.

Messaging services never look at raw credentials. Callers turn a request
user (DRF) or an access token (WebSocket handshake) into a Principal first;
anything that cannot be verified raises Unauthenticated.

Usage:
    from authentication.principal import resolve_principal

    principal = resolve_principal(request.user)
    if principal.is_event_manager:
        ...

    # WebSocket handshake (sync context)
    user = user_from_access_token(raw_token)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from django.contrib.auth import get_user_model
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import AccessToken

from authentication.models import UserRole
from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


class Unauthenticated(BaseApplicationError):
    """Raised when a credential cannot be verified."""

    default_error_code: str = "UNAUTHENTICATED"
    http_status: int = 401


@dataclass(frozen=True)
class Principal:
    """
    Verified identity of the caller.

    Attributes:
        user_id: Primary key of the authenticated user
        role: One of UserRole values
    """

    user_id: int
    role: str

    @property
    def is_event_manager(self) -> bool:
        return self.role in (UserRole.EVENT_MANAGER, UserRole.ADMIN)


def resolve_principal(user) -> Principal:
    """
    Build a Principal from an authenticated user object.

    Raises:
        Unauthenticated: If user is missing, anonymous or inactive
    """
    if user is None or not getattr(user, "is_authenticated", False):
        raise Unauthenticated("Authentication credentials were not provided")
    if not user.is_active:
        raise Unauthenticated("User account is disabled", error_code="USER_INACTIVE")
    return Principal(user_id=user.pk, role=user.role)


def user_from_access_token(raw_token: str):
    """
    Validate a JWT access token and load its user.

    Must run in a sync context (wrap with database_sync_to_async from
    consumers and middleware).

    Raises:
        Unauthenticated: Token invalid/expired, user missing or inactive
    """
    User = get_user_model()

    try:
        access_token = AccessToken(raw_token)
    except TokenError as e:
        logger.warning(f"Invalid JWT token: {e}")
        raise Unauthenticated("Invalid or expired token", error_code="INVALID_TOKEN") from e

    user_id = access_token.get("user_id")
    try:
        user = User.objects.get(pk=user_id)
    except User.DoesNotExist as e:
        logger.warning(f"User {user_id} not found for token")
        raise Unauthenticated("User not found", error_code="USER_NOT_FOUND") from e

    # Raises for inactive users
    resolve_principal(user)
    return user
