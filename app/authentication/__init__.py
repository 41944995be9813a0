"""
Authentication application.

This app provides the email-based user model and principal resolution
for HTTP and WebSocket requests.

Key components:
    - User model: Email login, display name and volunteer-hub role
    - Principal: Verified identity (user id + role) handed to services
    - resolve_principal / user_from_access_token: Credential checks

Usage:
    from authentication.models import User, UserRole
    from authentication.principal import resolve_principal
"""
