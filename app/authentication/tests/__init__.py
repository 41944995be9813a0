"""
Tests for authentication app.

This package contains test modules for:
- test_managers.py: UserManager creation rules
- test_principal.py: Principal resolution from users and access tokens

Usage:
    pytest app/authentication/tests/
"""
