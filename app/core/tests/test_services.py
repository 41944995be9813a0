"""
Tests for ServiceResult and BaseService helpers.
"""

import logging

import pytest
from django.db import DatabaseError

from core.exceptions import NotFoundError
from core.services import BaseService, ServiceResult


class ExampleService(BaseService):
    pass


class TestServiceResult:
    def test_success(self):
        result = ServiceResult.success([1, 2])

        assert result.success is True
        assert bool(result) is True
        assert result.to_response() == {"success": True, "data": [1, 2]}

    def test_failure(self):
        result = ServiceResult.failure("User not found", error_code="USER_NOT_FOUND")

        assert not result
        assert result.to_response() == {
            "success": False,
            "error": "User not found",
            "error_code": "USER_NOT_FOUND",
        }

    def test_from_application_error_keeps_code_and_details(self):
        exc = NotFoundError("Event not found", error_code="EVENT_NOT_FOUND", details={"event_id": 3})

        result = ServiceResult.from_exception(exc)

        assert result.error == "Event not found"
        assert result.error_code == "EVENT_NOT_FOUND"
        assert result.errors == {"event_id": 3}

    def test_from_unexpected_error_hides_message(self):
        """
        Storage errors never leak their text to clients.

        Why it matters: Database messages can contain table names and
        query fragments.
        """
        result = ServiceResult.from_exception(DatabaseError("relation messaging_message missing"))

        assert result.error == "An unexpected error occurred"
        assert result.error_code == "DATABASEERROR"


class TestBaseService:
    def test_logger_named_after_service(self):
        assert ExampleService.get_logger().name == "core.tests.test_services.ExampleService"

    def test_handle_exception_logs_and_wraps(self, caplog):
        with caplog.at_level(logging.ERROR):
            result = ExampleService.handle_exception(DatabaseError("boom"), "Loading inbox")

        assert not result.success
        assert "Loading inbox: boom" in caplog.text

    @pytest.mark.django_db
    def test_atomic_rolls_back(self):
        from authentication.models import User
        from authentication.tests.factories import UserFactory

        with pytest.raises(RuntimeError):
            with ExampleService.atomic():
                UserFactory()
                raise RuntimeError("abort")

        assert not User.objects.exists()
