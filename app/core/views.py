"""
Core views providing infrastructure endpoints and shared view helpers.

This module contains views that are not part of the business domain but are
essential for application infrastructure, such as health checks, plus the
translation of application errors into DRF responses.
"""

import logging

from django.db import connection
from django.http import JsonResponse
from rest_framework.response import Response

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def application_error_response(exc: BaseApplicationError) -> Response:
    """
    Build a DRF response for an application error.

    Status comes from the exception class (400 validation, 403 permission,
    404 not found, 409 conflict); the body is exc.to_dict().
    """
    if exc.http_status >= 500:
        logger.error(f"Application error surfaced to client: {exc!r}")
    return Response(exc.to_dict(), status=exc.http_status)


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - cache: "connected" or "disconnected"

    HTTP Status Codes:
        200: All systems operational
        503: Database unreachable
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        logger.exception("Health check could not reach the database")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        from django.core.cache import cache

        cache.set("health_check", "ok", timeout=1)
        if cache.get("health_check") == "ok":
            health_status["cache"] = "connected"
        else:
            health_status["cache"] = "disconnected"
    except Exception:
        # Cache failure degrades but does not fail the check
        logger.warning("Health check could not reach the cache", exc_info=True)
        health_status["cache"] = "disconnected"

    status_code = 200 if is_healthy else 503

    return JsonResponse(health_status, status=status_code)
