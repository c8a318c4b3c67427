"""
Infrastructure endpoints that sit outside the API versioning.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Liveness/readiness check.

    The database is required: 503 when it cannot answer SELECT 1.
    The cache only backs circuit breaker state, so a cache outage is
    reported but does not fail the check.

    Example response:
        {"status": "healthy", "database": "connected", "cache": "connected"}
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
    except DatabaseError as e:
        logger.error(f"Health check database failure: {e}")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        cache.set("health_check", "ok", timeout=1)
        cache_ok = cache.get("health_check") == "ok"
    except Exception as e:
        logger.warning(f"Health check cache failure: {e}")
        cache_ok = False
    health_status["cache"] = "connected" if cache_ok else "disconnected"

    return JsonResponse(health_status, status=200 if is_healthy else 503)
