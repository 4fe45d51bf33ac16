"""
Infrastructure endpoints that sit outside the payments domain.
"""

import logging

from django.conf import settings
from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for load balancers and container orchestration.

    Reports database and cache connectivity, and whether webhook signing is
    configured. A deployment without STRIPE_WEBHOOK_SECRET rejects every
    webhook, so it is reported as unhealthy rather than silently dropping
    settlement events.

    HTTP Status Codes:
        200: All systems operational
        503: One or more systems unhealthy

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "cache": "connected",
            "webhooks": "configured"
        }
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
        "webhooks": "configured" if settings.STRIPE_WEBHOOK_SECRET else "unconfigured",
    }
    is_healthy = bool(settings.STRIPE_WEBHOOK_SECRET)

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.exception("Health check database query failed")
        health_status["database"] = "disconnected"
        is_healthy = False

    # Cache failure is not critical: payout locking degrades, settlement does not
    cache.set("health_check", "ok", timeout=1)
    health_status["cache"] = (
        "connected" if cache.get("health_check") == "ok" else "disconnected"
    )

    if not is_healthy:
        health_status["status"] = "unhealthy"

    return JsonResponse(health_status, status=200 if is_healthy else 503)
