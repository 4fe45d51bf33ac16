"""
Tests for the health check endpoint.
"""

from unittest.mock import patch

import pytest
from django.db import DatabaseError
from django.urls import reverse


@pytest.mark.django_db
class TestHealthCheck:
    url = reverse("health_check")

    def test_healthy_when_webhook_secret_configured(self, client, settings):
        settings.STRIPE_WEBHOOK_SECRET = "whsec_test"

        response = client.get(self.url)

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "database": "connected",
            "cache": "connected",
            "webhooks": "configured",
        }

    def test_missing_webhook_secret_is_unhealthy(self, client, settings):
        settings.STRIPE_WEBHOOK_SECRET = ""

        response = client.get(self.url)

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["webhooks"] == "unconfigured"
        assert body["database"] == "connected"

    def test_database_failure_is_unhealthy(self, client, settings):
        settings.STRIPE_WEBHOOK_SECRET = "whsec_test"

        with patch("core.views.connection.cursor", side_effect=DatabaseError("down")):
            response = client.get(self.url)

        assert response.status_code == 503
        assert response.json()["database"] == "disconnected"
