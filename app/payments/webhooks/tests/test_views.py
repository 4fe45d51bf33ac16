"""
Tests for the Stripe webhook view.

Tests cover:
- Signature verification and boundary rejections
- Missing signing secret
- Webhook event creation and duplicate delivery
- Dead-lettering of handler failures
"""

import hashlib
import hmac
import json
import time
from unittest.mock import patch

import pytest
from django.urls import reverse

from core.services import ServiceResult
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.tests.factories import WebhookEventFactory

WEBHOOK_SECRET = "whsec_test_secret"


# =============================================================================
# Setup
# =============================================================================


def sign(payload: bytes, secret: str = WEBHOOK_SECRET) -> str:
    """Build a Stripe-Signature header for payload."""
    timestamp = int(time.time())
    signed = f"{timestamp}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def make_event(event_type="customer.created", obj=None, event_id="evt_test_1") -> bytes:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": obj if obj is not None else {"id": "cus_1"}},
        }
    ).encode()


@pytest.fixture
def post_webhook(client, settings):
    settings.STRIPE_WEBHOOK_SECRET = WEBHOOK_SECRET
    url = reverse("payments:stripe_webhook")

    def _post(payload: bytes, signature: str | None = "sign"):
        headers = {}
        if signature == "sign":
            headers["HTTP_STRIPE_SIGNATURE"] = sign(payload)
        elif signature is not None:
            headers["HTTP_STRIPE_SIGNATURE"] = signature
        return client.post(url, data=payload, content_type="application/json", **headers)

    return _post


# =============================================================================
# Boundary Tests
# =============================================================================


@pytest.mark.django_db
class TestStripeWebhookBoundary:
    def test_missing_signature_returns_400(self, post_webhook):
        response = post_webhook(make_event(), signature=None)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing Stripe-Signature header"}
        assert WebhookEvent.objects.count() == 0

    def test_invalid_signature_returns_400(self, post_webhook):
        payload = make_event()

        response = post_webhook(payload, signature=sign(payload, secret="whsec_wrong"))

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid webhook signature"}
        assert WebhookEvent.objects.count() == 0

    def test_event_without_type_returns_400(self, post_webhook):
        payload = json.dumps({"id": "evt_1", "data": {"object": {}}}).encode()

        response = post_webhook(payload)

        assert response.status_code == 400

    def test_missing_secret_returns_500(self, post_webhook, settings):
        settings.STRIPE_WEBHOOK_SECRET = ""
        payload = make_event()

        response = post_webhook(payload, signature="t=1,v1=abc")

        assert response.status_code == 500
        assert response.json() == {"error": "Webhook endpoint not configured"}
        assert WebhookEvent.objects.count() == 0

    def test_get_not_allowed(self, client):
        response = client.get(reverse("payments:stripe_webhook"))

        assert response.status_code == 405


# =============================================================================
# Routing Tests
# =============================================================================


@pytest.mark.django_db
class TestStripeWebhookRouting:
    def test_unknown_event_type_is_acknowledged(self, post_webhook):
        response = post_webhook(make_event("customer.created"))

        assert response.status_code == 200
        assert response.json() == {"received": True}
        event = WebhookEvent.objects.get(stripe_event_id="evt_test_1")
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.event_type == "customer.created"
        assert event.payload["data"]["object"] == {"id": "cus_1"}

    def test_duplicate_processed_event_is_not_rerun(self, post_webhook):
        WebhookEventFactory(
            stripe_event_id="evt_test_1",
            event_type="customer.created",
            status=WebhookEventStatus.PROCESSED,
        )

        with patch("payments.webhooks.views.handle_webhook_event") as mock_handle:
            response = post_webhook(make_event())

        assert response.status_code == 200
        mock_handle.assert_not_called()
        assert WebhookEvent.objects.count() == 1

    def test_redelivery_of_failed_event_is_rerun(self, post_webhook):
        WebhookEventFactory(
            stripe_event_id="evt_test_1",
            event_type="customer.created",
            status=WebhookEventStatus.FAILED,
            retry_count=1,
        )

        response = post_webhook(make_event())

        assert response.status_code == 200
        event = WebhookEvent.objects.get(stripe_event_id="evt_test_1")
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.retry_count == 2

    def test_handler_failure_is_dead_lettered_and_acknowledged(self, post_webhook):
        failure = ServiceResult.failure("boom", error_code="PARTIAL_SETTLEMENT")

        with patch("payments.webhooks.handlers.dispatch_webhook", return_value=failure):
            response = post_webhook(make_event("checkout.session.completed"))

        assert response.status_code == 200
        event = WebhookEvent.objects.get(stripe_event_id="evt_test_1")
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "boom"

    def test_failure_before_routing_returns_500(self, post_webhook):
        with patch(
            "payments.webhooks.views.WebhookEvent.objects.get_or_create",
            side_effect=RuntimeError("database down"),
        ):
            response = post_webhook(make_event())

        assert response.status_code == 500
        assert response.json() == {"error": "Webhook processing failed"}
