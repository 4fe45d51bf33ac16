"""
Webhook endpoint views for Stripe.

This module provides the HTTP endpoint for receiving Stripe webhooks.
The view:
1. Verifies the webhook signature
2. Creates/retrieves the WebhookEvent record (idempotent)
3. Runs the event through its handler, recording failures as dead letters
4. Acknowledges with {"received": true}

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from __future__ import annotations

import logging

from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from payments.adapters import StripeAdapter
from payments.exceptions import WebhookConfigurationError, WebhookSignatureError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus
from payments.webhooks.handlers import handle_webhook_event

logger = logging.getLogger(__name__)


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and process Stripe webhook events.

    Delivery is at-least-once, so handlers are idempotent and the response
    acknowledges receipt rather than full success: a handler failure is
    recorded on the WebhookEvent (dead letter) and retried by Celery beat.

    Security:
    - Signature verification prevents spoofed webhooks
    - No signing secret configured means every webhook is refused
    - CSRF exemption required for external webhooks

    Returns:
        JsonResponse with status:
        - 200: Event routed (new, duplicate or dead-lettered)
        - 400: Missing/invalid signature or malformed event
        - 500: Misconfiguration, or failure before the event was recorded
    """
    try:
        event = StripeAdapter.verify_webhook_signature(
            request.body, request.headers.get("Stripe-Signature")
        )
    except WebhookConfigurationError as e:
        logger.critical(
            "Stripe webhook received but STRIPE_WEBHOOK_SECRET is not configured",
            extra={"error_code": e.error_code},
        )
        return JsonResponse({"error": "Webhook endpoint not configured"}, status=500)
    except WebhookSignatureError as e:
        logger.warning(
            "Webhook signature verification failed",
            extra={"error": str(e), "stripe_code": e.stripe_code},
        )
        return JsonResponse({"error": e.message}, status=400)

    logger.info(
        f"Received Stripe webhook: {event.type}",
        extra={"stripe_event_id": event.id, "event_type": event.type},
    )

    try:
        webhook_event, created = WebhookEvent.objects.get_or_create(
            stripe_event_id=event.id,
            defaults={
                "event_type": event.type,
                "payload": event.payload,
                "status": WebhookEventStatus.PENDING,
            },
        )

        if not created and webhook_event.status in (
            WebhookEventStatus.PROCESSED,
            WebhookEventStatus.PROCESSING,
        ):
            logger.info(
                f"Duplicate webhook ({webhook_event.status}), skipping",
                extra={"stripe_event_id": event.id},
            )
            return JsonResponse({"received": True})

        handle_webhook_event(webhook_event)
    except Exception as e:
        logger.error(
            f"Webhook failed before routing: {type(e).__name__}",
            extra={"stripe_event_id": event.id, "event_type": event.type},
            exc_info=True,
        )
        return JsonResponse({"error": "Webhook processing failed"}, status=500)

    return JsonResponse({"received": True})
