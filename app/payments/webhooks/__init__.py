"""
Webhook handling for payment events from Stripe.

Webhooks are verified, stored idempotently as WebhookEvent rows and
routed to exactly one handler per event type. Handler failures are kept
as FAILED events and retried by payments.tasks.retry_failed_webhooks.

Usage:
    # In urls.py
    from payments.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from payments.webhooks.handlers import (
    WEBHOOK_HANDLERS,
    dispatch_webhook,
    handle_webhook_event,
    register_handler,
)
from payments.webhooks.views import stripe_webhook

__all__ = [
    "WEBHOOK_HANDLERS",
    "dispatch_webhook",
    "handle_webhook_event",
    "register_handler",
    "stripe_webhook",
]
