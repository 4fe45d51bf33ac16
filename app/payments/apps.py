"""
Payments app configuration.

This app provides the payment settlement pipeline:
- Stripe webhook verification and routing
- Settlement of checkout sessions into bookings and commissions
- Connect account status reconciliation
- Payout batching
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"
