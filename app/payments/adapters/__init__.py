"""
Payment adapters for external services.

All Stripe API calls go through StripeAdapter for consistent error
handling, timeouts and observability.

Usage:
    from payments.adapters import StripeAdapter

    event = StripeAdapter.verify_webhook_signature(payload, signature)
"""

from payments.adapters.stripe_adapter import (
    AccountSnapshot,
    BalanceSnapshot,
    CheckoutSessionSnapshot,
    StripeAdapter,
    VerifiedEvent,
    amount_to_cents,
    cents_to_amount,
)

__all__ = [
    "AccountSnapshot",
    "BalanceSnapshot",
    "CheckoutSessionSnapshot",
    "StripeAdapter",
    "VerifiedEvent",
    "amount_to_cents",
    "cents_to_amount",
]
