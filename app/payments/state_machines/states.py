"""
State enums for payment models.

These are Django TextChoices for database storage and admin integration.
PaymentRecord and Payout status fields are driven by django-fsm transitions.

State Machines Overview:

PaymentRecord Status:
    pending → succeeded → refunded
    pending → failed → succeeded (a later attempt within the same session)

Commission Status:
    pending → paid (only through a Payout)

Payout States:
    processing → paid
    processing/paid → failed (reported by Stripe after the fact)

Onboarding Step (derived, never transitioned locally):
    account_created → business_info_pending → identity_pending
        → bank_account_pending → verification_complete
"""

from django.db import models


class PaymentRecordStatus(models.TextChoices):
    """
    Status of one checkout attempt.

    Monotonic except refund, which may only follow SUCCEEDED.
    """

    PENDING = "pending", "Pending"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class CommissionStatus(models.TextChoices):
    """Settlement status of a CommissionRecord."""

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    REFUNDED = "refunded", "Refunded"


class PayoutState(models.TextChoices):
    """
    States for the Payout model lifecycle.

    Payouts are created in PROCESSING and completed within the same
    transaction, so PENDING/SCHEDULED states don't exist here.
    """

    PROCESSING = "processing", "Processing"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    FAILED rows form the dead-letter queue and are retried by
    payments.tasks.retry_failed_webhooks.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED → PROCESSING (retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "CommissionStatus",
    "PaymentRecordStatus",
    "PayoutState",
    "WebhookEventStatus",
]
