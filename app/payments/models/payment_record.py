"""
PaymentRecord model: one row per Stripe Checkout attempt.

PaymentRecord and Booking are siblings keyed by the same checkout session
id. The record is created when the checkout session is opened and is then
driven entirely by webhooks.

Usage:
    from payments.models import PaymentRecord

    record = PaymentRecord.objects.get(stripe_checkout_session_id=session_id)
    record.succeed(payment_intent_id="pi_123", payment_method="card")
    record.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel, UUIDPrimaryKeyMixin

from payments.state_machines import PaymentRecordStatus


class PaymentRecord(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks the payment side of a checkout session.

    State Flow:
        PENDING -> SUCCEEDED -> REFUNDED
        PENDING -> FAILED -> SUCCEEDED (customer retried within the session)

    Fields:
        stripe_checkout_session_id: Checkout session (cs_xxx), unique
        stripe_payment_intent_id: PaymentIntent (pi_xxx) once known
        amount: Total charged for the session
        status: Current FSM state
        payment_method: First payment method type reported by Stripe
        paid_at: First successful settlement time (kept across replays)
        refund_amount: Total refunded so far, partial refunds included
        metadata: Customer details, failure codes, refund details
    """

    # ==========================================================================
    # Stripe Identifiers
    # ==========================================================================

    stripe_checkout_session_id = models.CharField(
        max_length=255,
        unique=True,
        help_text="Stripe Checkout session ID (cs_xxx)",
    )

    stripe_payment_intent_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe PaymentIntent ID (pi_xxx)",
    )

    # ==========================================================================
    # Amount & State
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Total amount of the checkout session",
    )

    status = FSMField(
        default=PaymentRecordStatus.PENDING,
        choices=PaymentRecordStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current payment status (managed by FSM)",
    )

    payment_method = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Payment method type used (e.g. 'card')",
    )

    refund_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Amount refunded so far",
    )

    # ==========================================================================
    # Timestamps
    # ==========================================================================

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment first succeeded",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment failed",
    )

    refunded_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the payment was fully refunded",
    )

    # ==========================================================================
    # Metadata
    # ==========================================================================

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Customer details, failure and refund information",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payment Record"
        verbose_name_plural = "Payment Records"
        indexes = [
            models.Index(
                fields=["status", "created_at"], name="payment_record_status_idx"
            ),
        ]

    def __str__(self) -> str:
        return f"PaymentRecord({self.stripe_checkout_session_id}, {self.status}, {self.amount})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=[PaymentRecordStatus.PENDING, PaymentRecordStatus.FAILED],
        target=PaymentRecordStatus.SUCCEEDED,
    )
    def succeed(self, payment_intent_id: str | None = None, payment_method: str = ""):
        """
        Mark the checkout as paid.

        Transition: PENDING/FAILED -> SUCCEEDED
        """
        if payment_intent_id:
            self.stripe_payment_intent_id = payment_intent_id
        if payment_method:
            self.payment_method = payment_method
        if self.paid_at is None:
            self.paid_at = timezone.now()

    @transition(
        field=status,
        source=PaymentRecordStatus.PENDING,
        target=PaymentRecordStatus.FAILED,
    )
    def fail(self, reason: str, failure_code: str | None = None):
        """
        Mark the checkout as failed.

        Transition: PENDING -> FAILED

        Called for expired sessions and failed payment intents.
        """
        self.failed_at = timezone.now()
        self.metadata = {
            **(self.metadata or {}),
            "failure_reason": reason,
            "failure_code": failure_code,
        }

    @transition(
        field=status,
        source=PaymentRecordStatus.SUCCEEDED,
        target=PaymentRecordStatus.REFUNDED,
    )
    def refund(self, amount: Decimal):
        """
        Mark the payment as fully refunded.

        Transition: SUCCEEDED -> REFUNDED
        """
        self.refund_amount = amount
        self.refunded_at = timezone.now()

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_succeeded(self) -> bool:
        return self.status == PaymentRecordStatus.SUCCEEDED
