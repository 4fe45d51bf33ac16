"""
Payout model: a settlement batch of an organisation's commissions.

Funds reach the organisation automatically through its connected account,
so a Payout records which commissions were settled together rather than
initiating a transfer. Stripe may later report the bank payout as failed
(payout.failed webhook).

Usage:
    from payments.models import Payout

    payout = Payout.objects.create(
        organisation=organisation,
        amount=Decimal("45.00"),
        commission_count=3,
        commission_record_ids=[str(c.id) for c in commissions],
        period_start=commissions[0].created_at,
        period_end=timezone.now(),
    )
    payout.complete()  # processing -> paid
    payout.save()
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from django_fsm import FSMField, transition

from core.models import BaseModel, UUIDPrimaryKeyMixin

from payments.state_machines import PayoutState


class Payout(UUIDPrimaryKeyMixin, BaseModel):
    """
    A batch of commissions settled to one organisation.

    State Flow:
        PROCESSING -> PAID
        PROCESSING/PAID -> FAILED (payout.failed webhook)

    Fields:
        organisation: Organisation receiving the payout
        amount: Sum of included commission amounts
        commission_count: Number of included commissions
        commission_record_ids: Read-only snapshot of included commission ids
        period_start: Creation time of the oldest included commission
        period_end: When the batch was cut
        state: Current FSM state
        stripe_payout_id: Stripe Payout ID (po_xxx) when Stripe reports one
        created_by: "system" for scheduled runs, otherwise the operator
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    organisation = models.ForeignKey(
        "camps.Organisation",
        on_delete=models.PROTECT,
        related_name="payouts",
        help_text="Organisation receiving the payout",
    )

    # ==========================================================================
    # Amount & Contents
    # ==========================================================================

    amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Sum of included commission amounts",
    )

    commission_count = models.PositiveIntegerField(
        default=0,
        help_text="Number of commissions included",
    )

    commission_record_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Snapshot of included CommissionRecord ids",
    )

    period_start = models.DateTimeField(
        help_text="Creation time of the oldest included commission",
    )

    period_end = models.DateTimeField(
        help_text="When the batch was cut",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    state = FSMField(
        default=PayoutState.PROCESSING,
        choices=PayoutState.choices,
        db_index=True,
        protected=True,
        help_text="Current state of the payout (managed by FSM)",
    )

    stripe_payout_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Payout ID (po_xxx)",
    )

    created_by = models.CharField(
        max_length=255,
        default="system",
        help_text="Who triggered the batch ('system' for scheduled runs)",
    )

    # ==========================================================================
    # Timestamps & Error Info
    # ==========================================================================

    paid_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When payout was completed",
    )

    failed_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When payout failed",
    )

    failure_reason = models.TextField(
        null=True,
        blank=True,
        help_text="Reason reported by Stripe if the payout failed",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payout"
        verbose_name_plural = "Payouts"
        indexes = [
            models.Index(fields=["organisation", "state"], name="payout_org_state_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(amount__gt=0),
                name="payout_amount_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Payout({self.id}, {self.state}, {self.amount})"

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=state,
        source=PayoutState.PROCESSING,
        target=PayoutState.PAID,
    )
    def complete(self):
        """
        Mark payout as completed.

        Transition: PROCESSING -> PAID
        """
        self.paid_at = timezone.now()

    @transition(
        field=state,
        source=[PayoutState.PROCESSING, PayoutState.PAID],
        target=PayoutState.FAILED,
    )
    def fail(self, reason: str | None = None):
        """
        Mark payout as failed.

        Transition: PROCESSING/PAID -> FAILED

        Stripe can report a bank payout as failed after it was marked paid.
        Included commissions stay PAID; re-issuing is an operator decision.
        """
        self.failed_at = timezone.now()
        if reason:
            self.failure_reason = reason

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_complete(self) -> bool:
        return self.state == PayoutState.PAID
