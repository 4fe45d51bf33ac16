"""
CommissionRecord model: the platform's cut of one booking.

Created exactly once per booking when its checkout settles, and never
recomputed. The OneToOne on booking is the uniqueness constraint that makes
creation idempotent under duplicate webhook delivery.

Usage:
    from payments.models import CommissionRecord

    pending = CommissionRecord.objects.pending_for(organisation)
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from django.db import models

from core.models import BaseModel, UUIDPrimaryKeyMixin

from payments.state_machines import CommissionStatus

CENTS = Decimal("0.01")


def calculate_commission(amount: Decimal, rate: Decimal) -> Decimal:
    """Commission for a booking amount, rounded half-up to whole cents."""
    return (Decimal(amount) * Decimal(rate)).quantize(CENTS, rounding=ROUND_HALF_UP)


class CommissionRecordQuerySet(models.QuerySet):
    def pending(self):
        return self.filter(payment_status=CommissionStatus.PENDING)

    def pending_for(self, organisation):
        """Pending commissions for an organisation, oldest first."""
        return self.pending().filter(organisation=organisation).order_by(
            "created_at", "id"
        )


class CommissionRecord(UUIDPrimaryKeyMixin, BaseModel):
    """
    Platform commission derived from a settled booking.

    Fields:
        booking: The booking this commission was derived from (unique)
        camp / organisation: Denormalised for payout aggregation
        commission_rate: Rate applied at settlement time
        booking_amount: Booking amount_due at settlement time
        commission_amount: booking_amount x commission_rate, rounded to cents
        payment_status: PENDING until included in a Payout, then PAID;
            REFUNDED if the booking was refunded before being paid out
        paid_date: When the including payout was created
        payout: The payout that settled this commission
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    booking = models.OneToOneField(
        "camps.Booking",
        on_delete=models.PROTECT,
        related_name="commission",
        help_text="Booking this commission was derived from (one per booking)",
    )

    camp = models.ForeignKey(
        "camps.Camp",
        on_delete=models.PROTECT,
        related_name="commissions",
        help_text="Camp the booking belongs to",
    )

    organisation = models.ForeignKey(
        "camps.Organisation",
        on_delete=models.PROTECT,
        related_name="commissions",
        help_text="Organisation the commission is owed against",
    )

    payout = models.ForeignKey(
        "payments.Payout",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="commissions",
        help_text="Payout that settled this commission",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        help_text="Commission rate applied (fraction)",
    )

    booking_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Booking amount the commission was computed from",
    )

    commission_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Commission owed (booking_amount x commission_rate)",
    )

    # ==========================================================================
    # Settlement
    # ==========================================================================

    payment_status = models.CharField(
        max_length=20,
        choices=CommissionStatus.choices,
        default=CommissionStatus.PENDING,
        db_index=True,
        help_text="Whether the commission has been included in a payout",
    )

    paid_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the commission was paid out",
    )

    objects = CommissionRecordQuerySet.as_manager()

    class Meta:
        ordering = ["created_at"]
        verbose_name = "Commission Record"
        verbose_name_plural = "Commission Records"
        indexes = [
            models.Index(
                fields=["organisation", "payment_status", "created_at"],
                name="commission_org_status_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(commission_amount__gte=0),
                name="commission_amount_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"CommissionRecord({self.booking_id}, {self.commission_amount}, {self.payment_status})"
