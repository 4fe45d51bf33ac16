import uuid
from decimal import Decimal

import django.db.models.deletion
import django_fsm
from django.db import migrations, models


def _id_field():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier for this record",
            primary_key=True,
            serialize=False,
        ),
    )


def _timestamp_fields():
    return [
        (
            "created_at",
            models.DateTimeField(
                auto_now_add=True,
                db_index=True,
                help_text="Timestamp when this record was created",
            ),
        ),
        (
            "updated_at",
            models.DateTimeField(
                auto_now=True,
                help_text="Timestamp when this record was last modified",
            ),
        ),
    ]


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("camps", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="PaymentRecord",
            fields=[
                _id_field(),
                *_timestamp_fields(),
                (
                    "stripe_checkout_session_id",
                    models.CharField(
                        help_text="Stripe Checkout session ID (cs_xxx)",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "stripe_payment_intent_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Stripe PaymentIntent ID (pi_xxx)",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Total amount of the checkout session",
                        max_digits=10,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("succeeded", "Succeeded"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current payment status (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "payment_method",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Payment method type used (e.g. 'card')",
                        max_length=50,
                    ),
                ),
                (
                    "refund_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Amount refunded so far",
                        max_digits=10,
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the payment first succeeded",
                        null=True,
                    ),
                ),
                (
                    "failed_at",
                    models.DateTimeField(
                        blank=True, help_text="When the payment failed", null=True
                    ),
                ),
                (
                    "refunded_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the payment was fully refunded",
                        null=True,
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Customer details, failure and refund information",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment Record",
                "verbose_name_plural": "Payment Records",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="payment_record_status_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                _id_field(),
                *_timestamp_fields(),
                (
                    "stripe_event_id",
                    models.CharField(
                        help_text="Stripe Event ID (evt_xxx) - unique constraint for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Stripe event type (e.g., 'checkout.session.completed')",
                        max_length=100,
                    ),
                ),
                (
                    "payload",
                    models.JSONField(
                        help_text="Full verified event payload from Stripe"
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current processing status",
                        max_length=20,
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When event was successfully processed",
                        null=True,
                    ),
                ),
                (
                    "error_message",
                    models.TextField(
                        blank=True,
                        help_text="Error message if processing failed",
                        null=True,
                    ),
                ),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Number of processing attempts"
                    ),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["status", "created_at"],
                        name="webhook_status_created_idx",
                    ),
                    models.Index(
                        fields=["status", "retry_count"],
                        name="webhook_status_retry_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payout",
            fields=[
                _id_field(),
                *_timestamp_fields(),
                (
                    "amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Sum of included commission amounts",
                        max_digits=10,
                    ),
                ),
                (
                    "commission_count",
                    models.PositiveIntegerField(
                        default=0, help_text="Number of commissions included"
                    ),
                ),
                (
                    "commission_record_ids",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Snapshot of included CommissionRecord ids",
                    ),
                ),
                (
                    "period_start",
                    models.DateTimeField(
                        help_text="Creation time of the oldest included commission"
                    ),
                ),
                (
                    "period_end",
                    models.DateTimeField(help_text="When the batch was cut"),
                ),
                (
                    "state",
                    django_fsm.FSMField(
                        choices=[
                            ("processing", "Processing"),
                            ("paid", "Paid"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="processing",
                        help_text="Current state of the payout (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "stripe_payout_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Payout ID (po_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "created_by",
                    models.CharField(
                        default="system",
                        help_text="Who triggered the batch ('system' for scheduled runs)",
                        max_length=255,
                    ),
                ),
                (
                    "paid_at",
                    models.DateTimeField(
                        blank=True, help_text="When payout was completed", null=True
                    ),
                ),
                (
                    "failed_at",
                    models.DateTimeField(
                        blank=True, help_text="When payout failed", null=True
                    ),
                ),
                (
                    "failure_reason",
                    models.TextField(
                        blank=True,
                        help_text="Reason reported by Stripe if the payout failed",
                        null=True,
                    ),
                ),
                (
                    "organisation",
                    models.ForeignKey(
                        help_text="Organisation receiving the payout",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payouts",
                        to="camps.organisation",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payout",
                "verbose_name_plural": "Payouts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["organisation", "state"],
                        name="payout_org_state_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(amount__gt=0),
                        name="payout_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="CommissionRecord",
            fields=[
                _id_field(),
                *_timestamp_fields(),
                (
                    "commission_rate",
                    models.DecimalField(
                        decimal_places=4,
                        help_text="Commission rate applied (fraction)",
                        max_digits=5,
                    ),
                ),
                (
                    "booking_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Booking amount the commission was computed from",
                        max_digits=10,
                    ),
                ),
                (
                    "commission_amount",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Commission owed (booking_amount x commission_rate)",
                        max_digits=10,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("paid", "Paid")],
                        db_index=True,
                        default="pending",
                        help_text="Whether the commission has been included in a payout",
                        max_length=20,
                    ),
                ),
                (
                    "paid_date",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the commission was paid out",
                        null=True,
                    ),
                ),
                (
                    "booking",
                    models.OneToOneField(
                        help_text="Booking this commission was derived from (one per booking)",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commission",
                        to="camps.booking",
                    ),
                ),
                (
                    "camp",
                    models.ForeignKey(
                        help_text="Camp the booking belongs to",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commissions",
                        to="camps.camp",
                    ),
                ),
                (
                    "organisation",
                    models.ForeignKey(
                        help_text="Organisation the commission is owed against",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commissions",
                        to="camps.organisation",
                    ),
                ),
                (
                    "payout",
                    models.ForeignKey(
                        blank=True,
                        help_text="Payout that settled this commission",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="commissions",
                        to="payments.payout",
                    ),
                ),
            ],
            options={
                "verbose_name": "Commission Record",
                "verbose_name_plural": "Commission Records",
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(
                        fields=["organisation", "payment_status", "created_at"],
                        name="commission_org_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(commission_amount__gte=0),
                        name="commission_amount_non_negative",
                    ),
                ],
            },
        ),
    ]
