import uuid
from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models

import camps.models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Organisation",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
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
                (
                    "name",
                    models.CharField(
                        help_text="Display name of the organisation", max_length=255
                    ),
                ),
                (
                    "contact_email",
                    models.EmailField(
                        blank=True,
                        default="",
                        help_text="Where payout and onboarding notices are sent",
                        max_length=254,
                    ),
                ),
                (
                    "stripe_account_id",
                    models.CharField(
                        blank=True,
                        help_text="Stripe Connect account ID (acct_xxx)",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "payout_enabled",
                    models.BooleanField(
                        default=False,
                        help_text="Whether Stripe currently allows payouts to this account",
                    ),
                ),
                (
                    "charges_enabled",
                    models.BooleanField(
                        default=False,
                        help_text="Whether Stripe currently allows charges on this account",
                    ),
                ),
                (
                    "details_submitted",
                    models.BooleanField(
                        default=False,
                        help_text="Whether the organisation has submitted onboarding details",
                    ),
                ),
                (
                    "requirements_currently_due",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Stripe requirements currently due",
                    ),
                ),
                (
                    "requirements_eventually_due",
                    models.JSONField(
                        blank=True,
                        default=list,
                        help_text="Stripe requirements eventually due",
                    ),
                ),
                (
                    "status_synced_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the account status was last reconciled with Stripe",
                        null=True,
                    ),
                ),
                (
                    "minimum_payout_amount",
                    models.DecimalField(
                        decimal_places=2,
                        default=camps.models.default_minimum_payout_amount,
                        help_text="Minimum pending commission total for an automatic payout",
                        max_digits=10,
                    ),
                ),
                (
                    "payout_schedule",
                    models.CharField(
                        choices=[
                            ("daily", "Daily"),
                            ("weekly", "Weekly"),
                            ("monthly", "Monthly"),
                        ],
                        default="weekly",
                        help_text="Preferred payout frequency",
                        max_length=20,
                    ),
                ),
                (
                    "onboarding_mode",
                    models.CharField(
                        choices=[("standard", "Standard"), ("deferred", "Deferred")],
                        default="standard",
                        help_text="Standard or deferred verification",
                        max_length=20,
                    ),
                ),
                (
                    "onboarding_step",
                    models.CharField(
                        choices=[
                            ("not_started", "Not Started"),
                            ("account_created", "Account Created"),
                            ("business_info_pending", "Business Info Pending"),
                            ("identity_pending", "Identity Pending"),
                            ("bank_account_pending", "Bank Account Pending"),
                            ("verification_complete", "Verification Complete"),
                        ],
                        default="not_started",
                        help_text="Derived onboarding progress (recomputed on every sync)",
                        max_length=30,
                    ),
                ),
                (
                    "temp_charges_enabled",
                    models.BooleanField(
                        default=False,
                        help_text="Deferred mode: charges allowed before verification completes",
                    ),
                ),
                (
                    "payouts_enabled_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="First time payouts were enabled; ends the deferred grace period",
                        null=True,
                    ),
                ),
                (
                    "restrictions_active",
                    models.BooleanField(
                        default=False,
                        help_text="Whether Stripe has disabled charges on this account",
                    ),
                ),
                (
                    "restriction_reason",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Stripe disabled_reason when restrictions are active",
                        max_length=255,
                    ),
                ),
            ],
            options={
                "verbose_name": "Organisation",
                "verbose_name_plural": "Organisations",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Camp",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
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
                ("name", models.CharField(help_text="Camp name", max_length=255)),
                (
                    "commission_rate",
                    models.DecimalField(
                        blank=True,
                        decimal_places=4,
                        help_text="Platform commission as a fraction; blank uses the platform default",
                        max_digits=5,
                        null=True,
                    ),
                ),
                (
                    "location",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Where the camp takes place",
                        max_length=255,
                    ),
                ),
                (
                    "start_date",
                    models.DateField(
                        blank=True, help_text="First day of the camp", null=True
                    ),
                ),
                (
                    "end_date",
                    models.DateField(
                        blank=True, help_text="Last day of the camp", null=True
                    ),
                ),
                (
                    "organisation",
                    models.ForeignKey(
                        help_text="Organisation running the camp",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="camps",
                        to="camps.organisation",
                    ),
                ),
            ],
            options={
                "verbose_name": "Camp",
                "verbose_name_plural": "Camps",
                "ordering": ["start_date", "name"],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(
                            ("commission_rate__isnull", True),
                            models.Q(
                                ("commission_rate__gte", 0),
                                ("commission_rate__lte", 1),
                            ),
                            _connector="OR",
                        ),
                        name="camp_commission_rate_fraction",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Booking",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
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
                (
                    "stripe_checkout_session_id",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Stripe Checkout session (cs_xxx) that paid for this booking",
                        max_length=255,
                        null=True,
                    ),
                ),
                (
                    "participant_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Name of the child attending",
                        max_length=255,
                    ),
                ),
                (
                    "customer_name",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Name of the parent or guardian who booked",
                        max_length=255,
                    ),
                ),
                (
                    "customer_email",
                    models.EmailField(
                        blank=True,
                        default="",
                        help_text="Where the booking confirmation is sent",
                        max_length=254,
                    ),
                ),
                (
                    "amount_due",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Price of the booking",
                        max_digits=10,
                    ),
                ),
                (
                    "amount_paid",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.00"),
                        help_text="Amount received; set to amount_due on settlement",
                        max_digits=10,
                    ),
                ),
                (
                    "payment_status",
                    models.CharField(
                        choices=[
                            ("unpaid", "Unpaid"),
                            ("paid", "Paid"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="unpaid",
                        help_text="Payment state of the booking",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Booking lifecycle state",
                        max_length=20,
                    ),
                ),
                (
                    "confirmation_date",
                    models.DateTimeField(
                        blank=True,
                        help_text="When the booking was first confirmed",
                        null=True,
                    ),
                ),
                (
                    "camp",
                    models.ForeignKey(
                        help_text="Camp this booking is for",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="camps.camp",
                    ),
                ),
            ],
            options={
                "verbose_name": "Booking",
                "verbose_name_plural": "Bookings",
                "ordering": ["-created_at"],
            },
        ),
    ]
