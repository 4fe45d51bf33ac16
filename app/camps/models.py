"""
Camp booking domain models.

Models:
    Organisation: Merchant running camps, with its Stripe Connect account state
    Camp: A bookable camp with an optional per-camp commission rate
    Booking: A purchased camp slot, paid through a Stripe Checkout session

Design Decisions:
    - Organisation connected-account fields are a snapshot of Stripe's view and
      are overwritten wholesale on each sync (see AccountStatusService)
    - onboarding_step is derived, never transitioned locally
    - Several bookings (e.g. siblings) can share one checkout session
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models

from core.models import BaseModel, UUIDPrimaryKeyMixin


class PayoutSchedule(models.TextChoices):
    """How often an organisation expects accumulated commissions to be paid out."""

    DAILY = "daily", "Daily"
    WEEKLY = "weekly", "Weekly"
    MONTHLY = "monthly", "Monthly"


class OnboardingMode(models.TextChoices):
    """
    Stripe Connect onboarding mode chosen when the account was created.

    STANDARD: Full verification before the organisation can take bookings
    DEFERRED: Bookings allowed immediately, verification completed later
    """

    STANDARD = "standard", "Standard"
    DEFERRED = "deferred", "Deferred"


class OnboardingStep(models.TextChoices):
    """
    Derived onboarding progress of an organisation's connected account.

    Resolved by priority on every sync:
        VERIFICATION_COMPLETE > IDENTITY_PENDING > BANK_ACCOUNT_PENDING
            > BUSINESS_INFO_PENDING > ACCOUNT_CREATED
    """

    NOT_STARTED = "not_started", "Not Started"
    ACCOUNT_CREATED = "account_created", "Account Created"
    BUSINESS_INFO_PENDING = "business_info_pending", "Business Info Pending"
    IDENTITY_PENDING = "identity_pending", "Identity Pending"
    BANK_ACCOUNT_PENDING = "bank_account_pending", "Bank Account Pending"
    VERIFICATION_COMPLETE = "verification_complete", "Verification Complete"


class BookingPaymentStatus(models.TextChoices):
    UNPAID = "unpaid", "Unpaid"
    PAID = "paid", "Paid"
    REFUNDED = "refunded", "Refunded"


class BookingStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    CANCELLED = "cancelled", "Cancelled"


def default_minimum_payout_amount() -> Decimal:
    return settings.DEFAULT_MINIMUM_PAYOUT_AMOUNT


class Organisation(UUIDPrimaryKeyMixin, BaseModel):
    """
    A merchant organisation receiving payouts through Stripe Connect.

    Fields:
        stripe_account_id: Connected account id (acct_xxx), null until onboarding starts
        payout_enabled / charges_enabled / details_submitted: Stripe capability snapshot
        minimum_payout_amount: Pending commission total required before an automatic payout
        onboarding_mode / onboarding_step: See OnboardingMode / OnboardingStep
        temp_charges_enabled: Deferred-mode grace period flag
        payouts_enabled_at: First time Stripe reported payouts enabled. Once set,
            temp_charges_enabled can never be re-enabled.
        restrictions_active / restriction_reason: Charges disabled by Stripe
    """

    # ==========================================================================
    # Profile
    # ==========================================================================

    name = models.CharField(
        max_length=255,
        help_text="Display name of the organisation",
    )

    contact_email = models.EmailField(
        blank=True,
        default="",
        help_text="Where payout and onboarding notices are sent",
    )

    # ==========================================================================
    # Stripe Connect Account
    # ==========================================================================

    stripe_account_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        unique=True,
        help_text="Stripe Connect account ID (acct_xxx)",
    )

    payout_enabled = models.BooleanField(
        default=False,
        help_text="Whether Stripe currently allows payouts to this account",
    )

    charges_enabled = models.BooleanField(
        default=False,
        help_text="Whether Stripe currently allows charges on this account",
    )

    details_submitted = models.BooleanField(
        default=False,
        help_text="Whether the organisation has submitted onboarding details",
    )

    requirements_currently_due = models.JSONField(
        default=list,
        blank=True,
        help_text="Stripe requirements currently due",
    )

    requirements_eventually_due = models.JSONField(
        default=list,
        blank=True,
        help_text="Stripe requirements eventually due",
    )

    status_synced_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the account status was last reconciled with Stripe",
    )

    # ==========================================================================
    # Payout Configuration
    # ==========================================================================

    minimum_payout_amount = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=default_minimum_payout_amount,
        help_text="Minimum pending commission total for an automatic payout",
    )

    payout_schedule = models.CharField(
        max_length=20,
        choices=PayoutSchedule.choices,
        default=PayoutSchedule.WEEKLY,
        help_text="Preferred payout frequency",
    )

    # ==========================================================================
    # Onboarding
    # ==========================================================================

    onboarding_mode = models.CharField(
        max_length=20,
        choices=OnboardingMode.choices,
        default=OnboardingMode.STANDARD,
        help_text="Standard or deferred verification",
    )

    onboarding_step = models.CharField(
        max_length=30,
        choices=OnboardingStep.choices,
        default=OnboardingStep.NOT_STARTED,
        help_text="Derived onboarding progress (recomputed on every sync)",
    )

    temp_charges_enabled = models.BooleanField(
        default=False,
        help_text="Deferred mode: charges allowed before verification completes",
    )

    payouts_enabled_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="First time payouts were enabled; ends the deferred grace period",
    )

    restrictions_active = models.BooleanField(
        default=False,
        help_text="Whether Stripe has disabled charges on this account",
    )

    restriction_reason = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Stripe disabled_reason when restrictions are active",
    )

    class Meta:
        ordering = ["name"]
        verbose_name = "Organisation"
        verbose_name_plural = "Organisations"

    def __str__(self) -> str:
        return self.name

    @property
    def can_receive_payouts(self) -> bool:
        return bool(self.stripe_account_id) and self.payout_enabled

    @property
    def can_accept_payments(self) -> bool:
        """Deferred-mode organisations take bookings before payouts are enabled."""
        return bool(self.stripe_account_id) and (
            self.payout_enabled or self.temp_charges_enabled
        )


class Camp(UUIDPrimaryKeyMixin, BaseModel):
    """
    A bookable camp.

    commission_rate is a fraction (0.15 = 15%). Null falls back to
    settings.DEFAULT_COMMISSION_RATE; an explicit 0 means no commission.
    price is charged per participant.
    """

    organisation = models.ForeignKey(
        Organisation,
        on_delete=models.PROTECT,
        related_name="camps",
        help_text="Organisation running the camp",
    )

    name = models.CharField(
        max_length=255,
        help_text="Camp name",
    )

    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=4,
        null=True,
        blank=True,
        help_text="Platform commission as a fraction; blank uses the platform default",
    )

    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Price per participant",
    )

    location = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Where the camp takes place",
    )

    start_date = models.DateField(
        null=True,
        blank=True,
        help_text="First day of the camp",
    )

    end_date = models.DateField(
        null=True,
        blank=True,
        help_text="Last day of the camp",
    )

    class Meta:
        ordering = ["start_date", "name"]
        verbose_name = "Camp"
        verbose_name_plural = "Camps"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(commission_rate__isnull=True)
                | models.Q(commission_rate__gte=0, commission_rate__lte=1),
                name="camp_commission_rate_fraction",
            ),
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="camp_price_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def effective_commission_rate(self) -> Decimal:
        if self.commission_rate is not None:
            return self.commission_rate
        return Decimal(settings.DEFAULT_COMMISSION_RATE)


class Booking(UUIDPrimaryKeyMixin, BaseModel):
    """
    A purchased camp slot.

    Payment fields are only written by the settlement pipeline (on checkout
    completion) and the refund handler. Updates are idempotent sets so a
    replayed webhook never double-counts amount_paid.
    """

    camp = models.ForeignKey(
        Camp,
        on_delete=models.PROTECT,
        related_name="bookings",
        help_text="Camp this booking is for",
    )

    stripe_checkout_session_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Stripe Checkout session (cs_xxx) that paid for this booking",
    )

    participant_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Name of the child attending",
    )

    customer_name = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Name of the parent or guardian who booked",
    )

    customer_email = models.EmailField(
        blank=True,
        default="",
        help_text="Where the booking confirmation is sent",
    )

    amount_due = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Price of the booking",
    )

    amount_paid = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Amount received; set to amount_due on settlement",
    )

    payment_status = models.CharField(
        max_length=20,
        choices=BookingPaymentStatus.choices,
        default=BookingPaymentStatus.UNPAID,
        db_index=True,
        help_text="Payment state of the booking",
    )

    status = models.CharField(
        max_length=20,
        choices=BookingStatus.choices,
        default=BookingStatus.PENDING,
        db_index=True,
        help_text="Booking lifecycle state",
    )

    confirmation_date = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the booking was first confirmed",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Booking"
        verbose_name_plural = "Bookings"

    def __str__(self) -> str:
        return f"Booking({self.id}, {self.status}, {self.payment_status})"

    @property
    def organisation_id(self):
        return self.camp.organisation_id
