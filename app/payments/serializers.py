"""
DRF serializers for payments app.

This module provides serializers for:
- Payout batch, account status, onboarding and checkout requests
- Payout, commission and pending-summary responses
- Connect account status, onboarding and checkout responses

Field names are camelCase to match the payout and account status API.

Related files:
    - services/: PayoutBatchService, AccountStatusService, OnboardingService,
      CheckoutService
    - views.py: Payment API views

Usage:
    serializer = ProcessPayoutsRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
"""

from __future__ import annotations

from rest_framework import serializers

from camps.models import OnboardingMode
from payments.models import CommissionRecord, Payout


# =============================================================================
# Requests
# =============================================================================


class ProcessPayoutsRequestSerializer(serializers.Serializer):
    """
    Payout batch trigger.

    Fields:
        organisationId: Only process this organisation (optional)
        manual: Ignore the organisation's minimum payout amount
    """

    organisationId = serializers.UUIDField(required=False, allow_null=True)
    manual = serializers.BooleanField(required=False, default=False)


class AccountStatusRequestSerializer(serializers.Serializer):
    organisationId = serializers.UUIDField()


class CreateConnectedAccountRequestSerializer(serializers.Serializer):
    """
    Start or resume Stripe Connect onboarding.

    Fields:
        organisationId: Organisation to onboard
        mode: standard or deferred (only used when the account is created)
        refreshUrl / returnUrl: Override the dashboard redirect URLs
    """

    organisationId = serializers.UUIDField()
    mode = serializers.ChoiceField(
        choices=OnboardingMode.choices, required=False, default=OnboardingMode.STANDARD
    )
    refreshUrl = serializers.URLField(required=False)
    returnUrl = serializers.URLField(required=False)


class CreateCheckoutSessionRequestSerializer(serializers.Serializer):
    """
    Book one or more participants onto a camp in a single payment.

    Fields:
        campId: Camp being booked
        participants: Participant names, one booking each
        customerEmail: Where the booking confirmation is sent
        customerName: Name of the paying parent (optional)
    """

    campId = serializers.UUIDField()
    participants = serializers.ListField(
        child=serializers.CharField(max_length=255), min_length=1, max_length=10
    )
    customerEmail = serializers.EmailField()
    customerName = serializers.CharField(
        max_length=255, required=False, allow_blank=True, default=""
    )


# =============================================================================
# Payouts
# =============================================================================


class PayoutSummarySerializer(serializers.Serializer):
    """Pending commission totals for one organisation (PayoutSummary)."""

    organisationId = serializers.UUIDField(source="organisation_id")
    organisationName = serializers.CharField(source="organisation_name")
    totalPendingAmount = serializers.DecimalField(
        source="total_pending_amount", max_digits=12, decimal_places=2
    )
    pendingCount = serializers.IntegerField(source="pending_count")
    earliestCommissionDate = serializers.DateTimeField(source="earliest_commission_date")
    latestCommissionDate = serializers.DateTimeField(source="latest_commission_date")


class CommissionRecordSerializer(serializers.ModelSerializer):
    bookingId = serializers.UUIDField(source="booking_id")
    campId = serializers.UUIDField(source="camp_id")
    campName = serializers.CharField(source="camp.name")
    participantName = serializers.CharField(source="booking.participant_name")
    commissionRate = serializers.DecimalField(
        source="commission_rate", max_digits=5, decimal_places=4
    )
    bookingAmount = serializers.DecimalField(
        source="booking_amount", max_digits=10, decimal_places=2
    )
    commissionAmount = serializers.DecimalField(
        source="commission_amount", max_digits=10, decimal_places=2
    )
    paymentStatus = serializers.CharField(source="payment_status")
    paidDate = serializers.DateTimeField(source="paid_date")
    createdAt = serializers.DateTimeField(source="created_at")

    class Meta:
        model = CommissionRecord
        fields = [
            "id",
            "bookingId",
            "campId",
            "campName",
            "participantName",
            "commissionRate",
            "bookingAmount",
            "commissionAmount",
            "paymentStatus",
            "paidDate",
            "createdAt",
        ]
        read_only_fields = fields


class PayoutDetailSerializer(serializers.ModelSerializer):
    """Payout with its organisation and included commissions."""

    organisationId = serializers.UUIDField(source="organisation_id")
    organisationName = serializers.CharField(source="organisation.name")
    commissionCount = serializers.IntegerField(source="commission_count")
    periodStart = serializers.DateTimeField(source="period_start")
    periodEnd = serializers.DateTimeField(source="period_end")
    stripePayoutId = serializers.CharField(source="stripe_payout_id")
    createdBy = serializers.CharField(source="created_by")
    createdAt = serializers.DateTimeField(source="created_at")
    paidAt = serializers.DateTimeField(source="paid_at")
    failedAt = serializers.DateTimeField(source="failed_at")
    failureReason = serializers.CharField(source="failure_reason")
    commissions = CommissionRecordSerializer(many=True)

    class Meta:
        model = Payout
        fields = [
            "id",
            "organisationId",
            "organisationName",
            "amount",
            "commissionCount",
            "state",
            "periodStart",
            "periodEnd",
            "stripePayoutId",
            "createdBy",
            "createdAt",
            "paidAt",
            "failedAt",
            "failureReason",
            "commissions",
        ]
        read_only_fields = fields


# =============================================================================
# Connect Account Status
# =============================================================================


class AccountStatusResponseSerializer(serializers.Serializer):
    """
    Serializes an AccountStatusResult.

    Fields mirror what the organiser dashboard reads: Stripe capability
    flags, outstanding requirements, the continuation link, and the derived
    onboarding fields.
    """

    chargesEnabled = serializers.BooleanField(source="account.charges_enabled")
    payoutsEnabled = serializers.BooleanField(source="account.payouts_enabled")
    detailsSubmitted = serializers.BooleanField(source="account.details_submitted")
    requiresAction = serializers.BooleanField(source="requires_action")
    actionUrl = serializers.CharField(source="action_url", allow_null=True)
    currentlyDue = serializers.ListField(
        source="account.currently_due", child=serializers.CharField()
    )
    eventuallyDue = serializers.ListField(
        source="account.eventually_due", child=serializers.CharField()
    )
    onboardingStep = serializers.CharField(source="organisation.onboarding_step")
    onboardingMode = serializers.CharField(source="organisation.onboarding_mode")
    tempChargesEnabled = serializers.BooleanField(
        source="organisation.temp_charges_enabled"
    )
    restrictionsActive = serializers.BooleanField(
        source="organisation.restrictions_active"
    )
    restrictionReason = serializers.CharField(source="organisation.restriction_reason")
    balance = serializers.SerializerMethodField()

    def get_balance(self, obj) -> dict | None:
        return obj.balance.to_dict() if obj.balance is not None else None


class ConnectedAccountResponseSerializer(serializers.Serializer):
    """Serializes an OnboardingResult."""

    accountId = serializers.CharField(source="account_id")
    accountLinkUrl = serializers.CharField(source="account_link_url")
    accountCreated = serializers.BooleanField(source="account_created")


# =============================================================================
# Checkout
# =============================================================================


class CheckoutSessionResponseSerializer(serializers.Serializer):
    """Serializes a CheckoutResult."""

    sessionId = serializers.CharField(source="session_id")
    url = serializers.CharField()
    bookingIds = serializers.SerializerMethodField()
    amount = serializers.DecimalField(
        source="payment_record.amount", max_digits=10, decimal_places=2
    )
    commissionRate = serializers.DecimalField(
        source="commission_rate", max_digits=5, decimal_places=4
    )
    applicationFee = serializers.DecimalField(
        source="application_fee", max_digits=10, decimal_places=2
    )
    organisationReceives = serializers.DecimalField(
        source="organisation_receives", max_digits=10, decimal_places=2
    )

    def get_bookingIds(self, obj) -> list[str]:
        return [str(booking.id) for booking in obj.bookings]
