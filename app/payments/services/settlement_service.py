"""
Settlement of completed Stripe Checkout sessions.

When Stripe reports a checkout session as completed, SettlementService
brings the three local views of that purchase into line:

1. PaymentRecord -> SUCCEEDED
2. Every Booking paid by the session -> paid + confirmed
3. One CommissionRecord per booking

Every step is an idempotent set, so replaying the same webhook converges
on the same state without double-counting.

Usage:
    from payments.services import SettlementService

    result = SettlementService.settle_checkout_session(
        session_id="cs_123",
        payment_intent_id="pi_123",
        payment_method="card",
        customer_details={"email": "parent@example.com", "name": "Sam"},
    )
    if not result.success:
        # Some bookings failed; the webhook is dead-lettered and retried
        ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from django.db import models, transaction
from django.db.models import F, Value
from django.db.models.functions import Coalesce
from django.utils import timezone
from django_fsm import can_proceed

from camps.models import Booking, BookingPaymentStatus, BookingStatus
from core.services import BaseService, ServiceResult
from payments.models import CommissionRecord, PaymentRecord, calculate_commission
from toolkit.services.email import EmailService

if TYPE_CHECKING:
    from typing import Any


BOOKING_CONFIRMATION_TEMPLATE = "booking-confirmation"


# =============================================================================
# Result Types
# =============================================================================


@dataclass
class SettlementResult:
    """
    Outcome of settling one checkout session.

    Attributes:
        payment_record: The settled record, or None for an unknown session
        confirmed_booking_ids: Bookings confirmed by this call (not by a replay)
        commissions_created: CommissionRecords created by this call
        errors: Per-booking failures ("booking <id>: <error>")
    """

    payment_record: PaymentRecord | None = None
    confirmed_booking_ids: list[str] = field(default_factory=list)
    commissions_created: int = 0
    errors: list[str] = field(default_factory=list)


# =============================================================================
# Settlement Service
# =============================================================================


class SettlementService(BaseService):
    """
    Reconciles bookings, payment records and commissions for a paid session.

    Failure policy:
        Each booking is settled inside its own savepoint. A failing booking
        is logged and collected, and its siblings carry on. Any collected
        error turns the result into a PARTIAL_SETTLEMENT failure so the
        webhook is dead-lettered and retried; the retry re-runs only what
        is still missing.
    """

    @classmethod
    def settle_checkout_session(
        cls,
        session_id: str,
        payment_intent_id: str | None = None,
        payment_method: str = "",
        customer_details: dict[str, Any] | None = None,
    ) -> ServiceResult[SettlementResult]:
        """
        Settle a completed checkout session.

        Args:
            session_id: Stripe Checkout session id (cs_xxx)
            payment_intent_id: PaymentIntent behind the session, if any
            payment_method: First payment method type of the session
            customer_details: Stripe customer_details (email, name, ...)

        Returns:
            ServiceResult with SettlementResult. An unknown session is a
            success with payment_record=None.
        """
        logger = cls.get_logger()
        log_context = {"session_id": session_id}

        with cls.atomic():
            record = (
                PaymentRecord.objects.select_for_update()
                .filter(stripe_checkout_session_id=session_id)
                .first()
            )
            if record is None:
                logger.warning(
                    "No payment record for checkout session, ignoring",
                    extra=log_context,
                )
                return ServiceResult.success(SettlementResult())

            if not cls._mark_record_succeeded(
                record, payment_intent_id, payment_method, customer_details
            ):
                logger.warning(
                    f"Payment record is {record.status}, not settling bookings",
                    extra={**log_context, "payment_record_id": str(record.id)},
                )
                return ServiceResult.success(SettlementResult(payment_record=record))

        result = SettlementResult(payment_record=record)
        bookings = list(
            Booking.objects.filter(stripe_checkout_session_id=session_id)
            .select_related("camp", "camp__organisation")
            .order_by("created_at", "id")
        )
        if not bookings:
            logger.warning("No bookings found for checkout session", extra=log_context)

        for booking in bookings:
            try:
                with cls.atomic():
                    if cls._confirm_booking(booking):
                        result.confirmed_booking_ids.append(str(booking.id))
                    if cls._ensure_commission(booking):
                        result.commissions_created += 1
            except Exception as e:
                logger.error(
                    "Failed to settle booking",
                    extra={**log_context, "booking_id": str(booking.id)},
                    exc_info=True,
                )
                result.errors.append(f"booking {booking.id}: {e}")

        if result.confirmed_booking_ids:
            confirmed = [b for b in bookings if str(b.id) in result.confirmed_booking_ids]
            transaction.on_commit(
                lambda: cls._send_confirmations(confirmed), robust=True
            )

        logger.info(
            "Checkout session settled",
            extra={
                **log_context,
                "payment_record_id": str(record.id),
                "booking_count": len(bookings),
                "confirmed_count": len(result.confirmed_booking_ids),
                "commissions_created": result.commissions_created,
                "error_count": len(result.errors),
            },
        )

        if result.errors:
            return ServiceResult.failure(
                f"Settlement incomplete for {len(result.errors)} of "
                f"{len(bookings)} bookings",
                error_code="PARTIAL_SETTLEMENT",
                errors={"bookings": result.errors},
            )
        return ServiceResult.success(result)

    # =========================================================================
    # Steps
    # =========================================================================

    @staticmethod
    def _mark_record_succeeded(
        record: PaymentRecord,
        payment_intent_id: str | None,
        payment_method: str,
        customer_details: dict[str, Any] | None,
    ) -> bool:
        """
        Move the record to SUCCEEDED. Returns False if it can't be settled.

        An already-succeeded record is left as is (first paid_at wins).
        """
        if record.is_succeeded:
            return True
        if not can_proceed(record.succeed):
            return False

        record.succeed(payment_intent_id=payment_intent_id, payment_method=payment_method)
        if customer_details:
            record.metadata = {
                **(record.metadata or {}),
                "customer_email": customer_details.get("email"),
                "customer_details": customer_details,
            }
        record.save()
        return True

    @staticmethod
    def _confirm_booking(booking: Booking) -> bool:
        """
        Mark a booking paid and confirmed.

        Returns True only if this call changed it, so replays report nothing.
        Refunded bookings are left alone.
        """
        if booking.payment_status == BookingPaymentStatus.REFUNDED:
            return False

        now = timezone.now()
        updated = (
            Booking.objects.filter(pk=booking.pk)
            .exclude(payment_status=BookingPaymentStatus.REFUNDED)
            .exclude(
                payment_status=BookingPaymentStatus.PAID,
                status=BookingStatus.CONFIRMED,
                amount_paid=F("amount_due"),
            )
            .update(
                payment_status=BookingPaymentStatus.PAID,
                amount_paid=F("amount_due"),
                status=BookingStatus.CONFIRMED,
                confirmation_date=Coalesce(
                    F("confirmation_date"),
                    Value(now, output_field=models.DateTimeField()),
                ),
                updated_at=now,
            )
        )
        return updated > 0

    @staticmethod
    def _ensure_commission(booking: Booking) -> bool:
        """
        Create the booking's CommissionRecord unless it already exists.

        The OneToOne on booking makes a racing duplicate fail with an
        IntegrityError, which get_or_create resolves by re-reading.
        """
        if booking.payment_status == BookingPaymentStatus.REFUNDED:
            return False

        camp = booking.camp
        rate = camp.effective_commission_rate
        _, created = CommissionRecord.objects.get_or_create(
            booking=booking,
            defaults={
                "camp": camp,
                "organisation_id": camp.organisation_id,
                "commission_rate": rate,
                "booking_amount": booking.amount_due,
                "commission_amount": calculate_commission(booking.amount_due, rate),
            },
        )
        return created

    @classmethod
    def _send_confirmations(cls, bookings: list[Booking]) -> None:
        """
        Queue one confirmation email per customer address.

        Runs after the settlement has committed. A queueing failure is logged
        and never fails the settlement.
        """
        by_email: dict[str, list[Booking]] = {}
        for booking in bookings:
            if booking.customer_email:
                by_email.setdefault(booking.customer_email, []).append(booking)

        for email, customer_bookings in by_email.items():
            first = customer_bookings[0]
            camp = first.camp
            try:
                EmailService.send_async(
                    BOOKING_CONFIRMATION_TEMPLATE,
                    to=email,
                    data={
                        "customer_name": first.customer_name,
                        "camp_name": ", ".join(
                            dict.fromkeys(b.camp.name for b in customer_bookings)
                        ),
                        "location": camp.location,
                        "start_date": camp.start_date.isoformat() if camp.start_date else "",
                        "end_date": camp.end_date.isoformat() if camp.end_date else "",
                        "participants": [b.participant_name for b in customer_bookings],
                        "amount_paid": str(sum(b.amount_due for b in customer_bookings)),
                    },
                )
            except Exception:
                cls.get_logger().error(
                    "Failed to queue booking confirmation email",
                    extra={"booking_ids": [str(b.id) for b in customer_bookings]},
                    exc_info=True,
                )
