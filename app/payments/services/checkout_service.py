"""
Checkout session creation for camp bookings.

One checkout session pays for one or more participants (siblings) at the
same camp. The session is a Stripe Connect destination charge: the camp's
organisation receives the payment less the platform's application fee,
which equals the commission settlement will later record per booking.

The pending PaymentRecord and one unpaid Booking per participant are
written under the new session id. That id is what the
checkout.session.completed webhook settles against.

Usage:
    from payments.services import CheckoutService

    result = CheckoutService.create_checkout_session(
        camp_id=camp.id,
        participants=["Alice", "Ben"],
        customer_email="parent@example.com",
    )
    if result.success:
        redirect(result.data.url)
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings

from camps.models import Booking, Camp
from core.services import BaseService, ServiceResult
from payments.adapters import StripeAdapter, amount_to_cents
from payments.models import PaymentRecord, calculate_commission


@dataclass
class CheckoutResult:
    """A created checkout session and the rows written for it."""

    session_id: str
    url: str
    payment_record: PaymentRecord
    bookings: list[Booking] = field(default_factory=list)
    commission_rate: Decimal = Decimal("0")
    application_fee: Decimal = Decimal("0.00")

    @property
    def organisation_receives(self) -> Decimal:
        return self.payment_record.amount - self.application_fee


class CheckoutService(BaseService):
    """Creates Stripe Checkout sessions and their pending bookings."""

    @classmethod
    def create_checkout_session(
        cls,
        camp_id: uuid.UUID | str,
        participants: list[str],
        customer_email: str,
        customer_name: str = "",
    ) -> ServiceResult[CheckoutResult]:
        """
        Create a checkout session for participants of one camp.

        Stripe is called before anything is written. A Stripe failure
        therefore leaves no pending rows behind.

        Returns:
            ServiceResult with CheckoutResult, or a failure with
            CAMP_NOT_FOUND, ORGANISATION_NOT_READY or CAMP_NOT_PRICED

        Raises:
            StripeError subclasses from StripeAdapter
        """
        logger = cls.get_logger()
        camp = Camp.objects.select_related("organisation").filter(pk=camp_id).first()
        if camp is None:
            return ServiceResult.failure(
                f"Camp {camp_id} not found", error_code="CAMP_NOT_FOUND"
            )

        organisation = camp.organisation
        if not organisation.can_accept_payments:
            return ServiceResult.failure(
                "Camp organiser has not finished setting up their Stripe account",
                error_code="ORGANISATION_NOT_READY",
            )
        if camp.price <= 0:
            return ServiceResult.failure(
                "Camp has no price set", error_code="CAMP_NOT_PRICED"
            )

        rate = camp.effective_commission_rate
        total = camp.price * len(participants)
        application_fee = calculate_commission(camp.price, rate) * len(participants)
        currency = settings.STRIPE_CURRENCY
        metadata = {
            "campId": str(camp.id),
            "organisationId": str(organisation.id),
            "commissionRate": str(rate),
        }

        session = StripeAdapter.create_checkout_session(
            line_items=[
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {
                            "name": camp.name,
                            "description": f"Camp registration: {participant}",
                        },
                        "unit_amount": amount_to_cents(camp.price),
                    },
                    "quantity": 1,
                }
                for participant in participants
            ],
            destination_account_id=organisation.stripe_account_id,
            application_fee_amount=amount_to_cents(application_fee),
            success_url=(
                f"{settings.FRONTEND_URL}/payment-success"
                "?session_id={CHECKOUT_SESSION_ID}"
            ),
            cancel_url=f"{settings.FRONTEND_URL}/camps/{camp.id}/register",
            metadata=metadata,
            customer_email=customer_email,
        )

        with cls.atomic():
            record = PaymentRecord.objects.create(
                stripe_checkout_session_id=session.id,
                amount=total,
                metadata={
                    "currency": currency,
                    "application_fee_amount": str(application_fee),
                    "commission_rate": str(rate),
                    "destination_account": organisation.stripe_account_id,
                },
            )
            bookings = [
                Booking.objects.create(
                    camp=camp,
                    stripe_checkout_session_id=session.id,
                    participant_name=participant,
                    customer_name=customer_name,
                    customer_email=customer_email,
                    amount_due=camp.price,
                )
                for participant in participants
            ]

        logger.info(
            "Checkout session created",
            extra={
                "session_id": session.id,
                "camp_id": str(camp.id),
                "organisation_id": str(organisation.id),
                "booking_count": len(bookings),
                "amount": str(total),
                "application_fee": str(application_fee),
            },
        )
        return ServiceResult.success(
            CheckoutResult(
                session_id=session.id,
                url=session.url,
                payment_record=record,
                bookings=bookings,
                commission_rate=rate,
                application_fee=application_fee,
            )
        )
