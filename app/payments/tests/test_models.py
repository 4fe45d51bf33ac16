"""
Tests for payment models.

Covers commission arithmetic, FSM transitions on PaymentRecord and Payout,
and the WebhookEvent processing helpers.
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError
from django_fsm import TransitionNotAllowed

from camps.tests.factories import BookingFactory
from payments.models import CommissionRecord, PaymentRecord, Payout, calculate_commission
from payments.state_machines import (
    CommissionStatus,
    PaymentRecordStatus,
    PayoutState,
    WebhookEventStatus,
)
from payments.tests.factories import (
    CommissionRecordFactory,
    PaymentRecordFactory,
    PayoutFactory,
    WebhookEventFactory,
)


class TestCalculateCommission:
    def test_fifteen_percent_of_hundred(self):
        assert calculate_commission(Decimal("100.00"), Decimal("0.15")) == Decimal("15.00")

    def test_rounds_half_up_to_cents(self):
        # 33.33 * 0.15 = 4.9995
        assert calculate_commission(Decimal("33.33"), Decimal("0.15")) == Decimal("5.00")

    def test_zero_rate(self):
        assert calculate_commission(Decimal("80.00"), Decimal("0")) == Decimal("0.00")


@pytest.mark.django_db
class TestPaymentRecordTransitions:
    def test_succeed_from_pending(self):
        record = PaymentRecordFactory()

        record.succeed(payment_intent_id="pi_123", payment_method="card")
        record.save()

        record = PaymentRecord.objects.get(pk=record.pk)
        assert record.status == PaymentRecordStatus.SUCCEEDED
        assert record.stripe_payment_intent_id == "pi_123"
        assert record.payment_method == "card"
        assert record.paid_at is not None

    def test_failed_record_can_still_succeed(self):
        """A customer may retry within the same checkout session."""
        record = PaymentRecordFactory()
        record.fail("Card declined", failure_code="card_declined")
        record.save()

        record = PaymentRecord.objects.get(pk=record.pk)
        record.succeed(payment_intent_id="pi_456")
        record.save()

        record = PaymentRecord.objects.get(pk=record.pk)
        assert record.status == PaymentRecordStatus.SUCCEEDED
        assert record.metadata["failure_code"] == "card_declined"

    def test_cannot_refund_pending_payment(self):
        record = PaymentRecordFactory()

        with pytest.raises(TransitionNotAllowed):
            record.refund(Decimal("100.00"))

    def test_refund_records_amount(self):
        record = PaymentRecordFactory(status=PaymentRecordStatus.SUCCEEDED)

        record.refund(Decimal("100.00"))
        record.save()

        record = PaymentRecord.objects.get(pk=record.pk)
        assert record.status == PaymentRecordStatus.REFUNDED
        assert record.refund_amount == Decimal("100.00")
        assert record.refunded_at is not None

    def test_status_cannot_be_assigned_directly(self):
        record = PaymentRecordFactory()

        with pytest.raises(AttributeError):
            record.status = PaymentRecordStatus.SUCCEEDED


@pytest.mark.django_db
class TestPayoutTransitions:
    def test_complete(self):
        payout = PayoutFactory()

        payout.complete()
        payout.save()

        payout = Payout.objects.get(pk=payout.pk)
        assert payout.state == PayoutState.PAID
        assert payout.is_complete is True
        assert payout.paid_at is not None

    def test_paid_payout_can_fail_later(self):
        """Stripe can report a bank payout failure after completion."""
        payout = PayoutFactory(state=PayoutState.PAID)

        payout.fail("account_closed")
        payout.save()

        payout = Payout.objects.get(pk=payout.pk)
        assert payout.state == PayoutState.FAILED
        assert payout.failure_reason == "account_closed"

    def test_failed_payout_cannot_complete(self):
        payout = PayoutFactory(state=PayoutState.FAILED)

        with pytest.raises(TransitionNotAllowed):
            payout.complete()

    def test_amount_must_be_positive(self):
        with pytest.raises(IntegrityError):
            PayoutFactory(amount=Decimal("0.00"))


@pytest.mark.django_db
class TestCommissionRecord:
    def test_one_commission_per_booking(self):
        commission = CommissionRecordFactory()

        with pytest.raises(IntegrityError):
            CommissionRecordFactory(booking=commission.booking)

    def test_pending_for_is_oldest_first_and_excludes_paid(self):
        first = CommissionRecordFactory()
        organisation = first.organisation
        second = CommissionRecordFactory(
            booking=BookingFactory(camp=first.camp),
        )
        CommissionRecordFactory(
            booking=BookingFactory(camp=first.camp),
            payment_status=CommissionStatus.PAID,
        )
        CommissionRecordFactory()  # another organisation

        pending = list(CommissionRecord.objects.pending_for(organisation))

        assert set(pending) == {first, second}
        assert pending[0].created_at <= pending[1].created_at


@pytest.mark.django_db
class TestWebhookEvent:
    def test_processing_lifecycle(self):
        event = WebhookEventFactory()

        event.mark_processing()
        assert event.status == WebhookEventStatus.PROCESSING
        assert event.retry_count == 1

        event.mark_failed("boom")
        assert event.can_retry is True

        event.mark_processing()
        event.mark_processed()
        assert event.is_processed is True
        assert event.error_message is None
        assert event.retry_count == 2

    def test_retries_exhausted(self):
        event = WebhookEventFactory(status=WebhookEventStatus.FAILED, retry_count=5)

        assert event.can_retry is False

    def test_get_object(self):
        event = WebhookEventFactory(
            payload={"data": {"object": {"id": "cs_test_1"}}},
        )

        assert event.get_object() == {"id": "cs_test_1"}

    def test_get_object_malformed_payload(self):
        event = WebhookEventFactory(payload={"data": "nope"})

        assert event.get_object() == {}
