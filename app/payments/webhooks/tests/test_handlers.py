"""
Tests for webhook handlers.

Tests cover:
- Handler registry and dispatch
- Dead-letter bookkeeping in handle_webhook_event
- Checkout, payment intent and refund handlers
- account.updated routing
- Payout status handlers
"""

from decimal import Decimal
from unittest.mock import patch

import pytest

from camps.models import Booking, BookingPaymentStatus, BookingStatus
from camps.tests.factories import OrganisationFactory
from core.services import ServiceResult
from payments.models import CommissionRecord, PaymentRecord, Payout, WebhookEvent
from payments.services import PayoutBatchService
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
from payments.webhooks.handlers import (
    WEBHOOK_HANDLERS,
    dispatch_webhook,
    handle_webhook_event,
    register_handler,
)


def make_webhook_event(event_type: str, obj: dict, **kwargs) -> WebhookEvent:
    return WebhookEventFactory(
        event_type=event_type,
        payload={"id": "evt_test", "type": event_type, "data": {"object": obj}},
        **kwargs,
    )


# =============================================================================
# Registry & Dispatch
# =============================================================================


class TestHandlerRegistry:
    def test_expected_handlers_registered(self):
        assert set(WEBHOOK_HANDLERS) >= {
            "checkout.session.completed",
            "checkout.session.expired",
            "payment_intent.payment_failed",
            "charge.refunded",
            "account.updated",
            "payout.paid",
            "payout.failed",
        }

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ValueError, match="already registered"):

            @register_handler("checkout.session.completed")
            def duplicate(webhook_event):
                return ServiceResult.success(None)


@pytest.mark.django_db
class TestDispatchWebhook:
    def test_unknown_event_type_succeeds(self):
        event = make_webhook_event("customer.created", {"id": "cus_1"})

        result = dispatch_webhook(event)

        assert result.success is True
        assert result.data is None


@pytest.mark.django_db
class TestHandleWebhookEvent:
    def test_success_marks_processed(self):
        event = make_webhook_event("customer.created", {"id": "cus_1"})

        result = handle_webhook_event(event)

        event = WebhookEvent.objects.get(pk=event.pk)
        assert result.success is True
        assert event.status == WebhookEventStatus.PROCESSED
        assert event.processed_at is not None
        assert event.retry_count == 1

    def test_failure_result_is_dead_lettered(self):
        event = make_webhook_event("checkout.session.completed", {"id": "cs_1"})
        failure = ServiceResult.failure(
            "Settlement incomplete",
            error_code="PARTIAL_SETTLEMENT",
            errors={"bookings": ["booking 1: boom"]},
        )

        with patch("payments.webhooks.handlers.dispatch_webhook", return_value=failure):
            handle_webhook_event(event)

        event = WebhookEvent.objects.get(pk=event.pk)
        assert event.status == WebhookEventStatus.FAILED
        assert "Settlement incomplete" in event.error_message
        assert "booking 1: boom" in event.error_message

    def test_exception_is_dead_lettered(self):
        event = make_webhook_event("checkout.session.completed", {"id": "cs_1"})

        with patch(
            "payments.webhooks.handlers.dispatch_webhook",
            side_effect=RuntimeError("db gone"),
        ):
            result = handle_webhook_event(event)

        assert result.success is False
        assert result.error_code == "HANDLER_EXCEPTION"
        event = WebhookEvent.objects.get(pk=event.pk)
        assert event.status == WebhookEventStatus.FAILED
        assert event.error_message == "RuntimeError: db gone"


# =============================================================================
# Checkout Session Handlers
# =============================================================================


@pytest.mark.django_db
class TestCheckoutSessionCompleted:
    def test_settles_session(self, sibling_bookings, pending_payment_record, checkout_session_id):
        event = make_webhook_event(
            "checkout.session.completed",
            {
                "id": checkout_session_id,
                "payment_intent": "pi_test_1",
                "payment_method_types": ["card"],
                "customer_email": "parent@example.com",
            },
        )

        result = handle_webhook_event(event)

        assert result.success is True
        record = PaymentRecord.objects.get(pk=pending_payment_record.pk)
        assert record.status == PaymentRecordStatus.SUCCEEDED
        assert record.stripe_payment_intent_id == "pi_test_1"
        assert record.metadata["customer_email"] == "parent@example.com"
        assert CommissionRecord.objects.count() == 2

    def test_duplicate_delivery_creates_no_extra_commissions(
        self, sibling_bookings, pending_payment_record, checkout_session_id
    ):
        obj = {"id": checkout_session_id, "payment_intent": {"id": "pi_test_1"}}

        handle_webhook_event(make_webhook_event("checkout.session.completed", obj))
        handle_webhook_event(make_webhook_event("checkout.session.completed", obj))

        assert CommissionRecord.objects.count() == 2

    def test_missing_session_id_is_dead_lettered(self, db):
        event = make_webhook_event("checkout.session.completed", {})

        result = handle_webhook_event(event)

        assert result.error_code == "INVALID_WEBHOOK_PAYLOAD"
        assert WebhookEvent.objects.get(pk=event.pk).status == WebhookEventStatus.FAILED


@pytest.mark.django_db
class TestCheckoutSessionExpired:
    def test_marks_record_failed(self, pending_payment_record, checkout_session_id):
        event = make_webhook_event("checkout.session.expired", {"id": checkout_session_id})

        handle_webhook_event(event)

        record = PaymentRecord.objects.get(pk=pending_payment_record.pk)
        assert record.status == PaymentRecordStatus.FAILED
        assert record.metadata["failure_code"] == "session_expired"

    def test_succeeded_record_is_left_alone(self, checkout_session_id):
        record = PaymentRecordFactory(
            stripe_checkout_session_id=checkout_session_id,
            status=PaymentRecordStatus.SUCCEEDED,
        )
        event = make_webhook_event("checkout.session.expired", {"id": checkout_session_id})

        result = handle_webhook_event(event)

        assert result.success is True
        assert PaymentRecord.objects.get(pk=record.pk).status == PaymentRecordStatus.SUCCEEDED


@pytest.mark.django_db(transaction=True)
class TestCheckoutSessionCompletedBrokerDown:
    """Confirmation emails are queued after commit, outside the handler's result."""

    def test_email_queue_failure_does_not_fail_settled_event(
        self, sibling_bookings, pending_payment_record, checkout_session_id
    ):
        event = make_webhook_event(
            "checkout.session.completed",
            {"id": checkout_session_id, "payment_intent": "pi_test_1"},
        )

        with patch(
            "toolkit.tasks.send_transactional_email.delay",
            side_effect=ConnectionError("broker down"),
        ) as mock_delay:
            result = handle_webhook_event(event)

        assert result.success is True
        mock_delay.assert_called_once()
        assert WebhookEvent.objects.get(pk=event.pk).status == WebhookEventStatus.PROCESSED
        assert CommissionRecord.objects.count() == 2
        record = PaymentRecord.objects.get(pk=pending_payment_record.pk)
        assert record.status == PaymentRecordStatus.SUCCEEDED


@pytest.mark.django_db
class TestPaymentIntentFailed:

    def test_records_stripe_error(self):
        record = PaymentRecordFactory(stripe_payment_intent_id="pi_test_1")
        event = make_webhook_event(
            "payment_intent.payment_failed",
            {
                "id": "pi_test_1",
                "last_payment_error": {
                    "code": "card_declined",
                    "message": "Your card was declined.",
                },
            },
        )

        handle_webhook_event(event)

        record = PaymentRecord.objects.get(pk=record.pk)
        assert record.status == PaymentRecordStatus.FAILED
        assert record.metadata["failure_reason"] == "Your card was declined."
        assert record.metadata["failure_code"] == "card_declined"

    def test_unknown_payment_intent_is_ignored(self, db):
        event = make_webhook_event("payment_intent.payment_failed", {"id": "pi_unknown"})

        result = handle_webhook_event(event)

        assert result.success is True
        assert result.data is None


# =============================================================================
# Refund Handler
# =============================================================================


@pytest.mark.django_db
class TestChargeRefunded:
    @pytest.fixture
    def paid_record(self, sibling_bookings, checkout_session_id):
        Booking.objects.filter(stripe_checkout_session_id=checkout_session_id).update(
            payment_status=BookingPaymentStatus.PAID,
            status=BookingStatus.CONFIRMED,
        )
        return PaymentRecordFactory(
            stripe_checkout_session_id=checkout_session_id,
            stripe_payment_intent_id="pi_test_1",
            amount=Decimal("200.00"),
            status=PaymentRecordStatus.SUCCEEDED,
        )

    def test_full_refund_cancels_bookings(self, paid_record, checkout_session_id):
        event = make_webhook_event(
            "charge.refunded",
            {
                "id": "ch_1",
                "payment_intent": "pi_test_1",
                "amount": 20000,
                "amount_refunded": 20000,
                "refunded": True,
            },
        )

        handle_webhook_event(event)

        record = PaymentRecord.objects.get(pk=paid_record.pk)
        assert record.status == PaymentRecordStatus.REFUNDED
        assert record.refund_amount == Decimal("200.00")
        assert record.metadata["refund"]["charge_id"] == "ch_1"
        for booking in Booking.objects.filter(stripe_checkout_session_id=checkout_session_id):
            assert booking.payment_status == BookingPaymentStatus.REFUNDED
            assert booking.status == BookingStatus.CANCELLED

    def test_full_refund_takes_unpaid_commissions_out_of_payouts(
        self, paid_record, sibling_bookings
    ):
        alice, ben = sibling_bookings
        pending = CommissionRecordFactory(booking=alice)
        paid = CommissionRecordFactory(
            booking=ben, payment_status=CommissionStatus.PAID
        )
        event = make_webhook_event(
            "charge.refunded",
            {
                "id": "ch_1",
                "payment_intent": "pi_test_1",
                "amount": 20000,
                "amount_refunded": 20000,
                "refunded": True,
            },
        )

        handle_webhook_event(event)

        assert (
            CommissionRecord.objects.get(pk=pending.pk).payment_status
            == CommissionStatus.REFUNDED
        )
        assert CommissionRecord.objects.get(pk=paid.pk).payment_status == CommissionStatus.PAID

    def test_refunded_checkout_is_not_paid_out(
        self, organisation, sibling_bookings, pending_payment_record, checkout_session_id
    ):
        settle = make_webhook_event(
            "checkout.session.completed",
            {"id": checkout_session_id, "payment_intent": "pi_test_1"},
        )
        assert handle_webhook_event(settle).success is True
        assert CommissionRecord.objects.pending_for(organisation).count() == 2

        refund = make_webhook_event(
            "charge.refunded",
            {
                "id": "ch_1",
                "payment_intent": "pi_test_1",
                "amount": 20000,
                "amount_refunded": 20000,
                "refunded": True,
            },
        )
        assert handle_webhook_event(refund).success is True

        result = PayoutBatchService.process_payouts(manual=True)

        assert result.processed == []
        assert Payout.objects.count() == 0
        assert CommissionRecord.objects.filter(
            payment_status=CommissionStatus.REFUNDED
        ).count() == 2

    def test_partial_refund_only_records_amount(self, paid_record, checkout_session_id):
        event = make_webhook_event(
            "charge.refunded",
            {
                "id": "ch_1",
                "payment_intent": "pi_test_1",
                "amount": 20000,
                "amount_refunded": 5000,
                "refunded": False,
            },
        )

        handle_webhook_event(event)

        record = PaymentRecord.objects.get(pk=paid_record.pk)
        assert record.status == PaymentRecordStatus.SUCCEEDED
        assert record.refund_amount == Decimal("50.00")
        assert record.metadata["refund"]["full"] is False
        assert not Booking.objects.filter(
            stripe_checkout_session_id=checkout_session_id,
            status=BookingStatus.CANCELLED,
        ).exists()

    def test_repeated_full_refund_is_idempotent(self, paid_record):
        obj = {
            "id": "ch_1",
            "payment_intent": "pi_test_1",
            "amount": 20000,
            "amount_refunded": 20000,
            "refunded": True,
        }

        handle_webhook_event(make_webhook_event("charge.refunded", obj))
        result = handle_webhook_event(make_webhook_event("charge.refunded", obj))

        assert result.success is True
        assert PaymentRecord.objects.get(pk=paid_record.pk).status == PaymentRecordStatus.REFUNDED


# =============================================================================
# Account Handler
# =============================================================================


@pytest.mark.django_db
class TestAccountUpdated:
    def test_routes_to_account_status_service(self):
        organisation = OrganisationFactory(stripe_account_id="acct_test_1")
        payload = {"id": "acct_test_1", "charges_enabled": True}

        with patch(
            "payments.webhooks.handlers.AccountStatusService.apply_account_webhook",
            return_value=ServiceResult.success(organisation),
        ) as mock_apply:
            result = handle_webhook_event(make_webhook_event("account.updated", payload))

        assert result.success is True
        mock_apply.assert_called_once_with(payload)


# =============================================================================
# Payout Handlers
# =============================================================================


@pytest.mark.django_db
class TestPayoutHandlers:
    def test_payout_paid_without_match_is_noop(self):
        event = make_webhook_event("payout.paid", {"id": "po_unknown"})

        result = handle_webhook_event(event)

        assert result.success is True
        assert result.data is None
        assert WebhookEvent.objects.get(pk=event.pk).status == WebhookEventStatus.PROCESSED

    def test_payout_paid_completes_processing_payout(self):
        payout = PayoutFactory(stripe_payout_id="po_test_1")

        handle_webhook_event(make_webhook_event("payout.paid", {"id": "po_test_1"}))

        assert Payout.objects.get(pk=payout.pk).state == PayoutState.PAID

    def test_payout_failed_records_reason(self):
        payout = PayoutFactory(stripe_payout_id="po_test_1", state=PayoutState.PAID)

        handle_webhook_event(
            make_webhook_event(
                "payout.failed",
                {"id": "po_test_1", "failure_code": "account_closed"},
            )
        )

        payout = Payout.objects.get(pk=payout.pk)
        assert payout.state == PayoutState.FAILED
        assert payout.failure_reason == "account_closed"

    def test_payout_failed_twice_is_idempotent(self):
        payout = PayoutFactory(stripe_payout_id="po_test_1", state=PayoutState.FAILED)

        result = handle_webhook_event(
            make_webhook_event("payout.failed", {"id": "po_test_1"})
        )

        assert result.success is True
        assert Payout.objects.get(pk=payout.pk).state == PayoutState.FAILED
