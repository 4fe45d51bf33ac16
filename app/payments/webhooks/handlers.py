"""
Webhook event handlers for Stripe events.

This module provides a handler registry and implementations for
processing different Stripe webhook events.

The handler registry allows:
- Clean separation between event routing and handling
- Exactly one handler per event type
- Centralized dead-letter bookkeeping in handle_webhook_event()

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    # Register a custom handler
    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    # Run a recorded event through its handler and record the outcome
    result = handle_webhook_event(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Callable

from django.db import transaction
from django.utils import timezone
from django_fsm import can_proceed

from camps.models import Booking, BookingPaymentStatus, BookingStatus
from core.services import ServiceResult
from payments.adapters import cents_to_amount
from payments.models import CommissionRecord, PaymentRecord, Payout, WebhookEvent
from payments.services import AccountStatusService, SettlementService
from payments.state_machines import CommissionStatus, PaymentRecordStatus, PayoutState

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Raises:
        ValueError: A handler is already registered for event_type
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        if event_type in WEBHOOK_HANDLERS:
            raise ValueError(f"Handler already registered for {event_type}")
        WEBHOOK_HANDLERS[event_type] = func
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Unknown event types are logged and acknowledged with success so
    Stripe doesn't keep redelivering them.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return handler(webhook_event)


def handle_webhook_event(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Run a recorded event through its handler and record the outcome.

    The handler runs in a transaction. A failure result or an exception
    marks the event FAILED with the error, which is the dead-letter queue
    retried by retry_failed_webhooks. Nothing is raised: by the time this
    runs the event is durably recorded, so Stripe gets its acknowledgment.
    """
    webhook_event.mark_processing()
    webhook_event.save(update_fields=["status", "retry_count", "updated_at"])

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)
    except Exception as e:
        logger.exception(
            "Webhook handler raised",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "event_type": webhook_event.event_type,
            },
        )
        result = ServiceResult.failure(
            f"{type(e).__name__}: {e}", error_code="HANDLER_EXCEPTION"
        )

    if result.success:
        webhook_event.mark_processed()
        logger.info(
            "Webhook processed successfully",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
    else:
        error_message = result.error or "Handler returned failure"
        if result.errors:
            error_message = f"{error_message}: {result.errors}"
        webhook_event.mark_failed(error_message)
        logger.error(
            f"Webhook dead-lettered: {result.error}",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "event_type": webhook_event.event_type,
                "error_code": result.error_code,
                "retry_count": webhook_event.retry_count,
            },
        )

    webhook_event.save(
        update_fields=["status", "processed_at", "error_message", "updated_at"]
    )
    return result


def _invalid_payload(webhook_event: WebhookEvent, missing: str) -> ServiceResult:
    logger.error(
        f"{webhook_event.event_type}: Could not extract {missing}",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return ServiceResult.failure(
        f"Could not extract {missing} from webhook",
        error_code="INVALID_WEBHOOK_PAYLOAD",
    )


def _object_id(value) -> str | None:
    """Stripe references are ids, or objects when expanded."""
    if isinstance(value, dict):
        return value.get("id")
    return value or None


# =============================================================================
# Checkout Session Handlers
# =============================================================================


@register_handler("checkout.session.completed")
def handle_checkout_session_completed(webhook_event: WebhookEvent) -> ServiceResult:
    """Settle the session's payment record, bookings and commissions."""
    session = webhook_event.get_object()
    session_id = session.get("id")
    if not session_id:
        return _invalid_payload(webhook_event, "session id")

    customer_details = dict(session.get("customer_details") or {})
    if session.get("customer_email") and not customer_details.get("email"):
        customer_details["email"] = session["customer_email"]

    payment_method_types = session.get("payment_method_types") or []

    return SettlementService.settle_checkout_session(
        session_id=session_id,
        payment_intent_id=_object_id(session.get("payment_intent")),
        payment_method=payment_method_types[0] if payment_method_types else "card",
        customer_details=customer_details or None,
    )


@register_handler("checkout.session.expired")
def handle_checkout_session_expired(webhook_event: WebhookEvent) -> ServiceResult:
    """Mark the session's payment record as failed."""
    session_id = webhook_event.get_object().get("id")
    if not session_id:
        return _invalid_payload(webhook_event, "session id")

    record = (
        PaymentRecord.objects.select_for_update()
        .filter(stripe_checkout_session_id=session_id)
        .first()
    )
    return _fail_payment_record(
        webhook_event, record, reason="Session expired", failure_code="session_expired"
    )


# =============================================================================
# Payment Intent & Charge Handlers
# =============================================================================


@register_handler("payment_intent.payment_failed")
def handle_payment_intent_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """Mark the payment record failed, keeping Stripe's failure code and message."""
    payment_intent = webhook_event.get_object()
    payment_intent_id = payment_intent.get("id")
    if not payment_intent_id:
        return _invalid_payload(webhook_event, "payment_intent_id")

    last_error = payment_intent.get("last_payment_error") or {}
    record = (
        PaymentRecord.objects.select_for_update()
        .filter(stripe_payment_intent_id=payment_intent_id)
        .first()
    )
    return _fail_payment_record(
        webhook_event,
        record,
        reason=last_error.get("message") or "Payment failed",
        failure_code=last_error.get("code"),
    )


def _fail_payment_record(
    webhook_event: WebhookEvent,
    record: PaymentRecord | None,
    reason: str,
    failure_code: str | None,
) -> ServiceResult:
    if record is None:
        logger.info(
            f"{webhook_event.event_type}: no matching payment record, ignoring",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    if not can_proceed(record.fail):
        # Already failed, or settled by a later attempt in the same session
        logger.info(
            f"{webhook_event.event_type}: payment record is {record.status}, not failing",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "payment_record_id": str(record.id),
            },
        )
        return ServiceResult.success(record)

    record.fail(reason, failure_code=failure_code)
    record.save()
    logger.info(
        "Payment record failed",
        extra={
            "stripe_event_id": webhook_event.stripe_event_id,
            "payment_record_id": str(record.id),
            "reason": reason,
            "failure_code": failure_code,
        },
    )
    return ServiceResult.success(record)


@register_handler("charge.refunded")
def handle_charge_refunded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Record a refund against the payment record.

    A full refund moves the record to REFUNDED, cancels every booking of its
    checkout session and takes their unpaid commissions out of payout
    batches. A partial refund only records the refunded amount.
    """
    charge = webhook_event.get_object()
    payment_intent_id = _object_id(charge.get("payment_intent"))
    if not payment_intent_id:
        return _invalid_payload(webhook_event, "payment_intent_id")

    record = (
        PaymentRecord.objects.select_for_update()
        .filter(stripe_payment_intent_id=payment_intent_id)
        .first()
    )
    if record is None:
        logger.info(
            "charge.refunded: no matching payment record, ignoring",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "payment_intent_id": payment_intent_id,
            },
        )
        return ServiceResult.success(None)

    refunded = cents_to_amount(charge.get("amount_refunded"))
    charged = cents_to_amount(charge.get("amount"))
    is_full_refund = bool(charge.get("refunded")) or (
        charged > 0 and refunded >= charged
    )
    record.metadata = {
        **(record.metadata or {}),
        "refund": {
            "charge_id": charge.get("id"),
            "amount_refunded": str(refunded),
            "full": is_full_refund,
        },
    }

    if not is_full_refund:
        record.refund_amount = refunded
        record.save(update_fields=["refund_amount", "metadata", "updated_at"])
        logger.info(
            "Partial refund recorded",
            extra={
                "payment_record_id": str(record.id),
                "amount_refunded": str(refunded),
            },
        )
        return ServiceResult.success(record)

    if can_proceed(record.refund):
        record.refund(refunded)
        record.save()
    elif record.status != PaymentRecordStatus.REFUNDED:
        logger.warning(
            f"charge.refunded for payment record in state {record.status}",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "payment_record_id": str(record.id),
            },
        )
        return ServiceResult.success(record)

    cancelled = Booking.objects.filter(
        stripe_checkout_session_id=record.stripe_checkout_session_id
    ).update(
        payment_status=BookingPaymentStatus.REFUNDED,
        status=BookingStatus.CANCELLED,
    )
    # Commissions already included in a payout are left as paid
    commissions_refunded = CommissionRecord.objects.filter(
        booking__stripe_checkout_session_id=record.stripe_checkout_session_id,
        payment_status=CommissionStatus.PENDING,
    ).update(payment_status=CommissionStatus.REFUNDED, updated_at=timezone.now())
    logger.info(
        "Full refund applied",
        extra={
            "payment_record_id": str(record.id),
            "amount_refunded": str(refunded),
            "bookings_cancelled": cancelled,
            "commissions_refunded": commissions_refunded,
        },
    )
    return ServiceResult.success(record)


# =============================================================================
# Connect Account Handlers
# =============================================================================


@register_handler("account.updated")
def handle_account_updated(webhook_event: WebhookEvent) -> ServiceResult:
    """Apply the account snapshot in the payload to its organisation."""
    account = webhook_event.get_object()
    if not account.get("id"):
        return _invalid_payload(webhook_event, "account id")

    return AccountStatusService.apply_account_webhook(account)


# =============================================================================
# Payout Handlers
# =============================================================================


@register_handler("payout.paid")
def handle_payout_paid(webhook_event: WebhookEvent) -> ServiceResult:
    """Mark the matching payout paid. No matching payout is a no-op."""
    payout = _get_payout_for_event(webhook_event)
    if payout is None or payout.state == PayoutState.PAID:
        return ServiceResult.success(payout)

    if not can_proceed(payout.complete):
        logger.warning(
            f"payout.paid for payout in state {payout.state}, ignoring",
            extra={"payout_id": str(payout.id)},
        )
        return ServiceResult.success(payout)

    payout.complete()
    payout.save()
    logger.info("Payout marked paid", extra={"payout_id": str(payout.id)})
    return ServiceResult.success(payout)


@register_handler("payout.failed")
def handle_payout_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """Mark the matching payout failed with Stripe's reason."""
    payout = _get_payout_for_event(webhook_event)
    if payout is None or payout.state == PayoutState.FAILED:
        return ServiceResult.success(payout)

    stripe_payout = webhook_event.get_object()
    reason = stripe_payout.get("failure_message") or stripe_payout.get("failure_code")
    payout.fail(reason=reason)
    payout.save()
    logger.warning(
        "Payout marked failed",
        extra={"payout_id": str(payout.id), "reason": reason},
    )
    return ServiceResult.success(payout)


def _get_payout_for_event(webhook_event: WebhookEvent) -> Payout | None:
    stripe_payout_id = webhook_event.get_object().get("id")
    payout = None
    if stripe_payout_id:
        payout = (
            Payout.objects.select_for_update()
            .filter(stripe_payout_id=stripe_payout_id)
            .first()
        )
    if payout is None:
        logger.info(
            f"{webhook_event.event_type}: no matching payout, ignoring",
            extra={
                "stripe_event_id": webhook_event.stripe_event_id,
                "stripe_payout_id": stripe_payout_id,
            },
        )
    return payout
