"""
Celery tasks for payment processing.

This module provides async tasks for:
- Re-running dead-lettered (FAILED) webhook events
- Periodic cleanup of old/stuck events
- Scheduled payout batching
- Periodic Stripe Connect account status sync

Schedules are stored in django_celery_beat (see migration 0002).

Usage:
    from payments.tasks import process_webhook_event

    # Re-run a recorded webhook event
    process_webhook_event.delay(str(webhook_event.id))

    # Run the payout batch now (typically via celery-beat)
    from payments.tasks import process_scheduled_payouts
    process_scheduled_payouts.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.utils import timezone

from camps.models import Organisation
from payments.exceptions import LockAcquisitionError, StripeError
from payments.locks import PAYOUT_BATCH_LOCK_KEY, DistributedLock
from payments.models import MAX_WEBHOOK_RETRIES, WebhookEvent
from payments.services import AccountStatusService, PayoutBatchService
from payments.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

STUCK_PROCESSING_THRESHOLD_MINUTES = 30
WEBHOOK_RETRY_BATCH_SIZE = 100

# Longer than any realistic batch; the lock expires on its own if a worker dies
PAYOUT_BATCH_LOCK_TTL = 15 * 60


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(acks_late=True)
def process_webhook_event(webhook_event_id: str) -> dict:
    """
    Run a recorded webhook event through its handler.

    Returns:
        Dict with processing result status
    """
    from payments.webhooks.handlers import handle_webhook_event

    webhook_event = WebhookEvent.objects.filter(id=UUID(str(webhook_event_id))).first()
    if webhook_event is None:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        return {
            "status": "already_processed",
            "webhook_event_id": str(webhook_event_id),
        }

    result = handle_webhook_event(webhook_event)
    return {
        "status": "processed" if result.success else "failed",
        "webhook_event_id": str(webhook_event_id),
        "stripe_event_id": webhook_event.stripe_event_id,
        "retry_count": webhook_event.retry_count,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to retry dead-lettered webhook events.

    Events that have already been attempted MAX_WEBHOOK_RETRIES times stay
    FAILED for an operator to inspect.

    Returns:
        Dict with count of webhooks queued for retry
    """
    failed_ids = list(
        WebhookEvent.objects.filter(
            status=WebhookEventStatus.FAILED,
            retry_count__lt=MAX_WEBHOOK_RETRIES,
        )
        .order_by("created_at")
        .values_list("id", flat=True)[:WEBHOOK_RETRY_BATCH_SIZE]
    )

    for webhook_event_id in failed_ids:
        process_webhook_event.delay(str(webhook_event_id))

    exhausted = WebhookEvent.objects.filter(
        status=WebhookEventStatus.FAILED,
        retry_count__gte=MAX_WEBHOOK_RETRIES,
    ).count()
    if exhausted:
        logger.error(
            f"{exhausted} webhook events exhausted their retries",
            extra={"exhausted_count": exhausted},
        )

    logger.info(
        f"Queued {len(failed_ids)} failed webhooks for retry",
        extra={"queued_count": len(failed_ids)},
    )
    return {"queued_count": len(failed_ids), "exhausted_count": exhausted}


@shared_task
def cleanup_stuck_webhooks() -> dict:
    """
    Periodic task to reset stuck webhooks.

    Events left in PROCESSING (worker or web process died mid-handler) are
    moved to FAILED so retry_failed_webhooks picks them up.

    Returns:
        Dict with count of webhooks reset
    """
    threshold = timezone.now() - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES)

    stuck_webhooks = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=threshold,
    )

    reset_count = 0
    for webhook in stuck_webhooks:
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save(update_fields=["status", "error_message", "updated_at"])
        reset_count += 1
        logger.warning(
            "Reset stuck webhook",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
            },
        )

    return {"reset_count": reset_count}


@shared_task
def cleanup_old_webhooks(days: int = 90) -> dict:
    """
    Periodic task to delete processed webhook events older than `days`.

    FAILED events are kept.

    Returns:
        Dict with count of webhooks deleted
    """
    cutoff = timezone.now() - timedelta(days=days)

    deleted_count, _ = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSED,
        processed_at__lt=cutoff,
    ).delete()

    if deleted_count > 0:
        logger.info(
            f"Deleted {deleted_count} old webhook events",
            extra={"deleted_count": deleted_count, "cutoff_date": cutoff.isoformat()},
        )

    return {"deleted_count": deleted_count}


# =============================================================================
# Payout Tasks
# =============================================================================


@shared_task
def process_scheduled_payouts(manual: bool = False) -> dict:
    """
    Run the payout batch for every organisation.

    Guarded by a non-blocking distributed lock: if a previous run is still
    going, this run is skipped.

    Returns:
        The batch result dict, or {"status": "skipped"} when locked out
    """
    try:
        with DistributedLock(
            PAYOUT_BATCH_LOCK_KEY, ttl=PAYOUT_BATCH_LOCK_TTL, blocking=False
        ):
            result = PayoutBatchService.process_payouts(manual=manual)
    except LockAcquisitionError:
        logger.warning("Payout batch already running, skipping this run")
        return {"status": "skipped", "reason": "already_running"}

    return result.to_dict()


# =============================================================================
# Connect Account Tasks
# =============================================================================


@shared_task
def sync_account_statuses() -> dict:
    """
    Refresh every connected organisation's account status from Stripe.

    A Stripe failure for one organisation is logged and counted; the
    remaining organisations are still synced.

    Returns:
        Dict with synced/failed counts
    """
    organisation_ids = list(
        Organisation.objects.exclude(stripe_account_id__isnull=True)
        .exclude(stripe_account_id="")
        .values_list("id", flat=True)
    )

    synced = 0
    failed = 0
    for organisation_id in organisation_ids:
        try:
            result = AccountStatusService.refresh_account_status(
                organisation_id, create_link=False
            )
        except StripeError as e:
            failed += 1
            logger.warning(
                "Account status sync failed",
                extra={
                    "organisation_id": str(organisation_id),
                    "error_code": e.error_code,
                    "retryable": e.is_retryable,
                },
            )
            continue

        if result.success:
            synced += 1
        else:
            failed += 1

    logger.info(
        "Account status sync finished",
        extra={"synced": synced, "failed": failed},
    )
    return {"synced": synced, "failed": failed}
