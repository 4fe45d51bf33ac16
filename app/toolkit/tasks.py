"""
Celery tasks for toolkit.

This module provides async tasks for:
- Delivering transactional email with retry and backoff

Usage:
    from toolkit.tasks import send_transactional_email

    send_transactional_email.delay(
        template_name="booking-confirmation",
        to=["parent@example.com"],
        data={"customer_name": "Sam"},
    )
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.conf import settings

from toolkit.services.email import EmailService

logger = logging.getLogger(__name__)

# Backoff grows 60, 120, 240, 480... seconds, capped at an hour
EMAIL_RETRY_BASE_DELAY = 60
EMAIL_RETRY_MAX_DELAY = 3600


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=EMAIL_RETRY_BASE_DELAY,
    retry_backoff_max=EMAIL_RETRY_MAX_DELAY,
    max_retries=settings.EMAIL_MAX_RETRIES,
    acks_late=True,
)
def send_transactional_email(
    self, template_name: str, to: list[str], data: dict
) -> bool:
    """
    Send a templated email, retrying failures with exponential backoff.

    After EMAIL_MAX_RETRIES retries the email is logged as abandoned and the
    task finishes without raising.

    Returns:
        True if sent, False if abandoned
    """
    try:
        EmailService.send(to=to, template_name=template_name, data=data)
    except Exception as exc:
        if self.request.retries >= self.max_retries:
            logger.error(
                "Transactional email abandoned",
                extra={
                    "template": template_name,
                    "attempts": self.request.retries + 1,
                    "error": str(exc),
                },
                exc_info=True,
            )
            return False

        logger.warning(
            "Transactional email failed, will retry",
            extra={
                "template": template_name,
                "retry": self.request.retries + 1,
                "max_retries": self.max_retries,
            },
        )
        # Re-raise to trigger autoretry
        raise

    return True
