"""
Email service for transactional notifications.

This module provides the EmailService class for sending emails with:
- Django template rendering for the subject and plain-text body
- Async sending via Celery with retry and backoff

Templates live under templates/emails/ as a pair of files per email:
    {template_name}_subject.txt
    {template_name}.txt

Related files:
    - tasks.py: send_transactional_email (retrying Celery task)

Configuration:
    Email settings are read from Django settings:
    - EMAIL_BACKEND
    - EMAIL_HOST, EMAIL_PORT
    - DEFAULT_FROM_EMAIL
    - EMAIL_MAX_RETRIES

Usage:
    from toolkit.services.email import EmailService

    # Fire-and-forget (the caller never waits on delivery)
    EmailService.send_async(
        "booking-confirmation",
        to="parent@example.com",
        data={"customer_name": "Sam", "camp_name": "Forest Camp"},
    )
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


class EmailService:
    """
    Centralized transactional email sending.

    send() delivers synchronously and raises on failure so the Celery task
    can retry. send_async() queues the task and returns immediately.
    """

    @staticmethod
    def render(template_name: str, data: dict[str, Any]) -> tuple[str, str]:
        """
        Render the subject and plain-text body of a template.

        Returns:
            (subject, body) tuple
        """
        subject = render_to_string(f"emails/{template_name}_subject.txt", data)
        body = render_to_string(f"emails/{template_name}.txt", data)
        # Subjects must be a single line
        return " ".join(subject.split()), body

    @staticmethod
    def send(
        to: str | list[str],
        template_name: str,
        data: dict[str, Any],
        from_email: str | None = None,
    ) -> None:
        """
        Send a templated email now.

        Args:
            to: Recipient email address(es)
            template_name: Template pair name, e.g. 'booking-confirmation'
            data: Template context (JSON-serializable)
            from_email: Sender (defaults to DEFAULT_FROM_EMAIL)

        Raises:
            TemplateDoesNotExist: Unknown template name
            SMTPException / OSError: Delivery failed
        """
        if isinstance(to, str):
            to = [to]

        subject, body = EmailService.render(template_name, data)
        message = EmailMultiAlternatives(
            subject=subject,
            body=body,
            from_email=from_email or settings.DEFAULT_FROM_EMAIL,
            to=to,
        )
        message.send(fail_silently=False)

        logger.info(
            "Email sent",
            extra={"template": template_name, "recipient_count": len(to)},
        )

    @staticmethod
    def send_async(
        template_name: str,
        to: str | list[str],
        data: dict[str, Any],
    ) -> None:
        """
        Queue a templated email for background delivery.

        Delivery failures are retried with exponential backoff by the task
        and never reach the caller.
        """
        from toolkit.tasks import send_transactional_email

        if isinstance(to, str):
            to = [to]

        send_transactional_email.delay(template_name=template_name, to=to, data=data)
        logger.debug(
            "Email queued",
            extra={"template": template_name, "recipient_count": len(to)},
        )
