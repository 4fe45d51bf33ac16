"""
Celery configuration for the settlement service.

Background work handled by Celery:
- Scheduled payout batches (daily, see payments migration 0002)
- Dead-letter webhook retries and webhook housekeeping
- Periodic connected-account status sync
- Transactional email delivery with bounded retries

Redis is both the message broker and result backend. Tasks are auto-discovered
from every installed app's tasks.py.

Usage:
    from payments.tasks import process_scheduled_payouts

    process_scheduled_payouts.delay()
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
