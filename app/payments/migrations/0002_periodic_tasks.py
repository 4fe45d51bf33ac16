"""
Add celery-beat schedules for the settlement pipeline.

Creates periodic tasks for:
- The daily payout batch (02:00 UTC)
- Retrying dead-lettered webhook events (every 15 minutes)
- Resetting webhook events stuck in processing (every 10 minutes)
- Deleting old processed webhook events (daily, 03:30 UTC)
- Syncing connected account statuses from Stripe (every 6 hours)
"""

from django.db import migrations

INTERVAL_TASKS = [
    {
        "name": "Retry Failed Webhooks",
        "task": "payments.tasks.retry_failed_webhooks",
        "every": 15,
        "period": "minutes",
        "description": (
            "Re-runs FAILED webhook events until they exhaust their retries."
        ),
    },
    {
        "name": "Cleanup Stuck Webhooks",
        "task": "payments.tasks.cleanup_stuck_webhooks",
        "every": 10,
        "period": "minutes",
        "description": "Moves webhook events stuck in processing back to FAILED.",
    },
    {
        "name": "Sync Connected Account Statuses",
        "task": "payments.tasks.sync_account_statuses",
        "every": 6,
        "period": "hours",
        "description": (
            "Refreshes every connected organisation's capabilities and "
            "requirements from Stripe."
        ),
    },
]

CRONTAB_TASKS = [
    {
        "name": "Process Scheduled Payouts",
        "task": "payments.tasks.process_scheduled_payouts",
        "minute": "0",
        "hour": "2",
        "description": (
            "Batches each organisation's pending commissions into a payout "
            "once they reach its minimum payout amount."
        ),
    },
    {
        "name": "Cleanup Old Webhooks",
        "task": "payments.tasks.cleanup_old_webhooks",
        "minute": "30",
        "hour": "3",
        "description": "Deletes processed webhook events older than 90 days.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for the settlement pipeline."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    CrontabSchedule = apps.get_model("django_celery_beat", "CrontabSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in INTERVAL_TASKS:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period=entry["period"],
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )

    for entry in CRONTAB_TASKS:
        schedule, _ = CrontabSchedule.objects.get_or_create(
            minute=entry["minute"],
            hour=entry["hour"],
            day_of_week="*",
            day_of_month="*",
            month_of_year="*",
            timezone="UTC",
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "crontab": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[entry["name"] for entry in INTERVAL_TASKS + CRONTAB_TASKS],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
