"""
Add the refunded commission status.

Commissions still pending when their booking is fully refunded move to
refunded and are no longer picked up by payout batches.
"""

from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0002_periodic_tasks"),
    ]

    operations = [
        migrations.AlterField(
            model_name="commissionrecord",
            name="payment_status",
            field=models.CharField(
                choices=[
                    ("pending", "Pending"),
                    ("paid", "Paid"),
                    ("refunded", "Refunded"),
                ],
                db_index=True,
                default="pending",
                help_text="Whether the commission has been included in a payout",
                max_length=20,
            ),
        ),
    ]
