"""
Add a per-participant price to Camp.

Checkout sessions are priced from the camp rather than the request.
"""

from decimal import Decimal

from django.db import migrations, models


class Migration(migrations.Migration):
    dependencies = [
        ("camps", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="camp",
            name="price",
            field=models.DecimalField(
                decimal_places=2,
                default=Decimal("0.00"),
                help_text="Price per participant",
                max_digits=10,
            ),
        ),
        migrations.AddConstraint(
            model_name="camp",
            constraint=models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name="camp_price_non_negative",
            ),
        ),
    ]
