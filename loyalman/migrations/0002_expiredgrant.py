# Generated migration for the expiry checkpoint table

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("loyalman", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="ExpiredGrant",
            fields=[
                (
                    "grant",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        primary_key=True,
                        related_name="expiry",
                        serialize=False,
                        to="loyalman.pointsentry",
                        verbose_name="grant",
                    ),
                ),
                (
                    "points",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="0 when the grant was spent before it expired",
                        verbose_name="points expired",
                    ),
                ),
                (
                    "processed_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        verbose_name="processed at",
                    ),
                ),
            ],
            options={
                "verbose_name": "expired grant",
                "verbose_name_plural": "expired grants",
            },
        ),
    ]
