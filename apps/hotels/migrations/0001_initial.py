import datetime
from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Vendor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("business_name", models.CharField(max_length=255, verbose_name="Business name")),
                (
                    "commission_rate",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("16.00"),
                        max_digits=5,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0")),
                            django.core.validators.MaxValueValidator(Decimal("100")),
                        ],
                        verbose_name="Commission rate, %",
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="vendor",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Vendor",
                "verbose_name_plural": "Vendors",
            },
        ),
        migrations.CreateModel(
            name="HotelProfile",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255, verbose_name="Name")),
                ("city", models.CharField(blank=True, max_length=100, verbose_name="City")),
                (
                    "cancellation_policy",
                    models.CharField(
                        choices=[
                            ("flexible", "Flexible (full refund 24h+ before check-in)"),
                            ("moderate", "Moderate (full refund 3+ days, 50% 1-3 days)"),
                            ("strict", "Strict (full refund 7+ days, 50% 3-7 days)"),
                        ],
                        default="moderate",
                        max_length=20,
                    ),
                ),
                ("check_in_time", models.TimeField(default=datetime.time(12, 0))),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="hotels",
                        to="hotels.vendor",
                    ),
                ),
            ],
            options={
                "verbose_name": "Hotel",
                "verbose_name_plural": "Hotels",
            },
        ),
        migrations.CreateModel(
            name="Room",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "room_type",
                    models.CharField(
                        choices=[
                            ("STANDARD", "Standard"),
                            ("DELUXE", "Deluxe"),
                            ("SUITE", "Suite"),
                            ("DORMITORY", "Dormitory"),
                        ],
                        default="STANDARD",
                        max_length=20,
                    ),
                ),
                ("room_number", models.CharField(blank=True, max_length=20)),
                (
                    "capacity",
                    models.PositiveSmallIntegerField(
                        default=2, validators=[django.core.validators.MinValueValidator(1)]
                    ),
                ),
                (
                    "base_price",
                    models.DecimalField(decimal_places=2, help_text="Price per night.", max_digits=10),
                ),
                (
                    "is_available",
                    models.BooleanField(default=True, help_text="Unavailable rooms accept no new reservations."),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "hotel",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="rooms",
                        to="hotels.hotelprofile",
                    ),
                ),
            ],
            options={
                "verbose_name": "Room",
                "verbose_name_plural": "Rooms",
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(("base_price__gte", 0)),
                        name="room_base_price_non_negative",
                    )
                ],
            },
        ),
    ]
