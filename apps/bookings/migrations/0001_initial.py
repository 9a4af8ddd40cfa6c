import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models

import shared.infrastructure.fields


STATUS_CHOICES = [
    ("draft", "Draft"),
    ("pending", "Pending payment"),
    ("confirmed", "Confirmed"),
    ("cancelled", "Cancelled"),
    ("completed", "Completed"),
]

EVENT_CHOICES = [
    ("create", "Created"),
    ("initiate_payment", "Payment initiated"),
    ("payment_succeeded", "Payment succeeded"),
    ("release_hold", "Hold released"),
    ("cancel", "Cancelled"),
    ("complete", "Completed"),
    ("expire_draft", "Draft expired"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("hotels", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "booking_type",
                    models.CharField(
                        choices=[
                            ("HOTEL", "Hotel"),
                            ("ADVENTURE", "Adventure"),
                            ("TRANSPORT", "Transport"),
                            ("LOCAL_MARKET", "Local market"),
                            ("OTHER", "Other"),
                        ],
                        default="HOTEL",
                        max_length=20,
                    ),
                ),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("commission_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="INR", max_length=3)),
                ("status", models.CharField(choices=STATUS_CHOICES, default="draft", max_length=20)),
                ("booking_date", models.DateTimeField(default=django.utils.timezone.now)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "vendor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="bookings",
                        to="hotels.vendor",
                    ),
                ),
            ],
            options={
                "verbose_name": "Booking",
                "verbose_name_plural": "Bookings",
                "ordering": ["-created_at"],
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(("total_amount__gte", 0), ("commission_amount__gte", 0)),
                        name="booking_amounts_non_negative",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="HotelBooking",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("check_in", models.DateField()),
                ("check_out", models.DateField()),
                ("number_of_guests", models.PositiveSmallIntegerField()),
                ("total_amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("status", models.CharField(choices=STATUS_CHOICES, default="draft", max_length=20)),
                ("special_requests", models.TextField(blank=True)),
                (
                    "hold_expires_at",
                    models.DateTimeField(
                        blank=True,
                        help_text="PENDING holds still unpaid at this time are released by the sweep.",
                        null=True,
                    ),
                ),
                ("status_changed_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "cancellation_source",
                    models.CharField(
                        blank=True,
                        choices=[("guest", "Guest"), ("vendor", "Vendor"), ("system", "System")],
                        max_length=20,
                    ),
                ),
                ("cancellation_reason", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "booking",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="hotel_booking",
                        to="bookings.booking",
                    ),
                ),
                (
                    "hotel",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reservations",
                        to="hotels.hotelprofile",
                    ),
                ),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reservations",
                        to="hotels.room",
                    ),
                ),
            ],
            options={
                "verbose_name": "Hotel booking",
                "verbose_name_plural": "Hotel bookings",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["room", "check_in", "check_out"], name="hotelbooking_room_interval"),
                    models.Index(fields=["status", "hold_expires_at"], name="hotelbooking_status_hold"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(("check_out__gt", models.F("check_in"))),
                        name="hotel_booking_valid_dates",
                    ),
                    models.CheckConstraint(
                        check=models.Q(("total_amount__gte", 0)),
                        name="hotel_booking_total_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Guest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=50)),
                ("last_name", models.CharField(max_length=50)),
                ("age", models.PositiveSmallIntegerField(blank=True, null=True)),
                (
                    "id_proof_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("AADHAR", "Aadhaar"),
                            ("PASSPORT", "Passport"),
                            ("DRIVING_LICENSE", "Driving licence"),
                            ("VOTER_ID", "Voter ID"),
                            ("PAN_CARD", "PAN card"),
                        ],
                        max_length=20,
                    ),
                ),
                ("id_proof_number", shared.infrastructure.fields.EncryptedCharField(blank=True, max_length=20)),
                ("is_primary_guest", models.BooleanField(default=False)),
                ("special_requests", models.CharField(blank=True, max_length=200)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "reservation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="guests",
                        to="bookings.hotelbooking",
                    ),
                ),
            ],
            options={
                "verbose_name": "Guest",
                "verbose_name_plural": "Guests",
                "ordering": ["-is_primary_guest", "id"],
            },
        ),
        migrations.CreateModel(
            name="ReservationStatusChange",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("from_status", models.CharField(blank=True, choices=STATUS_CHOICES, max_length=20)),
                ("to_status", models.CharField(choices=STATUS_CHOICES, max_length=20)),
                ("event", models.CharField(choices=EVENT_CHOICES, max_length=30)),
                ("reason", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "actor",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "reservation",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="status_changes",
                        to="bookings.hotelbooking",
                    ),
                ),
            ],
            options={
                "verbose_name": "Reservation status change",
                "verbose_name_plural": "Reservation status changes",
                "ordering": ["created_at", "id"],
            },
        ),
    ]
