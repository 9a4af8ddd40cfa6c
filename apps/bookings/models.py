"""Reservation models.

``Booking`` is the vertical-agnostic order envelope; ``HotelBooking`` is
the reservation of one room for a date range. Their statuses are only
ever written together by the reservation coordinator.
"""

from __future__ import annotations

import uuid
from datetime import datetime, time

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.value_objects import DateRange
from shared.infrastructure.fields import EncryptedCharField

from .domain.state_machine import ReservationEvent, ReservationStatus


class CancellationSource(models.TextChoices):
    GUEST = "guest", _("Guest")
    VENDOR = "vendor", _("Vendor")
    SYSTEM = "system", _("System")


class Booking(models.Model):
    """Order envelope mirroring the status of its reservation."""

    Status = ReservationStatus

    class BookingType(models.TextChoices):
        HOTEL = "HOTEL", _("Hotel")
        ADVENTURE = "ADVENTURE", _("Adventure")
        TRANSPORT = "TRANSPORT", _("Transport")
        LOCAL_MARKET = "LOCAL_MARKET", _("Local market")
        OTHER = "OTHER", _("Other")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    vendor = models.ForeignKey(
        "hotels.Vendor",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    booking_type = models.CharField(
        max_length=20,
        choices=BookingType.choices,
        default=BookingType.HOTEL,
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    commission_amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="INR")
    status = models.CharField(
        max_length=20,
        choices=ReservationStatus.choices,
        default=ReservationStatus.DRAFT,
    )
    booking_date = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(total_amount__gte=0) & models.Q(commission_amount__gte=0),
                name="booking_amounts_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Booking {self.public_reference} ({self.status})"

    @property
    def public_reference(self) -> str:
        return f"BK{self.id.hex[-8:].upper()}"


class HotelBooking(models.Model):
    """Reservation of one room for the half-open interval [check_in, check_out)."""

    Status = ReservationStatus

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    booking = models.OneToOneField(
        Booking,
        on_delete=models.PROTECT,
        related_name="hotel_booking",
    )
    hotel = models.ForeignKey(
        "hotels.HotelProfile",
        on_delete=models.PROTECT,
        related_name="reservations",
    )
    room = models.ForeignKey(
        "hotels.Room",
        on_delete=models.PROTECT,
        related_name="reservations",
    )
    check_in = models.DateField()
    check_out = models.DateField()
    number_of_guests = models.PositiveSmallIntegerField()
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    status = models.CharField(
        max_length=20,
        choices=ReservationStatus.choices,
        default=ReservationStatus.DRAFT,
    )
    special_requests = models.TextField(blank=True)
    hold_expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text=_("PENDING holds still unpaid at this time are released by the sweep."),
    )
    status_changed_at = models.DateTimeField(default=timezone.now)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancellation_source = models.CharField(
        max_length=20,
        choices=CancellationSource.choices,
        blank=True,
    )
    cancellation_reason = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Hotel booking")
        verbose_name_plural = _("Hotel bookings")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(check_out__gt=models.F("check_in")),
                name="hotel_booking_valid_dates",
            ),
            models.CheckConstraint(
                check=models.Q(total_amount__gte=0),
                name="hotel_booking_total_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["room", "check_in", "check_out"], name="hotelbooking_room_interval"),
            models.Index(fields=["status", "hold_expires_at"], name="hotelbooking_status_hold"),
        ]

    def __str__(self) -> str:
        return f"{self.public_reference} room {self.room_id} {self.check_in}..{self.check_out} ({self.status})"

    @property
    def public_reference(self) -> str:
        return self.booking.public_reference

    @property
    def interval(self) -> DateRange:
        return DateRange(self.check_in, self.check_out)

    @property
    def nights(self) -> int:
        return (self.check_out - self.check_in).days

    def stay_starts_at(self) -> datetime:
        """Check-in instant in the active time zone."""
        check_in_time = getattr(self.hotel, "check_in_time", None) or time(12, 0)
        return timezone.make_aware(datetime.combine(self.check_in, check_in_time))


class Guest(models.Model):
    """A person staying under a reservation."""

    class IdProofType(models.TextChoices):
        AADHAR = "AADHAR", _("Aadhaar")
        PASSPORT = "PASSPORT", _("Passport")
        DRIVING_LICENSE = "DRIVING_LICENSE", _("Driving licence")
        VOTER_ID = "VOTER_ID", _("Voter ID")
        PAN_CARD = "PAN_CARD", _("PAN card")

    reservation = models.ForeignKey(
        HotelBooking,
        on_delete=models.CASCADE,
        related_name="guests",
    )
    first_name = models.CharField(max_length=50)
    last_name = models.CharField(max_length=50)
    age = models.PositiveSmallIntegerField(null=True, blank=True)
    id_proof_type = models.CharField(max_length=20, choices=IdProofType.choices, blank=True)
    id_proof_number = EncryptedCharField(max_length=20, blank=True)
    is_primary_guest = models.BooleanField(default=False)
    special_requests = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Guest")
        verbose_name_plural = _("Guests")
        ordering = ["-is_primary_guest", "id"]

    def __str__(self) -> str:
        return f"{self.first_name} {self.last_name}"


class ReservationStatusChange(models.Model):
    """Append-only audit row written with every successful transition."""

    reservation = models.ForeignKey(
        HotelBooking,
        on_delete=models.CASCADE,
        related_name="status_changes",
    )
    from_status = models.CharField(max_length=20, choices=ReservationStatus.choices, blank=True)
    to_status = models.CharField(max_length=20, choices=ReservationStatus.choices)
    event = models.CharField(max_length=30, choices=ReservationEvent.choices)
    reason = models.CharField(max_length=255, blank=True)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        verbose_name = _("Reservation status change")
        verbose_name_plural = _("Reservation status changes")
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.reservation_id}: {self.from_status or '-'} -> {self.to_status} ({self.event})"
