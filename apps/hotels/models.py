"""Vendor, hotel and room models."""

from __future__ import annotations

from datetime import time
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Vendor(models.Model):
    """A business selling stays on the marketplace."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="vendor",
    )
    business_name = models.CharField(_("Business name"), max_length=255)
    commission_rate = models.DecimalField(
        _("Commission rate, %"),
        max_digits=5,
        decimal_places=2,
        default=Decimal("16.00"),
        validators=[MinValueValidator(Decimal("0")), MaxValueValidator(Decimal("100"))],
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Vendor")
        verbose_name_plural = _("Vendors")

    def __str__(self) -> str:
        return self.business_name


class HotelProfile(models.Model):
    """A hotel listed by a vendor."""

    class CancellationPolicy(models.TextChoices):
        FLEXIBLE = "flexible", _("Flexible (full refund 24h+ before check-in)")
        MODERATE = "moderate", _("Moderate (full refund 3+ days, 50% 1-3 days)")
        STRICT = "strict", _("Strict (full refund 7+ days, 50% 3-7 days)")

    vendor = models.ForeignKey(Vendor, on_delete=models.CASCADE, related_name="hotels")
    name = models.CharField(_("Name"), max_length=255)
    city = models.CharField(_("City"), max_length=100, blank=True)
    cancellation_policy = models.CharField(
        max_length=20,
        choices=CancellationPolicy.choices,
        default=CancellationPolicy.MODERATE,
    )
    check_in_time = models.TimeField(default=time(12, 0))
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Hotel")
        verbose_name_plural = _("Hotels")

    def __str__(self) -> str:
        return self.name


class Room(models.Model):
    """Bookable room. Reservations of one room never overlap."""

    class RoomType(models.TextChoices):
        STANDARD = "STANDARD", _("Standard")
        DELUXE = "DELUXE", _("Deluxe")
        SUITE = "SUITE", _("Suite")
        DORMITORY = "DORMITORY", _("Dormitory")

    hotel = models.ForeignKey(HotelProfile, on_delete=models.CASCADE, related_name="rooms")
    room_type = models.CharField(max_length=20, choices=RoomType.choices, default=RoomType.STANDARD)
    room_number = models.CharField(max_length=20, blank=True)
    capacity = models.PositiveSmallIntegerField(default=2, validators=[MinValueValidator(1)])
    base_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text=_("Price per night."),
    )
    is_available = models.BooleanField(
        default=True,
        help_text=_("Unavailable rooms accept no new reservations."),
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Room")
        verbose_name_plural = _("Rooms")
        constraints = [
            models.CheckConstraint(
                check=models.Q(base_price__gte=0),
                name="room_base_price_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.hotel} / {self.room_number or self.get_room_type_display()}"

    @property
    def is_bookable(self) -> bool:
        return self.is_available and self.hotel.is_active and self.hotel.vendor.is_active
