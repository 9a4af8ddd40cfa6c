"""Admin registration for reservations.

Status fields are read-only here: transitions only happen through the
reservation coordinator.
"""

from __future__ import annotations

from django.contrib import admin

from .models import Booking, Guest, HotelBooking, ReservationStatusChange


class GuestInline(admin.TabularInline):
    model = Guest
    extra = 0
    exclude = ("id_proof_number",)


class StatusChangeInline(admin.TabularInline):
    model = ReservationStatusChange
    extra = 0
    can_delete = False
    readonly_fields = ("from_status", "to_status", "event", "reason", "actor", "created_at")

    def has_add_permission(self, request, obj=None):  # type: ignore
        return False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("public_reference", "user", "vendor", "booking_type", "status", "total_amount", "created_at")
    list_filter = ("status", "booking_type")
    search_fields = ("id", "user__username", "user__email", "vendor__business_name")
    readonly_fields = ("status", "total_amount", "commission_amount", "created_at", "updated_at")


@admin.register(HotelBooking)
class HotelBookingAdmin(admin.ModelAdmin):
    list_display = (
        "public_reference",
        "hotel",
        "room",
        "status",
        "check_in",
        "check_out",
        "total_amount",
        "hold_expires_at",
        "created_at",
    )
    list_filter = ("status", "cancellation_source", "check_in", "check_out")
    search_fields = ("id", "booking__user__email", "hotel__name", "room__room_number")
    readonly_fields = (
        "status",
        "hold_expires_at",
        "status_changed_at",
        "confirmed_at",
        "cancelled_at",
        "completed_at",
        "cancellation_source",
        "created_at",
        "updated_at",
    )
    inlines = [GuestInline, StatusChangeInline]
