"""Admin registrations for vendors, hotels and rooms."""

from __future__ import annotations

from django.contrib import admin

from .models import HotelProfile, Room, Vendor


@admin.register(Vendor)
class VendorAdmin(admin.ModelAdmin):
    list_display = ("business_name", "user", "commission_rate", "is_active")
    list_filter = ("is_active",)
    search_fields = ("business_name", "user__username", "user__email")


class RoomInline(admin.TabularInline):
    model = Room
    extra = 0
    fields = ("room_number", "room_type", "capacity", "base_price", "is_available")


@admin.register(HotelProfile)
class HotelProfileAdmin(admin.ModelAdmin):
    list_display = ("name", "vendor", "city", "cancellation_policy", "is_active")
    list_filter = ("cancellation_policy", "is_active")
    search_fields = ("name", "city", "vendor__business_name")
    inlines = [RoomInline]
