"""Admin registration for payments."""

from __future__ import annotations

from django.contrib import admin

from .models import Payment, PaymentTransaction


class PaymentTransactionInline(admin.TabularInline):
    model = PaymentTransaction
    extra = 0
    can_delete = False
    readonly_fields = ("event", "status", "payload", "created_at")


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = (
        "booking",
        "status",
        "amount",
        "currency",
        "refund_status",
        "refund_amount",
        "refund_attempts",
        "created_at",
    )
    list_filter = ("status", "refund_status", "method")
    search_fields = ("intent_ref", "transaction_id", "refund_ref")
    readonly_fields = (
        "booking",
        "vendor",
        "amount",
        "commission_amount",
        "vendor_amount",
        "intent_ref",
        "transaction_id",
        "processed_at",
        "refund_ref",
        "refund_attempts",
        "refund_last_error",
        "refunded_at",
        "created_at",
        "updated_at",
    )
    inlines = [PaymentTransactionInline]
