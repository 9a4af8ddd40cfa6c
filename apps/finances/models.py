"""Payment records for bookings."""

from __future__ import annotations

from decimal import Decimal

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Payment(models.Model):
    """Payment collected for a booking. One per booking.

    ``status`` follows the charge (pending -> success | failed). Money
    going back to the guest is tracked separately in the refund fields
    so a failed refund never changes what the booking status says.
    """

    class Status(models.TextChoices):
        PENDING = "pending", _("Awaiting payment")
        SUCCESS = "success", _("Paid")
        FAILED = "failed", _("Failed")

    class RefundStatus(models.TextChoices):
        NOT_REQUIRED = "not_required", _("Not required")
        PENDING = "pending", _("Refund in progress")
        SUCCEEDED = "succeeded", _("Refunded")
        FAILED = "failed", _("Refund failed, will retry")
        MANUAL_REVIEW = "manual_review", _("Needs manual reconciliation")

    class Method(models.TextChoices):
        RAZORPAY = "razorpay", _("Razorpay")
        SANDBOX = "sandbox", _("Sandbox")

    booking = models.OneToOneField(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payment",
    )
    vendor = models.ForeignKey(
        "hotels.Vendor",
        on_delete=models.PROTECT,
        related_name="payments",
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    method = models.CharField(max_length=20, choices=Method.choices)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    commission_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    vendor_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="INR")
    intent_ref = models.CharField(
        max_length=100,
        blank=True,
        help_text=_("Order id issued by the payment provider."),
    )
    transaction_id = models.CharField(max_length=100, blank=True)
    processed_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.CharField(max_length=255, blank=True)

    refund_status = models.CharField(
        max_length=20,
        choices=RefundStatus.choices,
        default=RefundStatus.NOT_REQUIRED,
    )
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    refund_ref = models.CharField(max_length=100, blank=True)
    refund_attempts = models.PositiveSmallIntegerField(default=0)
    refund_last_error = models.CharField(max_length=255, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Payment")
        verbose_name_plural = _("Payments")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                check=models.Q(refund_amount__lte=models.F("amount")),
                name="payment_refund_within_amount",
            ),
        ]
        indexes = [
            models.Index(fields=["refund_status"], name="payment_refund_status_idx"),
        ]

    def __str__(self) -> str:
        return f"Payment {self.booking_id} ({self.status})"

    @property
    def is_paid(self) -> bool:
        return self.status == self.Status.SUCCESS

    def log(self, event: str, payload: dict | None = None, status: str = "") -> "PaymentTransaction":
        return self.transactions.create(event=event, payload=payload or {}, status=status or self.status)


class PaymentTransaction(models.Model):
    """History of interactions with the payment provider."""

    payment = models.ForeignKey(
        Payment,
        on_delete=models.CASCADE,
        related_name="transactions",
    )
    event = models.CharField(max_length=50)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Payment transaction")
        verbose_name_plural = _("Payment transactions")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.event} for payment {self.payment_id}"
