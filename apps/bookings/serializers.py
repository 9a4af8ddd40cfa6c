"""Serializers for the reservation API."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .domain.validation import (
    MAX_GUEST_SPECIAL_REQUESTS,
    MAX_PARTY_SIZE,
    MAX_SPECIAL_REQUESTS,
    GuestDetails,
    IdProofType,
)
from .models import Guest, HotelBooking


class GuestInputSerializer(serializers.Serializer):
    """One entry of ``guest_details`` in a create request."""

    first_name = serializers.CharField(max_length=50)
    last_name = serializers.CharField(max_length=50)
    is_primary_guest = serializers.BooleanField(default=False)
    age = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=120)
    id_proof_type = serializers.ChoiceField(choices=IdProofType.ALL, required=False, allow_blank=True)
    id_proof_number = serializers.CharField(required=False, allow_blank=True, max_length=20)
    special_requests = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=MAX_GUEST_SPECIAL_REQUESTS,
    )

    def to_guest_details(self, data: dict) -> GuestDetails:
        return GuestDetails(
            first_name=data["first_name"],
            last_name=data["last_name"],
            is_primary=data.get("is_primary_guest", False),
            age=data.get("age"),
            id_proof_type=data.get("id_proof_type", ""),
            id_proof_number=data.get("id_proof_number", ""),
            special_requests=data.get("special_requests", ""),
        )


class ReservationCreateSerializer(serializers.Serializer):
    """Shape of a draft request. Business rules are checked by the coordinator."""

    room_id = serializers.IntegerField()
    check_in = serializers.DateField()
    check_out = serializers.DateField()
    number_of_guests = serializers.IntegerField(min_value=1, max_value=MAX_PARTY_SIZE)
    guest_details = GuestInputSerializer(many=True)
    special_requests = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=MAX_SPECIAL_REQUESTS,
        default="",
    )

    def guest_details_list(self) -> list[GuestDetails]:
        converter = GuestInputSerializer()
        return [converter.to_guest_details(item) for item in self.validated_data["guest_details"]]


class GuestSerializer(serializers.ModelSerializer):
    """Guest as shown back; the ID proof number is withheld from vendors."""

    class Meta:
        model = Guest
        fields = [
            "id",
            "first_name",
            "last_name",
            "age",
            "id_proof_type",
            "id_proof_number",
            "is_primary_guest",
            "special_requests",
        ]
        read_only_fields = fields

    def to_representation(self, instance):  # type: ignore
        data = super().to_representation(instance)
        if self.context.get("hide_id_proof"):
            data.pop("id_proof_number", None)
        return data


class ReservationSerializer(serializers.ModelSerializer):
    """Reservation as seen by its guest, its vendor or staff."""

    reference = serializers.ReadOnlyField(source="public_reference")
    booking_id = serializers.ReadOnlyField(source="booking.id")
    customer_id = serializers.ReadOnlyField(source="booking.user_id")
    vendor_id = serializers.ReadOnlyField(source="hotel.vendor_id")
    hotel_name = serializers.ReadOnlyField(source="hotel.name")
    room_number = serializers.ReadOnlyField(source="room.room_number")
    currency = serializers.ReadOnlyField(source="booking.currency")
    nights = serializers.ReadOnlyField()
    guests = serializers.SerializerMethodField()
    payment = serializers.SerializerMethodField()

    class Meta:
        model = HotelBooking
        fields = [
            "id",
            "reference",
            "booking_id",
            "customer_id",
            "vendor_id",
            "hotel",
            "hotel_name",
            "room",
            "room_number",
            "check_in",
            "check_out",
            "nights",
            "number_of_guests",
            "total_amount",
            "currency",
            "status",
            "special_requests",
            "hold_expires_at",
            "confirmed_at",
            "cancelled_at",
            "completed_at",
            "cancellation_source",
            "cancellation_reason",
            "guests",
            "payment",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_guests(self, obj: HotelBooking):  # type: ignore
        request = self.context.get("request")
        user = getattr(request, "user", None)
        hide_id_proof = not (
            user is not None and (user.pk == obj.booking.user_id or getattr(user, "is_staff", False))
        )
        context = {**self.context, "hide_id_proof": hide_id_proof}
        return GuestSerializer(obj.guests.all(), many=True, context=context).data

    def get_payment(self, obj: HotelBooking):  # type: ignore
        payment = getattr(obj.booking, "payment", None)
        if payment is None:
            return None
        return {
            "status": payment.status,
            "amount": str(payment.amount),
            "refund_status": payment.refund_status,
            "refund_amount": str(payment.refund_amount),
        }


class PaymentIntentSerializer(serializers.Serializer):
    intent_ref = serializers.CharField()
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    provider = serializers.CharField()
    checkout = serializers.DictField()
    hold_expires_at = serializers.DateTimeField(allow_null=True)


class VerifyPaymentSerializer(serializers.Serializer):
    payment_ref = serializers.CharField(max_length=100)
    signature = serializers.CharField(max_length=256)


class CancelReservationSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")
