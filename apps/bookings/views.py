"""API views for reservations."""

from __future__ import annotations

from django.db.models import Q  # type: ignore
from django_filters.rest_framework import DjangoFilterBackend  # type: ignore
from drf_spectacular.utils import extend_schema  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from .application.cancellation import CancellationService
from .application.coordinator import ReservationCoordinator
from .domain.exceptions import PermissionDeniedError
from .filters import ReservationFilterSet
from .models import HotelBooking
from .serializers import (
    CancelReservationSerializer,
    PaymentIntentSerializer,
    ReservationCreateSerializer,
    ReservationSerializer,
    VerifyPaymentSerializer,
)
from apps.finances.gateways import PaymentProof


class IsReservationStakeholder(permissions.BasePermission):
    """The guest who booked, the hotel's vendor and staff may see a reservation."""

    def has_object_permission(self, request, view, obj: HotelBooking):  # type: ignore
        user = request.user
        if not user.is_authenticated:
            return False
        if getattr(user, "is_staff", False):
            return True
        if obj.booking.user_id == user.id:
            return True
        return obj.hotel.vendor.user_id == user.id


class ReservationViewSet(
    mixins.CreateModelMixin,
    mixins.RetrieveModelMixin,
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    """Create, read, pay for and cancel hotel reservations.

    Every state change goes through the reservation coordinator; the
    viewset only scopes visibility and shapes requests and responses.
    """

    queryset = HotelBooking.objects.select_related(
        "booking",
        "booking__payment",
        "hotel",
        "hotel__vendor",
        "room",
    ).prefetch_related("guests")
    permission_classes = [permissions.IsAuthenticated, IsReservationStakeholder]
    filter_backends = [DjangoFilterBackend]
    filterset_class = ReservationFilterSet

    def get_serializer_class(self):  # type: ignore
        if self.action == "create":
            return ReservationCreateSerializer
        if self.action == "verify_payment":
            return VerifyPaymentSerializer
        if self.action == "cancel":
            return CancelReservationSerializer
        return ReservationSerializer

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if not user.is_authenticated:
            return qs.none()
        if getattr(user, "is_staff", False):
            return qs
        return qs.filter(Q(booking__user=user) | Q(hotel__vendor__user=user))

    def filter_queryset(self, queryset):  # type: ignore
        # detail routes must still find drafts
        if self.action != "list":
            return queryset
        return super().filter_queryset(queryset)

    def get_coordinator(self) -> ReservationCoordinator:
        return ReservationCoordinator.from_settings()

    def _reservation_response(self, reservation_id, status_code=status.HTTP_200_OK) -> Response:
        reservation = self.get_queryset().get(pk=reservation_id)
        serializer = ReservationSerializer(reservation, context=self.get_serializer_context())
        return Response(serializer.data, status=status_code)

    def _require_customer(self, reservation: HotelBooking) -> None:
        if reservation.booking.user_id != self.request.user.id:
            raise PermissionDeniedError("Only the guest who made the reservation can pay for it")

    @extend_schema(request=ReservationCreateSerializer, responses={201: ReservationSerializer})
    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        reservation = self.get_coordinator().create_draft(
            request.user,
            data["room_id"],
            (data["check_in"], data["check_out"]),
            data["number_of_guests"],
            serializer.guest_details_list(),
            data.get("special_requests", ""),
        )
        return self._reservation_response(reservation.pk, status.HTTP_201_CREATED)

    @extend_schema(request=None, responses={201: PaymentIntentSerializer})
    @action(detail=True, methods=["post"], url_path="initiate-payment")
    def initiate_payment(self, request, pk=None):  # type: ignore
        reservation: HotelBooking = self.get_object()  # type: ignore
        self._require_customer(reservation)
        intent = self.get_coordinator().initiate_payment(reservation.pk)
        reservation.refresh_from_db(fields=["hold_expires_at"])
        payload = PaymentIntentSerializer(
            {
                "intent_ref": intent.intent_ref,
                "amount": intent.amount,
                "currency": intent.currency,
                "provider": intent.provider,
                "checkout": intent.checkout,
                "hold_expires_at": reservation.hold_expires_at,
            }
        ).data
        return Response(payload, status=status.HTTP_201_CREATED)

    @extend_schema(request=VerifyPaymentSerializer, responses={200: ReservationSerializer})
    @action(detail=True, methods=["post"], url_path="verify-payment")
    def verify_payment(self, request, pk=None):  # type: ignore
        reservation: HotelBooking = self.get_object()  # type: ignore
        self._require_customer(reservation)
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        settlement = self.get_coordinator().settle_payment(
            reservation.pk,
            PaymentProof(
                payment_ref=serializer.validated_data["payment_ref"],
                signature=serializer.validated_data["signature"],
            ),
        )
        if not settlement.succeeded:
            response = self._reservation_response(reservation.pk, status.HTTP_402_PAYMENT_REQUIRED)
            response.data["detail"] = f"Payment was not accepted: {settlement.reason}"
            return response
        return self._reservation_response(reservation.pk)

    @extend_schema(request=CancelReservationSerializer, responses={200: ReservationSerializer})
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        reservation: HotelBooking = self.get_object()  # type: ignore
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        service = CancellationService(self.get_coordinator())
        service.cancel(reservation.pk, request.user, serializer.validated_data.get("reason", ""))
        return self._reservation_response(reservation.pk)
