"""FilterSet for listing reservations."""

from __future__ import annotations

import django_filters  # type: ignore

from .domain.state_machine import ReservationStatus
from .models import HotelBooking


class ReservationFilterSet(django_filters.FilterSet):
    """Status, room and stay-window filters for the reservation list.

    DRAFT reservations are only listed when ``status=draft`` is asked for
    explicitly; see ``filter_queryset``.
    """

    status = django_filters.ChoiceFilter(field_name="status", choices=ReservationStatus.choices)
    hotel = django_filters.NumberFilter(field_name="hotel_id", lookup_expr="exact")
    room = django_filters.NumberFilter(field_name="room_id", lookup_expr="exact")
    check_in_from = django_filters.DateFilter(field_name="check_in", lookup_expr="gte")
    check_in_to = django_filters.DateFilter(field_name="check_in", lookup_expr="lte")

    class Meta:
        model = HotelBooking
        fields = ["status", "hotel", "room"]

    def filter_queryset(self, queryset):  # type: ignore
        queryset = super().filter_queryset(queryset)
        if not self.form.cleaned_data.get("status"):
            queryset = queryset.exclude(status=ReservationStatus.DRAFT)
        return queryset
