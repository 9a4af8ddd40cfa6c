"""Interval conflict checks for room reservations."""

from __future__ import annotations

from datetime import date

from django.db import DEFAULT_DB_ALIAS  # type: ignore
from django.db.models import Q  # type: ignore

from shared.domain.value_objects import DateRange

from .domain.state_machine import HOLDING_STATUSES


def intervals_overlap(existing_start: date, existing_end: date, new_start: date, new_end: date) -> bool:
    """
    Half-open overlap test for [existing_start, existing_end) and
    [new_start, new_end).

    Back-to-back stays (one ends the day the other starts) do not overlap.
    """
    return DateRange(existing_start, existing_end).overlaps_with(DateRange(new_start, new_end))


def overlapping_filter(start: date, end: date) -> Q:
    return Q(check_in__lt=end) & Q(check_out__gt=start)


def find_conflicting_reservations(
    room_id,
    start: date,
    end: date,
    *,
    exclude_reservation_id=None,
    using: str = DEFAULT_DB_ALIAS,
):
    """
    PENDING or CONFIRMED reservations of ``room_id`` overlapping [start, end).

    DRAFT, CANCELLED and COMPLETED reservations never conflict. Pass the
    id of the reservation being transitioned as
    ``exclude_reservation_id`` so it does not conflict with itself.
    """
    from .models import HotelBooking  # Local import to prevent circular dependency

    queryset = (
        HotelBooking.objects.using(using)
        .filter(room_id=room_id, status__in=[str(status) for status in HOLDING_STATUSES])
        .filter(overlapping_filter(start, end))
    )
    if exclude_reservation_id is not None:
        queryset = queryset.exclude(pk=exclude_reservation_id)
    return queryset.order_by("check_in")


def conflicting_ids(room_id, start: date, end: date, *, exclude_reservation_id=None, using: str = DEFAULT_DB_ALIAS):
    return list(
        find_conflicting_reservations(
            room_id, start, end, exclude_reservation_id=exclude_reservation_id, using=using
        ).values_list("pk", flat=True)
    )
