"""
Booking request value types and the checks applied before a draft is
written.

Each check raises ValidationError naming the offending field path, e.g.
``guest_details.1.first_name``.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

from apps.bookings.domain.exceptions import ValidationError
from shared.domain.value_objects import DateRange

MAX_PARTY_SIZE = 10
MAX_SPECIAL_REQUESTS = 500
MAX_GUEST_SPECIAL_REQUESTS = 200
NAME_PATTERN = re.compile(r"^[A-Za-z\s]{2,50}$")


class IdProofType:
    AADHAR = "AADHAR"
    PASSPORT = "PASSPORT"
    DRIVING_LICENSE = "DRIVING_LICENSE"
    VOTER_ID = "VOTER_ID"
    PAN_CARD = "PAN_CARD"

    ALL = (AADHAR, PASSPORT, DRIVING_LICENSE, VOTER_ID, PAN_CARD)


@dataclass(frozen=True)
class GuestDetails:
    first_name: str
    last_name: str
    is_primary: bool = False
    age: int | None = None
    id_proof_type: str = ""
    id_proof_number: str = ""
    special_requests: str = ""


@dataclass(frozen=True)
class DraftRequest:
    room_id: int
    check_in: date
    check_out: date
    party_size: int
    guest_details: Sequence[GuestDetails] = field(default_factory=tuple)
    special_requests: str = ""


def validate_interval(check_in: date, check_out: date, *, today: date) -> DateRange:
    if check_in is None or check_out is None:
        raise ValidationError("Check-in and check-out dates are required", field="check_in")
    if check_out <= check_in:
        raise ValidationError("Check-out date must be after check-in date", field="check_out")
    if check_in < today:
        raise ValidationError("Check-in date cannot be in the past", field="check_in")
    return DateRange(check_in, check_out)


def validate_party_size(party_size: int, *, room_capacity: int) -> None:
    if isinstance(party_size, bool) or not isinstance(party_size, int):
        raise ValidationError("Number of guests must be a whole number", field="party_size")
    if party_size < 1:
        raise ValidationError("At least 1 guest is required", field="party_size")
    if party_size > MAX_PARTY_SIZE:
        raise ValidationError(f"Maximum {MAX_PARTY_SIZE} guests allowed", field="party_size")
    if party_size > room_capacity:
        raise ValidationError(
            f"Room capacity ({room_capacity}) is less than the number of guests ({party_size})",
            field="party_size",
        )


def _validate_guest(index: int, guest: GuestDetails) -> None:
    prefix = f"guest_details.{index}"
    for attr in ("first_name", "last_name"):
        value = getattr(guest, attr) or ""
        if not NAME_PATTERN.match(value):
            raise ValidationError(
                "Name must be 2-50 characters of letters and spaces",
                field=f"{prefix}.{attr}",
            )
    if guest.age is not None and not 1 <= guest.age <= 120:
        raise ValidationError("Age must be between 1 and 120", field=f"{prefix}.age")
    if guest.id_proof_type and guest.id_proof_type not in IdProofType.ALL:
        raise ValidationError("Unknown ID proof type", field=f"{prefix}.id_proof_type")
    if guest.id_proof_number and not 3 <= len(guest.id_proof_number) <= 20:
        raise ValidationError(
            "ID proof number must be 3-20 characters",
            field=f"{prefix}.id_proof_number",
        )
    if len(guest.special_requests or "") > MAX_GUEST_SPECIAL_REQUESTS:
        raise ValidationError(
            f"Guest special requests cannot exceed {MAX_GUEST_SPECIAL_REQUESTS} characters",
            field=f"{prefix}.special_requests",
        )


def validate_guest_details(guests: Sequence[GuestDetails], *, party_size: int) -> None:
    if not guests:
        raise ValidationError("At least one guest detail is required", field="guest_details")
    if len(guests) > party_size:
        raise ValidationError(
            "Number of guest details cannot exceed number of guests",
            field="guest_details",
        )
    primary = [guest for guest in guests if guest.is_primary]
    if len(primary) != 1:
        raise ValidationError(
            "Exactly one guest must be marked as primary guest",
            field="guest_details",
        )
    for index, guest in enumerate(guests):
        _validate_guest(index, guest)


def validate_draft_request(request: DraftRequest, *, room_capacity: int, today: date) -> DateRange:
    """Run every check on a booking request and return its stay interval."""
    interval = validate_interval(request.check_in, request.check_out, today=today)
    validate_party_size(request.party_size, room_capacity=room_capacity)
    validate_guest_details(request.guest_details, party_size=request.party_size)
    if len(request.special_requests or "") > MAX_SPECIAL_REQUESTS:
        raise ValidationError(
            f"Special requests cannot exceed {MAX_SPECIAL_REQUESTS} characters",
            field="special_requests",
        )
    return interval
