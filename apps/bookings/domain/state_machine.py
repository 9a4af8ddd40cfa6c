"""
Reservation Status Finite State Machine

State transitions:
- (new)     -> DRAFT      create
- DRAFT     -> PENDING    initiate_payment (resource held)
- PENDING   -> CONFIRMED  payment_succeeded
- PENDING   -> DRAFT      release_hold (payment failed or hold timed out)
               | CANCELLED   depending on RELEASED_HOLD_STATUS
- PENDING   -> CANCELLED  cancel
- CONFIRMED -> CANCELLED  cancel
- CONFIRMED -> COMPLETED  complete (check-out date reached)
- DRAFT     -> CANCELLED  expire_draft (abandoned draft past retention)

Only PENDING and CONFIRMED reservations hold the room.
"""

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from apps.bookings.domain.exceptions import InvalidStateError


class ReservationStatus(models.TextChoices):
    DRAFT = "draft", _("Draft")
    PENDING = "pending", _("Pending payment")
    CONFIRMED = "confirmed", _("Confirmed")
    CANCELLED = "cancelled", _("Cancelled")
    COMPLETED = "completed", _("Completed")


class ReservationEvent(models.TextChoices):
    CREATE = "create", _("Created")
    INITIATE_PAYMENT = "initiate_payment", _("Payment initiated")
    PAYMENT_SUCCEEDED = "payment_succeeded", _("Payment succeeded")
    RELEASE_HOLD = "release_hold", _("Hold released")
    CANCEL = "cancel", _("Cancelled")
    COMPLETE = "complete", _("Completed")
    EXPIRE_DRAFT = "expire_draft", _("Draft expired")


HOLDING_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset({ReservationStatus.CANCELLED, ReservationStatus.COMPLETED})

TRANSITIONS = {
    (ReservationStatus.DRAFT, ReservationEvent.INITIATE_PAYMENT): frozenset({ReservationStatus.PENDING}),
    (ReservationStatus.PENDING, ReservationEvent.PAYMENT_SUCCEEDED): frozenset({ReservationStatus.CONFIRMED}),
    (ReservationStatus.PENDING, ReservationEvent.RELEASE_HOLD): frozenset(
        {ReservationStatus.DRAFT, ReservationStatus.CANCELLED}
    ),
    (ReservationStatus.PENDING, ReservationEvent.CANCEL): frozenset({ReservationStatus.CANCELLED}),
    (ReservationStatus.CONFIRMED, ReservationEvent.CANCEL): frozenset({ReservationStatus.CANCELLED}),
    (ReservationStatus.CONFIRMED, ReservationEvent.COMPLETE): frozenset({ReservationStatus.COMPLETED}),
    (ReservationStatus.DRAFT, ReservationEvent.EXPIRE_DRAFT): frozenset({ReservationStatus.CANCELLED}),
}


def allowed_targets(current: str, event: str) -> frozenset:
    return TRANSITIONS.get((ReservationStatus(current), ReservationEvent(event)), frozenset())


def resolve_transition(current: str, event: str, target: str | None = None) -> ReservationStatus:
    """
    Return the status ``event`` moves a reservation in ``current`` to.

    ``target`` picks between several legal outcomes (release_hold) and
    must be given when there is more than one.

    Raises:
        InvalidStateError: the event is not allowed from ``current`` or
            ``target`` is not one of its outcomes
    """
    targets = allowed_targets(current, event)
    if not targets:
        raise InvalidStateError(
            f"Cannot {ReservationEvent(event).value} a reservation in status {ReservationStatus(current).value}",
            current=str(current),
            event=str(event),
        )
    if target is None:
        if len(targets) != 1:
            raise ValueError(f"Event {event} from {current} needs an explicit target status")
        return next(iter(targets))
    target = ReservationStatus(target)
    if target not in targets:
        raise InvalidStateError(
            f"Event {ReservationEvent(event).value} cannot move {ReservationStatus(current).value} to {target.value}",
            current=str(current),
            event=str(event),
        )
    return target


def can_transition(current: str, event: str) -> bool:
    return bool(allowed_targets(current, event))


def holds_resource(status: str) -> bool:
    return status in HOLDING_STATUSES


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES
