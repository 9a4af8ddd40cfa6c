"""
Reservation Domain Events

Published through the message bus after the transaction that produced
them commits. Events carry ids and amounts only, never guest personal
data.
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from shared.domain.base import DomainEvent
from shared.domain.value_objects import DateRange


@dataclass
class ReservationDrafted(DomainEvent):
    """A booking request was captured as a DRAFT (no hold)."""
    reservation_id: UUID
    room_id: int
    dates: DateRange


@dataclass
class ReservationHeld(DomainEvent):
    """
    Event: DRAFT -> PENDING

    The room is held until ``hold_expires_at`` while payment is collected.
    """
    reservation_id: UUID
    room_id: int
    dates: DateRange
    intent_ref: str
    hold_expires_at: str


@dataclass
class ReservationConfirmed(DomainEvent):
    """Event: PENDING -> CONFIRMED after the payment succeeded."""
    reservation_id: UUID
    room_id: int
    dates: DateRange
    transaction_ref: str


@dataclass
class ReservationHoldReleased(DomainEvent):
    """Event: PENDING -> DRAFT or CANCELLED, the room is free again."""
    reservation_id: UUID
    room_id: int
    new_status: str
    reason: str


@dataclass
class ReservationCancelled(DomainEvent):
    reservation_id: UUID
    room_id: int
    previous_status: str
    source: str
    refund_amount: Decimal


@dataclass
class ReservationCompleted(DomainEvent):
    reservation_id: UUID
    room_id: int


@dataclass
class RefundFailed(DomainEvent):
    """
    Event: the payment collaborator rejected a refund

    Triggers:
    - Schedule a retry (bookings.retry_refund)
    """
    payment_id: int
    reservation_id: UUID
    attempts: int
    error: str
