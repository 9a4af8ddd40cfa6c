"""
Reservation error taxonomy.

Every error a reservation operation can raise deliberately derives from
ReservationError, except TransientStoreError which is shared with the
unit of work.
"""

from shared.domain.exceptions import DomainError, TransientStoreError

__all__ = [
    "ReservationError",
    "ValidationError",
    "ConflictError",
    "InvalidStateError",
    "NotFoundError",
    "PermissionDeniedError",
    "PaymentGatewayError",
    "TransientStoreError",
]


class ReservationError(DomainError):
    """Base class for reservation errors."""


class ValidationError(ReservationError):
    """Malformed input. Never retried automatically."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def as_dict(self) -> dict:
        return {self.field or "non_field_errors": [self.message]}


class ConflictError(ReservationError):
    """
    The requested interval overlaps a held or confirmed reservation.

    Only the ids of the blocking reservations are carried, for
    diagnostics.
    """

    def __init__(self, message: str, blocking_ids=()):
        super().__init__(message)
        self.blocking_ids = tuple(str(pk) for pk in blocking_ids)


class InvalidStateError(ReservationError):
    """Transition attempted from a state that does not allow it."""

    def __init__(self, message: str, current: str | None = None, event: str | None = None):
        super().__init__(message)
        self.current = current
        self.event = event


class NotFoundError(ReservationError):
    pass


class PermissionDeniedError(ReservationError):
    pass


class PaymentGatewayError(ReservationError):
    """The payment collaborator failed or answered with an error."""

    retryable = True
