"""Map reservation errors to HTTP responses."""

from __future__ import annotations

from rest_framework import status  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler  # type: ignore

from shared.domain.exceptions import TransientStoreError

from .domain.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    PaymentGatewayError,
    PermissionDeniedError,
    ValidationError,
)

RETRY_AFTER_SECONDS = 1


def reservation_exception_handler(exc, context):
    """DRF exception handler that understands the reservation error taxonomy."""
    if isinstance(exc, ValidationError):
        return Response(exc.as_dict(), status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, PermissionDeniedError):
        return Response({"detail": str(exc)}, status=status.HTTP_403_FORBIDDEN)
    if isinstance(exc, NotFoundError):
        return Response({"detail": str(exc)}, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, ConflictError):
        return Response(
            {"detail": str(exc), "code": "conflict"},
            status=status.HTTP_409_CONFLICT,
        )
    if isinstance(exc, InvalidStateError):
        return Response(
            {"detail": str(exc), "code": "invalid_state", "status": exc.current},
            status=status.HTTP_409_CONFLICT,
        )
    if isinstance(exc, TransientStoreError):
        response = Response(
            {"detail": "Service busy, please retry.", "code": "transient"},
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
        response["Retry-After"] = str(RETRY_AFTER_SECONDS)
        return response
    if isinstance(exc, PaymentGatewayError):
        return Response(
            {"detail": "Payment provider error, please retry.", "code": "payment_gateway"},
            status=status.HTTP_502_BAD_GATEWAY,
        )
    return exception_handler(exc, context)
