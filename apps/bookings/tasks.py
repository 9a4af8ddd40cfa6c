"""Celery tasks for the reservation engine."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from shared.domain.exceptions import TransientStoreError

from .application.cancellation import CancellationService
from .application.coordinator import ReservationCoordinator

logger = logging.getLogger(__name__)


def _coordinator() -> ReservationCoordinator:
    return ReservationCoordinator.from_settings()


# ============================================================================
# PERIODIC TASKS (scheduled by Celery Beat)
# ============================================================================

@shared_task(
    name="bookings.release_expired_holds",
    autoretry_for=(TransientStoreError,),
    retry_backoff=True,
    max_retries=3,
)
def release_expired_holds() -> dict[str, int]:
    """
    Release PENDING holds whose payment window has passed.

    Runs every minute. Each hold is re-checked under the room lock, so a
    confirmation racing the sweep either commits first and is kept or
    finds the reservation already released.

    Returns:
        dict: {"released": number of holds released}
    """
    released = _coordinator().release_expired_holds()
    return {"released": released}


@shared_task(
    name="bookings.complete_elapsed_reservations",
    autoretry_for=(TransientStoreError,),
    retry_backoff=True,
    max_retries=3,
)
def complete_elapsed_reservations() -> dict[str, int]:
    """
    Move CONFIRMED reservations whose check-out date has come to COMPLETED.

    Returns:
        dict: {"completed": number of reservations completed}
    """
    completed = _coordinator().complete_elapsed_reservations()
    return {"completed": completed}


@shared_task(
    name="bookings.expire_abandoned_drafts",
    autoretry_for=(TransientStoreError,),
    retry_backoff=True,
    max_retries=3,
)
def expire_abandoned_drafts() -> dict[str, int]:
    """
    Cancel drafts untouched for RESERVATION_ENGINE["DRAFT_RETENTION"].

    Returns:
        dict: {"expired": number of drafts cancelled}
    """
    expired = _coordinator().expire_abandoned_drafts()
    return {"expired": expired}


# ============================================================================
# ON DEMAND
# ============================================================================

@shared_task(
    name="bookings.retry_refund",
    autoretry_for=(TransientStoreError,),
    retry_backoff=True,
    max_retries=3,
)
def retry_refund(payment_id: int) -> dict[str, str]:
    """Re-attempt a failed refund; escalates to manual review after REFUND_MAX_ATTEMPTS."""
    payment = CancellationService(_coordinator()).retry_refund(payment_id)
    logger.info(f"Refund retry for payment {payment_id} finished with status {payment.refund_status}")
    return {"refund_status": payment.refund_status}
