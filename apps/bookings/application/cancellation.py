"""
Cancellation & Refund Orchestrator

Cancels through the coordinator first, then asks the payment
collaborator for the refund outside any transaction. The reservation is
CANCELLED whatever the refund outcome; refund progress lives on the
payment (refund_status) and failed refunds are retried until they are
escalated to manual review.
"""

import logging
from decimal import Decimal

from django.utils import timezone

from apps.bookings.application.coordinator import CancellationOutcome, ReservationCoordinator
from apps.bookings.domain.events import RefundFailed
from apps.bookings.domain.exceptions import (
    NotFoundError,
    PaymentGatewayError,
    PermissionDeniedError,
    TransientStoreError,
)
from apps.bookings.domain.refund_policy import calculate_refund, rules_for_policy
from apps.bookings.models import CancellationSource, HotelBooking
from apps.finances.models import Payment

logger = logging.getLogger(__name__)


def cancellation_source_for(reservation: HotelBooking, actor) -> str:
    """
    Who is cancelling: the guest who booked, the vendor owning the
    hotel, or platform staff (recorded as system).

    Raises:
        PermissionDeniedError: the actor has no say over the reservation
    """
    if actor is None or not getattr(actor, "is_authenticated", False):
        raise PermissionDeniedError("Authentication required to cancel a reservation")
    if reservation.booking.user_id == actor.pk:
        return CancellationSource.GUEST
    vendor = reservation.hotel.vendor
    if vendor.user_id == actor.pk:
        return CancellationSource.VENDOR
    if actor.is_staff:
        return CancellationSource.SYSTEM
    raise PermissionDeniedError("Only the guest, the hotel's vendor or staff may cancel this reservation")


def refund_idempotency_key(payment: Payment) -> str:
    return f"refund_{payment.pk}"


class CancellationService:
    def __init__(self, coordinator: ReservationCoordinator):
        self.coordinator = coordinator

    @property
    def gateway(self):
        return self.coordinator.gateway

    @property
    def config(self):
        return self.coordinator.config

    def refund_decision(self, source: str):
        """
        Build the refund callable the coordinator evaluates under lock.

        Guests get what the hotel's cancellation policy allows. Vendor
        and staff cancellations refund the full amount paid.
        """

        def decide(reservation: HotelBooking, payment: Payment) -> Decimal:
            if source != CancellationSource.GUEST:
                return payment.amount
            rules = rules_for_policy(reservation.hotel.cancellation_policy)
            return calculate_refund(
                reservation.stay_starts_at(),
                self.coordinator.clock(),
                payment.amount,
                rules,
            )

        return decide

    def cancel(self, reservation_id, actor, reason: str = "") -> CancellationOutcome:
        reservation = self.coordinator.get(reservation_id)
        source = cancellation_source_for(reservation, actor)

        outcome = self.coordinator.cancel(
            reservation_id,
            source=source,
            reason=reason,
            actor=actor,
            refund_for=self.refund_decision(source),
        )
        logger.info(
            f"Reservation {reservation_id} cancelled by {source}, "
            f"refund {outcome.refund_amount}"
        )

        if outcome.payment is not None and outcome.refund_amount > 0:
            self.execute_refund(outcome.payment.pk)
        return outcome

    def execute_refund(self, payment_id: int) -> Payment:
        """
        Ask the gateway to refund what the payment record says is owed.

        Only payments in refund_status pending or failed are attempted.
        A gateway failure is recorded, never raised. Every attempt for a
        payment carries the same idempotency key, so a refund the provider
        issued but we failed to record is not issued twice on retry.
        """
        payment = Payment.objects.using(self.coordinator.using).select_related("booking").filter(pk=payment_id).first()
        if payment is None:
            raise NotFoundError(f"Payment {payment_id} not found")
        if payment.refund_status not in (Payment.RefundStatus.PENDING, Payment.RefundStatus.FAILED):
            return payment

        reservation_id = payment.booking.hotel_booking.pk
        try:
            receipt = self.gateway.refund(
                payment.transaction_id,
                payment.refund_amount,
                {
                    "reservation_id": str(reservation_id),
                    "receipt": payment.booking.public_reference,
                    "idempotency_key": refund_idempotency_key(payment),
                },
            )
        except PaymentGatewayError as exc:
            return self._record_refund_failure(payment_id, reservation_id, str(exc))

        def work(uow):
            locked = uow.lock(Payment.objects.filter(pk=payment_id)).get()
            locked.refund_status = Payment.RefundStatus.SUCCEEDED
            locked.refund_ref = receipt.refund_ref
            locked.refund_attempts += 1
            locked.refund_last_error = ""
            locked.refunded_at = timezone.now()
            locked.save(using=self.coordinator.using)
            locked.log(
                "refund_succeeded",
                {"refund_ref": receipt.refund_ref, "amount": str(receipt.amount), "status": receipt.status},
                status=locked.refund_status,
            )
            return locked

        try:
            payment = self.coordinator.run_in_transaction(work)
        except TransientStoreError as exc:
            # Status stays pending/failed; the retry resends the same key and the provider dedupes.
            logger.error(
                f"Refund {receipt.refund_ref} issued for payment {payment_id} but not recorded: {exc}"
            )
            self._schedule_retry(
                RefundFailed(
                    aggregate_id=reservation_id,
                    payment_id=payment_id,
                    reservation_id=reservation_id,
                    attempts=payment.refund_attempts + 1,
                    error=f"refund {receipt.refund_ref} not recorded: {exc}",
                )
            )
            return payment
        logger.info(f"Refund {receipt.refund_ref} of {payment.refund_amount} issued for payment {payment_id}")
        return payment

    def _schedule_retry(self, event: RefundFailed) -> None:
        bus = self.coordinator.bus
        if bus is None:
            from shared.application.message_bus import message_bus as bus
        bus.publish_events([event])

    def _record_refund_failure(self, payment_id: int, reservation_id, error: str) -> Payment:
        max_attempts = self.config.refund_max_attempts

        def work(uow):
            locked = uow.lock(Payment.objects.filter(pk=payment_id)).get()
            locked.refund_attempts += 1
            locked.refund_last_error = error[:255]
            if locked.refund_attempts >= max_attempts:
                locked.refund_status = Payment.RefundStatus.MANUAL_REVIEW
            else:
                locked.refund_status = Payment.RefundStatus.FAILED
                uow.add_event(
                    RefundFailed(
                        aggregate_id=reservation_id,
                        payment_id=locked.pk,
                        reservation_id=reservation_id,
                        attempts=locked.refund_attempts,
                        error=error,
                    )
                )
            locked.save(using=self.coordinator.using)
            locked.log("refund_failed", {"error": error, "attempt": locked.refund_attempts}, status=locked.refund_status)
            return locked

        payment = self.coordinator.run_in_transaction(work)
        if payment.refund_status == Payment.RefundStatus.MANUAL_REVIEW:
            logger.error(
                f"Refund for payment {payment_id} failed {payment.refund_attempts} times, "
                f"escalated to manual review: {error}"
            )
        else:
            logger.warning(f"Refund for payment {payment_id} failed (attempt {payment.refund_attempts}): {error}")
        return payment

    def retry_refund(self, payment_id: int) -> Payment:
        return self.execute_refund(payment_id)
