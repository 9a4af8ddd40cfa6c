"""
Reservation Coordinator

The only writer of reservation state. Every operation runs in one unit
of work that locks the room row first, re-reads the reservation under
that lock, re-runs the conflict check where the transition takes the
room, and writes the reservation, its booking envelope, the payment
record and an audit row before committing.

Lock order is always Room -> HotelBooking -> Booking -> Payment.

Calls to the payment collaborator never happen inside a transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable

from django.db import DEFAULT_DB_ALIAS, IntegrityError  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.conf import EngineConfig, get_engine_config
from apps.bookings.domain.events import (
    ReservationCancelled,
    ReservationCompleted,
    ReservationConfirmed,
    ReservationDrafted,
    ReservationHeld,
    ReservationHoldReleased,
)
from apps.bookings.domain.exceptions import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from apps.bookings.domain.state_machine import ReservationEvent, ReservationStatus, resolve_transition
from apps.bookings.domain.validation import DraftRequest, GuestDetails, validate_draft_request
from apps.bookings.application.retry import run_with_retries
from apps.bookings.models import Booking, CancellationSource, Guest, HotelBooking, ReservationStatusChange
from apps.bookings.services import conflicting_ids
from apps.finances.gateways import PaymentGateway, PaymentIntent, PaymentProof, build_payment_gateway
from apps.finances.models import Payment
from apps.hotels.models import Room
from shared.application.uow import DjangoUnitOfWork, is_exclusion_violation
from shared.domain.value_objects import DateRange, Money

logger = logging.getLogger(__name__)

RefundDecision = Callable[[HotelBooking, "Payment | None"], Decimal]


@dataclass(frozen=True)
class PaymentSettlement:
    reservation: HotelBooking
    succeeded: bool
    reason: str = ""


@dataclass(frozen=True)
class CancellationOutcome:
    reservation: HotelBooking
    previous_status: str
    refund_amount: Decimal
    payment: Payment | None


class ReservationCoordinator:
    """
    Usage:
        coordinator = ReservationCoordinator.from_settings()
        reservation = coordinator.create_draft(user, room.id, DateRange(...), 2, guests)
        intent = coordinator.initiate_payment(reservation.id)
        coordinator.settle_payment(reservation.id, PaymentProof(payment_ref, signature))
    """

    def __init__(
        self,
        gateway: PaymentGateway,
        *,
        using: str = DEFAULT_DB_ALIAS,
        config: EngineConfig | None = None,
        bus=None,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.gateway = gateway
        self.using = using
        self.config = config or get_engine_config()
        self.bus = bus
        self.clock = clock

    @classmethod
    def from_settings(cls, **kwargs) -> "ReservationCoordinator":
        return cls(build_payment_gateway(), **kwargs)

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _unit_of_work(self) -> DjangoUnitOfWork:
        return DjangoUnitOfWork(using=self.using, bus=self.bus, lock_timeout=self.config.lock_timeout)

    def run_in_transaction(self, work):
        """Run ``work(uow)`` in a unit of work, retrying transient store failures."""

        def attempt():
            try:
                with self._unit_of_work() as uow:
                    return work(uow)
            except IntegrityError as exc:
                if is_exclusion_violation(exc):
                    raise ConflictError("Room is no longer available for the selected dates") from exc
                raise

        return run_with_retries(
            attempt,
            attempts=self.config.transient_retry_attempts,
            backoff=self.config.transient_retry_backoff,
        )

    def _today(self) -> date:
        return timezone.localdate(self.clock())

    def _room_id_of(self, reservation_id) -> int:
        room_id = (
            HotelBooking.objects.using(self.using)
            .filter(pk=reservation_id)
            .values_list("room_id", flat=True)
            .first()
        )
        if room_id is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return room_id

    def _lock(self, uow: DjangoUnitOfWork, reservation_id):
        """Lock room, reservation and booking, in that order."""
        room_id = self._room_id_of(reservation_id)
        room = uow.lock(Room.objects.filter(pk=room_id)).get()
        reservation = uow.lock(HotelBooking.objects.filter(pk=reservation_id)).get()
        booking = uow.lock(Booking.objects.filter(pk=reservation.booking_id)).get()
        reservation.room = room
        reservation.booking = booking
        return reservation, booking

    def _lock_payment(self, uow: DjangoUnitOfWork, booking: Booking) -> Payment | None:
        return uow.lock(Payment.objects.filter(booking_id=booking.pk)).first()

    def _ensure_no_conflicts(self, reservation: HotelBooking) -> None:
        blocking = conflicting_ids(
            reservation.room_id,
            reservation.check_in,
            reservation.check_out,
            exclude_reservation_id=reservation.pk,
            using=self.using,
        )
        if blocking:
            logger.warning(
                f"Reservation {reservation.pk} conflicts on room {reservation.room_id} "
                f"with {', '.join(str(pk) for pk in blocking)}"
            )
            raise ConflictError("Room is not available for the selected dates", blocking_ids=blocking)

    def _transition(
        self,
        reservation: HotelBooking,
        booking: Booking,
        event: str,
        *,
        target: str | None = None,
        reason: str = "",
        actor=None,
        **changes,
    ) -> str:
        """
        Move reservation and booking to the status ``event`` leads to.

        Both rows and the audit entry are written in the caller's
        transaction. Returns the previous status.
        """
        new_status = resolve_transition(reservation.status, event, target)
        now = self.clock()
        previous = reservation.status

        reservation.status = new_status
        reservation.status_changed_at = now
        for name, value in changes.items():
            setattr(reservation, name, value)
        reservation.save(
            using=self.using,
            update_fields=["status", "status_changed_at", "updated_at", *changes.keys()],
        )

        booking.status = new_status
        booking.save(using=self.using, update_fields=["status", "updated_at"])

        ReservationStatusChange.objects.using(self.using).create(
            reservation=reservation,
            from_status=previous,
            to_status=new_status,
            event=event,
            reason=reason[:255],
            actor=actor if getattr(actor, "pk", None) else None,
            created_at=now,
        )
        logger.info(f"Reservation {reservation.pk}: {previous} -> {new_status} ({event})")
        return previous

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, reservation_id) -> HotelBooking:
        reservation = (
            HotelBooking.objects.using(self.using)
            .select_related("booking", "booking__payment", "hotel", "hotel__vendor", "room")
            .prefetch_related("guests")
            .filter(pk=reservation_id)
            .first()
        )
        if reservation is None:
            raise NotFoundError(f"Reservation {reservation_id} not found")
        return reservation

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    def create_draft(
        self,
        customer,
        room_id,
        interval,
        party_size: int,
        guest_details: Iterable[GuestDetails],
        special_requests: str = "",
    ) -> HotelBooking:
        """
        Capture a booking request as a DRAFT reservation.

        ``interval`` is a DateRange or a ``(check_in, check_out)`` pair.
        DRAFT reservations do not hold the room, so no conflict check is
        made here.
        """
        if isinstance(interval, DateRange):
            check_in, check_out = interval.start_date, interval.end_date
        else:
            check_in, check_out = interval

        room = (
            Room.objects.using(self.using)
            .select_related("hotel", "hotel__vendor")
            .filter(pk=room_id)
            .first()
        )
        if room is None:
            raise ValidationError(f"Room {room_id} not found", field="room_id")
        if not room.is_bookable:
            raise ValidationError("Room is not available for booking", field="room_id")

        request = DraftRequest(
            room_id=room.pk,
            check_in=check_in,
            check_out=check_out,
            party_size=party_size,
            guest_details=tuple(guest_details),
            special_requests=special_requests or "",
        )
        stay = validate_draft_request(request, room_capacity=room.capacity, today=self._today())

        vendor = room.hotel.vendor
        currency = self.config.currency
        total = Money(room.base_price, currency) * stay.nights
        commission_rate = vendor.commission_rate or self.config.default_commission_rate
        commission = total.percentage(commission_rate)

        def work(uow):
            now = self.clock()
            booking = Booking.objects.using(self.using).create(
                user=customer,
                vendor=vendor,
                booking_type=Booking.BookingType.HOTEL,
                total_amount=total.amount,
                commission_amount=commission.amount,
                currency=currency,
                status=ReservationStatus.DRAFT,
                booking_date=now,
            )
            reservation = HotelBooking.objects.using(self.using).create(
                booking=booking,
                hotel=room.hotel,
                room=room,
                check_in=stay.start_date,
                check_out=stay.end_date,
                number_of_guests=request.party_size,
                total_amount=total.amount,
                status=ReservationStatus.DRAFT,
                special_requests=request.special_requests,
                status_changed_at=now,
            )
            Guest.objects.using(self.using).bulk_create(
                [
                    Guest(
                        reservation=reservation,
                        first_name=guest.first_name.strip(),
                        last_name=guest.last_name.strip(),
                        age=guest.age,
                        id_proof_type=guest.id_proof_type,
                        id_proof_number=guest.id_proof_number,
                        is_primary_guest=guest.is_primary,
                        special_requests=guest.special_requests,
                    )
                    for guest in request.guest_details
                ]
            )
            ReservationStatusChange.objects.using(self.using).create(
                reservation=reservation,
                from_status="",
                to_status=ReservationStatus.DRAFT,
                event=ReservationEvent.CREATE,
                actor=customer if getattr(customer, "pk", None) else None,
                created_at=now,
            )
            uow.add_event(
                ReservationDrafted(
                    aggregate_id=reservation.pk,
                    reservation_id=reservation.pk,
                    room_id=room.pk,
                    dates=stay,
                )
            )
            return reservation

        reservation = self.run_in_transaction(work)
        logger.info(
            f"Draft reservation {reservation.pk} created for room {room.pk}, "
            f"{stay}, total {total}"
        )
        return reservation

    # ------------------------------------------------------------------
    # initiate-payment
    # ------------------------------------------------------------------

    def initiate_payment(self, reservation_id) -> PaymentIntent:
        """
        DRAFT -> PENDING: hold the room while the guest pays.

        Conflicts are checked once without locks to avoid opening a
        payment intent for a room that is obviously taken, then again
        under the room lock right before the transition is written.
        """
        reservation = self.get(reservation_id)
        resolve_transition(reservation.status, ReservationEvent.INITIATE_PAYMENT)
        self._ensure_no_conflicts(reservation)

        intent = self.gateway.create_intent(
            reservation.total_amount,
            self.config.currency,
            {
                "receipt": reservation.public_reference,
                "reservation_id": str(reservation.pk),
            },
        )

        def work(uow):
            locked, booking = self._lock(uow, reservation_id)
            resolve_transition(locked.status, ReservationEvent.INITIATE_PAYMENT)
            self._ensure_no_conflicts(locked)

            hold_expires_at = self.clock() + self.config.hold_duration
            self._transition(
                locked,
                booking,
                ReservationEvent.INITIATE_PAYMENT,
                hold_expires_at=hold_expires_at,
            )

            payment = self._lock_payment(uow, booking)
            total = Money(booking.total_amount, booking.currency)
            commission = Money(booking.commission_amount, booking.currency)
            fields = {
                "vendor_id": booking.vendor_id,
                "status": Payment.Status.PENDING,
                "method": self.gateway.name,
                "amount": total.amount,
                "commission_amount": commission.amount,
                "vendor_amount": (total - commission).amount,
                "currency": booking.currency,
                "intent_ref": intent.intent_ref,
                "failure_reason": "",
            }
            if payment is None:
                payment = Payment.objects.using(self.using).create(booking=booking, **fields)
            else:
                if payment.status == Payment.Status.SUCCESS:
                    raise InvalidStateError(
                        "Booking already has a successful payment",
                        current=locked.status,
                        event=ReservationEvent.INITIATE_PAYMENT,
                    )
                for name, value in fields.items():
                    setattr(payment, name, value)
                payment.save(using=self.using)
            payment.log("intent_created", {"intent_ref": intent.intent_ref, "provider": intent.provider})

            uow.add_event(
                ReservationHeld(
                    aggregate_id=locked.pk,
                    reservation_id=locked.pk,
                    room_id=locked.room_id,
                    dates=locked.interval,
                    intent_ref=intent.intent_ref,
                    hold_expires_at=hold_expires_at.isoformat(),
                )
            )

        self.run_in_transaction(work)
        return intent

    # ------------------------------------------------------------------
    # confirm-payment
    # ------------------------------------------------------------------

    def confirm_payment(self, reservation_id, external_transaction_ref: str) -> HotelBooking:
        """
        PENDING -> CONFIRMED.

        Confirming an already CONFIRMED reservation with the same
        transaction reference returns it unchanged. A different reference
        is an InvalidStateError.
        """
        if not external_transaction_ref:
            raise ValidationError("Transaction reference is required", field="transaction_ref")

        def work(uow):
            reservation, booking = self._lock(uow, reservation_id)
            payment = self._lock_payment(uow, booking)

            if reservation.status == ReservationStatus.CONFIRMED:
                if payment is not None and payment.transaction_id == external_transaction_ref:
                    return reservation
                raise InvalidStateError(
                    "Reservation is already confirmed with a different transaction",
                    current=reservation.status,
                    event=ReservationEvent.PAYMENT_SUCCEEDED,
                )

            resolve_transition(reservation.status, ReservationEvent.PAYMENT_SUCCEEDED)
            self._ensure_no_conflicts(reservation)

            now = self.clock()
            self._transition(
                reservation,
                booking,
                ReservationEvent.PAYMENT_SUCCEEDED,
                confirmed_at=now,
                hold_expires_at=None,
            )
            if payment is not None:
                payment.status = Payment.Status.SUCCESS
                payment.transaction_id = external_transaction_ref
                payment.processed_at = now
                payment.failure_reason = ""
                payment.save(
                    using=self.using,
                    update_fields=["status", "transaction_id", "processed_at", "failure_reason", "updated_at"],
                )
                payment.log("payment_succeeded", {"transaction_id": external_transaction_ref})

            uow.add_event(
                ReservationConfirmed(
                    aggregate_id=reservation.pk,
                    reservation_id=reservation.pk,
                    room_id=reservation.room_id,
                    dates=reservation.interval,
                    transaction_ref=external_transaction_ref,
                )
            )
            return reservation

        return self.run_in_transaction(work)

    def settle_payment(self, reservation_id, proof: PaymentProof) -> PaymentSettlement:
        """
        Ask the payment collaborator for a verdict and apply it.

        Success confirms the reservation. Failure releases the hold. A
        successful payment for a hold that was already released is
        flagged on the payment for manual reconciliation and the
        InvalidStateError is re-raised.
        """
        reservation = self.get(reservation_id)
        payment = getattr(reservation.booking, "payment", None)
        if payment is None or not payment.intent_ref:
            raise InvalidStateError(
                "No payment was initiated for this reservation",
                current=reservation.status,
                event=ReservationEvent.PAYMENT_SUCCEEDED,
            )

        verdict = self.gateway.verify(payment.intent_ref, proof)

        if verdict.succeeded:
            try:
                reservation = self.confirm_payment(reservation_id, verdict.transaction_ref)
            except InvalidStateError:
                self._flag_late_payment(payment.pk, verdict.transaction_ref)
                raise
            return PaymentSettlement(reservation, True)

        logger.warning(f"Payment for reservation {reservation_id} failed verification: {verdict.reason}")
        if reservation.status == ReservationStatus.PENDING:
            reservation = self.release_hold(reservation_id, reason=f"payment failed: {verdict.reason}")
        return PaymentSettlement(reservation, False, verdict.reason)

    def _flag_late_payment(self, payment_id: int, transaction_ref: str) -> None:
        def work(uow):
            payment = uow.lock(Payment.objects.filter(pk=payment_id)).get()
            payment.refund_status = Payment.RefundStatus.MANUAL_REVIEW
            payment.refund_last_error = "payment captured after the hold was released"
            payment.metadata = {**payment.metadata, "late_transaction_id": transaction_ref}
            payment.save(using=self.using, update_fields=["refund_status", "refund_last_error", "metadata", "updated_at"])
            payment.log("late_payment", {"transaction_id": transaction_ref}, status="manual_review")

        self.run_in_transaction(work)
        logger.error(f"Payment {transaction_ref} arrived after its hold was released; flagged for reconciliation")

    # ------------------------------------------------------------------
    # release-hold
    # ------------------------------------------------------------------

    def _release(self, uow, reservation, booking, reason: str) -> None:
        target = self.config.released_hold_status
        changes = {"hold_expires_at": None}
        if target == ReservationStatus.CANCELLED:
            changes.update(
                cancelled_at=self.clock(),
                cancellation_source=CancellationSource.SYSTEM,
                cancellation_reason=reason[:255],
            )
        self._transition(reservation, booking, ReservationEvent.RELEASE_HOLD, target=target, reason=reason, **changes)

        payment = self._lock_payment(uow, booking)
        if payment is not None and payment.status == Payment.Status.PENDING:
            payment.status = Payment.Status.FAILED
            payment.failure_reason = reason[:255]
            payment.save(using=self.using, update_fields=["status", "failure_reason", "updated_at"])
            payment.log("hold_released", {"reason": reason})

        uow.add_event(
            ReservationHoldReleased(
                aggregate_id=reservation.pk,
                reservation_id=reservation.pk,
                room_id=reservation.room_id,
                new_status=str(reservation.status),
                reason=reason,
            )
        )

    def release_hold(self, reservation_id, reason: str) -> HotelBooking:
        """PENDING -> RELEASED_HOLD_STATUS (DRAFT unless configured otherwise)."""

        def work(uow):
            reservation, booking = self._lock(uow, reservation_id)
            self._release(uow, reservation, booking, reason)
            return reservation

        return self.run_in_transaction(work)

    def release_expired_holds(self, now: datetime | None = None) -> int:
        """
        Release every PENDING hold whose payment window has passed.

        Each reservation is re-read under lock, so a confirmation that
        committed first wins and the reservation is skipped.
        """
        now = now or self.clock()
        candidates = list(
            HotelBooking.objects.using(self.using)
            .filter(status=ReservationStatus.PENDING, hold_expires_at__lte=now)
            .values_list("pk", flat=True)
        )
        released = 0
        for reservation_id in candidates:

            def work(uow, reservation_id=reservation_id):
                reservation, booking = self._lock(uow, reservation_id)
                if reservation.status != ReservationStatus.PENDING:
                    return False
                if reservation.hold_expires_at is None or reservation.hold_expires_at > now:
                    return False
                self._release(uow, reservation, booking, "hold expired")
                return True

            if self.run_in_transaction(work):
                released += 1
        if released:
            logger.info(f"Released {released} expired holds")
        return released

    # ------------------------------------------------------------------
    # cancel
    # ------------------------------------------------------------------

    def cancel(
        self,
        reservation_id,
        *,
        source: str,
        reason: str = "",
        actor=None,
        refund_for: RefundDecision | None = None,
    ) -> CancellationOutcome:
        """
        PENDING | CONFIRMED -> CANCELLED.

        ``refund_for(reservation, payment)`` is evaluated under the lock
        and only for a payment that succeeded. The refund itself is not
        issued here.
        """

        def work(uow):
            reservation, booking = self._lock(uow, reservation_id)
            resolve_transition(reservation.status, ReservationEvent.CANCEL)
            payment = self._lock_payment(uow, booking)

            refund_amount = Decimal("0.00")
            if payment is not None and payment.is_paid and refund_for is not None:
                refund_amount = Decimal(refund_for(reservation, payment))
                refund_amount = max(Decimal("0.00"), min(refund_amount, payment.amount))

            previous = self._transition(
                reservation,
                booking,
                ReservationEvent.CANCEL,
                reason=reason,
                actor=actor,
                hold_expires_at=None,
                cancelled_at=self.clock(),
                cancellation_source=source,
                cancellation_reason=reason[:255],
            )

            if payment is not None:
                if payment.status == Payment.Status.PENDING:
                    payment.status = Payment.Status.FAILED
                    payment.failure_reason = "reservation cancelled"
                elif payment.is_paid:
                    payment.refund_amount = refund_amount
                    payment.refund_status = (
                        Payment.RefundStatus.PENDING if refund_amount > 0 else Payment.RefundStatus.NOT_REQUIRED
                    )
                payment.save(using=self.using)
                payment.log("reservation_cancelled", {"refund_amount": str(refund_amount), "source": source})

            uow.add_event(
                ReservationCancelled(
                    aggregate_id=reservation.pk,
                    reservation_id=reservation.pk,
                    room_id=reservation.room_id,
                    previous_status=str(previous),
                    source=source,
                    refund_amount=refund_amount,
                )
            )
            return CancellationOutcome(reservation, str(previous), refund_amount, payment)

        return self.run_in_transaction(work)

    # ------------------------------------------------------------------
    # completion and draft expiry
    # ------------------------------------------------------------------

    def mark_completed_if_elapsed(self, reservation_id, today: date | None = None) -> HotelBooking:
        """
        CONFIRMED -> COMPLETED once the check-out date is reached.

        Idempotent: anything else (already completed, not yet elapsed,
        never confirmed) is returned unchanged.
        """
        today = today or self._today()

        def work(uow):
            reservation, booking = self._lock(uow, reservation_id)
            if reservation.status != ReservationStatus.CONFIRMED or today < reservation.check_out:
                return reservation
            self._transition(reservation, booking, ReservationEvent.COMPLETE, completed_at=self.clock())
            uow.add_event(
                ReservationCompleted(
                    aggregate_id=reservation.pk,
                    reservation_id=reservation.pk,
                    room_id=reservation.room_id,
                )
            )
            return reservation

        return self.run_in_transaction(work)

    def complete_elapsed_reservations(self, today: date | None = None) -> int:
        today = today or self._today()
        candidates = list(
            HotelBooking.objects.using(self.using)
            .filter(status=ReservationStatus.CONFIRMED, check_out__lte=today)
            .values_list("pk", flat=True)
        )
        completed = 0
        for reservation_id in candidates:
            if self.mark_completed_if_elapsed(reservation_id, today).status == ReservationStatus.COMPLETED:
                completed += 1
        if completed:
            logger.info(f"Completed {completed} reservations")
        return completed

    def expire_abandoned_drafts(self, now: datetime | None = None) -> int:
        """
        Cancel DRAFT reservations untouched for DRAFT_RETENTION.

        Nothing is deleted. Does nothing when no retention is configured.
        """
        retention = self.config.draft_retention
        if retention is None:
            return 0
        now = now or self.clock()
        cutoff = now - retention
        candidates = list(
            HotelBooking.objects.using(self.using)
            .filter(status=ReservationStatus.DRAFT, status_changed_at__lte=cutoff)
            .values_list("pk", flat=True)
        )
        expired = 0
        for reservation_id in candidates:

            def work(uow, reservation_id=reservation_id):
                reservation, booking = self._lock(uow, reservation_id)
                if reservation.status != ReservationStatus.DRAFT or reservation.status_changed_at > cutoff:
                    return False
                self._transition(
                    reservation,
                    booking,
                    ReservationEvent.EXPIRE_DRAFT,
                    reason="draft abandoned",
                    cancelled_at=now,
                    cancellation_source=CancellationSource.SYSTEM,
                    cancellation_reason="draft abandoned",
                )
                return True

            if self.run_in_transaction(work):
                expired += 1
        if expired:
            logger.info(f"Expired {expired} abandoned drafts")
        return expired
