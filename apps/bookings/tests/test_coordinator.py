"""Integration tests for the reservation coordinator."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.db import connection
from django.test import TestCase
from django.utils import timezone

from apps.bookings.domain.events import ReservationConfirmed, ReservationHeld, ReservationHoldReleased
from apps.bookings.domain.exceptions import ConflictError, InvalidStateError, ValidationError
from apps.bookings.domain.state_machine import ReservationStatus
from apps.bookings.models import CancellationSource, HotelBooking, ReservationStatusChange
from apps.finances.gateways import PaymentProof
from apps.finances.models import Payment

from reservation_fixtures import (
    confirmed,
    draft,
    guests,
    make_coordinator,
    make_room,
    make_user,
    proof_for,
    stay,
)


class CoordinatorTestCase(TestCase):
    def setUp(self) -> None:
        self.coordinator = make_coordinator()
        self.gateway = self.coordinator.gateway
        self.customer = make_user("guest")
        self.room = make_room(base_price=Decimal("2500.00"))
        self.dates = stay(days_ahead=10, nights=2)

    def reload(self, reservation) -> HotelBooking:
        return HotelBooking.objects.select_related("booking").get(pk=reservation.pk)


class CreateDraftTests(CoordinatorTestCase):
    def test_draft_is_priced_and_mirrored(self) -> None:
        reservation = draft(self.coordinator, self.customer, self.room, self.dates)

        reservation = self.reload(reservation)
        self.assertEqual(reservation.status, ReservationStatus.DRAFT)
        self.assertEqual(reservation.booking.status, ReservationStatus.DRAFT)
        self.assertEqual(reservation.total_amount, Decimal("5000.00"))
        self.assertEqual(reservation.booking.commission_amount, Decimal("800.00"))
        self.assertEqual(reservation.booking.user, self.customer)
        self.assertEqual(reservation.guests.count(), 1)
        self.assertEqual(reservation.status_changes.get().event, "create")

    def test_id_proof_is_encrypted_at_rest(self) -> None:
        reservation = draft(self.coordinator, self.customer, self.room, self.dates)
        guest = reservation.guests.get()
        self.assertEqual(guest.id_proof_number, "P1234567")

        with connection.cursor() as cursor:
            cursor.execute("SELECT id_proof_number FROM bookings_guest WHERE id = %s", [guest.pk])
            stored = cursor.fetchone()[0]
        self.assertNotIn("P1234567", stored)

    def test_unknown_room(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            self.coordinator.create_draft(self.customer, 999_999, self.dates, 1, guests(1))
        self.assertEqual(ctx.exception.field, "room_id")

    def test_unavailable_room(self) -> None:
        self.room.is_available = False
        self.room.save()
        with self.assertRaises(ValidationError):
            draft(self.coordinator, self.customer, self.room, self.dates)

    def test_invalid_request_writes_nothing(self) -> None:
        check_in, _ = self.dates
        with self.assertRaises(ValidationError):
            self.coordinator.create_draft(self.customer, self.room.pk, (check_in, check_in), 1, guests(1))
        self.assertFalse(HotelBooking.objects.exists())

    def test_overlapping_drafts_are_allowed(self) -> None:
        draft(self.coordinator, self.customer, self.room, self.dates)
        draft(self.coordinator, make_user("other"), self.room, self.dates)
        self.assertEqual(HotelBooking.objects.filter(status=ReservationStatus.DRAFT).count(), 2)


class InitiatePaymentTests(CoordinatorTestCase):
    def test_draft_becomes_pending_hold(self) -> None:
        reservation = draft(self.coordinator, self.customer, self.room, self.dates)
        before = timezone.now()

        intent = self.coordinator.initiate_payment(reservation.pk)

        reservation = self.reload(reservation)
        self.assertEqual(reservation.status, ReservationStatus.PENDING)
        self.assertEqual(reservation.booking.status, ReservationStatus.PENDING)
        self.assertGreaterEqual(reservation.hold_expires_at, before + timedelta(minutes=15))
        payment = Payment.objects.get(booking=reservation.booking)
        self.assertEqual(payment.status, Payment.Status.PENDING)
        self.assertEqual(payment.intent_ref, intent.intent_ref)
        self.assertEqual(payment.amount, Decimal("5000.00"))
        self.assertEqual(payment.vendor_amount, Decimal("4200.00"))

    def test_second_initiate_is_rejected(self) -> None:
        reservation = draft(self.coordinator, self.customer, self.room, self.dates)
        self.coordinator.initiate_payment(reservation.pk)
        with self.assertRaises(InvalidStateError):
            self.coordinator.initiate_payment(reservation.pk)

    def test_overlapping_hold_conflicts(self) -> None:
        first = draft(self.coordinator, self.customer, self.room, self.dates)
        check_in, check_out = self.dates
        second = draft(
            self.coordinator,
            make_user("other"),
            self.room,
            (check_in + timedelta(days=1), check_out + timedelta(days=1)),
        )
        self.coordinator.initiate_payment(first.pk)

        with self.assertRaises(ConflictError) as ctx:
            self.coordinator.initiate_payment(second.pk)

        self.assertEqual(ctx.exception.blocking_ids, (str(first.pk),))
        self.assertEqual(self.reload(second).status, ReservationStatus.DRAFT)
        self.assertFalse(Payment.objects.filter(booking_id=second.booking_id).exists())

    def test_back_to_back_holds_are_allowed(self) -> None:
        check_in, check_out = self.dates
        first = draft(self.coordinator, self.customer, self.room, (check_in, check_out))
        second = draft(self.coordinator, make_user("other"), self.room, (check_out, check_out + timedelta(days=2)))
        self.coordinator.initiate_payment(first.pk)
        self.coordinator.initiate_payment(second.pk)
        self.assertEqual(HotelBooking.objects.filter(status=ReservationStatus.PENDING).count(), 2)


class ConfirmPaymentTests(CoordinatorTestCase):
    def test_valid_payment_confirms(self) -> None:
        reservation = confirmed(self.coordinator, self.customer, self.room, self.dates, payment_ref="pay_abc")

        self.assertEqual(reservation.status, ReservationStatus.CONFIRMED)
        self.assertEqual(reservation.booking.status, ReservationStatus.CONFIRMED)
        self.assertIsNone(reservation.hold_expires_at)
        self.assertIsNotNone(reservation.confirmed_at)
        payment = Payment.objects.get(booking=reservation.booking)
        self.assertEqual(payment.status, Payment.Status.SUCCESS)
        self.assertEqual(payment.transaction_id, "pay_abc")

    def test_confirm_is_idempotent_for_the_same_transaction(self) -> None:
        reservation = confirmed(self.coordinator, self.customer, self.room, self.dates, payment_ref="pay_abc")
        changes = ReservationStatusChange.objects.filter(reservation=reservation).count()

        again = self.coordinator.confirm_payment(reservation.pk, "pay_abc")

        self.assertEqual(again.status, ReservationStatus.CONFIRMED)
        self.assertEqual(ReservationStatusChange.objects.filter(reservation=reservation).count(), changes)

    def test_confirm_with_another_transaction_is_rejected(self) -> None:
        reservation = confirmed(self.coordinator, self.customer, self.room, self.dates, payment_ref="pay_abc")
        with self.assertRaises(InvalidStateError):
            self.coordinator.confirm_payment(reservation.pk, "pay_other")

    def test_confirm_requires_a_transaction_reference(self) -> None:
        reservation = draft(self.coordinator, self.customer, self.room, self.dates)
        self.coordinator.initiate_payment(reservation.pk)
        with self.assertRaises(ValidationError):
            self.coordinator.confirm_payment(reservation.pk, "")

    def test_draft_cannot_be_confirmed(self) -> None:
        reservation = draft(self.coordinator, self.customer, self.room, self.dates)
        with self.assertRaises(InvalidStateError):
            self.coordinator.confirm_payment(reservation.pk, "pay_abc")

    def test_bad_signature_releases_the_hold(self) -> None:
        reservation = draft(self.coordinator, self.customer, self.room, self.dates)
        self.coordinator.initiate_payment(reservation.pk)

        settlement = self.coordinator.settle_payment(reservation.pk, PaymentProof("pay_abc", "forged"))

        self.assertFalse(settlement.succeeded)
        reservation = self.reload(reservation)
        self.assertEqual(reservation.status, ReservationStatus.DRAFT)
        self.assertEqual(reservation.booking.status, ReservationStatus.DRAFT)
        self.assertEqual(Payment.objects.get(booking=reservation.booking).status, Payment.Status.FAILED)

    def test_released_draft_can_be_paid_again(self) -> None:
        reservation = draft(self.coordinator, self.customer, self.room, self.dates)
        self.coordinator.initiate_payment(reservation.pk)
        self.coordinator.release_hold(reservation.pk, "payment failed")

        intent = self.coordinator.initiate_payment(reservation.pk)
        settlement = self.coordinator.settle_payment(reservation.pk, proof_for(self.gateway, intent.intent_ref))

        self.assertTrue(settlement.succeeded)
        self.assertEqual(Payment.objects.filter(booking_id=reservation.booking_id).count(), 1)

    def test_payment_after_release_is_flagged(self) -> None:
        reservation = draft(self.coordinator, self.customer, self.room, self.dates)
        intent = self.coordinator.initiate_payment(reservation.pk)
        self.coordinator.release_hold(reservation.pk, "hold expired")

        with self.assertRaises(InvalidStateError):
            self.coordinator.settle_payment(reservation.pk, proof_for(self.gateway, intent.intent_ref, "pay_late"))

        payment = Payment.objects.get(booking_id=reservation.booking_id)
        self.assertEqual(payment.refund_status, Payment.RefundStatus.MANUAL_REVIEW)
        self.assertEqual(payment.metadata["late_transaction_id"], "pay_late")
        self.assertEqual(self.reload(reservation).status, ReservationStatus.DRAFT)


class HoldExpiryTests(CoordinatorTestCase):
    def test_sweep_releases_only_expired_holds(self) -> None:
        reservation = draft(self.coordinator, self.customer, self.room, self.dates)
        self.coordinator.initiate_payment(reservation.pk)

        self.assertEqual(self.coordinator.release_expired_holds(now=timezone.now()), 0)
        released = self.coordinator.release_expired_holds(now=timezone.now() + timedelta(minutes=16))

        self.assertEqual(released, 1)
        reservation = self.reload(reservation)
        self.assertEqual(reservation.status, ReservationStatus.DRAFT)
        self.assertIsNone(reservation.hold_expires_at)

    def test_sweep_skips_confirmed_reservations(self) -> None:
        confirmed(self.coordinator, self.customer, self.room, self.dates)
        self.assertEqual(self.coordinator.release_expired_holds(now=timezone.now() + timedelta(hours=1)), 0)

    def test_released_hold_can_be_cancelled_instead(self) -> None:
        coordinator = make_coordinator(RELEASED_HOLD_STATUS="cancelled")
        reservation = draft(coordinator, self.customer, self.room, self.dates)
        coordinator.initiate_payment(reservation.pk)

        coordinator.release_expired_holds(now=timezone.now() + timedelta(minutes=16))

        reservation = self.reload(reservation)
        self.assertEqual(reservation.status, ReservationStatus.CANCELLED)
        self.assertEqual(reservation.cancellation_source, CancellationSource.SYSTEM)

    def test_released_room_can_be_held_by_someone_else(self) -> None:
        first = draft(self.coordinator, self.customer, self.room, self.dates)
        second = draft(self.coordinator, make_user("other"), self.room, self.dates)
        self.coordinator.initiate_payment(first.pk)
        self.coordinator.release_expired_holds(now=timezone.now() + timedelta(minutes=16))

        self.coordinator.initiate_payment(second.pk)

        self.assertEqual(self.reload(second).status, ReservationStatus.PENDING)


class CompletionAndExpiryTests(CoordinatorTestCase):
    def test_completes_after_check_out(self) -> None:
        reservation = confirmed(self.coordinator, self.customer, self.room, self.dates)
        check_in, check_out = self.dates

        unchanged = self.coordinator.mark_completed_if_elapsed(reservation.pk, today=check_in)
        self.assertEqual(unchanged.status, ReservationStatus.CONFIRMED)

        self.assertEqual(self.coordinator.complete_elapsed_reservations(today=check_out), 1)
        reservation = self.reload(reservation)
        self.assertEqual(reservation.status, ReservationStatus.COMPLETED)
        self.assertEqual(reservation.booking.status, ReservationStatus.COMPLETED)
        self.assertIsNotNone(reservation.completed_at)

        again = self.coordinator.mark_completed_if_elapsed(reservation.pk, today=check_out)
        self.assertEqual(again.status, ReservationStatus.COMPLETED)

    def test_completed_reservation_cannot_be_cancelled(self) -> None:
        reservation = confirmed(self.coordinator, self.customer, self.room, self.dates)
        self.coordinator.complete_elapsed_reservations(today=self.dates[1])
        with self.assertRaises(InvalidStateError):
            self.coordinator.cancel(reservation.pk, source=CancellationSource.SYSTEM)

    def test_drafts_are_kept_without_retention(self) -> None:
        draft(self.coordinator, self.customer, self.room, self.dates)
        self.assertEqual(self.coordinator.expire_abandoned_drafts(now=timezone.now() + timedelta(days=365)), 0)

    def test_abandoned_drafts_are_cancelled(self) -> None:
        coordinator = make_coordinator(DRAFT_RETENTION=timedelta(hours=24))
        stale = draft(coordinator, self.customer, self.room, self.dates)

        self.assertEqual(coordinator.expire_abandoned_drafts(now=timezone.now() + timedelta(hours=1)), 0)
        self.assertEqual(coordinator.expire_abandoned_drafts(now=timezone.now() + timedelta(hours=25)), 1)

        stale = self.reload(stale)
        self.assertEqual(stale.status, ReservationStatus.CANCELLED)
        self.assertEqual(stale.cancellation_source, CancellationSource.SYSTEM)
        self.assertTrue(HotelBooking.objects.filter(pk=stale.pk).exists())


class EventPublicationTests(CoordinatorTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.published = []
        for event_type in (ReservationHeld, ReservationConfirmed, ReservationHoldReleased):
            self.coordinator.bus.register_event_handler(event_type, self.published.append)

    def test_events_follow_commits(self) -> None:
        reservation = draft(self.coordinator, self.customer, self.room, self.dates)

        with self.captureOnCommitCallbacks(execute=True):
            intent = self.coordinator.initiate_payment(reservation.pk)
        with self.captureOnCommitCallbacks(execute=True):
            self.coordinator.settle_payment(reservation.pk, proof_for(self.gateway, intent.intent_ref))

        self.assertEqual([type(event) for event in self.published], [ReservationHeld, ReservationConfirmed])
        self.assertEqual(self.published[0].reservation_id, reservation.pk)

    def test_failed_operation_publishes_nothing(self) -> None:
        first = draft(self.coordinator, self.customer, self.room, self.dates)
        second = draft(self.coordinator, make_user("other"), self.room, self.dates)
        with self.captureOnCommitCallbacks(execute=True):
            self.coordinator.initiate_payment(first.pk)
        self.published.clear()

        with self.captureOnCommitCallbacks(execute=True) as callbacks:
            with self.assertRaises(ConflictError):
                self.coordinator.initiate_payment(second.pk)

        self.assertEqual(callbacks, [])
        self.assertEqual(self.published, [])
