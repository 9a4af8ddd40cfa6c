"""Races between concurrent holds on the same room.

On PostgreSQL writers are serialised by row locks on the room. On SQLite
the database file lock does it, and the losing writer's busy error is
retried until it sees the winner's hold.
"""

from __future__ import annotations

import threading
from datetime import timedelta

from django.db import connection, transaction
from django.test import TransactionTestCase, skipUnlessDBFeature
from django.utils import timezone

from apps.bookings.domain.exceptions import ConflictError, InvalidStateError
from apps.bookings.domain.state_machine import ReservationStatus
from apps.bookings.models import HotelBooking
from apps.hotels.models import Room

from reservation_fixtures import draft, make_coordinator, make_room, make_user, proof_for, stay


def run_concurrently(*calls):
    """Start every call at once; return what each returned or raised."""
    barrier = threading.Barrier(len(calls))
    results = [None] * len(calls)

    def worker(index, call):
        try:
            barrier.wait()
            results[index] = call()
        except Exception as exc:  # noqa: BLE001
            results[index] = exc
        finally:
            connection.close()

    threads = [threading.Thread(target=worker, args=(index, call)) for index, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results


class ConcurrentHoldTests(TransactionTestCase):
    def setUp(self) -> None:
        self.coordinator = make_coordinator(TRANSIENT_RETRY_ATTEMPTS=5, TRANSIENT_RETRY_BACKOFF=0.2)
        self.room = make_room()

    def test_only_one_overlapping_hold_wins(self) -> None:
        dates = stay(days_ahead=20, nights=3)
        contenders = [
            draft(self.coordinator, make_user(f"guest{index}"), self.room, dates)
            for index in range(4)
        ]

        results = run_concurrently(
            *[lambda pk=reservation.pk: self.coordinator.initiate_payment(pk) for reservation in contenders]
        )

        failures = [result for result in results if isinstance(result, Exception)]
        self.assertEqual(len(failures), 3, results)
        self.assertTrue(all(isinstance(result, ConflictError) for result in failures), results)
        self.assertEqual(HotelBooking.objects.filter(status=ReservationStatus.PENDING).count(), 1)

    def test_confirmation_racing_the_sweep(self) -> None:
        reservation = draft(self.coordinator, make_user("guest"), self.room, stay())
        intent = self.coordinator.initiate_payment(reservation.pk)
        proof = proof_for(self.coordinator.gateway, intent.intent_ref)
        later = timezone.now() + timedelta(minutes=16)

        settle, released = run_concurrently(
            lambda: self.coordinator.settle_payment(reservation.pk, proof),
            lambda: self.coordinator.release_expired_holds(now=later),
        )

        status = HotelBooking.objects.get(pk=reservation.pk).status
        if status == ReservationStatus.CONFIRMED:
            self.assertEqual(released, 0)
        else:
            self.assertEqual(status, ReservationStatus.DRAFT)
            self.assertEqual(released, 1)
            self.assertIsInstance(settle, InvalidStateError)

    @skipUnlessDBFeature("has_select_for_update")
    def test_locked_room_does_not_block_other_rooms(self) -> None:
        other_room = make_room()
        reservation = draft(self.coordinator, make_user("guest"), other_room, stay())
        locked = threading.Event()
        finished = threading.Event()

        def hold_room_lock():
            try:
                with transaction.atomic():
                    Room.objects.select_for_update().get(pk=self.room.pk)
                    locked.set()
                    finished.wait(timeout=10)
            finally:
                connection.close()

        holder = threading.Thread(target=hold_room_lock)
        holder.start()
        try:
            self.assertTrue(locked.wait(timeout=10))
            intent = self.coordinator.initiate_payment(reservation.pk)
        finally:
            finished.set()
            holder.join(timeout=10)

        self.assertTrue(intent.intent_ref)
        self.assertEqual(HotelBooking.objects.get(pk=reservation.pk).status, ReservationStatus.PENDING)
