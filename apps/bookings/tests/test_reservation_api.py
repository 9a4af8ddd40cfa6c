"""Integration tests for reservation API endpoints."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.conf import settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.domain.state_machine import ReservationStatus
from apps.bookings.models import HotelBooking
from apps.finances.gateways import SandboxGateway
from shared.domain.exceptions import TransientStoreError

from reservation_fixtures import make_room, make_user, stay


class ReservationAPITests(APITestCase):
    """Covers drafts, payment, conflicts, visibility and cancellation."""

    def setUp(self) -> None:
        self.guest = make_user("guest")
        self.owner = make_user("owner")
        self.room = make_room(self.owner, base_price=Decimal("3000.00"))
        self.gateway = SandboxGateway(settings.SANDBOX_GATEWAY_SECRET)
        self.client.force_authenticate(self.guest)
        self.list_url = reverse("reservation-list")

    def _payload(self, dates=None, **changes) -> dict:
        check_in, check_out = dates or stay(days_ahead=7, nights=2)
        payload = {
            "room_id": self.room.pk,
            "check_in": str(check_in),
            "check_out": str(check_out),
            "number_of_guests": 1,
            "guest_details": [
                {
                    "first_name": "Asha",
                    "last_name": "Sharma",
                    "is_primary_guest": True,
                    "age": 31,
                    "id_proof_type": "PASSPORT",
                    "id_proof_number": "P7654321",
                }
            ],
            "special_requests": "Late arrival",
        }
        payload.update(changes)
        return payload

    def _create(self, dates=None) -> dict:
        response = self.client.post(self.list_url, self._payload(dates), format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        return response.data

    def _initiate(self, reservation_id):
        return self.client.post(reverse("reservation-initiate-payment", args=[reservation_id]), format="json")

    def _verify(self, reservation_id, intent_ref, payment_ref="pay_api_0001", signature=None):
        return self.client.post(
            reverse("reservation-verify-payment", args=[reservation_id]),
            {
                "payment_ref": payment_ref,
                "signature": signature or self.gateway.sign(intent_ref, payment_ref),
            },
            format="json",
        )

    def test_guest_can_create_draft(self) -> None:
        data = self._create()

        self.assertEqual(data["status"], ReservationStatus.DRAFT)
        self.assertEqual(Decimal(data["total_amount"]), Decimal("6000.00"))
        self.assertEqual(data["nights"], 2)
        self.assertEqual(data["guests"][0]["id_proof_number"], "P7654321")
        self.assertTrue(data["reference"].startswith("BK"))

    def test_domain_validation_reports_field(self) -> None:
        payload = self._payload(number_of_guests=3)

        response = self.client.post(self.list_url, payload, format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertIn("party_size", response.data)
        self.assertFalse(HotelBooking.objects.exists())

    def test_malformed_request(self) -> None:
        response = self.client.post(self.list_url, self._payload(check_in="not-a-date"), format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertIn("check_in", response.data)

    def test_requires_authentication(self) -> None:
        self.client.force_authenticate(None)
        response = self.client.get(self.list_url)
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_full_payment_flow(self) -> None:
        reservation_id = self._create()["id"]

        initiated = self._initiate(reservation_id)
        self.assertEqual(initiated.status_code, status.HTTP_201_CREATED, initiated.data)
        self.assertEqual(initiated.data["provider"], "sandbox")
        self.assertIsNotNone(initiated.data["hold_expires_at"])

        verified = self._verify(reservation_id, initiated.data["intent_ref"])
        self.assertEqual(verified.status_code, status.HTTP_200_OK, verified.data)
        self.assertEqual(verified.data["status"], ReservationStatus.CONFIRMED)
        self.assertEqual(verified.data["payment"]["status"], "success")

    def test_forged_signature_releases_hold(self) -> None:
        reservation_id = self._create()["id"]
        intent_ref = self._initiate(reservation_id).data["intent_ref"]

        response = self._verify(reservation_id, intent_ref, signature="0" * 64)

        self.assertEqual(response.status_code, status.HTTP_402_PAYMENT_REQUIRED, response.data)
        self.assertEqual(response.data["status"], ReservationStatus.DRAFT)

    def test_second_initiate_is_a_conflict(self) -> None:
        reservation_id = self._create()["id"]
        self._initiate(reservation_id)

        response = self._initiate(reservation_id)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertEqual(response.data["code"], "invalid_state")

    def test_overlapping_hold_is_rejected(self) -> None:
        check_in, check_out = stay(days_ahead=7, nights=3)
        first = self._create((check_in, check_out))["id"]
        second = self._create((check_in + timedelta(days=1), check_out + timedelta(days=1)))["id"]
        self._initiate(first)

        response = self._initiate(second)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertEqual(response.data["code"], "conflict")

    def test_back_to_back_holds_are_allowed(self) -> None:
        check_in, check_out = stay(days_ahead=7, nights=2)
        first = self._create((check_in, check_out))["id"]
        second = self._create((check_out, check_out + timedelta(days=2)))["id"]

        self.assertEqual(self._initiate(first).status_code, status.HTTP_201_CREATED)
        self.assertEqual(self._initiate(second).status_code, status.HTTP_201_CREATED)

    def test_drafts_are_listed_only_on_request(self) -> None:
        draft_id = self._create()["id"]
        held_id = self._create(stay(days_ahead=20))["id"]
        self._initiate(held_id)

        default_ids = [item["id"] for item in self.client.get(self.list_url).data]
        draft_ids = [item["id"] for item in self.client.get(self.list_url, {"status": "draft"}).data]

        self.assertEqual(default_ids, [held_id])
        self.assertEqual(draft_ids, [draft_id])

    def test_vendor_sees_reservation_without_id_proof(self) -> None:
        reservation_id = self._create()["id"]
        self.client.force_authenticate(self.owner)

        response = self.client.get(reverse("reservation-detail", args=[reservation_id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertNotIn("id_proof_number", response.data["guests"][0])
        self.assertEqual(response.data["guests"][0]["first_name"], "Asha")

    def test_vendor_cannot_pay(self) -> None:
        reservation_id = self._create()["id"]
        self.client.force_authenticate(self.owner)

        response = self._initiate(reservation_id)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN, response.data)

    def test_strangers_cannot_see_reservation(self) -> None:
        reservation_id = self._create()["id"]
        self.client.force_authenticate(make_user("stranger"))

        detail = self.client.get(reverse("reservation-detail", args=[reservation_id]))
        listing = self.client.get(self.list_url, {"status": "draft"})

        self.assertEqual(detail.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(listing.data, [])

    def test_guest_can_cancel_confirmed_reservation(self) -> None:
        reservation_id = self._create()["id"]
        intent_ref = self._initiate(reservation_id).data["intent_ref"]
        self._verify(reservation_id, intent_ref)

        response = self.client.post(
            reverse("reservation-cancel", args=[reservation_id]),
            {"reason": "Plans changed"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], ReservationStatus.CANCELLED)
        self.assertEqual(response.data["cancellation_source"], "guest")
        self.assertEqual(response.data["payment"]["refund_status"], "succeeded")
        self.assertEqual(Decimal(response.data["payment"]["refund_amount"]), Decimal("6000.00"))

    def test_draft_cannot_be_cancelled(self) -> None:
        reservation_id = self._create()["id"]

        response = self.client.post(reverse("reservation-cancel", args=[reservation_id]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)

    def test_transient_failure_asks_client_to_retry(self) -> None:
        reservation_id = self._create()["id"]

        with mock.patch(
            "apps.bookings.application.coordinator.ReservationCoordinator.initiate_payment",
            side_effect=TransientStoreError("could not obtain lock"),
        ):
            response = self._initiate(reservation_id)

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response["Retry-After"], "1")
