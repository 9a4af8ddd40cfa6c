"""Tests for the payment gateways."""

from __future__ import annotations

from decimal import Decimal
from unittest import mock

import requests
from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings

from apps.bookings.domain.exceptions import PaymentGatewayError
from apps.finances.gateways import (
    PaymentProof,
    RazorpayGateway,
    SandboxGateway,
    build_payment_gateway,
    sign_payment,
)


def fake_response(status_code: int, body: dict | None = None, reason: str = "") -> mock.Mock:
    response = mock.Mock(status_code=status_code, reason=reason)
    response.json.return_value = body if body is not None else {}
    return response


class SandboxGatewayTests(SimpleTestCase):
    def setUp(self) -> None:
        self.gateway = SandboxGateway("secret")

    def test_intent(self) -> None:
        intent = self.gateway.create_intent(Decimal("1500.50"), "INR", {"receipt": "BK1"})
        self.assertTrue(intent.intent_ref.startswith("order_sandbox_"))
        self.assertEqual(intent.checkout["amount"], 150050)
        self.assertEqual(intent.provider, "sandbox")

    def test_signed_payment_verifies(self) -> None:
        proof = PaymentProof("pay_1", self.gateway.sign("order_1", "pay_1"))
        verdict = self.gateway.verify("order_1", proof)
        self.assertTrue(verdict.succeeded)
        self.assertEqual(verdict.transaction_ref, "pay_1")

    def test_signature_is_bound_to_the_intent(self) -> None:
        proof = PaymentProof("pay_1", self.gateway.sign("order_other", "pay_1"))
        verdict = self.gateway.verify("order_1", proof)
        self.assertFalse(verdict.succeeded)
        self.assertEqual(verdict.reason, "signature mismatch")

    def test_missing_proof(self) -> None:
        self.assertFalse(self.gateway.verify("order_1", PaymentProof("", "")).succeeded)

    def test_refund(self) -> None:
        receipt = self.gateway.refund("pay_1", Decimal("100.00"))
        self.assertTrue(receipt.refund_ref.startswith("rfnd_sandbox_"))
        self.assertEqual(receipt.amount, Decimal("100.00"))

    def test_repeated_refund_key_returns_first_receipt(self) -> None:
        first = self.gateway.refund("pay_1", Decimal("100.00"), {"idempotency_key": "refund_7"})
        again = self.gateway.refund("pay_1", Decimal("100.00"), {"idempotency_key": "refund_7"})
        other = self.gateway.refund("pay_1", Decimal("100.00"), {"idempotency_key": "refund_8"})

        self.assertEqual(again.refund_ref, first.refund_ref)
        self.assertNotEqual(other.refund_ref, first.refund_ref)


class RazorpayGatewayTests(SimpleTestCase):
    def setUp(self) -> None:
        self.session = mock.Mock(spec=requests.Session)
        self.gateway = RazorpayGateway("rzp_test_key", "rzp_secret", session=self.session, timeout=5)

    def test_create_order_in_paise(self) -> None:
        self.session.post.return_value = fake_response(200, {"id": "order_ABC", "amount": 250000})

        intent = self.gateway.create_intent(Decimal("2500.00"), "INR", {"receipt": "BKDEADBEEF"})

        self.assertEqual(intent.intent_ref, "order_ABC")
        self.assertEqual(intent.checkout["key_id"], "rzp_test_key")
        url = self.session.post.call_args.args[0]
        kwargs = self.session.post.call_args.kwargs
        self.assertEqual(url, "https://api.razorpay.com/v1/orders")
        self.assertEqual(kwargs["json"]["amount"], 250000)
        self.assertEqual(kwargs["auth"], ("rzp_test_key", "rzp_secret"))
        self.assertEqual(kwargs["timeout"], 5)

    def test_provider_error_is_raised_as_gateway_error(self) -> None:
        self.session.post.return_value = fake_response(
            400, {"error": {"description": "The amount must be at least INR 1.00"}}
        )
        with self.assertRaisesMessage(PaymentGatewayError, "at least INR 1.00"):
            self.gateway.create_intent(Decimal("0.50"), "INR", {})

    def test_network_error(self) -> None:
        self.session.post.side_effect = requests.exceptions.ConnectionError("boom")
        with self.assertRaises(PaymentGatewayError):
            self.gateway.refund("pay_1", Decimal("10.00"))

    def test_refund(self) -> None:
        self.session.post.return_value = fake_response(
            200, {"id": "rfnd_1", "amount": 120050, "status": "processed"}
        )

        receipt = self.gateway.refund("pay_XYZ", Decimal("1200.50"), {"reservation_id": "r1"})

        self.assertEqual(receipt.refund_ref, "rfnd_1")
        self.assertEqual(receipt.amount, Decimal("1200.50"))
        self.assertTrue(self.session.post.call_args.args[0].endswith("payments/pay_XYZ/refund"))
        self.assertNotIn("receipt", self.session.post.call_args.kwargs["json"])

    def test_refund_key_is_sent_as_receipt(self) -> None:
        self.session.post.return_value = fake_response(200, {"id": "rfnd_2", "amount": 1000})

        self.gateway.refund("pay_XYZ", Decimal("10.00"), {"idempotency_key": "refund_42"})

        body = self.session.post.call_args.kwargs["json"]
        self.assertEqual(body["receipt"], "refund_42")
        self.assertEqual(body["notes"]["idempotency_key"], "refund_42")

    def test_verify_uses_key_secret(self) -> None:
        signature = sign_payment("rzp_secret", "order_ABC", "pay_1")
        self.assertTrue(self.gateway.verify("order_ABC", PaymentProof("pay_1", signature)).succeeded)

    def test_keys_are_required(self) -> None:
        with self.assertRaises(ImproperlyConfigured):
            RazorpayGateway("", "")


class BuildPaymentGatewayTests(SimpleTestCase):
    @override_settings(PAYMENT_GATEWAY="sandbox", SANDBOX_GATEWAY_SECRET="abc")
    def test_sandbox(self) -> None:
        gateway = build_payment_gateway()
        self.assertIsInstance(gateway, SandboxGateway)
        self.assertEqual(gateway.secret, "abc")

    @override_settings(PAYMENT_GATEWAY="razorpay", RAZORPAY_KEY_ID="k", RAZORPAY_KEY_SECRET="s")
    def test_razorpay(self) -> None:
        self.assertIsInstance(build_payment_gateway(), RazorpayGateway)

    @override_settings(PAYMENT_GATEWAY="razorpay", RAZORPAY_KEY_ID="", RAZORPAY_KEY_SECRET="", DEBUG=True)
    def test_missing_keys_fall_back_to_sandbox_in_debug(self) -> None:
        self.assertIsInstance(build_payment_gateway(), SandboxGateway)

    @override_settings(PAYMENT_GATEWAY="paypal")
    def test_unknown_provider(self) -> None:
        with self.assertRaises(ImproperlyConfigured):
            build_payment_gateway()
