"""
Payment collaborator.

The reservation engine only needs three things from a payment provider:
an intent the guest can pay against, a verdict on a payment attempt and
refunds. ``PaymentGateway`` is that contract; ``RazorpayGateway`` talks
to Razorpay over HTTP and ``SandboxGateway`` emulates it locally for
development and tests.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from apps.bookings.domain.exceptions import PaymentGatewayError
from shared.domain.value_objects import Money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentIntent:
    """Handle the guest pays against."""
    intent_ref: str
    amount: Decimal
    currency: str
    provider: str
    checkout: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentProof:
    """What the checkout hands back after the guest paid."""
    payment_ref: str
    signature: str


@dataclass(frozen=True)
class PaymentVerdict:
    succeeded: bool
    transaction_ref: str = ""
    reason: str = ""


@dataclass(frozen=True)
class RefundReceipt:
    refund_ref: str
    amount: Decimal
    status: str


def sign_payment(secret: str, intent_ref: str, payment_ref: str) -> str:
    """HMAC-SHA256 of ``intent_ref|payment_ref``, hex encoded."""
    message = f"{intent_ref}|{payment_ref}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class PaymentGateway(ABC):
    name = ""

    @abstractmethod
    def create_intent(self, amount: Decimal, currency: str, metadata: dict) -> PaymentIntent:
        """Open a payment intent for ``amount``."""

    @abstractmethod
    def verify(self, intent_ref: str, proof: PaymentProof) -> PaymentVerdict:
        """Decide whether ``proof`` settles the intent."""

    @abstractmethod
    def refund(self, transaction_ref: str, amount: Decimal, metadata: dict | None = None) -> RefundReceipt:
        """Return ``amount`` of a settled payment to the payer."""

    def _verify_signature(self, secret: str, intent_ref: str, proof: PaymentProof) -> PaymentVerdict:
        if not proof.payment_ref or not proof.signature:
            return PaymentVerdict(False, reason="missing payment reference or signature")
        expected = sign_payment(secret, intent_ref, proof.payment_ref)
        if hmac.compare_digest(expected, proof.signature):
            return PaymentVerdict(True, transaction_ref=proof.payment_ref)
        logger.warning(f"Payment signature mismatch for intent {intent_ref}")
        return PaymentVerdict(False, reason="signature mismatch")


class RazorpayGateway(PaymentGateway):
    """Razorpay orders and refunds API. Amounts travel in paise."""

    name = "razorpay"

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1/",
        timeout: int = 30,
        session: requests.Session | None = None,
    ):
        if not key_id or not key_secret:
            raise ImproperlyConfigured("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET are required")
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self.session = session or requests.Session()

    def _post(self, path: str, payload: dict) -> dict:
        try:
            response = self.session.post(
                f"{self.base_url}{path}",
                json=payload,
                auth=(self.key_id, self.key_secret),
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Network error calling Razorpay {path}: {e}")
            raise PaymentGatewayError(f"Razorpay unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code >= 400:
            message = (body.get("error") or {}).get("description") or response.reason
            logger.error(f"Razorpay {path} answered {response.status_code}: {message}")
            raise PaymentGatewayError(f"Razorpay error: {message}")
        return body

    def create_intent(self, amount: Decimal, currency: str, metadata: dict) -> PaymentIntent:
        money = Money(amount, currency)
        receipt = str(metadata.get("receipt", ""))[:40]
        notes = {key: str(value) for key, value in metadata.items()}
        body = self._post(
            "orders",
            {
                "amount": money.to_minor_units(),
                "currency": currency,
                "receipt": receipt,
                "notes": notes,
            },
        )
        order_id = body.get("id")
        if not order_id:
            raise PaymentGatewayError("Razorpay order response carried no id")
        logger.info(f"Razorpay order {order_id} created for {money}")
        return PaymentIntent(
            intent_ref=order_id,
            amount=money.amount,
            currency=currency,
            provider=self.name,
            checkout={
                "key_id": self.key_id,
                "order_id": order_id,
                "amount": money.to_minor_units(),
                "currency": currency,
            },
        )

    def verify(self, intent_ref: str, proof: PaymentProof) -> PaymentVerdict:
        return self._verify_signature(self.key_secret, intent_ref, proof)

    def refund(self, transaction_ref: str, amount: Decimal, metadata: dict | None = None) -> RefundReceipt:
        money = Money(amount)
        notes = {key: str(value) for key, value in (metadata or {}).items()}
        payload = {"amount": money.to_minor_units(), "notes": notes}
        if notes.get("idempotency_key"):
            payload["receipt"] = notes["idempotency_key"]
        body = self._post(f"payments/{transaction_ref}/refund", payload)
        refund_id = body.get("id")
        if not refund_id:
            raise PaymentGatewayError("Razorpay refund response carried no id")
        logger.info(f"Razorpay refund {refund_id} issued for payment {transaction_ref}")
        return RefundReceipt(
            refund_ref=refund_id,
            amount=Money.from_minor_units(body.get("amount", money.to_minor_units())).amount,
            status=body.get("status", "processed"),
        )


class SandboxGateway(PaymentGateway):
    """
    Local stand-in for the provider.

    Intents and refunds get random references; a payment verifies when
    its signature is ``sign_payment(secret, intent_ref, payment_ref)``.
    A refund repeating an ``idempotency_key`` returns the first receipt.
    """

    name = "sandbox"

    def __init__(self, secret: str = "sandbox-secret"):
        self.secret = secret
        self._refunds: dict[str, RefundReceipt] = {}

    def create_intent(self, amount: Decimal, currency: str, metadata: dict) -> PaymentIntent:
        money = Money(amount, currency)
        intent_ref = f"order_sandbox_{uuid.uuid4().hex[:14]}"
        logger.info(f"Sandbox intent {intent_ref} created for {money}")
        return PaymentIntent(
            intent_ref=intent_ref,
            amount=money.amount,
            currency=currency,
            provider=self.name,
            checkout={"order_id": intent_ref, "amount": money.to_minor_units(), "currency": currency},
        )

    def sign(self, intent_ref: str, payment_ref: str) -> str:
        return sign_payment(self.secret, intent_ref, payment_ref)

    def verify(self, intent_ref: str, proof: PaymentProof) -> PaymentVerdict:
        return self._verify_signature(self.secret, intent_ref, proof)

    def refund(self, transaction_ref: str, amount: Decimal, metadata: dict | None = None) -> RefundReceipt:
        key = (metadata or {}).get("idempotency_key")
        if key and key in self._refunds:
            return self._refunds[key]
        refund_ref = f"rfnd_sandbox_{uuid.uuid4().hex[:14]}"
        logger.info(f"Sandbox refund {refund_ref} of {amount} for payment {transaction_ref}")
        receipt = RefundReceipt(refund_ref=refund_ref, amount=Decimal(amount), status="processed")
        if key:
            self._refunds[key] = receipt
        return receipt


def build_payment_gateway() -> PaymentGateway:
    """Construct the gateway named by ``settings.PAYMENT_GATEWAY``."""
    provider = getattr(settings, "PAYMENT_GATEWAY", "sandbox")

    if provider == "razorpay":
        key_id = getattr(settings, "RAZORPAY_KEY_ID", "")
        key_secret = getattr(settings, "RAZORPAY_KEY_SECRET", "")
        if settings.DEBUG and not (key_id and key_secret):
            logger.warning("Razorpay keys are missing, falling back to the sandbox gateway (DEBUG)")
            return SandboxGateway(getattr(settings, "SANDBOX_GATEWAY_SECRET", "sandbox-secret"))
        return RazorpayGateway(
            key_id=key_id,
            key_secret=key_secret,
            base_url=getattr(settings, "RAZORPAY_API_BASE_URL", "https://api.razorpay.com/v1/"),
            timeout=getattr(settings, "PAYMENT_GATEWAY_TIMEOUT", 30),
        )
    if provider == "sandbox":
        return SandboxGateway(getattr(settings, "SANDBOX_GATEWAY_SECRET", "sandbox-secret"))
    raise ImproperlyConfigured(f"Unknown PAYMENT_GATEWAY: {provider}")
