"""Typed access to ``settings.RESERVATION_ENGINE``."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.exceptions import ImproperlyConfigured  # type: ignore

from .domain.state_machine import ReservationStatus

DEFAULTS = {
    "HOLD_DURATION": timedelta(minutes=15),
    "RELEASED_HOLD_STATUS": ReservationStatus.DRAFT.value,
    "DRAFT_RETENTION": None,
    "LOCK_TIMEOUT": timedelta(seconds=5),
    "TRANSIENT_RETRY_ATTEMPTS": 3,
    "TRANSIENT_RETRY_BACKOFF": 0.2,
    "REFUND_MAX_ATTEMPTS": 5,
    "CURRENCY": "INR",
    "DEFAULT_COMMISSION_RATE": Decimal("16"),
}


@dataclass(frozen=True)
class EngineConfig:
    hold_duration: timedelta
    released_hold_status: ReservationStatus
    draft_retention: timedelta | None
    lock_timeout: timedelta
    transient_retry_attempts: int
    transient_retry_backoff: float
    refund_max_attempts: int
    currency: str
    default_commission_rate: Decimal


def get_engine_config(overrides: dict | None = None) -> EngineConfig:
    raw = {**DEFAULTS, **getattr(settings, "RESERVATION_ENGINE", {}), **(overrides or {})}

    released = raw["RELEASED_HOLD_STATUS"]
    if released not in (ReservationStatus.DRAFT, ReservationStatus.CANCELLED):
        raise ImproperlyConfigured(
            f"RESERVATION_ENGINE['RELEASED_HOLD_STATUS'] must be 'draft' or 'cancelled', got {released!r}"
        )
    for key in ("HOLD_DURATION", "LOCK_TIMEOUT"):
        if raw[key] <= timedelta(0):
            raise ImproperlyConfigured(f"RESERVATION_ENGINE['{key}'] must be positive")
    if raw["DRAFT_RETENTION"] is not None and raw["DRAFT_RETENTION"] <= timedelta(0):
        raise ImproperlyConfigured("RESERVATION_ENGINE['DRAFT_RETENTION'] must be positive or None")
    if raw["TRANSIENT_RETRY_ATTEMPTS"] < 1 or raw["REFUND_MAX_ATTEMPTS"] < 1:
        raise ImproperlyConfigured("RESERVATION_ENGINE retry attempts must be at least 1")

    return EngineConfig(
        hold_duration=raw["HOLD_DURATION"],
        released_hold_status=ReservationStatus(released),
        draft_retention=raw["DRAFT_RETENTION"],
        lock_timeout=raw["LOCK_TIMEOUT"],
        transient_retry_attempts=int(raw["TRANSIENT_RETRY_ATTEMPTS"]),
        transient_retry_backoff=float(raw["TRANSIENT_RETRY_BACKOFF"]),
        refund_max_attempts=int(raw["REFUND_MAX_ATTEMPTS"]),
        currency=raw["CURRENCY"],
        default_commission_rate=Decimal(raw["DEFAULT_COMMISSION_RATE"]),
    )
