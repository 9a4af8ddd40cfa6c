"""
Refund policy evaluation.

``calculate_refund`` is deterministic and does no I/O: given when the
stay starts, when the cancellation happens, what was paid and the rules
of the hotel's cancellation policy, it returns how much goes back to the
guest.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_DOWN, Decimal
from typing import Tuple

from shared.domain.base import ValueObject

CENT = Decimal("0.01")


@dataclass(frozen=True)
class RefundTier(ValueObject):
    """Cancelling at least ``min_notice`` before check-in refunds ``percent``."""
    min_notice: timedelta
    percent: Decimal

    def __post_init__(self):
        if self.min_notice < timedelta(0):
            raise ValueError("Notice period cannot be negative")
        if not Decimal("0") <= Decimal(self.percent) <= Decimal("100"):
            raise ValueError("Refund percent must be between 0 and 100")


@dataclass(frozen=True)
class RefundRules(ValueObject):
    """
    Ordered refund tiers.

    The first tier whose notice period is met applies. Cancelling with
    less notice than the shortest tier falls in the non-refundable
    window and refunds nothing.
    """
    tiers: Tuple[RefundTier, ...]

    def __post_init__(self):
        ordered = tuple(sorted(self.tiers, key=lambda tier: tier.min_notice, reverse=True))
        object.__setattr__(self, "tiers", ordered)

    @property
    def non_refundable_window(self) -> timedelta:
        if not self.tiers:
            return timedelta.max
        return self.tiers[-1].min_notice

    def percent_for(self, notice: timedelta) -> Decimal:
        for tier in self.tiers:
            if notice >= tier.min_notice:
                return Decimal(tier.percent)
        return Decimal("0")


FLEXIBLE = RefundRules(tiers=(RefundTier(timedelta(hours=24), Decimal("100")),))
MODERATE = RefundRules(
    tiers=(
        RefundTier(timedelta(days=3), Decimal("100")),
        RefundTier(timedelta(hours=24), Decimal("50")),
    )
)
STRICT = RefundRules(
    tiers=(
        RefundTier(timedelta(days=7), Decimal("100")),
        RefundTier(timedelta(days=3), Decimal("50")),
    )
)

POLICY_PRESETS = {
    "flexible": FLEXIBLE,
    "moderate": MODERATE,
    "strict": STRICT,
}


def rules_for_policy(policy: str) -> RefundRules:
    try:
        return POLICY_PRESETS[policy]
    except KeyError:
        raise ValueError(f"Unknown cancellation policy: {policy}") from None


def calculate_refund(start: datetime, now: datetime, total: Decimal, rules: RefundRules) -> Decimal:
    """
    Refund owed when cancelling at ``now`` a stay beginning at ``start``.

    The result is rounded down to the cent, never negative and never
    more than ``total``. Cancelling at or after ``start`` refunds nothing.
    """
    total = Decimal(total)
    if total <= 0:
        return Decimal("0.00")
    notice = start - now
    if notice <= timedelta(0):
        return Decimal("0.00")
    percent = rules.percent_for(notice)
    refund = (total * percent / Decimal("100")).quantize(CENT, rounding=ROUND_DOWN)
    return max(Decimal("0.00"), min(refund, total.quantize(CENT, rounding=ROUND_DOWN)))
