"""Unit tests for shared value objects."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase

from shared.domain.value_objects import DateRange, Money


class MoneyTests(SimpleTestCase):
    def test_arithmetic_keeps_currency(self) -> None:
        total = Money(Decimal("2500.00")) * 3
        self.assertEqual(total, Money(Decimal("7500.00"), "INR"))
        self.assertEqual((total - Money(Decimal("500"))).amount, Decimal("7000.00"))

    def test_currencies_do_not_mix(self) -> None:
        with self.assertRaises(ValueError):
            Money(Decimal("1"), "INR") + Money(Decimal("1"), "USD")

    def test_negative_amounts_are_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Money(Decimal("-0.01"))

    def test_percentage_rounds_half_up(self) -> None:
        self.assertEqual(Money(Decimal("1234.56")).percentage(Decimal("16")).amount, Decimal("197.53"))

    def test_minor_units(self) -> None:
        self.assertEqual(Money(Decimal("1500.50")).to_minor_units(), 150050)
        self.assertEqual(Money.from_minor_units(150050).amount, Decimal("1500.50"))


class DateRangeTests(SimpleTestCase):
    def test_nights(self) -> None:
        stay = DateRange(date(2026, 11, 1), date(2026, 11, 4))
        self.assertEqual(stay.nights, 3)
        self.assertEqual(len(stay), 3)

    def test_end_is_exclusive(self) -> None:
        stay = DateRange(date(2026, 11, 1), date(2026, 11, 4))
        self.assertTrue(stay.contains(date(2026, 11, 3)))
        self.assertFalse(stay.contains(date(2026, 11, 4)))
        self.assertFalse(stay.overlaps_with(DateRange(date(2026, 11, 4), date(2026, 11, 6))))
        self.assertTrue(stay.overlaps_with(DateRange(date(2026, 11, 3), date(2026, 11, 6))))

    def test_empty_range_is_invalid(self) -> None:
        with self.assertRaises(ValueError):
            DateRange(date(2026, 11, 1), date(2026, 11, 1))
