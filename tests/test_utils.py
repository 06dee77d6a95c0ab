from datetime import date
from decimal import Decimal

import pytest

from school_admin.core.utils import CurrencyUtils, DateTimeUtils


class TestCurrencyUtils:
    def test_to_decimal_rounds_half_up_to_cents(self):
        assert CurrencyUtils.to_decimal("10.005") == Decimal("10.01")
        assert CurrencyUtils.to_decimal(0.1) == Decimal("0.10")
        assert CurrencyUtils.to_decimal(None) == Decimal("0.00")

    def test_percentage_discount(self):
        discount, amount = CurrencyUtils.apply_discount(Decimal("1000.00"), percentage=10)
        assert discount == Decimal("100.00")
        assert amount == Decimal("900.00")

    def test_percentage_wins_over_fixed_amount(self):
        discount, amount = CurrencyUtils.apply_discount(Decimal("1000.00"), percentage=5, fixed_amount=300)
        assert discount == Decimal("50.00")
        assert amount == Decimal("950.00")

    def test_fixed_discount_is_capped_at_original(self):
        discount, amount = CurrencyUtils.apply_discount(Decimal("200.00"), fixed_amount=500)
        assert discount == Decimal("200.00")
        assert amount == Decimal("0.00")

    def test_percentage_out_of_range(self):
        with pytest.raises(ValueError):
            CurrencyUtils.apply_discount(Decimal("100.00"), percentage=120)

    def test_split_installments_last_part_takes_remainder(self):
        assert CurrencyUtils.split_installments(Decimal("100.00"), 3) == [
            Decimal("33.33"),
            Decimal("33.33"),
            Decimal("33.34"),
        ]
        assert CurrencyUtils.split_installments(Decimal("900.00"), 3) == [Decimal("300.00")] * 3

    def test_split_installments_rejects_zero_count(self):
        with pytest.raises(ValueError):
            CurrencyUtils.split_installments(Decimal("10.00"), 0)

    def test_allocate_fifo(self):
        parts = CurrencyUtils.allocate_fifo(Decimal("250.00"), [Decimal("100.00"), Decimal("100.00"), Decimal("100.00")])
        assert parts == [Decimal("100.00"), Decimal("100.00"), Decimal("50.00")]

    def test_format_currency(self):
        assert CurrencyUtils.format_currency(Decimal("1234.5"), "INR") == "₹1,234.50"


class TestDateTimeUtils:
    def test_add_months_clamps_to_month_end(self):
        assert DateTimeUtils.add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)

    def test_iter_months_inclusive(self):
        months = list(DateTimeUtils.iter_months(date(2025, 4, 1), date(2025, 6, 15)))
        assert months == [date(2025, 4, 1), date(2025, 5, 1), date(2025, 6, 1)]

    def test_with_day_and_month_end(self):
        assert DateTimeUtils.with_day(date(2025, 2, 3), 30) == date(2025, 2, 28)
        assert DateTimeUtils.month_end(date(2024, 2, 10)) == date(2024, 2, 29)
        assert DateTimeUtils.month_key(date(2025, 7, 1)) == "2025-07"
