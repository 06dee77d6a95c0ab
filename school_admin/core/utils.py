"""
Utility Functions and Helpers

Money and calendar helpers shared by the fee services. All monetary
arithmetic runs on Decimal and is rounded to two places.
"""

import calendar
from datetime import date
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Iterator, List, Optional, Tuple, Union

from dateutil.relativedelta import relativedelta

ZERO = Decimal("0.00")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

Number = Union[int, float, str, Decimal]


class CurrencyUtils:
    """Currency and money handling utilities"""

    @staticmethod
    def to_decimal(amount: Optional[Number]) -> Decimal:
        """Convert a number to a Decimal rounded to cents (None -> 0.00)"""
        if amount is None:
            return ZERO
        if isinstance(amount, float):
            amount = str(amount)
        return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)

    @staticmethod
    def format_currency(amount: Number, currency_code: str = "INR") -> str:
        symbols = {'INR': '₹', 'USD': '$', 'EUR': '€', 'GBP': '£'}
        value = CurrencyUtils.to_decimal(amount)
        return f"{symbols.get(currency_code, currency_code)}{value:,.2f}"

    @staticmethod
    def apply_discount(
        original: Number,
        percentage: Optional[Number] = None,
        fixed_amount: Optional[Number] = None,
    ) -> Tuple[Decimal, Decimal]:
        """
        Apply a percentage or fixed discount to an amount.

        A percentage wins when both are supplied. A fixed discount is capped
        at the original amount so the result never goes negative.

        Args:
            original: Amount before discount
            percentage: Discount percentage (0-100)
            fixed_amount: Flat discount amount

        Returns:
            Tuple of (discount_amount, discounted_amount)
        """
        original = CurrencyUtils.to_decimal(original)

        if percentage is not None:
            pct = Decimal(str(percentage))
            if pct < 0 or pct > HUNDRED:
                raise ValueError("Discount percentage must be between 0 and 100")
            discount = (original * pct / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
        elif fixed_amount is not None:
            fixed = CurrencyUtils.to_decimal(fixed_amount)
            if fixed < 0:
                raise ValueError("Fixed discount cannot be negative")
            discount = min(fixed, original)
        else:
            discount = ZERO

        return discount, original - discount

    @staticmethod
    def split_installments(total: Number, count: int) -> List[Decimal]:
        """
        Split an amount into equal installments.

        Every installment except the last is total/count rounded down to the
        cent; the last one carries the remainder, so the parts always sum to
        the total (100.00 / 3 -> 33.33, 33.33, 33.34).
        """
        if count < 1:
            raise ValueError("Installment count must be at least 1")

        total = CurrencyUtils.to_decimal(total)
        share = (total / count).quantize(CENT, rounding=ROUND_DOWN)
        parts = [share] * (count - 1)
        parts.append(total - share * (count - 1))
        return parts

    @staticmethod
    def allocate_fifo(amount: Number, dues: List[Decimal]) -> List[Decimal]:
        """Spread an amount over dues in order, returning the part applied to each"""
        remaining = CurrencyUtils.to_decimal(amount)
        applied = []
        for due in dues:
            part = min(remaining, due) if remaining > 0 else ZERO
            applied.append(part)
            remaining -= part
        return applied


class DateTimeUtils:
    """Date and time utility functions"""

    @staticmethod
    def add_months(start: date, months: int) -> date:
        """Shift a date by whole months, clamping to the month's last day"""
        return start + relativedelta(months=months)

    @staticmethod
    def month_end(value: date) -> date:
        return value.replace(day=calendar.monthrange(value.year, value.month)[1])

    @staticmethod
    def with_day(value: date, day: int) -> date:
        """Same month, given day clamped to the month length"""
        last_day = calendar.monthrange(value.year, value.month)[1]
        return value.replace(day=min(day, last_day))

    @staticmethod
    def iter_months(start: date, end: date) -> Iterator[date]:
        """Yield the first day of every month from start's month to end's month inclusive"""
        current = start.replace(day=1)
        stop = end.replace(day=1)
        while current <= stop:
            yield current
            current = current + relativedelta(months=1)

    @staticmethod
    def month_key(value: date) -> str:
        return value.strftime("%Y-%m")
