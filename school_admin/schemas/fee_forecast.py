"""
Fee forecast and fee breakdown schemas.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import Field

from school_admin.schemas.common.base import BaseSchema

ZERO = Decimal("0.00")


class ForecastRequest(BaseSchema):
    student_id: int
    academic_year_id: int
    forecast_up_to: Optional[date] = None
    include_bus_fees: bool = True
    include_previous_balance: bool = True
    as_of: Optional[date] = Field(default=None, description="Reference date for overdue status (default today)")


class ForecastFeeEntry(BaseSchema):
    fee_structure_id: int
    student_fee_structure_id: Optional[int] = None
    name: str
    amount: Decimal
    paid_amount: Decimal = ZERO
    due_date: Optional[date] = None
    installment_number: Optional[int] = None
    status: str


class FeeGroup(BaseSchema):
    total: Decimal = ZERO
    fees: List[ForecastFeeEntry] = Field(default_factory=list)


class BusFeeEntry(BaseSchema):
    month: str
    amount: Decimal
    paid_amount: Decimal = ZERO
    due_date: date
    status: str


class BusFees(BaseSchema):
    total: Decimal = ZERO
    monthly_amount: Decimal = ZERO
    months: int = 0
    route_price_id: Optional[int] = None
    fees: List[BusFeeEntry] = Field(default_factory=list)


class PreviousBalance(BaseSchema):
    amount: Decimal = ZERO


class ForecastBreakdown(BaseSchema):
    class_fees: FeeGroup
    bus_fees: BusFees
    previous_balance: PreviousBalance
    other_fees: FeeGroup


class ForecastSummary(BaseSchema):
    total_due: Decimal
    total_paid: Decimal
    total_pending: Decimal
    total_overdue: Decimal


class ForecastResult(BaseSchema):
    student_id: int
    student_name: str
    academic_year_id: int
    academic_year_name: str
    class_name: Optional[str] = None
    forecast_up_to: date
    total_amount: Decimal
    breakdown: ForecastBreakdown
    summary: ForecastSummary


# ===== Fee breakdown (payment screen fee heads) =====

class FeeHead(BaseSchema):
    """One payable head; id 0 is the ledger balance, -1 is transport."""

    id: int
    name: str
    amount: Decimal
    category: str


class MissingPricing(BaseSchema):
    type: str
    message: str


class FeeBreakdownResult(BaseSchema):
    student_id: int
    academic_year_id: int
    class_id: int
    category_head_id: int
    school_fees: List[FeeHead] = Field(default_factory=list)
    transport_fee: Optional[FeeHead] = None
    ledger_balance: Optional[FeeHead] = None
    total_school_fees: Decimal = ZERO
    total_transport_fees: Decimal = ZERO
    grand_total: Decimal = ZERO
