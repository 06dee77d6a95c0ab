"""
Fee report schemas.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, Optional

from pydantic import Field

from school_admin.models.enums import InvoiceStatus
from school_admin.schemas.common.base import BaseSchema


class MethodTotal(BaseSchema):
    count: int = 0
    amount: Decimal = Decimal("0.00")


class FeeCollectionSummary(BaseSchema):
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    total_amount: Decimal
    total_count: int
    by_method: Dict[str, MethodTotal] = Field(default_factory=dict)


class OutstandingDue(BaseSchema):
    invoice_id: int
    invoice_number: str
    student_id: int
    student_code: str
    student_name: str
    academic_year: str
    total_amount: Decimal
    paid_amount: Decimal
    balance_amount: Decimal
    due_date: date
    status: InvoiceStatus
