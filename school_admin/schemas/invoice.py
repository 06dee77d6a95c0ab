"""
Invoice schemas.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import Field, model_validator

from school_admin.models.enums import InvoiceSourceType, InvoiceStatus, InvoiceType
from school_admin.schemas.common.base import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseUpdateSchema,
)


class InvoiceItemCreate(BaseCreateSchema):
    """
    One invoice line.

    For TRANSPORT items source_id is the route price id; amount and
    description default from the route price when omitted. FEE items must
    carry the fee structure id.
    """

    source_type: Optional[InvoiceSourceType] = None
    source_id: Optional[int] = None
    source_metadata: Optional[Dict[str, Any]] = None
    description: Optional[str] = Field(default=None, max_length=255)
    amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=12, decimal_places=2)
    due_date: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_source_pair(self) -> "InvoiceItemCreate":
        if (self.source_type is None) != (self.source_id is None):
            raise ValueError("source_type and source_id must be provided together")
        return self


class InvoiceCreate(BaseCreateSchema):
    student_id: int
    academic_year_id: int
    issue_date: date
    due_date: date
    type: InvoiceType = InvoiceType.ONE_TIME
    period_month: Optional[int] = Field(default=None, ge=1, le=12)
    period_quarter: Optional[int] = Field(default=None, ge=1, le=4)
    period_year: Optional[int] = Field(default=None, ge=2000, le=2100)
    discount_amount: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = None
    items: List[InvoiceItemCreate] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_dates(self) -> "InvoiceCreate":
        if self.due_date < self.issue_date:
            raise ValueError("due_date cannot be before issue_date")
        return self


class InvoiceUpdate(BaseUpdateSchema):
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    discount_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = None
    status: Optional[InvoiceStatus] = Field(default=None, description="Only CANCELLED may be set directly")


class GenerateInvoiceFromFeesRequest(BaseCreateSchema):
    student_id: int
    academic_year_id: int
    student_fee_structure_ids: Optional[List[int]] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceItemResponse(BaseResponseSchema):
    invoice_id: int
    source_type: Optional[InvoiceSourceType] = None
    source_id: Optional[int] = None
    source_metadata: Optional[Dict[str, Any]] = None
    description: str
    amount: Decimal
    discount_amount: Decimal
    due_date: Optional[date] = None
    notes: Optional[str] = None


class InvoiceResponse(BaseResponseSchema):
    school_id: int
    student_id: int
    academic_year_id: int
    invoice_number: str
    issue_date: date
    due_date: date
    type: InvoiceType
    period_month: Optional[int] = None
    period_quarter: Optional[int] = None
    period_year: Optional[int] = None
    status: InvoiceStatus
    total_amount: Decimal
    paid_amount: Decimal
    discount_amount: Decimal
    balance_amount: Decimal
    notes: Optional[str] = None
    items: List[InvoiceItemResponse] = Field(default_factory=list)
