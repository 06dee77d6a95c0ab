"""
Payment and payment allocation schemas.
"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field, model_validator

from school_admin.models.enums import PaymentMethod, PaymentStatus
from school_admin.schemas.common.base import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseSchema,
    BaseUpdateSchema,
)
from school_admin.schemas.invoice import InvoiceResponse

LEDGER_FEE_HEAD_ID = 0
TRANSPORT_FEE_HEAD_ID = -1


class PaymentCreate(BaseCreateSchema):
    student_id: int
    invoice_id: Optional[int] = None
    student_fee_structure_id: Optional[int] = Field(default=None, description="Legacy per-fee payment")
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_date: date
    payment_method: PaymentMethod = PaymentMethod.CASH
    transaction_id: Optional[str] = Field(default=None, max_length=100)
    receipt_number: Optional[str] = Field(default=None, max_length=50)
    status: PaymentStatus = PaymentStatus.COMPLETED
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_single_reference(self) -> "PaymentCreate":
        if (self.invoice_id is None) == (self.student_fee_structure_id is None):
            raise ValueError("Provide exactly one of invoice_id or student_fee_structure_id")
        return self


class PaymentUpdate(BaseUpdateSchema):
    amount: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    payment_date: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = Field(default=None, max_length=100)
    receipt_number: Optional[str] = Field(default=None, max_length=50)
    status: Optional[PaymentStatus] = None
    notes: Optional[str] = None


class PaymentResponse(BaseResponseSchema):
    school_id: int
    student_id: int
    invoice_id: Optional[int] = None
    student_fee_structure_id: Optional[int] = None
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    receipt_number: str
    status: PaymentStatus
    notes: Optional[str] = None


class PaymentAllocationRequest(BaseCreateSchema):
    """
    Split a received amount across fee heads.

    allocation maps a fee-head id to the amount put against it:
    0 is the ledger balance, -1 is transport, positive ids are fee structures.
    """

    student_id: int
    academic_year_id: int
    amount_received: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    discount: Decimal = Field(default=Decimal("0.00"), ge=0, max_digits=12, decimal_places=2)
    allocation: Dict[int, Decimal] = Field(..., min_length=1)
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_date: date
    transaction_id: Optional[str] = Field(default=None, max_length=100)
    notes: Optional[str] = None


class PaymentAllocationResult(BaseSchema):
    invoice: Optional[InvoiceResponse] = None
    payment: Optional[PaymentResponse] = None
    ledger_amount: Decimal = Decimal("0.00")
    ledger_adjusted: bool = False
    opening_balance_after: Optional[Decimal] = None
    allocated_total: Decimal
    net_paid: Decimal
    unallocated_amount: Decimal
    warnings: List[str] = Field(default_factory=list)


class ReceiptPayment(BaseSchema):
    id: int
    amount: Decimal
    payment_method: PaymentMethod
    payment_date: date
    status: PaymentStatus
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class ReceiptStudent(BaseSchema):
    id: int
    student_code: str
    name: str


class ReceiptFee(BaseSchema):
    """What the payment settled: one fee row, or an invoice."""

    name: str
    invoice_number: Optional[str] = None
    academic_year: Optional[str] = None
    total_amount: Decimal
    paid_amount: Decimal
    remaining_balance: Decimal
    due_date: Optional[date] = None


class ReceiptSchool(BaseSchema):
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class PaymentReceipt(BaseSchema):
    receipt_number: str
    receipt_date: date
    payment: ReceiptPayment
    student: ReceiptStudent
    fee: ReceiptFee
    school: ReceiptSchool
