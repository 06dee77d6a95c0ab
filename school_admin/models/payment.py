"""
Payment Model

Money received against either a single student fee row (legacy) or an
invoice (current). Exactly one of the two references is set.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import CheckConstraint, Date, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_admin.models.base import BaseModel, TimestampMixin, enum_column, money_column
from school_admin.models.enums import PaymentMethod, PaymentStatus

if TYPE_CHECKING:
    from school_admin.models.fee import StudentFeeStructure
    from school_admin.models.invoice import FeeInvoice
    from school_admin.models.student import Student


class Payment(TimestampMixin, BaseModel):
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint(
            "(student_fee_structure_id IS NOT NULL AND invoice_id IS NULL) OR "
            "(student_fee_structure_id IS NULL AND invoice_id IS NOT NULL)",
            name="ck_payments_single_reference",
        ),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        UniqueConstraint("school_id", "receipt_number", name="uq_payments_school_receipt"),
    )

    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    student_fee_structure_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("student_fee_structures.id"), index=True
    )
    invoice_id: Mapped[Optional[int]] = mapped_column(ForeignKey("fee_invoices.id"), index=True)

    amount: Mapped[Decimal] = mapped_column(money_column(), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        enum_column(PaymentMethod, "payment_method"), nullable=False, default=PaymentMethod.CASH
    )
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100))
    receipt_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        enum_column(PaymentStatus, "payment_status"), nullable=False, default=PaymentStatus.COMPLETED
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)

    student: Mapped["Student"] = relationship()
    student_fee_structure: Mapped[Optional["StudentFeeStructure"]] = relationship()
    invoice: Mapped[Optional["FeeInvoice"]] = relationship(back_populates="payments")
