"""
Invoice Models

FeeInvoice groups polymorphic line items. Each FeeInvoiceItem points at the
thing it bills through (source_type, source_id): a fee structure, a route
price, or nothing at all for free-form charges.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, CheckConstraint, Date, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_admin.models.base import BaseModel, TimestampMixin, enum_column, money_column
from school_admin.models.enums import InvoiceSourceType, InvoiceStatus, InvoiceType

if TYPE_CHECKING:
    from school_admin.models.payment import Payment
    from school_admin.models.school import AcademicYear
    from school_admin.models.student import Student


class FeeInvoice(TimestampMixin, BaseModel):
    __tablename__ = "fee_invoices"
    __table_args__ = (
        UniqueConstraint("school_id", "invoice_number", name="uq_fee_invoices_school_number"),
        CheckConstraint("total_amount >= 0", name="ck_fee_invoices_total"),
        CheckConstraint("paid_amount >= 0", name="ck_fee_invoices_paid"),
        CheckConstraint("discount_amount >= 0", name="ck_fee_invoices_discount"),
    )

    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    academic_year_id: Mapped[int] = mapped_column(ForeignKey("academic_years.id"), nullable=False, index=True)
    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[InvoiceType] = mapped_column(
        enum_column(InvoiceType, "invoice_type"), nullable=False, default=InvoiceType.ONE_TIME
    )
    period_month: Mapped[Optional[int]] = mapped_column(Integer)
    period_quarter: Mapped[Optional[int]] = mapped_column(Integer)
    period_year: Mapped[Optional[int]] = mapped_column(Integer)
    status: Mapped[InvoiceStatus] = mapped_column(
        enum_column(InvoiceStatus, "invoice_status"), nullable=False, default=InvoiceStatus.DRAFT, index=True
    )

    total_amount: Mapped[Decimal] = mapped_column(money_column(), nullable=False, default=Decimal("0.00"))
    paid_amount: Mapped[Decimal] = mapped_column(money_column(), nullable=False, default=Decimal("0.00"))
    discount_amount: Mapped[Decimal] = mapped_column(money_column(), nullable=False, default=Decimal("0.00"))
    # total - paid - discount, kept in sync by the invoice service
    balance_amount: Mapped[Decimal] = mapped_column(money_column(), nullable=False, default=Decimal("0.00"))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    student: Mapped["Student"] = relationship()
    academic_year: Mapped["AcademicYear"] = relationship()
    items: Mapped[List["FeeInvoiceItem"]] = relationship(
        back_populates="invoice", cascade="all, delete-orphan", order_by="FeeInvoiceItem.id"
    )
    payments: Mapped[List["Payment"]] = relationship(back_populates="invoice")


class FeeInvoiceItem(TimestampMixin, BaseModel):
    __tablename__ = "fee_invoice_items"
    __table_args__ = (
        CheckConstraint(
            "(source_type IS NULL AND source_id IS NULL) OR "
            "(source_type IS NOT NULL AND source_id IS NOT NULL)",
            name="ck_fee_invoice_items_source",
        ),
        CheckConstraint("amount >= 0", name="ck_fee_invoice_items_amount"),
    )

    invoice_id: Mapped[int] = mapped_column(ForeignKey("fee_invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    source_type: Mapped[Optional[InvoiceSourceType]] = mapped_column(
        enum_column(InvoiceSourceType, "invoice_source_type")
    )
    source_id: Mapped[Optional[int]] = mapped_column(Integer)
    source_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(money_column(), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(money_column(), nullable=False, default=Decimal("0.00"))
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    invoice: Mapped["FeeInvoice"] = relationship(back_populates="items")
