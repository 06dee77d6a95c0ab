"""
Payment repository.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from school_admin.models.enums import PaymentStatus
from school_admin.models.payment import Payment
from school_admin.repositories.base.base_repository import BaseRepository
from school_admin.repositories.invoice.invoice_repository import next_sequence_number

# Only cleared payments count towards what has been paid
COUNTED_STATUSES = (PaymentStatus.COMPLETED,)


class PaymentRepository(BaseRepository[Payment]):
    def __init__(self, db: Session):
        super().__init__(Payment, db)

    def search(
        self,
        school_id: int,
        student_id: Optional[int] = None,
        invoice_id: Optional[int] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Payment], int]:
        stmt = select(Payment).where(Payment.school_id == school_id)
        if student_id:
            stmt = stmt.where(Payment.student_id == student_id)
        if invoice_id:
            stmt = stmt.where(Payment.invoice_id == invoice_id)
        stmt = stmt.order_by(Payment.payment_date.desc(), Payment.id.desc())
        return self.paginate(stmt, offset, limit)

    def next_receipt_number(self, school_id: int, prefix: str) -> str:
        stmt = select(Payment.receipt_number).where(
            Payment.school_id == school_id,
            Payment.receipt_number.like(f"{prefix}%"),
        )
        return next_sequence_number(list(self.db.scalars(stmt)), prefix)

    def receipt_exists(self, school_id: int, receipt_number: str, exclude_id: Optional[int] = None) -> bool:
        stmt = select(Payment.id).where(
            Payment.school_id == school_id,
            Payment.receipt_number == receipt_number,
        )
        if exclude_id is not None:
            stmt = stmt.where(Payment.id != exclude_id)
        return self.db.scalars(stmt).first() is not None

    def total_for_invoice(self, invoice_id: int, exclude_id: Optional[int] = None) -> Decimal:
        stmt = select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.invoice_id == invoice_id,
            Payment.status.in_(COUNTED_STATUSES),
        )
        if exclude_id is not None:
            stmt = stmt.where(Payment.id != exclude_id)
        return Decimal(str(self.db.scalar(stmt) or 0))

    def total_for_fee_row(self, student_fee_structure_id: int, exclude_id: Optional[int] = None) -> Decimal:
        stmt = select(func.coalesce(func.sum(Payment.amount), 0)).where(
            Payment.student_fee_structure_id == student_fee_structure_id,
            Payment.status.in_(COUNTED_STATUSES),
        )
        if exclude_id is not None:
            stmt = stmt.where(Payment.id != exclude_id)
        return Decimal(str(self.db.scalar(stmt) or 0))

    def find_completed(
        self,
        school_id: int,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> List[Payment]:
        stmt = select(Payment).where(
            Payment.school_id == school_id,
            Payment.status.in_(COUNTED_STATUSES),
        )
        if from_date is not None:
            stmt = stmt.where(Payment.payment_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(Payment.payment_date <= to_date)
        return list(self.db.scalars(stmt.order_by(Payment.payment_date, Payment.id)))
