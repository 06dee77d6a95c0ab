"""
Invoice repository, invoice number sequences and fee-row billing lookups.
"""

from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from school_admin.models.enums import InvoiceSourceType, InvoiceStatus
from school_admin.models.invoice import FeeInvoice, FeeInvoiceItem
from school_admin.repositories.base.base_repository import BaseRepository

OUTSTANDING_STATUSES = (InvoiceStatus.ISSUED, InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.OVERDUE)


def next_sequence_number(existing: Sequence[str], prefix: str, width: int = 4) -> str:
    """
    Next number in a "<prefix>NNNN" series given the numbers already used.

    Non-numeric suffixes are ignored.
    """
    highest = 0
    for number in existing:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{prefix}{highest + 1:0{width}d}"


def billed_fee_row_id(item: FeeInvoiceItem) -> Optional[int]:
    """Student fee row an invoice item bills, if it was built from one."""
    return (item.source_metadata or {}).get("student_fee_structure_id")


class FeeInvoiceRepository(BaseRepository[FeeInvoice]):
    def __init__(self, db: Session):
        super().__init__(FeeInvoice, db)

    def get_with_items(self, school_id: int, invoice_id: int) -> Optional[FeeInvoice]:
        stmt = (
            select(FeeInvoice)
            .options(selectinload(FeeInvoice.items))
            .where(FeeInvoice.id == invoice_id, FeeInvoice.school_id == school_id)
        )
        return self.db.scalars(stmt).first()

    def search(
        self,
        school_id: int,
        student_id: Optional[int] = None,
        academic_year_id: Optional[int] = None,
        status: Optional[InvoiceStatus] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[FeeInvoice], int]:
        stmt = select(FeeInvoice).options(selectinload(FeeInvoice.items)).where(FeeInvoice.school_id == school_id)
        if student_id:
            stmt = stmt.where(FeeInvoice.student_id == student_id)
        if academic_year_id:
            stmt = stmt.where(FeeInvoice.academic_year_id == academic_year_id)
        if status:
            stmt = stmt.where(FeeInvoice.status == status)
        stmt = stmt.order_by(FeeInvoice.issue_date.desc(), FeeInvoice.id.desc())
        return self.paginate(stmt, offset, limit)

    def next_invoice_number(self, school_id: int, prefix: str) -> str:
        stmt = select(FeeInvoice.invoice_number).where(
            FeeInvoice.school_id == school_id,
            FeeInvoice.invoice_number.like(f"{prefix}%"),
        )
        return next_sequence_number(list(self.db.scalars(stmt)), prefix)

    def find_for_student(self, student_id: int, academic_year_id: int) -> List[FeeInvoice]:
        stmt = (
            select(FeeInvoice)
            .options(selectinload(FeeInvoice.items))
            .where(
                FeeInvoice.student_id == student_id,
                FeeInvoice.academic_year_id == academic_year_id,
                FeeInvoice.status != InvoiceStatus.CANCELLED,
            )
            .order_by(FeeInvoice.id)
        )
        return list(self.db.scalars(stmt))

    def find_fee_row_items(self, student_id: int) -> List[FeeInvoiceItem]:
        """
        FEE items billing one of the student's fee rows on invoices that
        are not cancelled, each with its invoice loaded.
        """
        stmt = (
            select(FeeInvoiceItem)
            .join(FeeInvoiceItem.invoice)
            .options(selectinload(FeeInvoiceItem.invoice).selectinload(FeeInvoice.items))
            .where(
                FeeInvoice.student_id == student_id,
                FeeInvoice.status != InvoiceStatus.CANCELLED,
                FeeInvoiceItem.source_type == InvoiceSourceType.FEE,
            )
            .order_by(FeeInvoiceItem.id)
        )
        return [item for item in self.db.scalars(stmt) if billed_fee_row_id(item) is not None]

    def find_outstanding(self, school_id: int, academic_year_id: Optional[int] = None) -> List[FeeInvoice]:
        """Issued invoices with a balance left, oldest due first."""
        stmt = (
            select(FeeInvoice)
            .options(selectinload(FeeInvoice.student), selectinload(FeeInvoice.academic_year))
            .where(FeeInvoice.school_id == school_id, FeeInvoice.status.in_(OUTSTANDING_STATUSES))
        )
        if academic_year_id:
            stmt = stmt.where(FeeInvoice.academic_year_id == academic_year_id)
        return list(self.db.scalars(stmt.order_by(FeeInvoice.due_date, FeeInvoice.id)))
