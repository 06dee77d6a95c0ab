"""
Fee structure, student fee and generation history repositories.
"""

from datetime import date
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session, selectinload

from school_admin.models.enums import FeeFrequency, RecordStatus
from school_admin.models.fee import FeeGenerationHistory, FeeStructure, StudentFeeStructure
from school_admin.models.payment import Payment
from school_admin.repositories.base.base_repository import BaseRepository


class FeeStructureRepository(BaseRepository[FeeStructure]):
    def __init__(self, db: Session):
        super().__init__(FeeStructure, db)

    def search(
        self,
        school_id: int,
        class_id: Optional[int] = None,
        category_head_id: Optional[int] = None,
        status: Optional[RecordStatus] = None,
        frequency: Optional[FeeFrequency] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[FeeStructure], int]:
        stmt = select(FeeStructure).where(FeeStructure.school_id == school_id)
        if class_id:
            stmt = stmt.where(FeeStructure.class_id == class_id)
        if category_head_id:
            stmt = stmt.where(FeeStructure.category_head_id == category_head_id)
        if status:
            stmt = stmt.where(FeeStructure.status == status)
        if frequency:
            stmt = stmt.where(FeeStructure.frequency == frequency)
        return self.paginate(stmt.order_by(FeeStructure.name, FeeStructure.id), offset, limit)

    def find_in_school_by_ids(self, school_id: int, ids: Sequence[int]) -> List[FeeStructure]:
        if not ids:
            return []
        stmt = select(FeeStructure).where(FeeStructure.school_id == school_id, FeeStructure.id.in_(list(ids)))
        return list(self.db.scalars(stmt))

    def find_applicable(
        self,
        school_id: int,
        class_id: Optional[int],
        category_head_id: Optional[int],
        frequency: Optional[FeeFrequency] = None,
    ) -> List[FeeStructure]:
        """
        Active structures that apply to a student of the given class and
        category head. Structures without a class or category head apply
        to everyone.
        """
        stmt = select(FeeStructure).where(
            FeeStructure.school_id == school_id,
            FeeStructure.status == RecordStatus.ACTIVE,
            or_(FeeStructure.class_id.is_(None), FeeStructure.class_id == class_id),
            or_(FeeStructure.category_head_id.is_(None), FeeStructure.category_head_id == category_head_id),
        )
        if frequency:
            stmt = stmt.where(FeeStructure.frequency == frequency)
        return list(self.db.scalars(stmt.order_by(FeeStructure.id)))


class StudentFeeStructureRepository(BaseRepository[StudentFeeStructure]):
    def __init__(self, db: Session):
        super().__init__(StudentFeeStructure, db)

    def find_existing(
        self,
        student_id: int,
        fee_structure_id: int,
        academic_year_id: int,
        due_month: Optional[date] = None,
    ) -> List[StudentFeeStructure]:
        """
        Rows already generated for (student, fee structure, academic year).
        With due_month only rows falling due in that calendar month count.
        """
        stmt = select(StudentFeeStructure).where(
            StudentFeeStructure.student_id == student_id,
            StudentFeeStructure.fee_structure_id == fee_structure_id,
            StudentFeeStructure.academic_year_id == academic_year_id,
        )
        if due_month is not None:
            first = due_month.replace(day=1)
            next_first = date(first.year + (first.month // 12), first.month % 12 + 1, 1)
            stmt = stmt.where(
                and_(StudentFeeStructure.due_date >= first, StudentFeeStructure.due_date < next_first)
            )
        return list(self.db.scalars(stmt.order_by(StudentFeeStructure.id)))

    def find_for_student(
        self,
        student_id: int,
        academic_year_id: int,
        due_on_or_before: Optional[date] = None,
    ) -> List[StudentFeeStructure]:
        stmt = (
            select(StudentFeeStructure)
            .options(selectinload(StudentFeeStructure.fee_structure))
            .where(
                StudentFeeStructure.student_id == student_id,
                StudentFeeStructure.academic_year_id == academic_year_id,
            )
        )
        if due_on_or_before is not None:
            stmt = stmt.where(StudentFeeStructure.due_date <= due_on_or_before)
        stmt = stmt.order_by(StudentFeeStructure.due_date, StudentFeeStructure.id)
        return list(self.db.scalars(stmt))

    def has_payments(self, row_ids: Sequence[int]) -> bool:
        if not row_ids:
            return False
        stmt = select(func.count(Payment.id)).where(Payment.student_fee_structure_id.in_(list(row_ids)))
        return (self.db.scalar(stmt) or 0) > 0

    def count_for_fee_structure(self, fee_structure_id: int) -> int:
        return self.count_by_criteria({"fee_structure_id": fee_structure_id})


class FeeGenerationHistoryRepository(BaseRepository[FeeGenerationHistory]):
    def __init__(self, db: Session):
        super().__init__(FeeGenerationHistory, db)

    def search(
        self,
        school_id: int,
        academic_year_id: Optional[int],
        offset: int,
        limit: int,
    ) -> Tuple[List[FeeGenerationHistory], int]:
        stmt = select(FeeGenerationHistory).where(FeeGenerationHistory.school_id == school_id)
        if academic_year_id:
            stmt = stmt.where(FeeGenerationHistory.academic_year_id == academic_year_id)
        stmt = stmt.order_by(FeeGenerationHistory.created_at.desc(), FeeGenerationHistory.id.desc())
        return self.paginate(stmt, offset, limit)
