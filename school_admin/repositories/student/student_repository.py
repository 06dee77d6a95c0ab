"""
Student and academic record repositories.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from school_admin.models.enums import AcademicRecordStatus, StudentStatus
from school_admin.models.student import Student, StudentAcademicRecord
from school_admin.repositories.base.base_repository import BaseRepository


class StudentRepository(BaseRepository[Student]):
    def __init__(self, db: Session):
        super().__init__(Student, db)

    def search(
        self,
        school_id: int,
        search: Optional[str] = None,
        status: Optional[StudentStatus] = None,
        class_id: Optional[int] = None,
        academic_year_id: Optional[int] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Student], int]:
        stmt = select(Student).where(Student.school_id == school_id)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(
                or_(
                    Student.first_name.ilike(pattern),
                    Student.last_name.ilike(pattern),
                    Student.student_code.ilike(pattern),
                    Student.email.ilike(pattern),
                )
            )
        if status:
            stmt = stmt.where(Student.status == status)
        if class_id or academic_year_id:
            stmt = stmt.join(StudentAcademicRecord, StudentAcademicRecord.student_id == Student.id).where(
                StudentAcademicRecord.status == AcademicRecordStatus.ACTIVE
            )
            if class_id:
                stmt = stmt.where(StudentAcademicRecord.class_id == class_id)
            if academic_year_id:
                stmt = stmt.where(StudentAcademicRecord.academic_year_id == academic_year_id)
        stmt = stmt.order_by(Student.first_name, Student.last_name, Student.id)
        return self.paginate(stmt, offset, limit)

    def find_ids_in_classes(
        self,
        school_id: int,
        academic_year_id: int,
        class_ids: Sequence[int],
    ) -> List[int]:
        """Students holding an active record in any of the classes for the year."""
        if not class_ids:
            return []
        stmt = (
            select(Student.id)
            .join(StudentAcademicRecord, StudentAcademicRecord.student_id == Student.id)
            .where(
                Student.school_id == school_id,
                StudentAcademicRecord.academic_year_id == academic_year_id,
                StudentAcademicRecord.class_id.in_(list(class_ids)),
                StudentAcademicRecord.status == AcademicRecordStatus.ACTIVE,
            )
            .order_by(Student.id)
        )
        return list(self.db.scalars(stmt))

    def find_in_school_by_ids(self, school_id: int, ids: Sequence[int]) -> Dict[int, Student]:
        if not ids:
            return {}
        stmt = select(Student).where(Student.school_id == school_id, Student.id.in_(list(ids)))
        return {student.id: student for student in self.db.scalars(stmt)}


class StudentAcademicRecordRepository(BaseRepository[StudentAcademicRecord]):
    def __init__(self, db: Session):
        super().__init__(StudentAcademicRecord, db)

    def find_active(self, student_id: int, academic_year_id: int) -> Optional[StudentAcademicRecord]:
        return self.find_one_by(
            student_id=student_id,
            academic_year_id=academic_year_id,
            status=AcademicRecordStatus.ACTIVE,
        )

    def find_active_for_year(self, academic_year_id: int) -> List[StudentAcademicRecord]:
        return self.find_by_criteria(
            {"academic_year_id": academic_year_id, "status": AcademicRecordStatus.ACTIVE},
            order_by=[StudentAcademicRecord.student_id],
        )
