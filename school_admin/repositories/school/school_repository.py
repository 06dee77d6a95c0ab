"""
Repositories for schools and the per-school setup catalog.
"""

from typing import List, Optional, Tuple

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from school_admin.models.enums import SchoolStatus
from school_admin.models.school import AcademicYear, CategoryHead, FeeCategory, Route, School, SchoolClass
from school_admin.repositories.base.base_repository import BaseRepository


class SchoolRepository(BaseRepository[School]):
    def __init__(self, db: Session):
        super().__init__(School, db)

    def search(
        self,
        search: Optional[str],
        status: Optional[SchoolStatus],
        offset: int,
        limit: int,
    ) -> Tuple[List[School], int]:
        stmt = select(School)
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(or_(School.name.ilike(pattern), School.code.ilike(pattern)))
        if status:
            stmt = stmt.where(School.status == status)
        return self.paginate(stmt.order_by(School.name), offset, limit)

    def find_active(self) -> List[School]:
        return self.find_by_criteria({"status": SchoolStatus.ACTIVE})


class AcademicYearRepository(BaseRepository[AcademicYear]):
    def __init__(self, db: Session):
        super().__init__(AcademicYear, db)

    def find_current(self, school_id: int) -> Optional[AcademicYear]:
        return self.find_one_by(school_id=school_id, is_current=True)

    def clear_current(self, school_id: int, keep_id: Optional[int] = None) -> None:
        """Unset the current flag on every other year of the school."""
        for year in self.find_by_criteria({"school_id": school_id, "is_current": True}):
            if year.id != keep_id:
                year.is_current = False
        self.flush()


class SchoolClassRepository(BaseRepository[SchoolClass]):
    def __init__(self, db: Session):
        super().__init__(SchoolClass, db)


class CategoryHeadRepository(BaseRepository[CategoryHead]):
    def __init__(self, db: Session):
        super().__init__(CategoryHead, db)


class FeeCategoryRepository(BaseRepository[FeeCategory]):
    def __init__(self, db: Session):
        super().__init__(FeeCategory, db)


class RouteRepository(BaseRepository[Route]):
    def __init__(self, db: Session):
        super().__init__(Route, db)
