"""
School service: tenant CRUD.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from school_admin.core.pagination import build_page_meta, normalize_pagination
from school_admin.models.enums import SchoolStatus
from school_admin.models.school import School
from school_admin.models.student import Student
from school_admin.repositories.school.school_repository import SchoolRepository
from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ServiceResult


class SchoolService(BaseService[School, SchoolRepository]):
    resource_name = "School"

    def __init__(self, db_session: Session):
        super().__init__(SchoolRepository(db_session), db_session)

    def list_schools(
        self,
        search: Optional[str] = None,
        status: Optional[SchoolStatus] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ServiceResult[List[School]]:
        try:
            params = normalize_pagination(page, limit)
            rows, total = self.repository.search(search, status, params.offset, params.limit)
            return ServiceResult.success(rows, metadata=build_page_meta(total, params))
        except Exception as e:
            return self._handle_exception(e, "list schools")

    def _validate_create(self, data: Dict[str, Any]) -> Optional[ServiceResult]:
        if self.repository.exists(code=data["code"]):
            return ServiceResult.conflict("A school with this code already exists")
        return None

    def _validate_update(self, entity: School, data: Dict[str, Any]) -> Optional[ServiceResult]:
        code = data.get("code")
        if code and code != entity.code and self.repository.exists(code=code):
            return ServiceResult.conflict("A school with this code already exists")
        return None

    def _validate_delete(self, entity: School) -> Optional[ServiceResult]:
        student_count = self.db.scalar(
            select(func.count(Student.id)).where(Student.school_id == entity.id)
        )
        if student_count:
            return ServiceResult.invalid_state(
                "Cannot delete a school that still has students",
                details={"student_count": student_count},
            )
        return None
