"""
Fee structure service: CRUD over reusable fee definitions.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from school_admin.core.pagination import build_page_meta, normalize_pagination
from school_admin.models.enums import FeeFrequency, RecordStatus
from school_admin.models.fee import FeeStructure
from school_admin.repositories.fee.fee_repository import (
    FeeStructureRepository,
    StudentFeeStructureRepository,
)
from school_admin.repositories.school.school_repository import (
    CategoryHeadRepository,
    FeeCategoryRepository,
    SchoolClassRepository,
)
from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ServiceResult
from school_admin.services.school.setup_service import first_failure, validate_catalog_reference


class FeeStructureService(BaseService[FeeStructure, FeeStructureRepository]):
    resource_name = "Fee structure"

    def __init__(self, db_session: Session):
        super().__init__(FeeStructureRepository(db_session), db_session)
        self.student_fee_repository = StudentFeeStructureRepository(db_session)
        self.class_repository = SchoolClassRepository(db_session)
        self.category_head_repository = CategoryHeadRepository(db_session)
        self.fee_category_repository = FeeCategoryRepository(db_session)

    def list_fee_structures(
        self,
        school_id: int,
        class_id: Optional[int] = None,
        category_head_id: Optional[int] = None,
        status: Optional[RecordStatus] = None,
        frequency: Optional[FeeFrequency] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ServiceResult[List[FeeStructure]]:
        try:
            params = normalize_pagination(page, limit)
            rows, total = self.repository.search(
                school_id,
                class_id=class_id,
                category_head_id=category_head_id,
                status=status,
                frequency=frequency,
                offset=params.offset,
                limit=params.limit,
            )
            return ServiceResult.success(rows, metadata=build_page_meta(total, params))
        except Exception as e:
            return self._handle_exception(e, "list fee structures")

    def _validate_create(self, data: Dict[str, Any]) -> Optional[ServiceResult]:
        return self._validate_references(data["school_id"], data)

    def _validate_update(self, entity: FeeStructure, data: Dict[str, Any]) -> Optional[ServiceResult]:
        return self._validate_references(entity.school_id, data)

    def _validate_delete(self, entity: FeeStructure) -> Optional[ServiceResult]:
        assigned = self.student_fee_repository.count_for_fee_structure(entity.id)
        if assigned:
            return ServiceResult.invalid_state(
                "Cannot delete a fee structure that has been assigned to students; deactivate it instead",
                details={"student_fee_count": assigned},
            )
        return None

    def _validate_references(self, school_id: int, data: Dict[str, Any]) -> Optional[ServiceResult]:
        return first_failure(
            validate_catalog_reference(self.class_repository, school_id, data.get("class_id"), "Class"),
            validate_catalog_reference(
                self.category_head_repository, school_id, data.get("category_head_id"), "Category head"
            ),
            validate_catalog_reference(
                self.fee_category_repository, school_id, data.get("fee_category_id"), "Fee category"
            ),
        )
