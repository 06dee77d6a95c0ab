"""
Setup catalog services: academic years, classes, category heads, fee
categories and routes. Each is a thin school-scoped create/list service.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from school_admin.models.school import AcademicYear
from school_admin.repositories.base.base_repository import BaseRepository
from school_admin.repositories.school.school_repository import (
    AcademicYearRepository,
    CategoryHeadRepository,
    FeeCategoryRepository,
    RouteRepository,
    SchoolClassRepository,
)
from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ServiceResult


class CatalogService(BaseService[Any, BaseRepository]):
    """School-scoped catalog entries listed by name."""

    def __init__(self, repository: BaseRepository, db_session: Session, resource_name: str):
        super().__init__(repository, db_session)
        self.resource_name = resource_name

    def list_for_school(self, school_id: int) -> ServiceResult[List[Any]]:
        try:
            model = self.repository.model
            order = [getattr(model, "ordinal"), model.name] if hasattr(model, "ordinal") else [model.name]
            rows = self.repository.find_by_criteria({"school_id": school_id}, order_by=order)
            return ServiceResult.success(rows, metadata={"total": len(rows)})
        except Exception as e:
            return self._handle_exception(e, f"list {self.resource_name.lower()} entries")


class AcademicYearService(CatalogService):
    """Academic years; at most one per school is flagged current."""

    def __init__(self, db_session: Session):
        super().__init__(AcademicYearRepository(db_session), db_session, "Academic year")

    def list_for_school(self, school_id: int) -> ServiceResult[List[AcademicYear]]:
        try:
            rows = self.repository.find_by_criteria(
                {"school_id": school_id}, order_by=[AcademicYear.start_date.desc()]
            )
            return ServiceResult.success(rows, metadata={"total": len(rows)})
        except Exception as e:
            return self._handle_exception(e, "list academic years")

    def get_current(self, school_id: int) -> ServiceResult[AcademicYear]:
        year = self.repository.find_current(school_id)
        if year is None:
            return ServiceResult.not_found("Current academic year")
        return ServiceResult.success(year)

    def _after_create(self, entity: AcademicYear) -> None:
        if entity.is_current:
            self.repository.clear_current(entity.school_id, keep_id=entity.id)

    def _after_update(self, entity: AcademicYear, changes: Dict[str, Any]) -> None:
        if changes.get("is_current"):
            self.repository.clear_current(entity.school_id, keep_id=entity.id)


def build_catalog_service(kind: str, db_session: Session) -> CatalogService:
    """Service for one catalog kind as named in the setup URLs."""
    if kind == "academic-years":
        return AcademicYearService(db_session)
    factories = {
        "classes": (SchoolClassRepository, "Class"),
        "category-heads": (CategoryHeadRepository, "Category head"),
        "fee-categories": (FeeCategoryRepository, "Fee category"),
        "routes": (RouteRepository, "Route"),
    }
    if kind not in factories:
        raise KeyError(kind)
    repository_cls, resource_name = factories[kind]
    return CatalogService(repository_cls(db_session), db_session, resource_name)


CATALOG_KINDS = ("academic-years", "classes", "category-heads", "fee-categories", "routes")


def validate_catalog_reference(
    repository: BaseRepository,
    school_id: int,
    entity_id: Optional[int],
    resource_name: str,
) -> Optional[ServiceResult]:
    """Failure result when a referenced catalog row is missing from the school."""
    if entity_id is None:
        return None
    if repository.find_in_school(school_id, entity_id) is None:
        return ServiceResult.validation_failure(
            f"{resource_name} not found in this school",
            details={"id": entity_id},
        )
    return None


def first_failure(*checks: Optional[ServiceResult]) -> Optional[ServiceResult]:
    # A failed ServiceResult is falsy, so `or` chains cannot be used here
    for check in checks:
        if check is not None and not check.is_success:
            return check
    return None
