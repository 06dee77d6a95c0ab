"""
Route price service: monthly transport fees per route, class and category head.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from school_admin.core.pagination import build_page_meta, normalize_pagination
from school_admin.models.enums import RecordStatus
from school_admin.models.route_price import RoutePrice
from school_admin.repositories.school.school_repository import (
    CategoryHeadRepository,
    RouteRepository,
    SchoolClassRepository,
)
from school_admin.repositories.transport.route_price_repository import RoutePriceRepository
from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ServiceResult
from school_admin.services.school.setup_service import first_failure, validate_catalog_reference

DUPLICATE_MESSAGE = "A route price already exists for this route, class and category head"


class RoutePriceService(BaseService[RoutePrice, RoutePriceRepository]):
    resource_name = "Route price"

    def __init__(self, db_session: Session):
        super().__init__(RoutePriceRepository(db_session), db_session)
        self.route_repository = RouteRepository(db_session)
        self.class_repository = SchoolClassRepository(db_session)
        self.category_head_repository = CategoryHeadRepository(db_session)

    def list_route_prices(
        self,
        school_id: int,
        route_id: Optional[int] = None,
        class_id: Optional[int] = None,
        category_head_id: Optional[int] = None,
        status: Optional[RecordStatus] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ServiceResult[List[RoutePrice]]:
        try:
            params = normalize_pagination(page, limit)
            rows, total = self.repository.search(
                school_id,
                route_id=route_id,
                class_id=class_id,
                category_head_id=category_head_id,
                status=status,
                offset=params.offset,
                limit=params.limit,
            )
            return ServiceResult.success(rows, metadata=build_page_meta(total, params))
        except Exception as e:
            return self._handle_exception(e, "list route prices")

    def find_applicable(
        self,
        school_id: int,
        route_id: Optional[int],
        class_id: Optional[int],
        category_head_id: Optional[int],
    ) -> Optional[RoutePrice]:
        """Active price for the exact key, or None. There is no wildcard match."""
        return self.repository.find_applicable(school_id, route_id, class_id, category_head_id)

    def _validate_create(self, data: Dict[str, Any]) -> Optional[ServiceResult]:
        school_id = data["school_id"]
        reference_check = self._validate_references(school_id, data)
        if reference_check is not None:
            return reference_check
        if self.repository.find_duplicate(school_id, data["route_id"], data["class_id"], data["category_head_id"]):
            return ServiceResult.conflict(DUPLICATE_MESSAGE)
        return None

    def _validate_update(self, entity: RoutePrice, data: Dict[str, Any]) -> Optional[ServiceResult]:
        reference_check = self._validate_references(entity.school_id, data)
        if reference_check is not None:
            return reference_check
        key = {
            "route_id": data.get("route_id") or entity.route_id,
            "class_id": data.get("class_id") or entity.class_id,
            "category_head_id": data.get("category_head_id") or entity.category_head_id,
        }
        if self.repository.find_duplicate(entity.school_id, exclude_id=entity.id, **key):
            return ServiceResult.conflict(DUPLICATE_MESSAGE)
        return None

    def _validate_references(self, school_id: int, data: Dict[str, Any]) -> Optional[ServiceResult]:
        return first_failure(
            validate_catalog_reference(self.route_repository, school_id, data.get("route_id"), "Route"),
            validate_catalog_reference(self.class_repository, school_id, data.get("class_id"), "Class"),
            validate_catalog_reference(
                self.category_head_repository, school_id, data.get("category_head_id"), "Category head"
            ),
        )
