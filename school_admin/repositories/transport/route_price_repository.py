"""
Route price repository.
"""

from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from school_admin.models.enums import RecordStatus
from school_admin.models.route_price import RoutePrice
from school_admin.repositories.base.base_repository import BaseRepository


class RoutePriceRepository(BaseRepository[RoutePrice]):
    def __init__(self, db: Session):
        super().__init__(RoutePrice, db)

    def search(
        self,
        school_id: int,
        route_id: Optional[int] = None,
        class_id: Optional[int] = None,
        category_head_id: Optional[int] = None,
        status: Optional[RecordStatus] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[RoutePrice], int]:
        stmt = select(RoutePrice).where(RoutePrice.school_id == school_id)
        if route_id:
            stmt = stmt.where(RoutePrice.route_id == route_id)
        if class_id:
            stmt = stmt.where(RoutePrice.class_id == class_id)
        if category_head_id:
            stmt = stmt.where(RoutePrice.category_head_id == category_head_id)
        if status:
            stmt = stmt.where(RoutePrice.status == status)
        stmt = stmt.order_by(RoutePrice.route_id, RoutePrice.class_id, RoutePrice.category_head_id)
        return self.paginate(stmt, offset, limit)

    def find_applicable(
        self,
        school_id: int,
        route_id: Optional[int],
        class_id: Optional[int],
        category_head_id: Optional[int],
    ) -> Optional[RoutePrice]:
        """Active price for an exact (route, class, category head) match."""
        if not (route_id and class_id and category_head_id):
            return None
        return self.find_one_by(
            school_id=school_id,
            route_id=route_id,
            class_id=class_id,
            category_head_id=category_head_id,
            status=RecordStatus.ACTIVE,
        )

    def find_duplicate(
        self,
        school_id: int,
        route_id: int,
        class_id: int,
        category_head_id: int,
        exclude_id: Optional[int] = None,
    ) -> Optional[RoutePrice]:
        stmt = select(RoutePrice).where(
            RoutePrice.school_id == school_id,
            RoutePrice.route_id == route_id,
            RoutePrice.class_id == class_id,
            RoutePrice.category_head_id == category_head_id,
        )
        if exclude_id is not None:
            stmt = stmt.where(RoutePrice.id != exclude_id)
        return self.db.scalars(stmt).first()
