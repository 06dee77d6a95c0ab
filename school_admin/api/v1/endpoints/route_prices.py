"""
Route price endpoints: monthly transport fee per route, class and category head.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from school_admin.api import deps
from school_admin.api.responses import respond
from school_admin.core.pagination import PaginationParams
from school_admin.models.enums import RecordStatus
from school_admin.schemas.route_price import RoutePriceCreate, RoutePriceResponse, RoutePriceUpdate
from school_admin.services.transport.route_price_service import RoutePriceService

router = APIRouter(prefix="/route-prices")


@router.get("")
def list_route_prices(
    route_id: Optional[int] = Query(default=None),
    class_id: Optional[int] = Query(default=None),
    category_head_id: Optional[int] = Query(default=None),
    price_status: Optional[RecordStatus] = Query(default=None, alias="status"),
    pagination: PaginationParams = Depends(deps.get_pagination_params),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = RoutePriceService(db).list_route_prices(
        school_id,
        route_id=route_id,
        class_id=class_id,
        category_head_id=category_head_id,
        status=price_status,
        page=pagination.page,
        limit=pagination.limit,
    )
    return respond(result, schema=RoutePriceResponse)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_route_price(
    payload: RoutePriceCreate,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = RoutePriceService(db).create(payload.model_dump(), school_id)
    return respond(result, schema=RoutePriceResponse, status_code=status.HTTP_201_CREATED)


@router.get("/{route_price_id}")
def get_route_price(
    route_price_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(RoutePriceService(db).get_by_id(route_price_id, school_id), schema=RoutePriceResponse)


@router.patch("/{route_price_id}")
def update_route_price(
    route_price_id: int,
    payload: RoutePriceUpdate,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = RoutePriceService(db).update(route_price_id, payload.changes(), school_id)
    return respond(result, schema=RoutePriceResponse)


@router.delete("/{route_price_id}")
def delete_route_price(
    route_price_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(RoutePriceService(db).delete(route_price_id, school_id))
