"""
School (tenant) endpoints. These are not scoped by X-School-ID.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from school_admin.api import deps
from school_admin.api.responses import respond
from school_admin.core.pagination import PaginationParams
from school_admin.models.enums import SchoolStatus
from school_admin.schemas.school import SchoolCreate, SchoolResponse, SchoolUpdate
from school_admin.services.school.school_service import SchoolService

router = APIRouter(prefix="/schools")


@router.get("")
def list_schools(
    search: Optional[str] = Query(default=None),
    school_status: Optional[SchoolStatus] = Query(default=None, alias="status"),
    pagination: PaginationParams = Depends(deps.get_pagination_params),
    db: Session = Depends(deps.get_db),
):
    result = SchoolService(db).list_schools(search, school_status, page=pagination.page, limit=pagination.limit)
    return respond(result, schema=SchoolResponse)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_school(payload: SchoolCreate, db: Session = Depends(deps.get_db)):
    return respond(SchoolService(db).create(payload.model_dump()), schema=SchoolResponse, status_code=status.HTTP_201_CREATED)


@router.get("/{school_id}")
def get_school(school_id: int, db: Session = Depends(deps.get_db)):
    return respond(SchoolService(db).get_by_id(school_id), schema=SchoolResponse)


@router.patch("/{school_id}")
def update_school(school_id: int, payload: SchoolUpdate, db: Session = Depends(deps.get_db)):
    return respond(SchoolService(db).update(school_id, payload.changes()), schema=SchoolResponse)


@router.delete("/{school_id}")
def delete_school(school_id: int, db: Session = Depends(deps.get_db)):
    return respond(SchoolService(db).delete(school_id))
