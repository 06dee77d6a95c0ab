"""
Fee structure endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from school_admin.api import deps
from school_admin.api.responses import respond
from school_admin.core.pagination import PaginationParams
from school_admin.models.enums import FeeFrequency, RecordStatus
from school_admin.schemas.fee_structure import FeeStructureCreate, FeeStructureResponse, FeeStructureUpdate
from school_admin.services.fee.fee_structure_service import FeeStructureService

router = APIRouter(prefix="/fee-structures")


@router.get("")
def list_fee_structures(
    class_id: Optional[int] = Query(default=None),
    category_head_id: Optional[int] = Query(default=None),
    structure_status: Optional[RecordStatus] = Query(default=None, alias="status"),
    frequency: Optional[FeeFrequency] = Query(default=None),
    pagination: PaginationParams = Depends(deps.get_pagination_params),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = FeeStructureService(db).list_fee_structures(
        school_id,
        class_id=class_id,
        category_head_id=category_head_id,
        status=structure_status,
        frequency=frequency,
        page=pagination.page,
        limit=pagination.limit,
    )
    return respond(result, schema=FeeStructureResponse)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_fee_structure(
    payload: FeeStructureCreate,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = FeeStructureService(db).create(payload.model_dump(), school_id)
    return respond(result, schema=FeeStructureResponse, status_code=status.HTTP_201_CREATED)


@router.get("/{fee_structure_id}")
def get_fee_structure(
    fee_structure_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(FeeStructureService(db).get_by_id(fee_structure_id, school_id), schema=FeeStructureResponse)


@router.patch("/{fee_structure_id}")
def update_fee_structure(
    fee_structure_id: int,
    payload: FeeStructureUpdate,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = FeeStructureService(db).update(fee_structure_id, payload.changes(), school_id)
    return respond(result, schema=FeeStructureResponse)


@router.delete("/{fee_structure_id}")
def delete_fee_structure(
    fee_structure_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(FeeStructureService(db).delete(fee_structure_id, school_id))
