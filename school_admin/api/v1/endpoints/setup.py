"""
Setup catalog endpoints: academic years, classes, category heads, fee
categories and routes share one list/create surface keyed by kind.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Path, status
from fastapi.exceptions import RequestValidationError
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from school_admin.api import deps
from school_admin.api.responses import respond
from school_admin.core.exceptions import ResourceNotFoundError
from school_admin.schemas.school import (
    AcademicYearCreate,
    AcademicYearResponse,
    CategoryHeadCreate,
    CategoryHeadResponse,
    FeeCategoryCreate,
    FeeCategoryResponse,
    RouteCreate,
    RouteResponse,
    SchoolClassCreate,
    SchoolClassResponse,
)
from school_admin.services.school.setup_service import (
    CATALOG_KINDS,
    AcademicYearService,
    build_catalog_service,
)

router = APIRouter(prefix="/setup")

SCHEMAS = {
    "academic-years": (AcademicYearCreate, AcademicYearResponse),
    "classes": (SchoolClassCreate, SchoolClassResponse),
    "category-heads": (CategoryHeadCreate, CategoryHeadResponse),
    "fee-categories": (FeeCategoryCreate, FeeCategoryResponse),
    "routes": (RouteCreate, RouteResponse),
}


def _check_kind(kind: str) -> None:
    if kind not in CATALOG_KINDS:
        raise ResourceNotFoundError(
            message=f"Unknown setup catalog '{kind}'",
            resource_type="Setup catalog",
            resource_id=kind,
        )


def _parse(schema: type, body: Dict[str, Any]) -> BaseModel:
    try:
        return schema.model_validate(body)
    except PydanticValidationError as e:
        raise RequestValidationError(e.errors(include_url=False)) from e


@router.get("/academic-years/current")
def get_current_academic_year(
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(AcademicYearService(db).get_current(school_id), schema=AcademicYearResponse)


@router.get("/{kind}")
def list_catalog(
    kind: str = Path(..., description=" | ".join(CATALOG_KINDS)),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    _check_kind(kind)
    _, response_schema = SCHEMAS[kind]
    return respond(build_catalog_service(kind, db).list_for_school(school_id), schema=response_schema)


@router.post("/{kind}", status_code=status.HTTP_201_CREATED)
def create_catalog_entry(
    kind: str = Path(..., description=" | ".join(CATALOG_KINDS)),
    body: Dict[str, Any] = Body(...),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    _check_kind(kind)
    create_schema, response_schema = SCHEMAS[kind]
    payload = _parse(create_schema, body)
    result = build_catalog_service(kind, db).create(payload.model_dump(), school_id)
    return respond(result, schema=response_schema, status_code=status.HTTP_201_CREATED)
