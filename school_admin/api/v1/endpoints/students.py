"""
Student endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from school_admin.api import deps
from school_admin.api.responses import respond
from school_admin.core.pagination import PaginationParams
from school_admin.models.enums import StudentStatus
from school_admin.schemas.student import (
    AcademicRecordCreate,
    AcademicRecordResponse,
    StudentCreate,
    StudentResponse,
    StudentUpdate,
)
from school_admin.services.student.student_service import StudentService

router = APIRouter(prefix="/students")


@router.get("")
def list_students(
    search: Optional[str] = Query(default=None, description="Matches name, student code, email or phone"),
    student_status: Optional[StudentStatus] = Query(default=None, alias="status"),
    class_id: Optional[int] = Query(default=None),
    academic_year_id: Optional[int] = Query(default=None),
    pagination: PaginationParams = Depends(deps.get_pagination_params),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = StudentService(db).list_students(
        school_id,
        search=search,
        status=student_status,
        class_id=class_id,
        academic_year_id=academic_year_id,
        page=pagination.page,
        limit=pagination.limit,
    )
    return respond(result, schema=StudentResponse)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_student(
    payload: StudentCreate,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    """Register a student; academic_year_id with class_id also enrols them."""
    result = StudentService(db).register(school_id, payload.model_dump())
    return respond(result, schema=StudentResponse, status_code=status.HTTP_201_CREATED)


@router.get("/{student_id}")
def get_student(
    student_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(StudentService(db).get_by_id(student_id, school_id), schema=StudentResponse)


@router.patch("/{student_id}")
def update_student(
    student_id: int,
    payload: StudentUpdate,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = StudentService(db).update(student_id, payload.changes(), school_id)
    return respond(result, schema=StudentResponse)


@router.delete("/{student_id}")
def delete_student(
    student_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(StudentService(db).delete(student_id, school_id))


@router.post("/{student_id}/academic-records", status_code=status.HTTP_201_CREATED)
def enroll_student(
    student_id: int,
    payload: AcademicRecordCreate,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = StudentService(db).enroll(school_id, student_id, payload.model_dump())
    return respond(result, schema=AcademicRecordResponse, status_code=status.HTTP_201_CREATED)
