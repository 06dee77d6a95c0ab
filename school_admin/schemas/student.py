"""
Student schemas.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import EmailStr, Field, computed_field

from school_admin.models.enums import AcademicRecordStatus, Gender, StudentStatus
from school_admin.schemas.common.base import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseUpdateSchema,
)


class StudentBase(BaseCreateSchema):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=30)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None

    father_name: Optional[str] = Field(default=None, max_length=150)
    father_contact: Optional[str] = Field(default=None, max_length=30)
    mother_name: Optional[str] = Field(default=None, max_length=150)
    mother_contact: Optional[str] = Field(default=None, max_length=30)
    guardian_name: Optional[str] = Field(default=None, max_length=150)
    guardian_contact: Optional[str] = Field(default=None, max_length=30)
    previous_class: Optional[str] = Field(default=None, max_length=50)
    previous_school_name: Optional[str] = Field(default=None, max_length=255)

    route_id: Optional[int] = None
    category_head_id: Optional[int] = None
    bus_number: Optional[str] = Field(default=None, max_length=30)
    opening_balance: Decimal = Field(default=Decimal("0.00"), max_digits=12, decimal_places=2)


class StudentCreate(StudentBase):
    student_code: str = Field(..., min_length=1, max_length=50, description="Admission number")
    status: StudentStatus = StudentStatus.ACTIVE

    # Optional enrolment created together with the student
    academic_year_id: Optional[int] = None
    class_id: Optional[int] = None
    section: Optional[str] = Field(default=None, max_length=10)
    roll_number: Optional[str] = Field(default=None, max_length=20)


class StudentUpdate(BaseUpdateSchema):
    student_code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=30)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    father_name: Optional[str] = Field(default=None, max_length=150)
    father_contact: Optional[str] = Field(default=None, max_length=30)
    mother_name: Optional[str] = Field(default=None, max_length=150)
    mother_contact: Optional[str] = Field(default=None, max_length=30)
    guardian_name: Optional[str] = Field(default=None, max_length=150)
    guardian_contact: Optional[str] = Field(default=None, max_length=30)
    previous_class: Optional[str] = Field(default=None, max_length=50)
    previous_school_name: Optional[str] = Field(default=None, max_length=255)
    route_id: Optional[int] = None
    category_head_id: Optional[int] = None
    bus_number: Optional[str] = Field(default=None, max_length=30)
    opening_balance: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    status: Optional[StudentStatus] = None


class StudentResponse(BaseResponseSchema):
    school_id: int
    student_code: str
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    address: Optional[str] = None
    father_name: Optional[str] = None
    father_contact: Optional[str] = None
    mother_name: Optional[str] = None
    mother_contact: Optional[str] = None
    guardian_name: Optional[str] = None
    guardian_contact: Optional[str] = None
    previous_class: Optional[str] = None
    previous_school_name: Optional[str] = None
    route_id: Optional[int] = None
    category_head_id: Optional[int] = None
    bus_number: Optional[str] = None
    opening_balance: Decimal
    status: StudentStatus

    @computed_field
    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class AcademicRecordCreate(BaseCreateSchema):
    academic_year_id: int
    class_id: int
    section: Optional[str] = Field(default=None, max_length=10)
    roll_number: Optional[str] = Field(default=None, max_length=20)


class AcademicRecordResponse(BaseResponseSchema):
    student_id: int
    academic_year_id: int
    class_id: int
    section: Optional[str] = None
    roll_number: Optional[str] = None
    status: AcademicRecordStatus
