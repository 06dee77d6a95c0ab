"""
School and setup catalog schemas.
"""

from datetime import date
from typing import Optional

from pydantic import EmailStr, Field, model_validator

from school_admin.models.enums import FeeCategoryType, RecordStatus, SchoolStatus
from school_admin.schemas.common.base import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseUpdateSchema,
)


# ===== Schools =====

class SchoolCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=30)
    address: Optional[str] = None
    status: SchoolStatus = SchoolStatus.ACTIVE


class SchoolUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    code: Optional[str] = Field(default=None, min_length=1, max_length=50)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(default=None, max_length=30)
    address: Optional[str] = None
    status: Optional[SchoolStatus] = None


class SchoolResponse(BaseResponseSchema):
    name: str
    code: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    status: SchoolStatus


# ===== Academic years =====

class AcademicYearCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=50, examples=["2025-26"])
    start_date: date
    end_date: date
    is_current: bool = False

    @model_validator(mode="after")
    def check_range(self) -> "AcademicYearCreate":
        if self.start_date > self.end_date:
            raise ValueError("start_date must be on or before end_date")
        return self


class AcademicYearResponse(BaseResponseSchema):
    school_id: int
    name: str
    start_date: date
    end_date: date
    is_current: bool


# ===== Classes, category heads, fee categories, routes =====

class SchoolClassCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=50)
    ordinal: int = Field(default=0, ge=0)


class SchoolClassResponse(BaseResponseSchema):
    school_id: int
    name: str
    ordinal: int


class CategoryHeadCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    status: RecordStatus = RecordStatus.ACTIVE


class CategoryHeadResponse(BaseResponseSchema):
    school_id: int
    name: str
    description: Optional[str] = None
    status: RecordStatus


class FeeCategoryCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    type: FeeCategoryType = FeeCategoryType.SCHOOL
    status: RecordStatus = RecordStatus.ACTIVE


class FeeCategoryResponse(BaseResponseSchema):
    school_id: int
    name: str
    description: Optional[str] = None
    type: FeeCategoryType
    status: RecordStatus


class RouteCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    status: RecordStatus = RecordStatus.ACTIVE


class RouteResponse(BaseResponseSchema):
    school_id: int
    name: str
    description: Optional[str] = None
    status: RecordStatus
