"""
Fee structure schemas.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import Field

from school_admin.models.enums import FeeFrequency, RecordStatus
from school_admin.schemas.common.base import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseUpdateSchema,
)


class FeeStructureCreate(BaseCreateSchema):
    name: str = Field(..., min_length=1, max_length=150)
    description: Optional[str] = None
    fee_category_id: Optional[int] = None
    class_id: Optional[int] = Field(default=None, description="Null applies to every class")
    category_head_id: Optional[int] = Field(default=None, description="Null applies to every category head")
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    due_date: Optional[date] = None
    frequency: FeeFrequency = FeeFrequency.ONE_TIME
    status: RecordStatus = RecordStatus.ACTIVE


class FeeStructureUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    description: Optional[str] = None
    fee_category_id: Optional[int] = None
    class_id: Optional[int] = None
    category_head_id: Optional[int] = None
    amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    due_date: Optional[date] = None
    frequency: Optional[FeeFrequency] = None
    status: Optional[RecordStatus] = None


class FeeStructureResponse(BaseResponseSchema):
    school_id: int
    name: str
    description: Optional[str] = None
    fee_category_id: Optional[int] = None
    class_id: Optional[int] = None
    category_head_id: Optional[int] = None
    amount: Decimal
    due_date: Optional[date] = None
    frequency: FeeFrequency
    status: RecordStatus
