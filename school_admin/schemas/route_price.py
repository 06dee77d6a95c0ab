"""
Route price schemas.
"""

from decimal import Decimal
from typing import Optional

from pydantic import Field

from school_admin.models.enums import RecordStatus
from school_admin.schemas.common.base import (
    BaseCreateSchema,
    BaseResponseSchema,
    BaseUpdateSchema,
)


class RoutePriceCreate(BaseCreateSchema):
    route_id: int
    class_id: int
    category_head_id: int = Field(..., description="Mandatory; there is no all-categories price")
    amount: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    status: RecordStatus = RecordStatus.ACTIVE


class RoutePriceUpdate(BaseUpdateSchema):
    route_id: Optional[int] = None
    class_id: Optional[int] = None
    category_head_id: Optional[int] = None
    amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    status: Optional[RecordStatus] = None


class RoutePriceResponse(BaseResponseSchema):
    school_id: int
    route_id: int
    class_id: int
    category_head_id: int
    amount: Decimal
    status: RecordStatus
