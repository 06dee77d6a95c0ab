"""
Fee generation request, result and history schemas.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from school_admin.models.enums import GenerationStatus, GenerationType
from school_admin.schemas.common.base import BaseCreateSchema, BaseSchema


class DiscountConfig(BaseSchema):
    """Percentage wins over fixed_amount when both are sent."""

    percentage: Optional[Decimal] = Field(default=None, ge=0, le=100)
    fixed_amount: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)


class InstallmentConfig(BaseSchema):
    enabled: bool = False
    count: Optional[int] = Field(default=None, ge=1, le=12)
    start_date: Optional[date] = None

    @model_validator(mode="after")
    def require_count_when_enabled(self) -> "InstallmentConfig":
        if self.enabled and not self.count:
            raise ValueError("installment.count is required when installments are enabled")
        return self


class GenerateFeesRequest(BaseCreateSchema):
    student_ids: Optional[List[int]] = None
    class_ids: Optional[List[int]] = None
    academic_year_id: int
    fee_structure_ids: List[int] = Field(..., min_length=1)
    due_date: date
    discount: Optional[DiscountConfig] = None
    installment: Optional[InstallmentConfig] = None
    regenerate_existing: bool = False

    @field_validator("student_ids", "class_ids", "fee_structure_ids")
    @classmethod
    def dedupe(cls, value: Optional[List[int]]) -> Optional[List[int]]:
        if value is None:
            return value
        return list(dict.fromkeys(value))

    @model_validator(mode="after")
    def require_selection(self) -> "GenerateFeesRequest":
        if not self.student_ids and not self.class_ids:
            raise ValueError("Select at least one student or class")
        return self


class FailedStudentDetail(BaseSchema):
    student_id: int
    student_name: Optional[str] = None
    reason: str


class FeeGenerationResult(BaseSchema):
    history_id: int
    status: GenerationStatus
    total_students: int
    fees_generated: int
    fees_failed: int
    rows_created: int
    total_amount_generated: Decimal
    failed_students: List[FailedStudentDetail] = Field(default_factory=list)


class FeeGenerationHistoryResponse(BaseSchema):
    id: int
    school_id: int
    academic_year_id: int
    type: GenerationType
    status: GenerationStatus
    total_students: int
    fees_generated: int
    fees_failed: int
    total_amount_generated: Decimal
    error_message: Optional[str] = None
    failed_student_details: Optional[List[FailedStudentDetail]] = None
    fee_structure_ids: Optional[List[int]] = None
    class_ids: Optional[List[int]] = None
    student_ids: Optional[List[int]] = None
    generated_by: Optional[str] = None
    generated_by_user_id: Optional[int] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
