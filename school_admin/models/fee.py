"""
Fee Models

Fee definitions (FeeStructure), their per-student instantiation
(StudentFeeStructure, one row per installment) and the audit log of
generation runs (FeeGenerationHistory).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, CheckConstraint, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from school_admin.models.base import BaseModel, TimestampMixin, enum_column, money_column
from school_admin.models.enums import (
    FeeFrequency,
    GenerationStatus,
    GenerationType,
    RecordStatus,
    StudentFeeStatus,
)

if TYPE_CHECKING:
    from school_admin.models.school import AcademicYear, CategoryHead, FeeCategory, SchoolClass
    from school_admin.models.student import Student


class FeeStructure(TimestampMixin, BaseModel):
    """
    Fee Structure Model

    A named, reusable fee definition. A null class applies the fee to every
    class; a null category head applies it to every category.
    """

    __tablename__ = "fee_structures"
    __table_args__ = (CheckConstraint("amount >= 0", name="ck_fee_structures_amount"),)

    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    fee_category_id: Mapped[Optional[int]] = mapped_column(ForeignKey("fee_categories.id", ondelete="SET NULL"))
    class_id: Mapped[Optional[int]] = mapped_column(ForeignKey("school_classes.id", ondelete="SET NULL"), index=True)
    category_head_id: Mapped[Optional[int]] = mapped_column(ForeignKey("category_heads.id", ondelete="SET NULL"))
    amount: Mapped[Decimal] = mapped_column(money_column(), nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    frequency: Mapped[FeeFrequency] = mapped_column(
        enum_column(FeeFrequency, "fee_frequency"), nullable=False, default=FeeFrequency.ONE_TIME
    )
    status: Mapped[RecordStatus] = mapped_column(
        enum_column(RecordStatus, "record_status"), nullable=False, default=RecordStatus.ACTIVE, index=True
    )

    fee_category: Mapped[Optional["FeeCategory"]] = relationship()
    school_class: Mapped[Optional["SchoolClass"]] = relationship()
    category_head: Mapped[Optional["CategoryHead"]] = relationship()


class StudentFeeStructure(TimestampMixin, BaseModel):
    """
    A fee assigned to one student. Installment plans produce one row per
    installment, numbered from 1, all sharing the same fee structure.
    """

    __tablename__ = "student_fee_structures"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_student_fee_structures_amount"),
        CheckConstraint("discount_amount >= 0", name="ck_student_fee_structures_discount"),
    )

    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_structure_id: Mapped[int] = mapped_column(ForeignKey("fee_structures.id"), nullable=False, index=True)
    academic_year_id: Mapped[int] = mapped_column(ForeignKey("academic_years.id"), nullable=False, index=True)
    academic_record_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("student_academic_records.id", ondelete="SET NULL")
    )

    amount: Mapped[Decimal] = mapped_column(money_column(), nullable=False)
    original_amount: Mapped[Decimal] = mapped_column(money_column(), nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(money_column(), nullable=False, default=Decimal("0.00"))
    discount_percentage: Mapped[Optional[Decimal]] = mapped_column(money_column(5))
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    installment_start_date: Mapped[Optional[date]] = mapped_column(Date)
    installment_count: Mapped[Optional[int]] = mapped_column(Integer)
    installment_number: Mapped[Optional[int]] = mapped_column(Integer)
    installment_amount: Mapped[Optional[Decimal]] = mapped_column(money_column())

    status: Mapped[StudentFeeStatus] = mapped_column(
        enum_column(StudentFeeStatus, "student_fee_status"),
        nullable=False,
        default=StudentFeeStatus.PENDING,
        index=True,
    )

    student: Mapped["Student"] = relationship()
    fee_structure: Mapped["FeeStructure"] = relationship()
    academic_year: Mapped["AcademicYear"] = relationship()


class FeeGenerationHistory(BaseModel):
    __tablename__ = "fee_generation_history"

    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    academic_year_id: Mapped[int] = mapped_column(ForeignKey("academic_years.id"), nullable=False, index=True)
    type: Mapped[GenerationType] = mapped_column(
        enum_column(GenerationType, "generation_type"), nullable=False, default=GenerationType.MANUAL
    )
    status: Mapped[GenerationStatus] = mapped_column(
        enum_column(GenerationStatus, "generation_status"), nullable=False, default=GenerationStatus.PENDING
    )

    total_students: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fees_generated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    fees_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_amount_generated: Mapped[Decimal] = mapped_column(
        money_column(15), nullable=False, default=Decimal("0.00")
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text)
    failed_student_details: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON)

    fee_structure_ids: Mapped[Optional[List[int]]] = mapped_column(JSON)
    class_ids: Mapped[Optional[List[int]]] = mapped_column(JSON)
    student_ids: Mapped[Optional[List[int]]] = mapped_column(JSON)

    generated_by: Mapped[Optional[str]] = mapped_column(String(150))
    generated_by_user_id: Mapped[Optional[int]] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), index=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
