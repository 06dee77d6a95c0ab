"""
School Models

Tenant root (School) and the per-school catalog rows the fee logic keys on:
academic years, classes, category heads, fee categories and transport routes.
"""

from datetime import date
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_admin.models.base import BaseModel, TimestampMixin, enum_column
from school_admin.models.enums import FeeCategoryType, RecordStatus, SchoolStatus

if TYPE_CHECKING:
    from school_admin.models.student import Student


class School(TimestampMixin, BaseModel):
    __tablename__ = "schools"
    __table_args__ = (UniqueConstraint("code", name="uq_schools_code"),)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(30))
    address: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[SchoolStatus] = mapped_column(
        enum_column(SchoolStatus, "school_status"),
        nullable=False,
        default=SchoolStatus.ACTIVE,
        index=True,
    )

    academic_years: Mapped[List["AcademicYear"]] = relationship(
        back_populates="school", cascade="all, delete-orphan"
    )
    students: Mapped[List["Student"]] = relationship(back_populates="school")


class AcademicYear(TimestampMixin, BaseModel):
    __tablename__ = "academic_years"
    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_academic_years_school_name"),
        CheckConstraint("start_date <= end_date", name="ck_academic_years_date_range"),
    )

    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    school: Mapped["School"] = relationship(back_populates="academic_years")


class SchoolClass(TimestampMixin, BaseModel):
    __tablename__ = "school_classes"
    __table_args__ = (UniqueConstraint("school_id", "name", name="uq_school_classes_school_name"),)

    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    ordinal: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class CategoryHead(TimestampMixin, BaseModel):
    """Student pricing category, e.g. "General" or "Staff Ward"."""

    __tablename__ = "category_heads"

    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[RecordStatus] = mapped_column(
        enum_column(RecordStatus, "record_status"), nullable=False, default=RecordStatus.ACTIVE
    )


class FeeCategory(TimestampMixin, BaseModel):
    __tablename__ = "fee_categories"

    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    type: Mapped[FeeCategoryType] = mapped_column(
        enum_column(FeeCategoryType, "fee_category_type"), nullable=False, default=FeeCategoryType.SCHOOL
    )
    status: Mapped[RecordStatus] = mapped_column(
        enum_column(RecordStatus, "record_status"), nullable=False, default=RecordStatus.ACTIVE
    )


class Route(TimestampMixin, BaseModel):
    __tablename__ = "routes"

    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[RecordStatus] = mapped_column(
        enum_column(RecordStatus, "record_status"), nullable=False, default=RecordStatus.ACTIVE
    )
