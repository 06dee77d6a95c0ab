"""
Student Models

Student identity with family, financial and transport attributes, plus the
per-academic-year enrolment record that places a student in a class.
"""

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Date, ForeignKey, Index, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_admin.models.base import BaseModel, TimestampMixin, enum_column, money_column
from school_admin.models.enums import AcademicRecordStatus, Gender, StudentStatus

if TYPE_CHECKING:
    from school_admin.models.school import AcademicYear, CategoryHead, Route, School, SchoolClass


class Student(TimestampMixin, BaseModel):
    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("school_id", "student_code", name="uq_students_school_code"),
        UniqueConstraint("school_id", "email", name="uq_students_school_email"),
    )

    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    # Human-facing admission number, unique within a school
    student_code: Mapped[str] = mapped_column(String(50), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(30))
    date_of_birth: Mapped[Optional[date]] = mapped_column(Date)
    gender: Mapped[Optional[Gender]] = mapped_column(enum_column(Gender, "gender"))
    address: Mapped[Optional[str]] = mapped_column(Text)

    # Family
    father_name: Mapped[Optional[str]] = mapped_column(String(150))
    father_contact: Mapped[Optional[str]] = mapped_column(String(30))
    mother_name: Mapped[Optional[str]] = mapped_column(String(150))
    mother_contact: Mapped[Optional[str]] = mapped_column(String(30))
    guardian_name: Mapped[Optional[str]] = mapped_column(String(150))
    guardian_contact: Mapped[Optional[str]] = mapped_column(String(30))
    previous_class: Mapped[Optional[str]] = mapped_column(String(50))
    previous_school_name: Mapped[Optional[str]] = mapped_column(String(255))

    # Transport and pricing
    route_id: Mapped[Optional[int]] = mapped_column(ForeignKey("routes.id", ondelete="SET NULL"))
    category_head_id: Mapped[Optional[int]] = mapped_column(ForeignKey("category_heads.id", ondelete="SET NULL"))
    bus_number: Mapped[Optional[str]] = mapped_column(String(30))

    # Carried-forward ledger balance, adjusted outside the invoice system
    opening_balance: Mapped[Decimal] = mapped_column(money_column(), nullable=False, default=Decimal("0.00"))

    status: Mapped[StudentStatus] = mapped_column(
        enum_column(StudentStatus, "student_status"), nullable=False, default=StudentStatus.ACTIVE, index=True
    )

    school: Mapped["School"] = relationship(back_populates="students")
    route: Mapped[Optional["Route"]] = relationship()
    category_head: Mapped[Optional["CategoryHead"]] = relationship()
    academic_records: Mapped[List["StudentAcademicRecord"]] = relationship(
        back_populates="student", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class StudentAcademicRecord(TimestampMixin, BaseModel):
    __tablename__ = "student_academic_records"
    __table_args__ = (
        Index(
            "uq_student_academic_records_active",
            "student_id",
            "academic_year_id",
            unique=True,
            postgresql_where=text("status = 'active'"),
            sqlite_where=text("status = 'active'"),
        ),
    )

    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    academic_year_id: Mapped[int] = mapped_column(ForeignKey("academic_years.id", ondelete="CASCADE"), nullable=False, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey("school_classes.id"), nullable=False, index=True)
    section: Mapped[Optional[str]] = mapped_column(String(10))
    roll_number: Mapped[Optional[str]] = mapped_column(String(20))
    status: Mapped[AcademicRecordStatus] = mapped_column(
        enum_column(AcademicRecordStatus, "academic_record_status"),
        nullable=False,
        default=AcademicRecordStatus.ACTIVE,
    )

    student: Mapped["Student"] = relationship(back_populates="academic_records")
    academic_year: Mapped["AcademicYear"] = relationship()
    school_class: Mapped["SchoolClass"] = relationship()
