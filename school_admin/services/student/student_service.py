"""
Student service: registration, search, updates and class enrolment.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from school_admin.core.pagination import build_page_meta, normalize_pagination
from school_admin.models.enums import AcademicRecordStatus, StudentStatus
from school_admin.models.invoice import FeeInvoice
from school_admin.models.payment import Payment
from school_admin.models.student import Student, StudentAcademicRecord
from school_admin.repositories.school.school_repository import (
    AcademicYearRepository,
    CategoryHeadRepository,
    RouteRepository,
    SchoolClassRepository,
)
from school_admin.repositories.student.student_repository import (
    StudentAcademicRecordRepository,
    StudentRepository,
)
from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ServiceResult
from school_admin.services.school.setup_service import first_failure, validate_catalog_reference

ENROLMENT_FIELDS = ("academic_year_id", "class_id", "section", "roll_number")


class StudentService(BaseService[Student, StudentRepository]):
    resource_name = "Student"

    def __init__(self, db_session: Session):
        super().__init__(StudentRepository(db_session), db_session)
        self.record_repository = StudentAcademicRecordRepository(db_session)
        self.year_repository = AcademicYearRepository(db_session)
        self.class_repository = SchoolClassRepository(db_session)
        self.route_repository = RouteRepository(db_session)
        self.category_head_repository = CategoryHeadRepository(db_session)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_students(
        self,
        school_id: int,
        search: Optional[str] = None,
        status: Optional[StudentStatus] = None,
        class_id: Optional[int] = None,
        academic_year_id: Optional[int] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ServiceResult[List[Student]]:
        try:
            params = normalize_pagination(page, limit)
            rows, total = self.repository.search(
                school_id,
                search=search,
                status=status,
                class_id=class_id,
                academic_year_id=academic_year_id,
                offset=params.offset,
                limit=params.limit,
            )
            return ServiceResult.success(rows, metadata=build_page_meta(total, params))
        except Exception as e:
            return self._handle_exception(e, "list students")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def register(self, school_id: int, data: Dict[str, Any]) -> ServiceResult[Student]:
        """
        Create a student, optionally enrolling them in a class for an
        academic year in the same transaction.
        """
        enrolment = {key: data.pop(key) for key in ENROLMENT_FIELDS if key in data}
        wants_enrolment = enrolment.get("academic_year_id") is not None or enrolment.get("class_id") is not None

        try:
            data = {**data, "school_id": school_id}
            validation_result = self._validate_create(data)
            if validation_result is not None:
                return validation_result

            if wants_enrolment:
                if not (enrolment.get("academic_year_id") and enrolment.get("class_id")):
                    return ServiceResult.validation_failure(
                        "academic_year_id and class_id are required together for enrolment"
                    )
                enrolment_check = self._validate_enrolment(school_id, enrolment)
                if enrolment_check is not None:
                    return enrolment_check

            with self.transaction():
                student = self.repository.create_from_dict(data)
                if wants_enrolment:
                    self.record_repository.create(
                        StudentAcademicRecord(student_id=student.id, **enrolment)
                    )

            self._log_operation("registered student", student.id, {"school_id": school_id})
            return ServiceResult.success(student, message="Student created successfully")
        except Exception as e:
            return self._handle_exception(e, "create student")

    def enroll(self, school_id: int, student_id: int, data: Dict[str, Any]) -> ServiceResult[StudentAcademicRecord]:
        """Add an active academic record; one active record per academic year."""
        try:
            student = self.repository.find_in_school(school_id, student_id)
            if student is None:
                return ServiceResult.not_found("Student", student_id)

            enrolment_check = self._validate_enrolment(school_id, data)
            if enrolment_check is not None:
                return enrolment_check

            if self.record_repository.find_active(student_id, data["academic_year_id"]):
                return ServiceResult.conflict(
                    "Student already has an active academic record for this academic year"
                )

            with self.transaction():
                record = self.record_repository.create(
                    StudentAcademicRecord(student_id=student_id, status=AcademicRecordStatus.ACTIVE, **data)
                )

            self._log_operation("enrolled student", student_id, {"academic_year_id": data["academic_year_id"]})
            return ServiceResult.success(record, message="Academic record created successfully")
        except Exception as e:
            return self._handle_exception(e, "enroll student", student_id)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _validate_create(self, data: Dict[str, Any]) -> Optional[ServiceResult]:
        school_id = data["school_id"]
        if self.repository.exists(school_id=school_id, student_code=data["student_code"]):
            return ServiceResult.conflict("A student with this student ID already exists in this school")
        if data.get("email") and self.repository.exists(school_id=school_id, email=data["email"]):
            return ServiceResult.conflict("A student with this email already exists in this school")
        return self._validate_references(school_id, data)

    def _validate_update(self, entity: Student, data: Dict[str, Any]) -> Optional[ServiceResult]:
        code = data.get("student_code")
        if code and code != entity.student_code and self.repository.exists(
            school_id=entity.school_id, student_code=code
        ):
            return ServiceResult.conflict("A student with this student ID already exists in this school")
        email = data.get("email")
        if email and email != entity.email and self.repository.exists(school_id=entity.school_id, email=email):
            return ServiceResult.conflict("A student with this email already exists in this school")
        return self._validate_references(entity.school_id, data)

    def _validate_delete(self, entity: Student) -> Optional[ServiceResult]:
        payments = self.db.scalar(select(func.count(Payment.id)).where(Payment.student_id == entity.id))
        invoices = self.db.scalar(select(func.count(FeeInvoice.id)).where(FeeInvoice.student_id == entity.id))
        if payments or invoices:
            return ServiceResult.invalid_state(
                "Cannot delete a student with invoices or payments; mark the student inactive instead",
                details={"payments": payments, "invoices": invoices},
            )
        return None

    def _validate_references(self, school_id: int, data: Dict[str, Any]) -> Optional[ServiceResult]:
        return first_failure(
            validate_catalog_reference(self.route_repository, school_id, data.get("route_id"), "Route"),
            validate_catalog_reference(
                self.category_head_repository, school_id, data.get("category_head_id"), "Category head"
            ),
        )

    def _validate_enrolment(self, school_id: int, data: Dict[str, Any]) -> Optional[ServiceResult]:
        return first_failure(
            validate_catalog_reference(self.year_repository, school_id, data.get("academic_year_id"), "Academic year"),
            validate_catalog_reference(self.class_repository, school_id, data.get("class_id"), "Class"),
        )
