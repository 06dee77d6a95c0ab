"""
Fee generation service.

Turns fee structures into per-student fee rows for an academic year.
Each student is processed in its own savepoint so one failure never
undoes the fees already generated for the others; every run is recorded
in the generation history.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from school_admin.config.settings import settings
from school_admin.core.exceptions import BaseAppException, FeeGenerationError
from school_admin.core.pagination import build_page_meta, normalize_pagination
from school_admin.core.utils import ZERO, CurrencyUtils, DateTimeUtils
from school_admin.models.enums import (
    FeeFrequency,
    GenerationStatus,
    GenerationType,
    RecordStatus,
    StudentFeeStatus,
)
from school_admin.models.fee import FeeGenerationHistory, FeeStructure, StudentFeeStructure
from school_admin.models.student import Student
from school_admin.repositories.fee.fee_repository import (
    FeeGenerationHistoryRepository,
    FeeStructureRepository,
    StudentFeeStructureRepository,
)
from school_admin.repositories.invoice.invoice_repository import FeeInvoiceRepository, billed_fee_row_id
from school_admin.repositories.school.school_repository import AcademicYearRepository
from school_admin.repositories.student.student_repository import (
    StudentAcademicRecordRepository,
    StudentRepository,
)
from school_admin.schemas.fee_generation import (
    DiscountConfig,
    FailedStudentDetail,
    FeeGenerationResult,
    GenerateFeesRequest,
    InstallmentConfig,
)
from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ServiceResult

ALREADY_GENERATED = "Fees already generated"
NO_MONTHLY_FEES = "No applicable monthly fee structures"

RowBuilder = Callable[[Student], List[StudentFeeStructure]]


class FeeGenerationService(BaseService[FeeGenerationHistory, FeeGenerationHistoryRepository]):
    resource_name = "Fee generation history"

    def __init__(self, db_session: Session):
        super().__init__(FeeGenerationHistoryRepository(db_session), db_session)
        self.fee_structure_repository = FeeStructureRepository(db_session)
        self.student_fee_repository = StudentFeeStructureRepository(db_session)
        self.student_repository = StudentRepository(db_session)
        self.record_repository = StudentAcademicRecordRepository(db_session)
        self.year_repository = AcademicYearRepository(db_session)
        self.invoice_repository = FeeInvoiceRepository(db_session)

    # ------------------------------------------------------------------
    # Manual generation
    # ------------------------------------------------------------------

    def generate_fees(
        self,
        school_id: int,
        request: GenerateFeesRequest,
        generated_by: Optional[str] = None,
        generated_by_user_id: Optional[int] = None,
    ) -> ServiceResult[FeeGenerationResult]:
        """
        Generate fee rows for the selected students and fee structures.

        Students come from explicit ids plus active enrolments in the
        selected classes. Existing rows are skipped unless
        regenerate_existing is set, in which case unpaid rows without
        payments are replaced.
        """
        try:
            if self.year_repository.find_in_school(school_id, request.academic_year_id) is None:
                return ServiceResult.not_found("Academic year", request.academic_year_id)

            structures = self.fee_structure_repository.find_in_school_by_ids(school_id, request.fee_structure_ids)
            missing = sorted(set(request.fee_structure_ids) - {fs.id for fs in structures})
            if missing:
                return ServiceResult.validation_failure(
                    f"Fee structures not found: {missing}",
                    field="fee_structure_ids",
                    details={"missing_ids": missing},
                )
            by_id = {fs.id: fs for fs in structures}
            structures = [by_id[fs_id] for fs_id in request.fee_structure_ids]

            student_ids = self._resolve_students(school_id, request)
            if not student_ids:
                return ServiceResult.validation_failure("No students found for the selected classes")

            history = self._start_history(
                school_id,
                request.academic_year_id,
                GenerationType.MANUAL,
                student_ids=request.student_ids,
                class_ids=request.class_ids,
                fee_structure_ids=request.fee_structure_ids,
                generated_by=generated_by,
                generated_by_user_id=generated_by_user_id,
            )

            def build_rows(student: Student) -> List[StudentFeeStructure]:
                return self._generate_for_student(student, structures, request)

            result = self._run(history, school_id, student_ids, build_rows)
            return ServiceResult.success(result, message=self._summary_message(result))
        except Exception as e:
            return self._handle_exception(e, "generate fees", additional_context={"school_id": school_id})

    def _resolve_students(self, school_id: int, request: GenerateFeesRequest) -> List[int]:
        student_ids = list(request.student_ids or [])
        if request.class_ids:
            student_ids.extend(
                self.student_repository.find_ids_in_classes(school_id, request.academic_year_id, request.class_ids)
            )
        return list(dict.fromkeys(student_ids))

    def _generate_for_student(
        self,
        student: Student,
        structures: Sequence[FeeStructure],
        request: GenerateFeesRequest,
    ) -> List[StudentFeeStructure]:
        record = self.record_repository.find_active(student.id, request.academic_year_id)
        created: List[StudentFeeStructure] = []

        for fee_structure in structures:
            existing = self.student_fee_repository.find_existing(
                student.id, fee_structure.id, request.academic_year_id
            )
            if existing:
                if not request.regenerate_existing:
                    continue
                self._discard_for_regeneration(fee_structure, existing)

            rows = build_fee_rows(
                student_id=student.id,
                fee_structure=fee_structure,
                academic_year_id=request.academic_year_id,
                academic_record_id=record.id if record else None,
                due_date=request.due_date,
                discount=request.discount,
                installment=request.installment,
            )
            created.extend(self.student_fee_repository.create_many(rows))

        if not created:
            raise FeeGenerationError(ALREADY_GENERATED)
        return created

    def _discard_for_regeneration(self, fee_structure: FeeStructure, rows: List[StudentFeeStructure]) -> None:
        row_ids = [row.id for row in rows]
        paid = any(row.status == StudentFeeStatus.PAID for row in rows)
        if (
            paid
            or self.student_fee_repository.has_payments(row_ids)
            or self._has_invoice_payments(rows[0].student_id, row_ids)
        ):
            raise FeeGenerationError(
                f"Cannot regenerate '{fee_structure.name}': payments have already been recorded"
            )
        for row in rows:
            self.student_fee_repository.delete(row)

    def _has_invoice_payments(self, student_id: int, row_ids: List[int]) -> bool:
        """Whether any of the rows is billed on an invoice that has received payments."""
        return any(
            billed_fee_row_id(item) in row_ids and item.invoice.payments
            for item in self.invoice_repository.find_fee_row_items(student_id)
        )

    # ------------------------------------------------------------------
    # Automatic monthly generation
    # ------------------------------------------------------------------

    def generate_monthly_fees(
        self,
        school_id: int,
        academic_year_id: int,
        run_date: Optional[date] = None,
    ) -> ServiceResult[FeeGenerationResult]:
        """
        Generate this month's row of every active monthly fee structure for
        each enrolled student. A student already billed for the month is
        skipped.
        """
        try:
            if self.year_repository.find_in_school(school_id, academic_year_id) is None:
                return ServiceResult.not_found("Academic year", academic_year_id)

            due_date = DateTimeUtils.with_day(run_date or date.today(), settings.MONTHLY_FEE_DUE_DAY)
            records = {
                record.student_id: record
                for record in self.record_repository.find_active_for_year(academic_year_id)
            }
            student_ids = list(records)
            monthly_ids = [
                fs.id
                for fs in self.fee_structure_repository.find_by_criteria(
                    {"school_id": school_id, "frequency": FeeFrequency.MONTHLY, "status": RecordStatus.ACTIVE}
                )
            ]

            history = self._start_history(
                school_id,
                academic_year_id,
                GenerationType.AUTOMATIC,
                student_ids=student_ids,
                fee_structure_ids=monthly_ids,
                generated_by="system",
            )

            def build_rows(student: Student) -> List[StudentFeeStructure]:
                record = records[student.id]
                structures = self.fee_structure_repository.find_applicable(
                    school_id, record.class_id, student.category_head_id, FeeFrequency.MONTHLY
                )
                if not structures:
                    raise FeeGenerationError(NO_MONTHLY_FEES)

                created: List[StudentFeeStructure] = []
                for fee_structure in structures:
                    if self.student_fee_repository.find_existing(
                        student.id, fee_structure.id, academic_year_id, due_month=due_date
                    ):
                        continue
                    rows = build_fee_rows(
                        student_id=student.id,
                        fee_structure=fee_structure,
                        academic_year_id=academic_year_id,
                        academic_record_id=record.id,
                        due_date=due_date,
                    )
                    created.extend(self.student_fee_repository.create_many(rows))
                if not created:
                    raise FeeGenerationError(ALREADY_GENERATED)
                return created

            result = self._run(history, school_id, student_ids, build_rows)
            return ServiceResult.success(result, message=self._summary_message(result))
        except Exception as e:
            return self._handle_exception(
                e,
                "generate monthly fees",
                additional_context={"school_id": school_id, "academic_year_id": academic_year_id},
            )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def list_history(
        self,
        school_id: int,
        academic_year_id: Optional[int] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ServiceResult[List[FeeGenerationHistory]]:
        try:
            params = normalize_pagination(page, limit)
            rows, total = self.repository.search(school_id, academic_year_id, params.offset, params.limit)
            return ServiceResult.success(rows, metadata=build_page_meta(total, params))
        except Exception as e:
            return self._handle_exception(e, "list fee generation history")

    def get_history(self, school_id: int, history_id: int) -> ServiceResult[FeeGenerationHistory]:
        return self.get_by_id(history_id, school_id)

    # ------------------------------------------------------------------
    # Run bookkeeping
    # ------------------------------------------------------------------

    def _start_history(
        self,
        school_id: int,
        academic_year_id: int,
        generation_type: GenerationType,
        **fields: Any,
    ) -> FeeGenerationHistory:
        with self.transaction():
            history = self.repository.create(
                FeeGenerationHistory(
                    school_id=school_id,
                    academic_year_id=academic_year_id,
                    type=generation_type,
                    status=GenerationStatus.IN_PROGRESS,
                    total_students=0,
                    fees_generated=0,
                    fees_failed=0,
                    total_amount_generated=ZERO,
                    **fields,
                )
            )
        return history

    def _run(
        self,
        history: FeeGenerationHistory,
        school_id: int,
        student_ids: List[int],
        build_rows: RowBuilder,
    ) -> FeeGenerationResult:
        students = self.student_repository.find_in_school_by_ids(school_id, student_ids)
        failures: List[Dict[str, Any]] = []
        generated = 0
        rows_created = 0
        total_amount = ZERO

        for student_id in student_ids:
            student = students.get(student_id)
            if student is None:
                failures.append(self._failure(student_id, None, "Student not found in this school"))
                continue
            try:
                with self.student_fee_repository.savepoint():
                    rows = build_rows(student)
                generated += 1
                rows_created += len(rows)
                total_amount += sum((row.amount for row in rows), ZERO)
            except BaseAppException as e:
                failures.append(self._failure(student.id, student.full_name, e.message))
            except Exception as e:
                self._logger.error(
                    f"Fee generation failed for student {student.id}: {e}",
                    exc_info=True,
                    extra={"history_id": history.id, "student_id": student.id},
                )
                failures.append(self._failure(student.id, student.full_name, str(e)))

        with self.transaction():
            history.total_students = len(student_ids)
            history.fees_generated = generated
            history.fees_failed = len(failures)
            history.total_amount_generated = CurrencyUtils.to_decimal(total_amount)
            history.failed_student_details = failures or None
            history.error_message = (
                f"{len(failures)} of {len(student_ids)} students failed" if failures else None
            )
            history.status = (
                GenerationStatus.FAILED if student_ids and generated == 0 else GenerationStatus.COMPLETED
            )
            history.completed_at = datetime.now(timezone.utc)
            self.repository.flush()

        self._log_operation(
            "fee generation run finished",
            history.id,
            {
                "school_id": school_id,
                "generation_type": history.type.value,
                "fees_generated": generated,
                "fees_failed": len(failures),
                "rows_created": rows_created,
            },
        )
        return FeeGenerationResult(
            history_id=history.id,
            status=history.status,
            total_students=history.total_students,
            fees_generated=generated,
            fees_failed=len(failures),
            rows_created=rows_created,
            total_amount_generated=history.total_amount_generated,
            failed_students=[FailedStudentDetail(**failure) for failure in failures],
        )

    @staticmethod
    def _failure(student_id: int, student_name: Optional[str], reason: str) -> Dict[str, Any]:
        return {"student_id": student_id, "student_name": student_name, "reason": reason}

    @staticmethod
    def _summary_message(result: FeeGenerationResult) -> str:
        return (
            f"Fees generated for {result.fees_generated} of {result.total_students} students"
            + (f"; {result.fees_failed} failed" if result.fees_failed else "")
        )


def build_fee_rows(
    student_id: int,
    fee_structure: FeeStructure,
    academic_year_id: int,
    academic_record_id: Optional[int],
    due_date: date,
    discount: Optional[DiscountConfig] = None,
    installment: Optional[InstallmentConfig] = None,
) -> List[StudentFeeStructure]:
    """
    Fee rows for one student and fee structure.

    The discount is applied to the structure amount first. With
    installments the discounted amount, the discount and the original
    amount are each split the same way (last part takes the remainder)
    and installment i falls due i-1 months after the start date.
    """
    original = CurrencyUtils.to_decimal(fee_structure.amount)
    percentage = discount.percentage if discount else None
    fixed_amount = discount.fixed_amount if discount else None
    discount_amount, amount = CurrencyUtils.apply_discount(original, percentage, fixed_amount)

    base = {
        "student_id": student_id,
        "fee_structure_id": fee_structure.id,
        "academic_year_id": academic_year_id,
        "academic_record_id": academic_record_id,
        "discount_percentage": Decimal(str(percentage)) if percentage is not None else None,
        "status": StudentFeeStatus.PENDING,
    }

    if not (installment and installment.enabled and installment.count):
        return [
            StudentFeeStructure(
                amount=amount,
                original_amount=original,
                discount_amount=discount_amount,
                due_date=due_date,
                **base,
            )
        ]

    count = installment.count
    start = installment.start_date or due_date
    amounts = CurrencyUtils.split_installments(amount, count)
    discounts = CurrencyUtils.split_installments(discount_amount, count)
    return [
        StudentFeeStructure(
            amount=part,
            original_amount=part + part_discount,
            discount_amount=part_discount,
            due_date=DateTimeUtils.add_months(start, number - 1),
            installment_start_date=start,
            installment_count=count,
            installment_number=number,
            installment_amount=part,
            **base,
        )
        for number, (part, part_discount) in enumerate(zip(amounts, discounts), start=1)
    ]
