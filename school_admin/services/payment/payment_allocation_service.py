"""
Payment allocation service.

Splits money received from a student across fee heads. Fee-head ids:

    0   the student's ledger (opening) balance
    -1  transport, priced by the student's route
    >0  a fee structure

Ledger portions only reduce the opening balance. Everything else is
billed on a one-off invoice that is issued and settled by a single
invoice payment in the same transaction.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from school_admin.config.settings import settings
from school_admin.core.utils import ZERO, CurrencyUtils
from school_admin.models.enums import InvoiceSourceType, InvoiceType
from school_admin.models.invoice import FeeInvoice
from school_admin.models.payment import Payment
from school_admin.models.route_price import RoutePrice
from school_admin.models.student import Student
from school_admin.repositories.fee.fee_repository import FeeStructureRepository
from school_admin.repositories.school.school_repository import AcademicYearRepository
from school_admin.repositories.student.student_repository import (
    StudentAcademicRecordRepository,
    StudentRepository,
)
from school_admin.repositories.transport.route_price_repository import RoutePriceRepository
from school_admin.schemas.invoice import InvoiceResponse
from school_admin.schemas.payment import (
    LEDGER_FEE_HEAD_ID,
    TRANSPORT_FEE_HEAD_ID,
    PaymentAllocationRequest,
    PaymentAllocationResult,
    PaymentResponse,
)
from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ServiceResult
from school_admin.services.invoice.invoice_service import InvoiceService
from school_admin.services.payment.payment_service import PaymentService


class PaymentAllocationService(BaseService[Student, StudentRepository]):
    resource_name = "Student"

    def __init__(self, db_session: Session):
        super().__init__(StudentRepository(db_session), db_session)
        self.year_repository = AcademicYearRepository(db_session)
        self.record_repository = StudentAcademicRecordRepository(db_session)
        self.fee_structure_repository = FeeStructureRepository(db_session)
        self.route_price_repository = RoutePriceRepository(db_session)
        self.invoice_service = InvoiceService(db_session)
        self.payment_service = PaymentService(db_session)

    def allocate_payment(
        self,
        school_id: int,
        request: PaymentAllocationRequest,
    ) -> ServiceResult[PaymentAllocationResult]:
        try:
            student = self.repository.find_in_school(school_id, request.student_id)
            if student is None:
                return ServiceResult.not_found("Student", request.student_id)
            if self.year_repository.find_in_school(school_id, request.academic_year_id) is None:
                return ServiceResult.not_found("Academic year", request.academic_year_id)

            allocation = {head: CurrencyUtils.to_decimal(amount) for head, amount in request.allocation.items()}
            discount = CurrencyUtils.to_decimal(request.discount)
            failure = self._validate_amounts(request, allocation, discount)
            if failure is not None:
                return failure

            ledger_amount = allocation.get(LEDGER_FEE_HEAD_ID, ZERO)
            if ledger_amount > CurrencyUtils.to_decimal(student.opening_balance):
                return ServiceResult.validation_failure(
                    "Ledger amount exceeds the student's outstanding balance",
                    field="allocation",
                    details={
                        "ledger_amount": str(ledger_amount),
                        "opening_balance": str(CurrencyUtils.to_decimal(student.opening_balance)),
                    },
                )

            items, failure = self._build_items(school_id, student, request.academic_year_id, allocation)
            if failure is not None:
                return failure

            real_total = sum((item["amount"] for item in items), ZERO)
            warnings: List[str] = []
            with self.transaction():
                invoice, payment = self._bill(school_id, request, items, discount, real_total)
                ledger_adjusted = self._settle_ledger(student, ledger_amount, warnings)

            allocated_total = real_total + ledger_amount
            self._log_operation(
                "allocated payment",
                student.id,
                {
                    "invoice_id": invoice.id,
                    "payment_id": payment.id if payment else None,
                    "allocated_total": str(allocated_total),
                    "ledger_amount": str(ledger_amount),
                },
            )
            result = PaymentAllocationResult(
                invoice=InvoiceResponse.model_validate(invoice),
                payment=PaymentResponse.model_validate(payment) if payment else None,
                ledger_amount=ledger_amount,
                ledger_adjusted=ledger_adjusted,
                opening_balance_after=CurrencyUtils.to_decimal(student.opening_balance),
                allocated_total=allocated_total,
                net_paid=real_total - discount + (ledger_amount if ledger_adjusted else ZERO),
                unallocated_amount=CurrencyUtils.to_decimal(request.amount_received) - allocated_total,
                warnings=warnings,
            )
            return ServiceResult.success(result, message="Payment allocated successfully")
        except Exception as e:
            return self._handle_exception(e, "allocate payment", request.student_id)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_amounts(
        request: PaymentAllocationRequest,
        allocation: Dict[int, Decimal],
        discount: Decimal,
    ) -> Optional[ServiceResult]:
        negative = sorted(head for head, amount in allocation.items() if amount < ZERO)
        if negative:
            return ServiceResult.validation_failure(
                "Allocation amounts cannot be negative", field="allocation", details={"fee_head_ids": negative}
            )

        total = sum(allocation.values(), ZERO)
        if total <= ZERO:
            return ServiceResult.validation_failure("Total allocation must be greater than 0", field="allocation")

        real_total = sum(
            (amount for head, amount in allocation.items() if head != LEDGER_FEE_HEAD_ID), ZERO
        )
        if real_total <= ZERO:
            return ServiceResult.validation_failure(
                "Allocate a positive amount to at least one fee head other than the ledger balance",
                field="allocation",
            )

        received = CurrencyUtils.to_decimal(request.amount_received)
        if total > received:
            return ServiceResult.validation_failure(
                f"Total allocation ({total}) exceeds the amount received ({received})",
                field="allocation",
            )
        if discount > real_total:
            return ServiceResult.validation_failure(
                f"Discount ({discount}) cannot exceed the allocated fee total ({real_total})",
                field="discount",
            )
        return None

    def _build_items(
        self,
        school_id: int,
        student: Student,
        academic_year_id: int,
        allocation: Dict[int, Decimal],
    ) -> Tuple[List[Dict[str, Any]], Optional[ServiceResult]]:
        """Invoice lines for every non-ledger head with a positive amount."""
        heads = [head for head, amount in allocation.items() if head != LEDGER_FEE_HEAD_ID and amount > ZERO]

        fee_structure_ids = [head for head in heads if head > 0]
        structures = {
            fs.id: fs for fs in self.fee_structure_repository.find_in_school_by_ids(school_id, fee_structure_ids)
        }
        missing = sorted(set(fee_structure_ids) - set(structures))
        unknown = sorted(head for head in heads if head < 0 and head != TRANSPORT_FEE_HEAD_ID)
        if missing or unknown:
            return [], ServiceResult.validation_failure(
                "Unknown fee heads in allocation",
                field="allocation",
                details={"missing_fee_structure_ids": missing, "unknown_fee_head_ids": unknown},
            )

        route_price: Optional[RoutePrice] = None
        if TRANSPORT_FEE_HEAD_ID in heads:
            record = self.record_repository.find_active(student.id, academic_year_id)
            route_price = self.route_price_repository.find_applicable(
                school_id,
                student.route_id,
                record.class_id if record else None,
                student.category_head_id,
            )
            if route_price is None:
                return [], ServiceResult.validation_failure(
                    "No active route price for the student's route, class and category head",
                    field="allocation",
                    details={"fee_head_id": TRANSPORT_FEE_HEAD_ID},
                )

        items = []
        for head in heads:
            amount = allocation[head]
            if head == TRANSPORT_FEE_HEAD_ID:
                items.append({
                    "source_type": InvoiceSourceType.TRANSPORT,
                    "source_id": route_price.id,
                    "description": "Transport fee",
                    "amount": amount,
                    "source_metadata": {
                        "fee_head_id": head,
                        "route_id": route_price.route_id,
                        "monthly_amount": str(route_price.amount),
                    },
                })
            else:
                fee_structure = structures[head]
                items.append({
                    "source_type": InvoiceSourceType.FEE,
                    "source_id": fee_structure.id,
                    "description": fee_structure.name,
                    "amount": amount,
                    "source_metadata": {
                        "fee_head_id": head,
                        "fee_structure_name": fee_structure.name,
                        "structure_amount": str(fee_structure.amount),
                    },
                })
        return items, None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _bill(
        self,
        school_id: int,
        request: PaymentAllocationRequest,
        items: List[Dict[str, Any]],
        discount: Decimal,
        real_total: Decimal,
    ) -> Tuple[FeeInvoice, Optional[Payment]]:
        invoice = self.invoice_service.build_invoice(
            school_id,
            {
                "student_id": request.student_id,
                "academic_year_id": request.academic_year_id,
                "issue_date": request.payment_date,
                "due_date": request.payment_date,
                "type": InvoiceType.ONE_TIME,
                "discount_amount": discount,
                "notes": request.notes,
                "items": items,
            },
        )
        self.invoice_service.issue(invoice)

        net_amount = real_total - discount
        if net_amount <= ZERO:
            return invoice, None
        payment = self.payment_service.record_payment(
            school_id,
            {
                "student_id": request.student_id,
                "invoice_id": invoice.id,
                "amount": net_amount,
                "payment_date": request.payment_date,
                "payment_method": request.payment_method,
                "transaction_id": request.transaction_id,
                "notes": request.notes,
            },
        )
        return invoice, payment

    def _settle_ledger(self, student: Student, amount: Decimal, warnings: List[str]) -> bool:
        """
        Reduce the opening balance. In best-effort mode a failure is
        logged and reported instead of aborting the payment.
        """
        if amount <= ZERO:
            return False
        if not settings.LEDGER_ADJUSTMENT_BEST_EFFORT:
            self._adjust_ledger(student, amount)
            return True

        try:
            with self.repository.savepoint():
                self._adjust_ledger(student, amount)
            return True
        except Exception as e:
            self._logger.error(
                f"Ledger adjustment failed for student {student.id}: {e}",
                exc_info=True,
                extra={"student_id": student.id, "ledger_amount": str(amount)},
            )
            warnings.append(f"Ledger balance was not adjusted: {e}")
            return False

    def _adjust_ledger(self, student: Student, amount: Decimal) -> None:
        student.opening_balance = CurrencyUtils.to_decimal(student.opening_balance) - amount
        self.repository.flush()
