"""
Payment service.

A payment settles either an issued invoice or, for older data, a single
student fee row. Saving, editing or deleting a payment recomputes the
status of whatever it points at.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from school_admin.config.settings import settings
from school_admin.core.exceptions import BadRequestError, BusinessRuleError, ConflictError, PaymentError
from school_admin.core.pagination import build_page_meta, normalize_pagination
from school_admin.core.utils import ZERO, CurrencyUtils
from school_admin.models.enums import InvoiceStatus
from school_admin.models.fee import StudentFeeStructure
from school_admin.models.payment import Payment
from school_admin.repositories.fee.fee_repository import StudentFeeStructureRepository
from school_admin.repositories.payment.payment_repository import PaymentRepository
from school_admin.repositories.student.student_repository import StudentRepository
from school_admin.schemas.payment import (
    PaymentReceipt,
    ReceiptFee,
    ReceiptPayment,
    ReceiptSchool,
    ReceiptStudent,
)
from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ServiceResult
from school_admin.services.invoice.invoice_service import InvoiceService

UNPAYABLE_INVOICE_STATUSES = (InvoiceStatus.DRAFT, InvoiceStatus.CANCELLED)


class PaymentService(BaseService[Payment, PaymentRepository]):
    resource_name = "Payment"

    def __init__(self, db_session: Session):
        super().__init__(PaymentRepository(db_session), db_session)
        self.student_repository = StudentRepository(db_session)
        self.student_fee_repository = StudentFeeStructureRepository(db_session)
        self.invoice_service = InvoiceService(db_session)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_all(
        self,
        school_id: int,
        student_id: Optional[int] = None,
        invoice_id: Optional[int] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> ServiceResult[List[Payment]]:
        try:
            params = normalize_pagination(page, limit)
            rows, total = self.repository.search(
                school_id,
                student_id=student_id,
                invoice_id=invoice_id,
                offset=params.offset,
                limit=params.limit,
            )
            return ServiceResult.success(rows, metadata=build_page_meta(total, params))
        except Exception as e:
            return self._handle_exception(e, "list payments")

    def find_one(self, school_id: int, payment_id: int) -> ServiceResult[Payment]:
        return self.get_by_id(payment_id, school_id)

    def get_receipt(self, school_id: int, payment_id: int) -> ServiceResult[PaymentReceipt]:
        """
        Receipt for one payment with the balance left on what it settled.

        A fee-row payment reports the row and the completed payments
        against it; an invoice payment reports the invoice totals.
        """
        try:
            payment = self.repository.find_in_school(school_id, payment_id)
            if payment is None:
                return ServiceResult.not_found("Payment", payment_id)

            student = payment.student
            if payment.student_fee_structure is not None:
                row = payment.student_fee_structure
                total = CurrencyUtils.to_decimal(row.amount)
                paid = self.repository.total_for_fee_row(row.id)
                fee = ReceiptFee(
                    name=row.fee_structure.name,
                    academic_year=row.academic_year.name,
                    total_amount=total,
                    paid_amount=paid,
                    remaining_balance=total - paid,
                    due_date=row.due_date,
                )
            else:
                invoice = payment.invoice
                fee = ReceiptFee(
                    name="Fee Payment",
                    invoice_number=invoice.invoice_number,
                    academic_year=invoice.academic_year.name,
                    total_amount=invoice.total_amount,
                    paid_amount=invoice.paid_amount,
                    remaining_balance=invoice.balance_amount,
                    due_date=invoice.due_date,
                )

            receipt = PaymentReceipt(
                receipt_number=payment.receipt_number,
                receipt_date=payment.payment_date,
                payment=ReceiptPayment.model_validate(payment),
                student=ReceiptStudent(id=student.id, student_code=student.student_code, name=student.full_name),
                fee=fee,
                school=ReceiptSchool.model_validate(student.school),
            )
            return ServiceResult.success(receipt)
        except Exception as e:
            return self._handle_exception(e, "build payment receipt", payment_id)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_payment(self, school_id: int, data: Dict[str, Any]) -> ServiceResult[Payment]:
        try:
            with self.transaction():
                payment = self.record_payment(school_id, data)

            self._log_operation(
                "recorded payment",
                payment.id,
                {"receipt_number": payment.receipt_number, "amount": str(payment.amount)},
            )
            return ServiceResult.success(payment, message="Payment recorded successfully")
        except Exception as e:
            return self._handle_exception(e, "record payment")

    def record_payment(self, school_id: int, data: Dict[str, Any]) -> Payment:
        """
        Validate and add a payment, then refresh its target. Does not commit.

        Raises:
            BadRequestError: Unknown or foreign target, or amount over the balance
            ConflictError: Receipt number already used in this school
        """
        data = dict(data)
        student_id = data["student_id"]
        if self.student_repository.find_in_school(school_id, student_id) is None:
            raise BadRequestError("Student not found in this school", details={"student_id": student_id})

        if (data.get("invoice_id") is None) == (data.get("student_fee_structure_id") is None):
            raise BadRequestError("Provide exactly one of invoice_id or student_fee_structure_id")

        amount = CurrencyUtils.to_decimal(data["amount"])
        if amount <= ZERO:
            raise BadRequestError("Payment amount must be greater than 0")
        self._check_amount(school_id, student_id, data, amount)

        receipt_number = data.get("receipt_number")
        if receipt_number:
            if self.repository.receipt_exists(school_id, receipt_number):
                raise ConflictError(f"Receipt number {receipt_number} already exists")
        else:
            data["receipt_number"] = self._next_receipt_number(school_id)

        payment = self.repository.create(Payment(school_id=school_id, **{**data, "amount": amount}))
        self._refresh_target(payment)
        return payment

    def update_payment(self, school_id: int, payment_id: int, data: Dict[str, Any]) -> ServiceResult[Payment]:
        try:
            payment = self.repository.find_in_school(school_id, payment_id)
            if payment is None:
                return ServiceResult.not_found("Payment", payment_id)

            receipt_number = data.get("receipt_number")
            if receipt_number and self.repository.receipt_exists(school_id, receipt_number, exclude_id=payment.id):
                return ServiceResult.conflict(f"Receipt number {receipt_number} already exists")

            if data.get("amount") is not None:
                amount = CurrencyUtils.to_decimal(data["amount"])
                self._check_amount(
                    school_id,
                    payment.student_id,
                    {"invoice_id": payment.invoice_id, "student_fee_structure_id": payment.student_fee_structure_id},
                    amount,
                    exclude_id=payment.id,
                )
                data = {**data, "amount": amount}

            with self.transaction():
                self.repository.update(payment, data)
                self._refresh_target(payment)

            self._log_operation("updated payment", payment_id, {"fields": sorted(data)})
            return ServiceResult.success(payment, message="Payment updated successfully")
        except Exception as e:
            return self._handle_exception(e, "update payment", payment_id)

    def remove(self, school_id: int, payment_id: int) -> ServiceResult[bool]:
        try:
            payment = self.repository.find_in_school(school_id, payment_id)
            if payment is None:
                return ServiceResult.not_found("Payment", payment_id)

            invoice = payment.invoice
            fee_row = payment.student_fee_structure
            with self.transaction():
                self.repository.delete(payment)
                if invoice is not None:
                    self.invoice_service.recalculate(invoice)
                if fee_row is not None:
                    self.refresh_fee_row(fee_row)

            self._log_operation("deleted payment", payment_id)
            return ServiceResult.success(True, message="Payment deleted successfully")
        except Exception as e:
            return self._handle_exception(e, "delete payment", payment_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def refresh_fee_row(self, row: StudentFeeStructure, today: Optional[date] = None) -> StudentFeeStructure:
        return self.invoice_service.refresh_fee_row(row, today)

    def _check_amount(
        self,
        school_id: int,
        student_id: int,
        target: Dict[str, Any],
        amount: Decimal,
        exclude_id: Optional[int] = None,
    ) -> None:
        """Reject payments over the remaining balance of the target."""
        if target.get("invoice_id") is not None:
            invoice = self.invoice_service.repository.find_in_school(school_id, target["invoice_id"])
            if invoice is None or invoice.student_id != student_id:
                raise BadRequestError(
                    "Invoice not found for this student", details={"invoice_id": target["invoice_id"]}
                )
            if invoice.status in UNPAYABLE_INVOICE_STATUSES:
                raise BusinessRuleError(f"Cannot record a payment against a {invoice.status.value} invoice")
            paid = self.repository.total_for_invoice(invoice.id, exclude_id=exclude_id)
            remaining = (
                CurrencyUtils.to_decimal(invoice.total_amount)
                - CurrencyUtils.to_decimal(invoice.discount_amount)
                - paid
            )
        else:
            row = self.student_fee_repository.find_by_id(target["student_fee_structure_id"])
            if row is None or row.student_id != student_id:
                raise BadRequestError(
                    "Student fee structure not found for this student",
                    details={"student_fee_structure_id": target["student_fee_structure_id"]},
                )
            paid = self.repository.total_for_fee_row(row.id, exclude_id=exclude_id)
            remaining = CurrencyUtils.to_decimal(row.amount) - paid

        if amount > remaining:
            raise PaymentError(
                f"Payment amount ({CurrencyUtils.format_currency(amount, settings.CURRENCY)}) exceeds "
                f"remaining balance ({CurrencyUtils.format_currency(remaining, settings.CURRENCY)})",
                payment_id=exclude_id,
                amount=str(amount),
                remaining_balance=str(remaining),
            )

    def _refresh_target(self, payment: Payment) -> None:
        self.repository.flush()
        if payment.invoice_id is not None:
            self.invoice_service.recalculate(payment.invoice)
        if payment.student_fee_structure_id is not None:
            self.refresh_fee_row(payment.student_fee_structure)

    def _next_receipt_number(self, school_id: int) -> str:
        prefix = f"{settings.RECEIPT_PREFIX}-{date.today():%Y%m%d}-"
        return self.repository.next_receipt_number(school_id, prefix)
