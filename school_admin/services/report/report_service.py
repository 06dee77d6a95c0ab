"""
Fee reports: collection totals over a date range and invoices still owed.
"""

from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from school_admin.core.exceptions import BadRequestError
from school_admin.core.utils import ZERO, CurrencyUtils
from school_admin.models.invoice import FeeInvoice
from school_admin.repositories.invoice.invoice_repository import FeeInvoiceRepository
from school_admin.repositories.payment.payment_repository import PaymentRepository
from school_admin.schemas.report import FeeCollectionSummary, MethodTotal, OutstandingDue
from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ServiceResult


class ReportService(BaseService[FeeInvoice, FeeInvoiceRepository]):
    resource_name = "Report"

    def __init__(self, db_session: Session):
        super().__init__(FeeInvoiceRepository(db_session), db_session)
        self.payment_repository = PaymentRepository(db_session)

    def fee_collection_summary(
        self,
        school_id: int,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> ServiceResult[FeeCollectionSummary]:
        """
        Completed payments in the range, totalled overall and per method.

        Both bounds are inclusive and optional.
        """
        try:
            if from_date and to_date and from_date > to_date:
                raise BadRequestError("from_date must not be after to_date")

            payments = self.payment_repository.find_completed(school_id, from_date, to_date)
            by_method: Dict[str, MethodTotal] = {}
            total = ZERO
            for payment in payments:
                amount = CurrencyUtils.to_decimal(payment.amount)
                bucket = by_method.setdefault(payment.payment_method.value, MethodTotal())
                bucket.count += 1
                bucket.amount += amount
                total += amount

            summary = FeeCollectionSummary(
                from_date=from_date,
                to_date=to_date,
                total_amount=total,
                total_count=len(payments),
                by_method=by_method,
            )
            return ServiceResult.success(summary)
        except Exception as e:
            return self._handle_exception(e, "build fee collection summary")

    def outstanding_dues(
        self, school_id: int, academic_year_id: Optional[int] = None
    ) -> ServiceResult[List[OutstandingDue]]:
        try:
            dues = [
                OutstandingDue(
                    invoice_id=invoice.id,
                    invoice_number=invoice.invoice_number,
                    student_id=invoice.student_id,
                    student_code=invoice.student.student_code,
                    student_name=invoice.student.full_name,
                    academic_year=invoice.academic_year.name,
                    total_amount=invoice.total_amount,
                    paid_amount=invoice.paid_amount,
                    balance_amount=invoice.balance_amount,
                    due_date=invoice.due_date,
                    status=invoice.status,
                )
                for invoice in self.repository.find_outstanding(school_id, academic_year_id)
            ]
            return ServiceResult.success(dues, metadata={"total": len(dues)})
        except Exception as e:
            return self._handle_exception(e, "list outstanding dues")
