"""
Fee forecast service.

Projects what a student owes for an academic year up to a target date:
class fees, other fees, monthly transport fees and the carried-forward
ledger balance. Read-only.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from school_admin.config.settings import settings
from school_admin.core.utils import ZERO, CurrencyUtils, DateTimeUtils
from school_admin.models.enums import InvoiceSourceType
from school_admin.models.fee import StudentFeeStructure
from school_admin.models.invoice import FeeInvoice
from school_admin.models.school import AcademicYear
from school_admin.models.student import Student, StudentAcademicRecord
from school_admin.repositories.fee.fee_repository import (
    FeeStructureRepository,
    StudentFeeStructureRepository,
)
from school_admin.repositories.invoice.invoice_repository import FeeInvoiceRepository
from school_admin.repositories.payment.payment_repository import PaymentRepository
from school_admin.repositories.school.school_repository import AcademicYearRepository
from school_admin.repositories.student.student_repository import (
    StudentAcademicRecordRepository,
    StudentRepository,
)
from school_admin.repositories.transport.route_price_repository import RoutePriceRepository
from school_admin.schemas.fee_forecast import (
    BusFeeEntry,
    BusFees,
    FeeGroup,
    ForecastBreakdown,
    ForecastFeeEntry,
    ForecastRequest,
    ForecastResult,
    ForecastSummary,
    PreviousBalance,
)
from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ServiceResult
from school_admin.services.invoice.invoice_service import UNSETTLED_INVOICE_STATUSES, item_settlements

PAID = "paid"
PENDING = "pending"
OVERDUE = "overdue"
NOT_GENERATED = "not_generated"

CreditKey = Tuple[InvoiceSourceType, int]


def entry_status(amount: Decimal, paid: Decimal, due_date: Optional[date], as_of: date, generated: bool = True) -> str:
    if paid >= amount:
        return PAID
    if not generated:
        return NOT_GENERATED
    if due_date is not None and due_date < as_of:
        return OVERDUE
    return PENDING


class FeeForecastService(BaseService[StudentFeeStructure, StudentFeeStructureRepository]):
    resource_name = "Student fee"

    def __init__(self, db_session: Session):
        super().__init__(StudentFeeStructureRepository(db_session), db_session)
        self.student_repository = StudentRepository(db_session)
        self.record_repository = StudentAcademicRecordRepository(db_session)
        self.year_repository = AcademicYearRepository(db_session)
        self.fee_structure_repository = FeeStructureRepository(db_session)
        self.route_price_repository = RoutePriceRepository(db_session)
        self.invoice_repository = FeeInvoiceRepository(db_session)
        self.payment_repository = PaymentRepository(db_session)

    def forecast(self, school_id: int, request: ForecastRequest) -> ServiceResult[ForecastResult]:
        try:
            student = self.student_repository.find_in_school(school_id, request.student_id)
            if student is None:
                return ServiceResult.not_found("Student", request.student_id)
            year = self.year_repository.find_in_school(school_id, request.academic_year_id)
            if year is None:
                return ServiceResult.not_found("Academic year", request.academic_year_id)
            record = self.record_repository.find_active(student.id, year.id)
            if record is None:
                return ServiceResult.validation_failure(
                    "Student has no active academic record for this academic year",
                    details={"student_id": student.id, "academic_year_id": year.id},
                )

            today = date.today()
            as_of = request.as_of or today
            forecast_up_to = min(request.forecast_up_to or DateTimeUtils.month_end(today), year.end_date)

            credits = self._invoice_credits(self.invoice_repository.find_for_student(student.id, year.id))
            class_fees, other_fees = self._fee_groups(school_id, student, record, year, forecast_up_to, as_of, credits)
            bus_fees = (
                self._bus_fees(school_id, student, record, year, forecast_up_to, as_of, credits)
                if request.include_bus_fees
                else BusFees()
            )
            previous_balance = PreviousBalance(
                amount=CurrencyUtils.to_decimal(student.opening_balance) if request.include_previous_balance else ZERO
            )

            result = ForecastResult(
                student_id=student.id,
                student_name=student.full_name,
                academic_year_id=year.id,
                academic_year_name=year.name,
                class_name=record.school_class.name if record.school_class else None,
                forecast_up_to=forecast_up_to,
                total_amount=class_fees.total + bus_fees.total + previous_balance.amount + other_fees.total,
                breakdown=ForecastBreakdown(
                    class_fees=class_fees,
                    bus_fees=bus_fees,
                    previous_balance=previous_balance,
                    other_fees=other_fees,
                ),
                summary=self._summary(class_fees, other_fees, bus_fees, previous_balance, as_of),
            )
            return ServiceResult.success(result)
        except Exception as e:
            return self._handle_exception(e, "forecast fees", request.student_id)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def _fee_groups(
        self,
        school_id: int,
        student: Student,
        record: StudentAcademicRecord,
        year: AcademicYear,
        forecast_up_to: date,
        as_of: date,
        credits: Dict[CreditKey, Decimal],
    ) -> Tuple[FeeGroup, FeeGroup]:
        rows = self.repository.find_for_student(student.id, year.id, due_on_or_before=forecast_up_to)
        generated_ids = {row.fee_structure_id for row in self.repository.find_for_student(student.id, year.id)}

        pending: Dict[int, List[dict]] = defaultdict(list)
        for row in rows:
            pending[row.fee_structure_id].append({
                "fee_structure": row.fee_structure,
                "row": row,
                "amount": CurrencyUtils.to_decimal(row.amount),
                "due_date": row.due_date,
                "paid": self.payment_repository.total_for_fee_row(row.id),
            })

        for fee_structure in self.fee_structure_repository.find_applicable(
            school_id, record.class_id, student.category_head_id
        ):
            if fee_structure.id in generated_ids:
                continue
            if fee_structure.due_date is not None and fee_structure.due_date > forecast_up_to:
                continue
            pending[fee_structure.id].append({
                "fee_structure": fee_structure,
                "row": None,
                "amount": CurrencyUtils.to_decimal(fee_structure.amount),
                "due_date": fee_structure.due_date,
                "paid": ZERO,
            })

        class_fees, other_fees = FeeGroup(), FeeGroup()
        for fee_structure_id, entries in pending.items():
            entries.sort(key=lambda item: (item["due_date"] or date.max, item["row"].id if item["row"] else 0))
            credit = credits.get((InvoiceSourceType.FEE, fee_structure_id), ZERO)
            shares = CurrencyUtils.allocate_fifo(credit, [item["amount"] - item["paid"] for item in entries])

            for item, share in zip(entries, shares):
                fee_structure, row = item["fee_structure"], item["row"]
                paid = min(item["paid"] + share, item["amount"])
                entry = ForecastFeeEntry(
                    fee_structure_id=fee_structure_id,
                    student_fee_structure_id=row.id if row else None,
                    name=fee_structure.name,
                    amount=item["amount"],
                    paid_amount=paid,
                    due_date=item["due_date"],
                    installment_number=row.installment_number if row else None,
                    status=entry_status(item["amount"], paid, item["due_date"], as_of, generated=row is not None),
                )
                group = class_fees if fee_structure.class_id is not None else other_fees
                group.fees.append(entry)
                group.total += entry.amount

        for group in (class_fees, other_fees):
            group.fees.sort(key=lambda entry: (entry.due_date or date.max, entry.fee_structure_id))
        return class_fees, other_fees

    def _bus_fees(
        self,
        school_id: int,
        student: Student,
        record: StudentAcademicRecord,
        year: AcademicYear,
        forecast_up_to: date,
        as_of: date,
        credits: Dict[CreditKey, Decimal],
    ) -> BusFees:
        route_price = self.route_price_repository.find_applicable(
            school_id, student.route_id, record.class_id, student.category_head_id
        )
        if route_price is None:
            return BusFees()

        monthly = CurrencyUtils.to_decimal(route_price.amount)
        months = list(DateTimeUtils.iter_months(year.start_date, forecast_up_to))
        shares = CurrencyUtils.allocate_fifo(
            credits.get((InvoiceSourceType.TRANSPORT, route_price.id), ZERO), [monthly] * len(months)
        )

        fees = []
        for month, paid in zip(months, shares):
            due_date = DateTimeUtils.with_day(month, settings.MONTHLY_FEE_DUE_DAY)
            fees.append(
                BusFeeEntry(
                    month=DateTimeUtils.month_key(month),
                    amount=monthly,
                    paid_amount=paid,
                    due_date=due_date,
                    status=entry_status(monthly, paid, due_date, as_of),
                )
            )

        return BusFees(
            total=monthly * len(months),
            monthly_amount=monthly,
            months=len(months),
            route_price_id=route_price.id,
            fees=fees,
        )

    # ------------------------------------------------------------------
    # Payments and totals
    # ------------------------------------------------------------------

    @staticmethod
    def _invoice_credits(invoices: List[FeeInvoice]) -> Dict[CreditKey, Decimal]:
        """Settled amount per invoice item source."""
        credits: Dict[CreditKey, Decimal] = defaultdict(lambda: ZERO)
        for invoice in invoices:
            if invoice.status in UNSETTLED_INVOICE_STATUSES:
                continue
            for item, settled in item_settlements(invoice):
                if item.source_type is None or item.source_id is None:
                    continue
                credits[(item.source_type, item.source_id)] += settled
        return dict(credits)

    @staticmethod
    def _summary(
        class_fees: FeeGroup,
        other_fees: FeeGroup,
        bus_fees: BusFees,
        previous_balance: PreviousBalance,
        as_of: date,
    ) -> ForecastSummary:
        entries = [*class_fees.fees, *other_fees.fees, *bus_fees.fees]
        total_due = sum((entry.amount for entry in entries), ZERO) + previous_balance.amount
        total_paid = sum((entry.paid_amount for entry in entries), ZERO)
        total_overdue = sum(
            (
                entry.amount - entry.paid_amount
                for entry in entries
                if entry.due_date is not None and entry.due_date < as_of and entry.paid_amount < entry.amount
            ),
            ZERO,
        )
        return ForecastSummary(
            total_due=total_due,
            total_paid=total_paid,
            total_pending=max(total_due - total_paid, ZERO),
            total_overdue=total_overdue,
        )
