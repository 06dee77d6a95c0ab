"""
Fee calculation service: the payable fee heads of a student.
"""

from typing import List

from sqlalchemy.orm import Session

from school_admin.core.utils import ZERO, CurrencyUtils
from school_admin.models.fee import FeeStructure
from school_admin.repositories.fee.fee_repository import FeeStructureRepository
from school_admin.repositories.student.student_repository import (
    StudentAcademicRecordRepository,
    StudentRepository,
)
from school_admin.repositories.transport.route_price_repository import RoutePriceRepository
from school_admin.schemas.fee_forecast import FeeBreakdownResult, FeeHead, MissingPricing
from school_admin.schemas.payment import LEDGER_FEE_HEAD_ID, TRANSPORT_FEE_HEAD_ID
from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ServiceResult

LEDGER_HEAD_NAME = "Previous balance"
TRANSPORT_HEAD_NAME = "Transport fee"


class FeeCalculationService(BaseService[FeeStructure, FeeStructureRepository]):
    resource_name = "Fee structure"

    def __init__(self, db_session: Session):
        super().__init__(FeeStructureRepository(db_session), db_session)
        self.student_repository = StudentRepository(db_session)
        self.record_repository = StudentAcademicRecordRepository(db_session)
        self.route_price_repository = RoutePriceRepository(db_session)

    def generate_fee_breakdown(
        self,
        school_id: int,
        student_id: int,
        academic_year_id: int,
    ) -> ServiceResult[FeeBreakdownResult]:
        """
        School fees for the student's class and category head, the monthly
        transport fee of their route, and the ledger balance when positive.

        A student on a route without a matching route price is reported
        with the missing pricing rows instead of a partial breakdown.
        """
        try:
            student = self.student_repository.find_in_school(school_id, student_id)
            if student is None:
                return ServiceResult.not_found("Student", student_id)

            record = self.record_repository.find_active(student_id, academic_year_id)
            if record is None:
                return ServiceResult.validation_failure(
                    f"Student {student_id} has no active academic record for academic year {academic_year_id}"
                )
            if not student.category_head_id:
                return ServiceResult.validation_failure(
                    f"Student {student_id} has no category head assigned", field="category_head_id"
                )

            school_fees = [
                FeeHead(
                    id=fee_structure.id,
                    name=fee_structure.name,
                    amount=CurrencyUtils.to_decimal(fee_structure.amount),
                    category=fee_structure.fee_category.name if fee_structure.fee_category else "School fee",
                )
                for fee_structure in self.repository.find_applicable(
                    school_id, record.class_id, student.category_head_id
                )
            ]

            missing: List[MissingPricing] = []
            transport_fee = None
            if student.route_id:
                route_price = self.route_price_repository.find_applicable(
                    school_id, student.route_id, record.class_id, student.category_head_id
                )
                if route_price is None:
                    missing.append(
                        MissingPricing(
                            type="transport",
                            message=(
                                f"Transport fee: no active route price for route {student.route_id}, "
                                f"class {record.class_id}, category head {student.category_head_id}"
                            ),
                        )
                    )
                else:
                    transport_fee = FeeHead(
                        id=TRANSPORT_FEE_HEAD_ID,
                        name=TRANSPORT_HEAD_NAME,
                        amount=CurrencyUtils.to_decimal(route_price.amount),
                        category="Transport",
                    )

            if missing:
                return ServiceResult.validation_failure(
                    "Missing pricing configuration",
                    details={"missing_pricing": [item.model_dump() for item in missing]},
                )

            opening_balance = CurrencyUtils.to_decimal(student.opening_balance)
            ledger_balance = None
            if opening_balance > ZERO:
                ledger_balance = FeeHead(
                    id=LEDGER_FEE_HEAD_ID, name=LEDGER_HEAD_NAME, amount=opening_balance, category="Ledger"
                )

            total_school = sum((fee.amount for fee in school_fees), ZERO)
            total_transport = transport_fee.amount if transport_fee else ZERO
            return ServiceResult.success(
                FeeBreakdownResult(
                    student_id=student.id,
                    academic_year_id=academic_year_id,
                    class_id=record.class_id,
                    category_head_id=student.category_head_id,
                    school_fees=school_fees,
                    transport_fee=transport_fee,
                    ledger_balance=ledger_balance,
                    total_school_fees=total_school,
                    total_transport_fees=total_transport,
                    grand_total=total_school + total_transport + (ledger_balance.amount if ledger_balance else ZERO),
                )
            )
        except Exception as e:
            return self._handle_exception(e, "generate fee breakdown", student_id)
