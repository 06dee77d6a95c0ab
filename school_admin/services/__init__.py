"""
Service layer root package.

Each subpackage implements application use-cases on top of:

- SQLAlchemy models (school_admin.models.*)
- Repositories (school_admin.repositories.*)
- Pydantic schemas (school_admin.schemas.*)
- Common service infrastructure (school_admin.services.base.*)

Typical pattern for a service:

    class SomeService(BaseService[SomeModel, SomeRepository]):
        def __init__(self, db_session: Session):
            super().__init__(SomeRepository(db_session), db_session)

        def some_use_case(...) -> ServiceResult[...]:
            try:
                with self.transaction():
                    ...
                return ServiceResult.success(...)
            except Exception as e:
                return self._handle_exception(e, "some use case")
"""

from school_admin.services.base import BaseService, ServiceResult
from school_admin.services.fee.fee_calculation_service import FeeCalculationService
from school_admin.services.fee.fee_forecast_service import FeeForecastService
from school_admin.services.fee.fee_generation_service import FeeGenerationService
from school_admin.services.fee.fee_structure_service import FeeStructureService
from school_admin.services.invoice.invoice_service import InvoiceService
from school_admin.services.payment.payment_allocation_service import PaymentAllocationService
from school_admin.services.payment.payment_service import PaymentService
from school_admin.services.report.report_service import ReportService
from school_admin.services.school.school_service import SchoolService
from school_admin.services.student.student_service import StudentService
from school_admin.services.transport.route_price_service import RoutePriceService

__all__ = [
    "BaseService",
    "ServiceResult",
    "SchoolService",
    "StudentService",
    "FeeStructureService",
    "FeeGenerationService",
    "FeeForecastService",
    "FeeCalculationService",
    "InvoiceService",
    "PaymentService",
    "PaymentAllocationService",
    "ReportService",
    "RoutePriceService",
]
