"""
Data access layer. One repository per model, all built on BaseRepository.
"""

from school_admin.repositories.base.base_repository import BaseRepository
from school_admin.repositories.fee.fee_repository import (
    FeeGenerationHistoryRepository,
    FeeStructureRepository,
    StudentFeeStructureRepository,
)
from school_admin.repositories.invoice.invoice_repository import FeeInvoiceRepository
from school_admin.repositories.payment.payment_repository import PaymentRepository
from school_admin.repositories.school.school_repository import (
    AcademicYearRepository,
    CategoryHeadRepository,
    FeeCategoryRepository,
    RouteRepository,
    SchoolClassRepository,
    SchoolRepository,
)
from school_admin.repositories.student.student_repository import (
    StudentAcademicRecordRepository,
    StudentRepository,
)
from school_admin.repositories.transport.route_price_repository import RoutePriceRepository

__all__ = [
    "BaseRepository",
    "SchoolRepository",
    "AcademicYearRepository",
    "SchoolClassRepository",
    "CategoryHeadRepository",
    "FeeCategoryRepository",
    "RouteRepository",
    "StudentRepository",
    "StudentAcademicRecordRepository",
    "FeeStructureRepository",
    "StudentFeeStructureRepository",
    "FeeGenerationHistoryRepository",
    "FeeInvoiceRepository",
    "PaymentRepository",
    "RoutePriceRepository",
]
