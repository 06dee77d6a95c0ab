"""
SQLAlchemy models. Importing this package registers every table on
``Base.metadata``.
"""

from school_admin.models.base import Base, BaseModel
from school_admin.models.fee import FeeGenerationHistory, FeeStructure, StudentFeeStructure
from school_admin.models.invoice import FeeInvoice, FeeInvoiceItem
from school_admin.models.payment import Payment
from school_admin.models.route_price import RoutePrice
from school_admin.models.school import AcademicYear, CategoryHead, FeeCategory, Route, School, SchoolClass
from school_admin.models.student import Student, StudentAcademicRecord

__all__ = [
    "Base",
    "BaseModel",
    "School",
    "AcademicYear",
    "SchoolClass",
    "CategoryHead",
    "FeeCategory",
    "Route",
    "Student",
    "StudentAcademicRecord",
    "FeeStructure",
    "StudentFeeStructure",
    "FeeGenerationHistory",
    "FeeInvoice",
    "FeeInvoiceItem",
    "Payment",
    "RoutePrice",
]
