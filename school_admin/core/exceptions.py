"""
Custom Exceptions for the School Administration Application

This module defines custom exception classes used throughout the application
for better error handling and debugging, plus the translation of database
constraint violations into user-facing messages.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ErrorCode(str, Enum):
    """Standard error codes for the application"""
    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    INVALID_REQUEST = "INVALID_REQUEST"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    OPERATION_FAILED = "OPERATION_FAILED"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    FOREIGN_KEY_VIOLATION = "FOREIGN_KEY_VIOLATION"

    # Business logic errors
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    INVALID_STATE = "INVALID_STATE"
    CONFLICT = "CONFLICT"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    FEE_GENERATION_FAILED = "FEE_GENERATION_FAILED"


class BaseAppException(Exception):
    """
    Base exception class for all application exceptions.

    Provides consistent error handling across the application with
    structured error information.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}')"


# ========================================
# General Application Exceptions
# ========================================

class BadRequestError(BaseAppException):
    """Exception raised for malformed or semantically invalid requests"""

    def __init__(
        self,
        message: str = "Invalid request",
        details: Optional[Dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.INVALID_REQUEST,
    ):
        super().__init__(message, error_code, details, 400)


class ValidationError(BaseAppException):
    """Exception raised when data validation fails"""

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: Optional[Dict[str, List[str]]] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        status_code: int = 422
    ):
        details = {"field_errors": field_errors} if field_errors else {}
        super().__init__(message, error_code, details, status_code)


class ResourceNotFoundError(BaseAppException):
    """Exception raised when a requested resource is not found"""

    def __init__(
        self,
        resource_type: str = "Resource",
        resource_id: Optional[Any] = None,
        message: Optional[str] = None
    ):
        if not message:
            message = f"{resource_type} not found"
            if resource_id is not None:
                message += f" (ID: {resource_id})"

        details = {
            "resource_type": resource_type,
            "resource_id": resource_id
        }
        super().__init__(message, ErrorCode.RESOURCE_NOT_FOUND, details, 404)


class ConflictError(BaseAppException):
    """Exception raised when a request conflicts with the current state"""

    def __init__(
        self,
        message: str = "Conflict with current state",
        details: Optional[Dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.CONFLICT,
    ):
        super().__init__(message, error_code, details, 409)


class BusinessRuleError(BaseAppException):
    """Exception raised when an operation breaks a business rule"""

    def __init__(
        self,
        message: str = "Business rule violated",
        details: Optional[Dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.BUSINESS_RULE_VIOLATION,
    ):
        super().__init__(message, error_code, details, 400)


# ========================================
# Repository Exceptions
# ========================================

class RepositoryError(BaseAppException):
    """Exception raised when a repository operation fails"""

    def __init__(self, message: str = "Repository operation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.DATABASE_ERROR, details, 500)


class EntityNotFoundError(ResourceNotFoundError):
    """Exception raised when a repository lookup finds nothing"""


# ========================================
# Database Exceptions
# ========================================

class DatabaseError(BaseAppException):
    """Exception raised when database operations fail"""

    def __init__(
        self,
        message: str = "Database operation failed",
        operation: Optional[str] = None,
        table: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        status_code: int = 500,
        constraint: Optional[str] = None,
    ):
        details = {
            "operation": operation,
            "table": table,
            "constraint": constraint,
        }
        super().__init__(message, error_code, {k: v for k, v in details.items() if v}, status_code)


class DatabaseConnectionError(DatabaseError):
    """Exception raised when database connection fails"""

    def __init__(self, message: str = "Database connection failed"):
        super().__init__(message, error_code=ErrorCode.CONNECTION_ERROR, status_code=503)


class DuplicateEntryError(DatabaseError):
    """Exception raised when trying to create a duplicate entry"""

    def __init__(
        self,
        message: str = "Duplicate entry",
        table: Optional[str] = None,
        constraint: Optional[str] = None,
    ):
        super().__init__(
            message,
            table=table,
            error_code=ErrorCode.DUPLICATE_ENTRY,
            status_code=409,
            constraint=constraint,
        )


class ForeignKeyViolationError(DatabaseError):
    """Exception raised when foreign key constraint is violated"""

    def __init__(
        self,
        message: str = "Foreign key constraint violation",
        constraint: Optional[str] = None,
    ):
        super().__init__(
            message,
            error_code=ErrorCode.FOREIGN_KEY_VIOLATION,
            status_code=409,
            constraint=constraint,
        )


class CheckConstraintError(DatabaseError):
    """Exception raised when a CHECK constraint rejects a row"""

    def __init__(self, message: str = "Constraint violation", constraint: Optional[str] = None):
        super().__init__(
            message,
            error_code=ErrorCode.CONSTRAINT_VIOLATION,
            status_code=400,
            constraint=constraint,
        )


# ========================================
# Business Logic Exceptions
# ========================================

class PaymentError(BaseAppException):
    """Exception raised when payment operations fail"""

    def __init__(
        self,
        message: str = "Payment failed",
        payment_id: Optional[int] = None,
        amount: Optional[str] = None,
        remaining_balance: Optional[str] = None,
        error_code: ErrorCode = ErrorCode.PAYMENT_FAILED
    ):
        details = {
            "payment_id": payment_id,
            "amount": amount,
            "remaining_balance": remaining_balance,
        }
        super().__init__(message, error_code, {k: v for k, v in details.items() if v is not None}, 400)


class FeeGenerationError(BaseAppException):
    """Exception raised when fees cannot be generated for a student"""

    def __init__(self, message: str = "Fee generation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.FEE_GENERATION_FAILED, details, 400)


# ========================================
# Constraint translation
# ========================================

# (markers, message): a marker is a constraint name (PostgreSQL, named CHECKs)
# or the column list SQLite reports for an unnamed UNIQUE failure.
CONSTRAINT_MESSAGES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("uq_students_school_code", "students.school_id, students.student_code"),
     "A student with this student ID already exists in this school"),
    (("uq_students_school_email", "students.school_id, students.email"),
     "A student with this email already exists in this school"),
    (("uq_schools_code", "schools.code"),
     "A school with this code already exists"),
    (("uq_academic_years_school_name", "academic_years.school_id, academic_years.name"),
     "An academic year with this name already exists in this school"),
    (("uq_school_classes_school_name", "school_classes.school_id, school_classes.name"),
     "A class with this name already exists in this school"),
    (("uq_student_academic_records_active", "student_academic_records.student_id, student_academic_records.academic_year_id"),
     "Student already has an active academic record for this academic year"),
    (("uq_route_prices_school_route_class_category", "route_prices.school_id, route_prices.route_id"),
     "A route price already exists for this route, class and category head"),
    (("uq_fee_invoices_school_number", "fee_invoices.school_id, fee_invoices.invoice_number"),
     "Invoice number already exists in this school"),
    (("uq_payments_school_receipt", "payments.school_id, payments.receipt_number"),
     "Receipt number already exists in this school"),
    (("ck_payments_single_reference",),
     "A payment must reference exactly one of a student fee or an invoice"),
    (("ck_fee_invoice_items_source",),
     "Invoice item source type and source id must be provided together"),
)


def _match_constraint(error_message: str) -> Tuple[Optional[str], Optional[str]]:
    for markers, friendly in CONSTRAINT_MESSAGES:
        for marker in markers:
            if marker in error_message:
                return markers[0], friendly
    return None, None


def handle_database_exception(exc: Exception) -> BaseAppException:
    """Convert database exceptions to application exceptions"""
    error_message = str(getattr(exc, "orig", None) or exc)
    lowered = error_message.lower()
    constraint, friendly = _match_constraint(error_message)

    if "duplicate" in lowered or "unique constraint" in lowered:
        return DuplicateEntryError(friendly or "Duplicate entry", constraint=constraint)
    elif "check constraint" in lowered or "violates check" in lowered:
        return CheckConstraintError(friendly or "Constraint violation", constraint=constraint)
    elif "foreign key" in lowered:
        return ForeignKeyViolationError(
            friendly or "Referenced record does not exist or is still in use",
            constraint=constraint,
        )
    elif "connection" in lowered:
        return DatabaseConnectionError(f"Database connection error: {error_message}")
    else:
        return DatabaseError(f"Database error: {error_message}")


__all__ = [
    'ErrorCode',
    'BaseAppException',
    'BadRequestError',
    'ValidationError',
    'ResourceNotFoundError',
    'ConflictError',
    'BusinessRuleError',
    'RepositoryError',
    'EntityNotFoundError',
    'DatabaseError',
    'DatabaseConnectionError',
    'DuplicateEntryError',
    'ForeignKeyViolationError',
    'CheckConstraintError',
    'PaymentError',
    'FeeGenerationError',
    'handle_database_exception',
]
