import pytest

from school_admin.api.responses import raise_for_failure
from school_admin.core.exceptions import (
    BadRequestError,
    BusinessRuleError,
    CheckConstraintError,
    ConflictError,
    DuplicateEntryError,
    ErrorCode,
    ForeignKeyViolationError,
    PaymentError,
    ResourceNotFoundError,
    handle_database_exception,
)
from school_admin.services.base.service_result import ServiceResult


class _DBAPIError(Exception):
    pass


class _IntegrityError(Exception):
    def __init__(self, message):
        super().__init__(message)
        self.orig = _DBAPIError(message)


class TestHandleDatabaseException:
    def test_sqlite_unique_failure_gets_a_friendly_message(self):
        exc = handle_database_exception(
            _IntegrityError("UNIQUE constraint failed: students.school_id, students.student_code")
        )

        assert isinstance(exc, DuplicateEntryError)
        assert exc.status_code == 409
        assert exc.message == "A student with this student ID already exists in this school"
        assert exc.details["constraint"] == "uq_students_school_code"

    def test_postgres_unique_failure(self):
        exc = handle_database_exception(
            _IntegrityError('duplicate key value violates unique constraint "uq_payments_school_receipt"')
        )
        assert exc.message == "Receipt number already exists in this school"

    def test_check_constraint(self):
        exc = handle_database_exception(_IntegrityError("CHECK constraint failed: ck_payments_single_reference"))

        assert isinstance(exc, CheckConstraintError)
        assert exc.status_code == 400

    def test_foreign_key(self):
        exc = handle_database_exception(_IntegrityError("FOREIGN KEY constraint failed"))

        assert isinstance(exc, ForeignKeyViolationError)
        assert exc.status_code == 409

    def test_unknown_database_error_is_a_server_error(self):
        exc = handle_database_exception(_IntegrityError("disk I/O error"))
        assert exc.status_code == 500


def test_payment_error_keeps_only_known_details():
    exc = PaymentError("Too much", amount="10.00", remaining_balance="5.00")

    assert exc.status_code == 400
    assert exc.error_code == ErrorCode.PAYMENT_FAILED
    assert exc.details == {"amount": "10.00", "remaining_balance": "5.00"}


class TestRaiseForFailure:
    def test_success_passes(self):
        raise_for_failure(ServiceResult.success(1))

    def test_not_found(self):
        with pytest.raises(ResourceNotFoundError) as info:
            raise_for_failure(ServiceResult.not_found("Student", 7))

        assert info.value.status_code == 404
        assert info.value.details["resource_id"] == 7

    def test_conflict(self):
        with pytest.raises(ConflictError):
            raise_for_failure(ServiceResult.conflict("taken"))

    def test_validation_keeps_field(self):
        with pytest.raises(BadRequestError) as info:
            raise_for_failure(ServiceResult.validation_failure("bad", field="allocation"))

        assert info.value.error_code == ErrorCode.VALIDATION_ERROR
        assert info.value.details == {"field": "allocation"}

    def test_invalid_state(self):
        with pytest.raises(BusinessRuleError) as info:
            raise_for_failure(ServiceResult.invalid_state("locked"))

        assert info.value.error_code == ErrorCode.INVALID_STATE
        assert info.value.status_code == 400
