"""
Base service class providing common functionality for all services.
"""

from abc import ABC
from contextlib import contextmanager
from typing import Any, Dict, Generic, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from school_admin.core.exceptions import (
    BadRequestError,
    BaseAppException,
    BusinessRuleError,
    CheckConstraintError,
    ConflictError,
    DatabaseError,
    ResourceNotFoundError,
    ValidationError,
    handle_database_exception,
)
from school_admin.core.logging import get_logger
from school_admin.repositories.base.base_repository import BaseRepository
from school_admin.services.base.service_result import (
    ErrorCode,
    ErrorSeverity,
    ServiceError,
    ServiceResult,
)

TModel = TypeVar("TModel")
TRepo = TypeVar("TRepo", bound=BaseRepository)


class BaseService(ABC, Generic[TModel, TRepo]):
    """
    Base service with common behaviors:
    - Shared logger and db session
    - Consistent error handling via ServiceResult
    - Transaction management utilities
    - School-scoped CRUD operations with validation hooks
    """

    resource_name: str = "Entity"

    def __init__(self, repository: TRepo, db_session: Session):
        """
        Initialize base service.

        Args:
            repository: Repository instance for data access
            db_session: SQLAlchemy database session
        """
        self.repository: TRepo = repository
        self.db: Session = db_session
        self._logger = get_logger(self.__class__.__name__)

    # -------------------------------------------------------------------------
    # Exception & Error Handling
    # -------------------------------------------------------------------------

    def _handle_exception(
        self,
        exception: Exception,
        operation: str,
        entity_ref: Optional[Any] = None,
        additional_context: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult:
        """
        Convert exception to a ServiceResult failure with logging.

        The session is rolled back first so it stays usable for the next
        operation. Application exceptions keep their user-facing message;
        anything else is logged with its traceback and reported generically.

        Args:
            exception: The caught exception
            operation: Description of the operation that failed
            entity_ref: Reference to the entity involved (ID, name, etc.)
            additional_context: Extra context for logging/debugging

        Returns:
            ServiceResult with failure status and error details
        """
        self._rollback()
        if isinstance(exception, IntegrityError):
            exception = handle_database_exception(exception)

        context = {
            "operation": operation,
            "entity_ref": str(entity_ref) if entity_ref is not None else None,
            "exception_type": type(exception).__name__,
        }
        if additional_context:
            context.update(additional_context)

        error_code = self._map_exception_to_error_code(exception)

        if isinstance(exception, BaseAppException) and exception.status_code < 500:
            self._logger.warning(f"{operation} rejected: {exception.message}", extra=context)
            return ServiceResult.failure(
                ServiceError(
                    code=error_code,
                    message=exception.message,
                    severity=ErrorSeverity.WARNING,
                    details=exception.details or None,
                )
            )

        self._logger.error(f"Error during {operation}: {exception}", exc_info=True, extra=context)
        return ServiceResult.failure(
            ServiceError(
                code=error_code,
                message=f"Failed to {operation}",
                severity=ErrorSeverity.CRITICAL,
                details={
                    "error": str(exception),
                    "entity_ref": str(entity_ref) if entity_ref is not None else None,
                },
            )
        )

    def _map_exception_to_error_code(self, exception: Exception) -> ErrorCode:
        """
        Map exception types to appropriate error codes.

        Order matters: subclasses are listed before their bases.
        """
        exception_mapping = (
            (ResourceNotFoundError, ErrorCode.NOT_FOUND),
            (ConflictError, ErrorCode.CONFLICT),
            (CheckConstraintError, ErrorCode.VALIDATION_ERROR),
            (DatabaseError, ErrorCode.CONFLICT),
            (ValidationError, ErrorCode.VALIDATION_ERROR),
            (BadRequestError, ErrorCode.VALIDATION_ERROR),
            (BusinessRuleError, ErrorCode.BUSINESS_RULE_VIOLATION),
            (ValueError, ErrorCode.VALIDATION_ERROR),
            (KeyError, ErrorCode.NOT_FOUND),
            (SQLAlchemyError, ErrorCode.INTERNAL_ERROR),
        )

        for exc_type, error_code in exception_mapping:
            if isinstance(exception, exc_type):
                if exc_type is DatabaseError and getattr(exception, "status_code", 500) >= 500:
                    return ErrorCode.INTERNAL_ERROR
                return error_code

        if isinstance(exception, BaseAppException) and exception.status_code < 500:
            return ErrorCode.BUSINESS_RULE_VIOLATION
        return ErrorCode.INTERNAL_ERROR

    # -------------------------------------------------------------------------
    # Transaction Management
    # -------------------------------------------------------------------------

    @contextmanager
    def transaction(self, auto_commit: bool = True):
        """
        Context manager for database transactions with automatic rollback.

        Example:
            with self.transaction():
                self.repository.create(entity)
                # automatic commit on success, rollback on exception
        """
        try:
            yield self.db
            if auto_commit:
                self._commit()
        except Exception as e:
            self._rollback()
            self._logger.debug(f"Transaction rolled back: {e}")
            raise

    def _commit(self) -> None:
        """Commit the current transaction."""
        try:
            self.db.commit()
        except IntegrityError as e:
            self._rollback()
            raise handle_database_exception(e) from e

    def _rollback(self) -> None:
        """Rollback the current transaction, suppressing rollback errors."""
        try:
            self.db.rollback()
        except SQLAlchemyError as e:
            # Rollback errors must not mask the original error
            self._logger.warning(f"Rollback failed: {e}")

    # -------------------------------------------------------------------------
    # Common CRUD Operations
    # -------------------------------------------------------------------------

    def _find(self, entity_id: Any, school_id: Optional[int] = None) -> Optional[TModel]:
        if school_id is None:
            return self.repository.find_by_id(entity_id)
        return self.repository.find_in_school(school_id, entity_id)

    def get_by_id(self, entity_id: Any, school_id: Optional[int] = None) -> ServiceResult[TModel]:
        """
        Retrieve entity by ID, restricted to a school when one is given.
        """
        try:
            entity = self._find(entity_id, school_id)
            if entity is None:
                return ServiceResult.not_found(self.resource_name, entity_id)
            return ServiceResult.success(entity)
        except Exception as e:
            return self._handle_exception(e, f"get {self.resource_name.lower()}", entity_id)

    def create(self, data: Dict[str, Any], school_id: Optional[int] = None) -> ServiceResult[TModel]:
        """
        Create a new entity.

        Args:
            data: Entity data dictionary
            school_id: Owning school, stamped onto the row when given

        Returns:
            ServiceResult containing the created entity or error
        """
        try:
            if school_id is not None:
                data = {**data, "school_id": school_id}

            validation_result = self._validate_create(data)
            if validation_result is not None and not validation_result.is_success:
                return validation_result

            with self.transaction():
                entity = self.repository.create_from_dict(data)
                self._after_create(entity)

            self._log_operation(f"created {self.resource_name.lower()}", entity.id)
            return ServiceResult.success(entity, message=f"{self.resource_name} created successfully")
        except Exception as e:
            return self._handle_exception(e, f"create {self.resource_name.lower()}")

    def update(
        self,
        entity_id: Any,
        data: Dict[str, Any],
        school_id: Optional[int] = None,
    ) -> ServiceResult[TModel]:
        """
        Partially update an existing entity.
        """
        try:
            entity = self._find(entity_id, school_id)
            if entity is None:
                return ServiceResult.not_found(self.resource_name, entity_id)

            validation_result = self._validate_update(entity, data)
            if validation_result is not None and not validation_result.is_success:
                return validation_result

            with self.transaction():
                self.repository.update(entity, data)
                self._after_update(entity, data)

            self._log_operation(f"updated {self.resource_name.lower()}", entity_id, {"fields": sorted(data)})
            return ServiceResult.success(entity, message=f"{self.resource_name} updated successfully")
        except Exception as e:
            return self._handle_exception(e, f"update {self.resource_name.lower()}", entity_id)

    def delete(self, entity_id: Any, school_id: Optional[int] = None) -> ServiceResult[bool]:
        """
        Delete an entity.
        """
        try:
            entity = self._find(entity_id, school_id)
            if entity is None:
                return ServiceResult.not_found(self.resource_name, entity_id)

            validation_result = self._validate_delete(entity)
            if validation_result is not None and not validation_result.is_success:
                return validation_result

            with self.transaction():
                self.repository.delete(entity)

            self._log_operation(f"deleted {self.resource_name.lower()}", entity_id)
            return ServiceResult.success(True, message=f"{self.resource_name} deleted successfully")
        except Exception as e:
            return self._handle_exception(e, f"delete {self.resource_name.lower()}", entity_id)

    # -------------------------------------------------------------------------
    # Validation and lifecycle hooks (override in subclasses)
    # -------------------------------------------------------------------------

    def _validate_create(self, data: Dict[str, Any]) -> Optional[ServiceResult]:
        """Return a failed ServiceResult to reject the create, None if valid."""
        return None

    def _validate_update(self, entity: TModel, data: Dict[str, Any]) -> Optional[ServiceResult]:
        """Return a failed ServiceResult to reject the update, None if valid."""
        return None

    def _validate_delete(self, entity: TModel) -> Optional[ServiceResult]:
        """Return a failed ServiceResult to reject the delete, None if valid."""
        return None

    def _after_create(self, entity: TModel) -> None:
        """Hook called inside the create transaction after the row is flushed."""

    def _after_update(self, entity: TModel, changes: Dict[str, Any]) -> None:
        """Hook called inside the update transaction after the row is flushed."""

    # -------------------------------------------------------------------------
    # Utility Methods
    # -------------------------------------------------------------------------

    def _log_operation(
        self,
        operation: str,
        entity_ref: Optional[Any] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log service operation with standardized format.
        """
        context = {"entity_ref": str(entity_ref) if entity_ref is not None else None}
        if extra:
            context.update(extra)

        self._logger.info(f"Operation: {operation}", extra=context)

    def _require(self, entity: Optional[Any], resource: str, entity_id: Any) -> Any:
        """Return the entity or raise ResourceNotFoundError."""
        if entity is None:
            raise ResourceNotFoundError(resource, entity_id)
        return entity
