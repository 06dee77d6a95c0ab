"""Shared service infrastructure: BaseService and ServiceResult."""

from school_admin.services.base.base_service import BaseService
from school_admin.services.base.service_result import ErrorCode, ErrorSeverity, ServiceError, ServiceResult

__all__ = [
    "BaseService",
    "ErrorCode",
    "ErrorSeverity",
    "ServiceError",
    "ServiceResult",
]
