"""
Bridge between ServiceResult and HTTP.

Successful results are wrapped in the SuccessResponse envelope; failed
results are raised as application exceptions, which the handlers in
school_admin.main render as ErrorResponse payloads.
"""

from typing import Any, Dict, Optional, Type

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from school_admin.core.exceptions import (
    BadRequestError,
    BaseAppException,
    BusinessRuleError,
    ConflictError,
    ErrorCode as AppErrorCode,
    ResourceNotFoundError,
)
from school_admin.schemas.common.response import SuccessResponse
from school_admin.services.base.service_result import ErrorCode, ServiceResult

PAGE_META_KEYS = ("total", "page", "limit", "total_pages")


def raise_for_failure(result: ServiceResult) -> None:
    """Raise the application exception matching a failed result."""
    if result.is_success:
        return

    error = result.error
    message = result.message or (error.message if error else "Operation failed")
    details: Dict[str, Any] = dict(error.details or {}) if error else {}
    if error is not None and error.field:
        details.setdefault("field", error.field)
    code = error.code if error else ErrorCode.INTERNAL_ERROR

    if code == ErrorCode.NOT_FOUND:
        exc: BaseAppException = ResourceNotFoundError(
            resource_type=details.get("resource_type", "Resource"),
            resource_id=details.get("resource_id"),
            message=message,
        )
        exc.details = details
        raise exc
    if code in (ErrorCode.CONFLICT, ErrorCode.ALREADY_EXISTS):
        raise ConflictError(message, details=details or None)
    if code in (ErrorCode.VALIDATION_ERROR, ErrorCode.INVALID_REFERENCE):
        raise BadRequestError(message, details=details or None, error_code=AppErrorCode.VALIDATION_ERROR)
    if code == ErrorCode.INVALID_STATE:
        raise BusinessRuleError(message, details=details or None, error_code=AppErrorCode.INVALID_STATE)
    if code == ErrorCode.BUSINESS_RULE_VIOLATION:
        raise BusinessRuleError(message, details=details or None)
    raise BaseAppException(message, AppErrorCode.INTERNAL_ERROR, details or None, 500)


def _dump(data: Any, schema: Optional[Type[BaseModel]]) -> Any:
    """JSON-ready data; Decimals stay exact as strings."""
    if isinstance(data, list):
        return [_dump(item, schema) for item in data]
    if schema is not None and data is not None:
        data = schema.model_validate(data)
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    return data


def respond(
    result: ServiceResult,
    schema: Optional[Type[BaseModel]] = None,
    status_code: int = status.HTTP_200_OK,
    message: Optional[str] = None,
) -> JSONResponse:
    """
    Render a service result.

    List results carry pagination metadata from the service as `meta`.
    """
    raise_for_failure(result)

    metadata = result.metadata or {}
    meta = {key: metadata[key] for key in PAGE_META_KEYS if key in metadata} or None
    envelope = SuccessResponse[Any](message=message or result.message, meta=meta)
    payload = envelope.to_payload()
    # Null fields inside data are part of the resource shape
    payload["data"] = _dump(result.data, schema)
    return JSONResponse(status_code=status_code, content=payload)
