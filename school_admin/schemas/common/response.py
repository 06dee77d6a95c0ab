"""
Standard API response wrappers for success and error envelopes.
"""

from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import Field

from school_admin.schemas.common.base import BaseSchema

T = TypeVar("T")

__all__ = [
    "SuccessResponse",
    "ErrorDetail",
    "ErrorResponse",
    "PaginationMeta",
]


class PaginationMeta(BaseSchema):
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)


class SuccessResponse(BaseSchema, Generic[T]):
    """Standard success envelope: {success, data, message?, meta?}."""

    success: bool = Field(default=True, description="Success flag")
    data: Optional[T] = Field(default=None, description="Response data")
    message: Optional[str] = Field(default=None, description="Response message")
    meta: Optional[Dict[str, Any]] = Field(default=None, description="Pagination or run metadata")

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict without the optional keys that are unset."""
        return self.model_dump(mode="json", exclude_none=True)


class ErrorDetail(BaseSchema):
    """Error detail information."""

    field: Optional[str] = Field(default=None, description="Field name causing error")
    message: str = Field(..., description="Error message")
    code: Optional[str] = Field(default=None, description="Error code")
    location: Optional[List[str]] = Field(default=None, description="Error location in nested structure")


class ErrorResponse(BaseSchema):
    """Standard error envelope."""

    success: bool = Field(default=False, description="Success flag")
    message: str = Field(..., description="Error message")
    error_code: Optional[str] = Field(default=None, description="Application error code")
    errors: Optional[List[ErrorDetail]] = Field(default=None, description="Detailed errors")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Structured error context")
    timestamp: Optional[str] = Field(default=None, description="Error timestamp")
    path: Optional[str] = Field(default=None, description="Request path that caused error")
    request_id: Optional[str] = Field(default=None, description="Correlation id of the request")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
