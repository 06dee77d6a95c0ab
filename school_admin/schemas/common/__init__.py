from school_admin.schemas.common.base import BaseCreateSchema, BaseResponseSchema, BaseSchema, BaseUpdateSchema
from school_admin.schemas.common.response import ErrorDetail, ErrorResponse, PaginationMeta, SuccessResponse

__all__ = [
    "BaseSchema",
    "BaseCreateSchema",
    "BaseUpdateSchema",
    "BaseResponseSchema",
    "SuccessResponse",
    "ErrorDetail",
    "ErrorResponse",
    "PaginationMeta",
]
