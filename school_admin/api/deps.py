from typing import Optional

from fastapi import Header, Query

from school_admin.core.exceptions import BadRequestError
from school_admin.core.pagination import PaginationParams, normalize_pagination
from school_admin.db.session import get_db

# Example usage in a router:
#   from fastapi import Depends, APIRouter
#   from school_admin.api import deps
#
#   router = APIRouter()
#
#   @router.get("/students")
#   def list_students(db = Depends(deps.get_db), school_id: int = Depends(deps.get_school_id)):
#       ...


# --- School context ------------------------------------------------------------

def get_school_id(
    x_school_id: Optional[int] = Header(default=None, alias="X-School-ID"),
    school_id: Optional[int] = Query(default=None, description="Tenant school (alternative to X-School-ID)"),
) -> int:
    """Tenant id from the X-School-ID header, falling back to ?school_id=."""
    resolved = x_school_id if x_school_id is not None else school_id
    if resolved is None:
        raise BadRequestError("School ID is required (X-School-ID header or school_id query parameter)")
    return resolved


# --- Pagination ----------------------------------------------------------------

def get_pagination_params(
    page: Optional[int] = Query(default=None, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
) -> PaginationParams:
    return normalize_pagination(page, limit)


__all__ = [
    "get_db",
    "get_school_id",
    "get_pagination_params",
]
