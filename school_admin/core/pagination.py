"""
Core pagination helpers.

This module provides:
- `normalize_pagination` to clean up page/limit inputs using defaults
  and clamping.
- `build_page_meta` to produce the `meta` block of list responses.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict

from school_admin.config.settings import settings

DEFAULT_PAGE = 1


@dataclass(frozen=True)
class PaginationParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def normalize_pagination(page: int | None, limit: int | None) -> PaginationParams:
    """
    Normalize raw page & limit inputs into a PaginationParams object
    with sane defaults and a clamped max page size.

    Rules:
        - page < 1 or None -> DEFAULT_PAGE
        - limit < 1 or None -> settings.DEFAULT_PAGE_SIZE
        - limit > settings.MAX_PAGE_SIZE -> settings.MAX_PAGE_SIZE
    """
    if page is None or page < 1:
        page = DEFAULT_PAGE

    if limit is None or limit < 1:
        limit = settings.DEFAULT_PAGE_SIZE

    if limit > settings.MAX_PAGE_SIZE:
        limit = settings.MAX_PAGE_SIZE

    return PaginationParams(page=page, limit=limit)


def build_page_meta(total: int, params: PaginationParams) -> Dict[str, Any]:
    return {
        "total": total,
        "page": params.page,
        "limit": params.limit,
        "total_pages": math.ceil(total / params.limit) if params.limit else 0,
    }
