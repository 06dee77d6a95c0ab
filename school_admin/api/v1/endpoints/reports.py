"""
Fee report endpoints.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from school_admin.api import deps
from school_admin.api.responses import respond
from school_admin.schemas.report import FeeCollectionSummary, OutstandingDue
from school_admin.services.report.report_service import ReportService

router = APIRouter(prefix="/reports")


@router.get("/fee-collection")
def fee_collection_summary(
    from_date: Optional[date] = Query(default=None),
    to_date: Optional[date] = Query(default=None),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    """Completed payments in the date range, totalled per payment method."""
    result = ReportService(db).fee_collection_summary(school_id, from_date, to_date)
    return respond(result, schema=FeeCollectionSummary)


@router.get("/outstanding-dues")
def outstanding_dues(
    academic_year_id: Optional[int] = Query(default=None),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = ReportService(db).outstanding_dues(school_id, academic_year_id)
    return respond(result, schema=OutstandingDue)
