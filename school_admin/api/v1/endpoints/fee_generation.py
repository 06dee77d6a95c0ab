"""
Fee generation endpoints: bulk generation, forecast, breakdown and run history.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from school_admin.api import deps
from school_admin.api.responses import respond
from school_admin.core.pagination import PaginationParams
from school_admin.schemas.fee_forecast import ForecastRequest
from school_admin.schemas.fee_generation import FeeGenerationHistoryResponse, GenerateFeesRequest
from school_admin.services.fee.fee_calculation_service import FeeCalculationService
from school_admin.services.fee.fee_forecast_service import FeeForecastService
from school_admin.services.fee.fee_generation_service import FeeGenerationService

router = APIRouter(prefix="/fee-generation")


@router.post("/generate", status_code=status.HTTP_201_CREATED)
def generate_fees(
    payload: GenerateFeesRequest,
    generated_by: Optional[str] = Query(default=None, max_length=100),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    """
    Generate fee rows for students and fee structures.

    Per-student failures do not fail the request; they are listed in
    `failed_students` and recorded on the history row.
    """
    result = FeeGenerationService(db).generate_fees(school_id, payload, generated_by=generated_by)
    return respond(result, status_code=status.HTTP_201_CREATED)


@router.get("/forecast")
def forecast_fees(
    student_id: int = Query(...),
    academic_year_id: int = Query(...),
    forecast_up_to: Optional[date] = Query(default=None),
    include_bus_fees: bool = Query(default=True),
    include_previous_balance: bool = Query(default=True),
    as_of: Optional[date] = Query(default=None),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    request = ForecastRequest(
        student_id=student_id,
        academic_year_id=academic_year_id,
        forecast_up_to=forecast_up_to,
        include_bus_fees=include_bus_fees,
        include_previous_balance=include_previous_balance,
        as_of=as_of,
    )
    return respond(FeeForecastService(db).forecast(school_id, request))


@router.get("/breakdown")
def fee_breakdown(
    student_id: int = Query(...),
    academic_year_id: int = Query(...),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    """Payable fee heads for the payment screen."""
    return respond(FeeCalculationService(db).generate_fee_breakdown(school_id, student_id, academic_year_id))


@router.get("/history")
def list_generation_history(
    academic_year_id: Optional[int] = Query(default=None),
    pagination: PaginationParams = Depends(deps.get_pagination_params),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = FeeGenerationService(db).list_history(
        school_id, academic_year_id, page=pagination.page, limit=pagination.limit
    )
    return respond(result, schema=FeeGenerationHistoryResponse)


@router.get("/history/{history_id}")
def get_generation_history(
    history_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(FeeGenerationService(db).get_history(school_id, history_id), schema=FeeGenerationHistoryResponse)
