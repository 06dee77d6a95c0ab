"""
API v1 Router - Main Entry Point
Aggregates all v1 API endpoints for the school administration system
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from school_admin.api import deps
from school_admin.api.v1.endpoints import (
    fee_generation,
    fee_structures,
    invoices,
    payments,
    reports,
    route_prices,
    schools,
    setup,
    students,
)
from school_admin.config.settings import settings
from school_admin.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(
    responses={
        400: {"description": "Bad Request"},
        404: {"description": "Not Found"},
        409: {"description": "Conflict"},
        422: {"description": "Validation Error"},
        500: {"description": "Internal Server Error"},
    }
)

router.include_router(schools.router, tags=["Schools"])
router.include_router(setup.router, tags=["Setup"])
router.include_router(students.router, tags=["Student Management"])
router.include_router(fee_structures.router, tags=["Fee Structures"])
router.include_router(route_prices.router, tags=["Transport Pricing"])
router.include_router(fee_generation.router, tags=["Fee Generation"])
router.include_router(invoices.router, tags=["Invoices"])
router.include_router(payments.router, tags=["Payment Processing"])
router.include_router(reports.router, tags=["Reports"])


# Health endpoint
@router.get("/health", tags=["System Health"])
def api_health_check(db: Session = Depends(deps.get_db)):
    """
    API health check including database connectivity
    """
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.error(f"Health check database query failed: {e}")
        database = "unavailable"

    return {
        "success": True,
        "data": {
            "status": "healthy" if database == "connected" else "degraded",
            "version": settings.API_VERSION,
            "api_version": "v1",
            "environment": settings.ENVIRONMENT,
            "database": database,
        },
    }
