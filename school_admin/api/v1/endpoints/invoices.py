"""
Invoice endpoints.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from school_admin.api import deps
from school_admin.api.responses import respond
from school_admin.core.pagination import PaginationParams
from school_admin.models.enums import InvoiceStatus
from school_admin.schemas.invoice import (
    GenerateInvoiceFromFeesRequest,
    InvoiceCreate,
    InvoiceItemCreate,
    InvoiceResponse,
    InvoiceUpdate,
)
from school_admin.services.invoice.invoice_service import InvoiceService

router = APIRouter(prefix="/invoices")


@router.post("/generate-from-fee-structures", status_code=status.HTTP_201_CREATED)
def generate_invoice_from_fee_structures(
    payload: GenerateInvoiceFromFeesRequest,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    """Draft invoice billing the student's unpaid fee rows."""
    result = InvoiceService(db).generate_from_fee_structures(school_id, payload.model_dump())
    return respond(result, schema=InvoiceResponse, status_code=status.HTTP_201_CREATED)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = InvoiceService(db).create_invoice(school_id, payload.model_dump())
    return respond(result, schema=InvoiceResponse, status_code=status.HTTP_201_CREATED)


@router.get("")
def list_invoices(
    student_id: Optional[int] = Query(default=None),
    academic_year_id: Optional[int] = Query(default=None),
    invoice_status: Optional[InvoiceStatus] = Query(default=None, alias="status"),
    pagination: PaginationParams = Depends(deps.get_pagination_params),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = InvoiceService(db).find_all(
        school_id,
        student_id=student_id,
        academic_year_id=academic_year_id,
        status=invoice_status,
        page=pagination.page,
        limit=pagination.limit,
    )
    return respond(result, schema=InvoiceResponse)


@router.get("/{invoice_id}")
def get_invoice(
    invoice_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(InvoiceService(db).find_one(school_id, invoice_id), schema=InvoiceResponse)


@router.patch("/{invoice_id}")
def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    """Edit a draft, or cancel an invoice that has no payments."""
    result = InvoiceService(db).update_invoice(school_id, invoice_id, payload.changes())
    return respond(result, schema=InvoiceResponse)


@router.delete("/{invoice_id}")
def delete_invoice(
    invoice_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(InvoiceService(db).remove(school_id, invoice_id))


@router.post("/{invoice_id}/finalize")
def finalize_invoice(
    invoice_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(InvoiceService(db).finalize(school_id, invoice_id), schema=InvoiceResponse)


@router.post("/{invoice_id}/items", status_code=status.HTTP_201_CREATED)
def add_invoice_item(
    invoice_id: int,
    payload: InvoiceItemCreate,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = InvoiceService(db).add_item(school_id, invoice_id, payload.model_dump())
    return respond(result, schema=InvoiceResponse, status_code=status.HTTP_201_CREATED)
