"""
Payment endpoints: direct payments and allocation of a received amount.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from school_admin.api import deps
from school_admin.api.responses import respond
from school_admin.core.pagination import PaginationParams
from school_admin.schemas.payment import (
    PaymentAllocationRequest,
    PaymentCreate,
    PaymentReceipt,
    PaymentResponse,
    PaymentUpdate,
)
from school_admin.services.payment.payment_allocation_service import PaymentAllocationService
from school_admin.services.payment.payment_service import PaymentService

router = APIRouter(prefix="/payments")


@router.post("/allocate", status_code=status.HTTP_201_CREATED)
def allocate_payment(
    payload: PaymentAllocationRequest,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    """
    Split a received amount across fee heads.

    Fee-head ids: 0 is the ledger balance, -1 is transport, positive
    ids are fee structures. Non-ledger heads are billed on one invoice
    that is settled in the same request.
    """
    result = PaymentAllocationService(db).allocate_payment(school_id, payload)
    return respond(result, status_code=status.HTTP_201_CREATED)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_payment(
    payload: PaymentCreate,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = PaymentService(db).create_payment(school_id, payload.model_dump())
    return respond(result, schema=PaymentResponse, status_code=status.HTTP_201_CREATED)


@router.get("")
def list_payments(
    student_id: Optional[int] = Query(default=None),
    invoice_id: Optional[int] = Query(default=None),
    pagination: PaginationParams = Depends(deps.get_pagination_params),
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = PaymentService(db).find_all(
        school_id,
        student_id=student_id,
        invoice_id=invoice_id,
        page=pagination.page,
        limit=pagination.limit,
    )
    return respond(result, schema=PaymentResponse)


@router.get("/{payment_id}")
def get_payment(
    payment_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(PaymentService(db).find_one(school_id, payment_id), schema=PaymentResponse)


@router.patch("/{payment_id}")
def update_payment(
    payment_id: int,
    payload: PaymentUpdate,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    result = PaymentService(db).update_payment(school_id, payment_id, payload.changes())
    return respond(result, schema=PaymentResponse)


@router.delete("/{payment_id}")
def delete_payment(
    payment_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    return respond(PaymentService(db).remove(school_id, payment_id))


@router.get("/{payment_id}/receipt")
def get_payment_receipt(
    payment_id: int,
    db: Session = Depends(deps.get_db),
    school_id: int = Depends(deps.get_school_id),
):
    """Printable receipt with the balance left after this payment."""
    return respond(PaymentService(db).get_receipt(school_id, payment_id), schema=PaymentReceipt)
