from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from school_admin.config.settings import settings
from school_admin.models.enums import InvoiceSourceType, InvoiceStatus, InvoiceType
from school_admin.models.invoice import FeeInvoice
from school_admin.models.payment import Payment
from school_admin.models.student import Student
from school_admin.schemas.payment import (
    LEDGER_FEE_HEAD_ID,
    TRANSPORT_FEE_HEAD_ID,
    PaymentAllocationRequest,
)
from school_admin.services.base.service_result import ErrorCode
from school_admin.services.payment.payment_allocation_service import PaymentAllocationService


def _allocate(db, data, allocation, amount_received="2000.00", **extra):
    request = PaymentAllocationRequest(
        student_id=extra.pop("student_id", data.student_id),
        academic_year_id=data.year_id,
        amount_received=Decimal(amount_received),
        allocation={head: Decimal(amount) for head, amount in allocation.items()},
        payment_date=date(2025, 5, 1),
        **extra,
    )
    return PaymentAllocationService(db).allocate_payment(data.school_id, request)


def _invoices(db):
    return db.scalars(select(FeeInvoice)).all()


def test_allocation_bills_one_invoice_and_records_one_payment(db, school_data):
    result = _allocate(
        db,
        school_data,
        {school_data.tuition_id: "1000.00", TRANSPORT_FEE_HEAD_ID: "500.00", LEDGER_FEE_HEAD_ID: "200.00"},
        amount_received="1800.00",
        discount=Decimal("100.00"),
    )

    assert result.is_success
    outcome = result.data
    invoice = outcome.invoice
    assert invoice.type == InvoiceType.ONE_TIME
    assert invoice.issue_date == invoice.due_date == date(2025, 5, 1)
    assert invoice.invoice_number.startswith(f"{settings.INVOICE_PREFIX}-2025-")
    assert invoice.total_amount == Decimal("1500.00")
    assert invoice.discount_amount == Decimal("100.00")
    assert invoice.balance_amount == Decimal("0.00")
    assert invoice.status == InvoiceStatus.PAID

    sources = {(item.source_type, item.source_id) for item in invoice.items}
    assert sources == {
        (InvoiceSourceType.FEE, school_data.tuition_id),
        (InvoiceSourceType.TRANSPORT, school_data.route_price_id),
    }

    assert outcome.payment.amount == Decimal("1400.00")
    assert outcome.payment.invoice_id == invoice.id
    assert outcome.payment.receipt_number.startswith(f"{settings.RECEIPT_PREFIX}-")

    assert outcome.ledger_adjusted is True
    assert outcome.opening_balance_after == Decimal("0.00")
    assert outcome.allocated_total == Decimal("1700.00")
    assert outcome.net_paid == Decimal("1600.00")
    assert outcome.unallocated_amount == Decimal("100.00")
    assert db.get(Student, school_data.student_id).opening_balance == Decimal("0.00")


def test_ledger_portion_is_not_an_invoice_line(db, school_data):
    outcome = _allocate(
        db, school_data, {school_data.library_id: "300.00", LEDGER_FEE_HEAD_ID: "50.00"}
    ).data

    assert len(outcome.invoice.items) == 1
    assert outcome.invoice.total_amount == Decimal("300.00")
    assert outcome.opening_balance_after == Decimal("150.00")


def test_full_discount_records_no_payment(db, school_data):
    outcome = _allocate(
        db, school_data, {school_data.library_id: "300.00"}, discount=Decimal("300.00")
    ).data

    assert outcome.payment is None
    assert outcome.invoice.status == InvoiceStatus.PAID
    assert outcome.net_paid == Decimal("0.00")
    assert db.scalars(select(Payment)).all() == []


@pytest.mark.parametrize(
    "allocation, message",
    [
        ({"tuition": "0.00"}, "Total allocation must be greater than 0"),
        ({LEDGER_FEE_HEAD_ID: "100.00"}, "other than the ledger balance"),
        ({"tuition": "-5.00", "library": "10.00"}, "cannot be negative"),
        ({"tuition": "1000.00", "library": "300.00"}, "exceeds the amount received"),
    ],
)
def test_invalid_amounts_write_nothing(db, school_data, allocation, message):
    heads = {"tuition": school_data.tuition_id, "library": school_data.library_id}
    allocation = {heads.get(head, head): amount for head, amount in allocation.items()}

    result = _allocate(db, school_data, allocation, amount_received="1200.00")

    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert message in result.error.message
    assert _invoices(db) == []


def test_ledger_amount_cannot_exceed_opening_balance(db, school_data):
    result = _allocate(db, school_data, {school_data.tuition_id: "100.00", LEDGER_FEE_HEAD_ID: "250.00"})

    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.details["opening_balance"] == "200.00"
    assert _invoices(db) == []


def test_discount_cannot_exceed_billed_total(db, school_data):
    result = _allocate(
        db,
        school_data,
        {school_data.library_id: "300.00", LEDGER_FEE_HEAD_ID: "100.00"},
        discount=Decimal("350.00"),
    )

    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.field == "discount"


def test_unknown_fee_heads(db, school_data):
    result = _allocate(db, school_data, {9999: "100.00", -5: "100.00"})

    assert result.error.details == {"missing_fee_structure_ids": [9999], "unknown_fee_head_ids": [-5]}


def test_transport_needs_a_route_price(db, school_data, add_student):
    walker = add_student()

    result = _allocate(db, school_data, {TRANSPORT_FEE_HEAD_ID: "500.00"}, student_id=walker)

    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.details["fee_head_id"] == TRANSPORT_FEE_HEAD_ID


def test_unknown_student(db, school_data):
    result = _allocate(db, school_data, {school_data.tuition_id: "100.00"}, student_id=9999)
    assert result.error.code == ErrorCode.NOT_FOUND


class TestLedgerAdjustmentFailure:
    @pytest.fixture
    def broken_ledger(self, monkeypatch):
        def fail(self, student, amount):
            raise RuntimeError("ledger locked")

        monkeypatch.setattr(PaymentAllocationService, "_adjust_ledger", fail)

    def test_strict_mode_rolls_everything_back(self, db, school_data, broken_ledger):
        result = _allocate(db, school_data, {school_data.tuition_id: "100.00", LEDGER_FEE_HEAD_ID: "50.00"})

        assert not result.is_success
        assert result.error.code == ErrorCode.INTERNAL_ERROR
        assert _invoices(db) == []

    def test_best_effort_keeps_the_payment(self, db, school_data, broken_ledger, monkeypatch):
        monkeypatch.setattr(settings, "LEDGER_ADJUSTMENT_BEST_EFFORT", True)

        result = _allocate(db, school_data, {school_data.tuition_id: "100.00", LEDGER_FEE_HEAD_ID: "50.00"})

        assert result.is_success
        outcome = result.data
        assert outcome.ledger_adjusted is False
        assert outcome.warnings == ["Ledger balance was not adjusted: ledger locked"]
        assert outcome.net_paid == Decimal("100.00")
        assert outcome.payment.amount == Decimal("100.00")
        assert len(_invoices(db)) == 1
        assert db.get(Student, school_data.student_id).opening_balance == Decimal("200.00")
