from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from school_admin.config.settings import settings
from school_admin.models.enums import (
    InvoiceSourceType,
    InvoiceStatus,
    PaymentMethod,
    PaymentStatus,
    StudentFeeStatus,
)
from school_admin.models.invoice import FeeInvoice
from school_admin.repositories.invoice.invoice_repository import next_sequence_number
from school_admin.schemas.fee_generation import GenerateFeesRequest
from school_admin.services.base.service_result import ErrorCode
from school_admin.services.fee.fee_generation_service import FeeGenerationService
from school_admin.services.invoice.invoice_service import InvoiceService
from school_admin.services.payment.payment_service import PaymentService

DUE = date.today() + timedelta(days=30)


@pytest.fixture
def draft_invoice(db, school_data):
    result = InvoiceService(db).create_invoice(
        school_data.school_id,
        {
            "student_id": school_data.student_id,
            "academic_year_id": school_data.year_id,
            "issue_date": date(2025, 5, 1),
            "due_date": DUE,
            "items": [
                {"source_type": InvoiceSourceType.FEE, "source_id": school_data.tuition_id},
                {"description": "Late fine", "amount": Decimal("50.00")},
            ],
        },
    )
    assert result.is_success
    return result.data.id


def _pay(db, data, amount, **target):
    return PaymentService(db).create_payment(
        data.school_id,
        {
            "student_id": data.student_id,
            "amount": Decimal(amount),
            "payment_date": date(2025, 5, 2),
            "payment_method": PaymentMethod.CASH,
            **target,
        },
    )


def test_next_sequence_number():
    assert next_sequence_number([], "INV-2025-") == "INV-2025-0001"
    assert next_sequence_number(["INV-2025-0007", "INV-2025-abc"], "INV-2025-") == "INV-2025-0008"


class TestInvoices:
    def test_draft_totals_come_from_items(self, db, school_data, draft_invoice):
        invoice = InvoiceService(db).find_one(school_data.school_id, draft_invoice).data

        assert invoice.status == InvoiceStatus.DRAFT
        assert invoice.invoice_number == f"{settings.INVOICE_PREFIX}-2025-0001"
        assert [item.description for item in invoice.items] == ["Tuition Fee", "Late fine"]
        assert invoice.total_amount == Decimal("1050.00")
        assert invoice.balance_amount == Decimal("1050.00")

    def test_draft_cannot_take_payments(self, db, school_data, draft_invoice):
        result = _pay(db, school_data, "100.00", invoice_id=draft_invoice)

        assert result.error.code == ErrorCode.BUSINESS_RULE_VIOLATION
        assert "draft" in result.error.message

    def test_status_follows_payments_once_issued(self, db, school_data, draft_invoice):
        invoices = InvoiceService(db)
        assert invoices.finalize(school_data.school_id, draft_invoice).data.status == InvoiceStatus.ISSUED

        partial = _pay(db, school_data, "400.00", invoice_id=draft_invoice)
        assert partial.data.receipt_number.startswith(f"{settings.RECEIPT_PREFIX}-{date.today():%Y%m%d}-")
        invoice = invoices.find_one(school_data.school_id, draft_invoice).data
        assert invoice.status == InvoiceStatus.PARTIALLY_PAID
        assert invoice.balance_amount == Decimal("650.00")

        _pay(db, school_data, "650.00", invoice_id=draft_invoice)
        assert invoices.find_one(school_data.school_id, draft_invoice).data.status == InvoiceStatus.PAID

        assert invoices.finalize(school_data.school_id, draft_invoice).error.code == ErrorCode.BUSINESS_RULE_VIOLATION

    def test_overpayment_is_rejected(self, db, school_data, draft_invoice):
        InvoiceService(db).finalize(school_data.school_id, draft_invoice)

        result = _pay(db, school_data, "2000.00", invoice_id=draft_invoice)

        assert result.error.code == ErrorCode.BUSINESS_RULE_VIOLATION
        assert result.error.details["remaining_balance"] == "1050.00"

    def test_deleting_a_payment_reopens_the_invoice(self, db, school_data, draft_invoice):
        InvoiceService(db).finalize(school_data.school_id, draft_invoice)
        payment_id = _pay(db, school_data, "1050.00", invoice_id=draft_invoice).data.id

        assert PaymentService(db).remove(school_data.school_id, payment_id).is_success

        invoice = InvoiceService(db).find_one(school_data.school_id, draft_invoice).data
        assert invoice.status == InvoiceStatus.ISSUED
        assert invoice.paid_amount == Decimal("0.00")

    def test_only_drafts_are_editable(self, db, school_data, draft_invoice):
        invoices = InvoiceService(db)
        assert invoices.update_invoice(school_data.school_id, draft_invoice, {"notes": "May"}).data.notes == "May"

        invoices.finalize(school_data.school_id, draft_invoice)
        result = invoices.update_invoice(school_data.school_id, draft_invoice, {"notes": "June"})
        assert result.error.code == ErrorCode.INVALID_STATE

    def test_cancel(self, db, school_data, draft_invoice):
        invoices = InvoiceService(db)
        invoices.finalize(school_data.school_id, draft_invoice)
        _pay(db, school_data, "10.00", invoice_id=draft_invoice)

        blocked = invoices.update_invoice(
            school_data.school_id, draft_invoice, {"status": InvoiceStatus.CANCELLED}
        )
        assert blocked.error.code == ErrorCode.INVALID_STATE

    def test_cancel_unpaid_invoice(self, db, school_data, draft_invoice):
        result = InvoiceService(db).update_invoice(
            school_data.school_id, draft_invoice, {"status": InvoiceStatus.CANCELLED}
        )
        assert result.data.status == InvoiceStatus.CANCELLED

    def test_add_item_to_draft(self, db, school_data, draft_invoice):
        result = InvoiceService(db).add_item(
            school_data.school_id,
            draft_invoice,
            {"source_type": InvoiceSourceType.TRANSPORT, "source_id": school_data.route_price_id},
        )

        items = result.data.items
        assert items[-1].description == "Transport fee"
        assert items[-1].amount == Decimal("500.00")
        assert result.data.total_amount == Decimal("1550.00")

    def test_item_from_another_school_is_rejected(self, db, school_data):
        result = InvoiceService(db).create_invoice(
            school_data.school_id,
            {
                "student_id": school_data.student_id,
                "academic_year_id": school_data.year_id,
                "issue_date": date(2025, 5, 1),
                "due_date": DUE,
                "items": [{"source_type": InvoiceSourceType.FEE, "source_id": 9999}],
            },
        )
        assert result.error.code == ErrorCode.VALIDATION_ERROR
        assert db.scalars(select(FeeInvoice)).all() == []

    def test_delete_draft(self, db, school_data, draft_invoice):
        invoices = InvoiceService(db)
        assert invoices.remove(school_data.school_id, draft_invoice).is_success
        assert invoices.find_one(school_data.school_id, draft_invoice).error.code == ErrorCode.NOT_FOUND


class TestInvoiceFromFeeRows:
    @pytest.fixture
    def installments(self, db, school_data):
        FeeGenerationService(db).generate_fees(
            school_data.school_id,
            GenerateFeesRequest(
                student_ids=[school_data.student_id],
                academic_year_id=school_data.year_id,
                fee_structure_ids=[school_data.tuition_id],
                due_date=date(2025, 5, 10),
                installment={"enabled": True, "count": 2},
            ),
        )

    def test_one_item_per_pending_row(self, db, school_data, installments):
        result = InvoiceService(db).generate_from_fee_structures(
            school_data.school_id,
            {"student_id": school_data.student_id, "academic_year_id": school_data.year_id},
        )

        invoice = result.data
        assert invoice.status == InvoiceStatus.DRAFT
        assert [item.description for item in invoice.items] == [
            "Tuition Fee (Installment 1/2)",
            "Tuition Fee (Installment 2/2)",
        ]
        assert invoice.total_amount == Decimal("1000.00")
        assert all(item.source_id == school_data.tuition_id for item in invoice.items)

    def test_nothing_pending(self, db, school_data):
        result = InvoiceService(db).generate_from_fee_structures(
            school_data.school_id,
            {"student_id": school_data.student_id, "academic_year_id": school_data.year_id},
        )
        assert result.error.code == ErrorCode.VALIDATION_ERROR


class TestFeeRowPayments:
    @pytest.fixture
    def fee_row_id(self, db, school_data):
        result = FeeGenerationService(db).generate_fees(
            school_data.school_id,
            GenerateFeesRequest(
                student_ids=[school_data.student_id],
                academic_year_id=school_data.year_id,
                fee_structure_ids=[school_data.library_id],
                due_date=DUE,
            ),
        )
        assert result.data.fees_generated == 1
        service = PaymentService(db)
        return service.student_fee_repository.find_for_student(school_data.student_id, school_data.year_id)[0].id

    def test_full_payment_marks_row_paid(self, db, school_data, fee_row_id):
        payment = _pay(db, school_data, "300.00", student_fee_structure_id=fee_row_id).data

        row = PaymentService(db).student_fee_repository.find_by_id(fee_row_id)
        assert payment.student_fee_structure_id == fee_row_id
        assert row.status == StudentFeeStatus.PAID

    def test_partial_payment_and_amount_update(self, db, school_data, fee_row_id):
        service = PaymentService(db)
        payment_id = _pay(db, school_data, "100.00", student_fee_structure_id=fee_row_id).data.id
        assert service.student_fee_repository.find_by_id(fee_row_id).status == StudentFeeStatus.PENDING

        updated = service.update_payment(school_data.school_id, payment_id, {"amount": Decimal("300.00")})

        assert updated.data.amount == Decimal("300.00")
        assert service.student_fee_repository.find_by_id(fee_row_id).status == StudentFeeStatus.PAID

    def test_duplicate_receipt_number(self, db, school_data, fee_row_id):
        _pay(db, school_data, "100.00", student_fee_structure_id=fee_row_id, receipt_number="R-1")

        result = _pay(db, school_data, "100.00", student_fee_structure_id=fee_row_id, receipt_number="R-1")

        assert result.error.code == ErrorCode.CONFLICT

    def test_payment_needs_exactly_one_target(self, db, school_data, fee_row_id):
        result = _pay(db, school_data, "10.00")
        assert result.error.code == ErrorCode.VALIDATION_ERROR

    def test_pending_payment_does_not_settle_the_row(self, db, school_data, fee_row_id):
        cheque = _pay(
            db,
            school_data,
            "300.00",
            student_fee_structure_id=fee_row_id,
            payment_method=PaymentMethod.CHEQUE,
            status=PaymentStatus.PENDING,
        )

        assert cheque.is_success
        row = PaymentService(db).student_fee_repository.find_by_id(fee_row_id)
        assert row.status == StudentFeeStatus.PENDING


class TestInvoicedFeeRows:
    @pytest.fixture
    def fee_row_id(self, db, school_data):
        FeeGenerationService(db).generate_fees(
            school_data.school_id,
            GenerateFeesRequest(
                student_ids=[school_data.student_id],
                academic_year_id=school_data.year_id,
                fee_structure_ids=[school_data.library_id],
                due_date=DUE,
            ),
        )
        service = PaymentService(db)
        return service.student_fee_repository.find_for_student(school_data.student_id, school_data.year_id)[0].id

    @staticmethod
    def _invoice_rows(db, data):
        return InvoiceService(db).generate_from_fee_structures(
            data.school_id, {"student_id": data.student_id, "academic_year_id": data.year_id}
        )

    def _row_status(self, db, fee_row_id):
        return PaymentService(db).student_fee_repository.find_by_id(fee_row_id).status

    def test_billed_row_is_not_invoiced_twice(self, db, school_data, fee_row_id):
        first = self._invoice_rows(db, school_data)

        assert first.data.items[0].source_metadata["student_fee_structure_id"] == fee_row_id
        assert self._invoice_rows(db, school_data).error.code == ErrorCode.VALIDATION_ERROR

    def test_invoice_payments_settle_the_row(self, db, school_data, fee_row_id):
        invoice_id = self._invoice_rows(db, school_data).data.id
        InvoiceService(db).finalize(school_data.school_id, invoice_id)

        _pay(db, school_data, "100.00", invoice_id=invoice_id)
        assert self._row_status(db, fee_row_id) == StudentFeeStatus.PENDING

        _pay(db, school_data, "200.00", invoice_id=invoice_id)
        assert self._row_status(db, fee_row_id) == StudentFeeStatus.PAID
        assert self._invoice_rows(db, school_data).error.code == ErrorCode.VALIDATION_ERROR

    def test_deleting_the_invoice_payment_reopens_the_row(self, db, school_data, fee_row_id):
        invoice_id = self._invoice_rows(db, school_data).data.id
        InvoiceService(db).finalize(school_data.school_id, invoice_id)
        payment_id = _pay(db, school_data, "300.00", invoice_id=invoice_id).data.id

        assert PaymentService(db).remove(school_data.school_id, payment_id).is_success

        assert self._row_status(db, fee_row_id) == StudentFeeStatus.PENDING

    def test_pending_invoice_payment_settles_nothing(self, db, school_data, fee_row_id):
        invoice_id = self._invoice_rows(db, school_data).data.id
        InvoiceService(db).finalize(school_data.school_id, invoice_id)

        _pay(db, school_data, "300.00", invoice_id=invoice_id, status=PaymentStatus.PENDING)

        invoice = InvoiceService(db).find_one(school_data.school_id, invoice_id).data
        assert invoice.status == InvoiceStatus.ISSUED
        assert invoice.paid_amount == Decimal("0.00")
        assert self._row_status(db, fee_row_id) == StudentFeeStatus.PENDING

    def test_cancelled_invoice_releases_its_rows(self, db, school_data, fee_row_id):
        invoice_id = self._invoice_rows(db, school_data).data.id
        cancelled = InvoiceService(db).update_invoice(
            school_data.school_id, invoice_id, {"status": InvoiceStatus.CANCELLED}
        )
        assert cancelled.is_success

        again = self._invoice_rows(db, school_data)

        assert again.is_success
        assert again.data.id != invoice_id


class TestReceipts:
    def test_fee_row_receipt(self, db, school_data):
        FeeGenerationService(db).generate_fees(
            school_data.school_id,
            GenerateFeesRequest(
                student_ids=[school_data.student_id],
                academic_year_id=school_data.year_id,
                fee_structure_ids=[school_data.library_id],
                due_date=DUE,
            ),
        )
        service = PaymentService(db)
        row_id = service.student_fee_repository.find_for_student(school_data.student_id, school_data.year_id)[0].id
        payment = _pay(db, school_data, "100.00", student_fee_structure_id=row_id, receipt_number="R-100").data
        _pay(
            db,
            school_data,
            "50.00",
            student_fee_structure_id=row_id,
            payment_method=PaymentMethod.CHEQUE,
            status=PaymentStatus.PENDING,
        )

        receipt = service.get_receipt(school_data.school_id, payment.id).data

        assert receipt.receipt_number == "R-100"
        assert receipt.receipt_date == date(2025, 5, 2)
        assert receipt.student.name == "Asha Rao"
        assert receipt.school.name == "Green Valley School"
        assert receipt.fee.name == "Library Fee"
        assert receipt.fee.invoice_number is None
        assert receipt.fee.academic_year == "2025-26"
        assert receipt.fee.total_amount == Decimal("300.00")
        assert receipt.fee.paid_amount == Decimal("100.00")
        assert receipt.fee.remaining_balance == Decimal("200.00")

    def test_invoice_receipt(self, db, school_data, draft_invoice):
        InvoiceService(db).finalize(school_data.school_id, draft_invoice)
        payment_id = _pay(db, school_data, "400.00", invoice_id=draft_invoice).data.id

        receipt = PaymentService(db).get_receipt(school_data.school_id, payment_id).data

        assert receipt.fee.name == "Fee Payment"
        assert receipt.fee.invoice_number == f"{settings.INVOICE_PREFIX}-2025-0001"
        assert receipt.fee.total_amount == Decimal("1050.00")
        assert receipt.fee.paid_amount == Decimal("400.00")
        assert receipt.fee.remaining_balance == Decimal("650.00")
        assert receipt.fee.due_date == DUE
        assert receipt.payment.amount == Decimal("400.00")

    def test_unknown_payment(self, db, school_data):
        assert PaymentService(db).get_receipt(school_data.school_id, 999).error.code == ErrorCode.NOT_FOUND
