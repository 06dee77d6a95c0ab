from datetime import date, timedelta
from decimal import Decimal

import pytest

from school_admin.models.enums import InvoiceSourceType, InvoiceStatus, PaymentMethod, PaymentStatus
from school_admin.schemas.fee_generation import GenerateFeesRequest
from school_admin.services.base.service_result import ErrorCode
from school_admin.services.fee.fee_generation_service import FeeGenerationService
from school_admin.services.invoice.invoice_service import InvoiceService
from school_admin.services.payment.payment_service import PaymentService
from school_admin.services.report.report_service import ReportService

API = "/api/v1"
DUE = date.today() + timedelta(days=30)


@pytest.fixture
def collections(db, school_data):
    """Two cleared payments in May and June and one uncleared cheque."""
    FeeGenerationService(db).generate_fees(
        school_data.school_id,
        GenerateFeesRequest(
            student_ids=[school_data.student_id],
            academic_year_id=school_data.year_id,
            fee_structure_ids=[school_data.tuition_id],
            due_date=DUE,
        ),
    )
    service = PaymentService(db)
    row_id = service.student_fee_repository.find_for_student(school_data.student_id, school_data.year_id)[0].id
    for amount, paid_on, method, status in [
        ("100.00", date(2025, 5, 2), PaymentMethod.CASH, PaymentStatus.COMPLETED),
        ("250.00", date(2025, 6, 3), PaymentMethod.ONLINE, PaymentStatus.COMPLETED),
        ("75.00", date(2025, 6, 4), PaymentMethod.CASH, PaymentStatus.COMPLETED),
        ("400.00", date(2025, 6, 5), PaymentMethod.CHEQUE, PaymentStatus.PENDING),
    ]:
        result = service.create_payment(
            school_data.school_id,
            {
                "student_id": school_data.student_id,
                "student_fee_structure_id": row_id,
                "amount": Decimal(amount),
                "payment_date": paid_on,
                "payment_method": method,
                "status": status,
            },
        )
        assert result.is_success
    db.commit()


@pytest.fixture
def issued_invoice(db, school_data):
    invoices = InvoiceService(db)
    invoice_id = invoices.create_invoice(
        school_data.school_id,
        {
            "student_id": school_data.student_id,
            "academic_year_id": school_data.year_id,
            "issue_date": date(2025, 5, 1),
            "due_date": DUE,
            "items": [{"source_type": InvoiceSourceType.FEE, "source_id": school_data.library_id}],
        },
    ).data.id
    invoices.finalize(school_data.school_id, invoice_id)
    db.commit()
    return invoice_id


class TestFeeCollection:
    def test_totals_by_method(self, db, school_data, collections):
        summary = ReportService(db).fee_collection_summary(school_data.school_id).data

        assert summary.total_count == 3
        assert summary.total_amount == Decimal("425.00")
        assert set(summary.by_method) == {"cash", "online"}
        assert summary.by_method["cash"].count == 2
        assert summary.by_method["cash"].amount == Decimal("175.00")
        assert summary.by_method["online"].amount == Decimal("250.00")

    def test_date_range_is_inclusive(self, db, school_data, collections):
        summary = ReportService(db).fee_collection_summary(
            school_data.school_id, from_date=date(2025, 6, 1), to_date=date(2025, 6, 4)
        ).data

        assert summary.total_count == 2
        assert summary.total_amount == Decimal("325.00")

    def test_inverted_range(self, db, school_data):
        result = ReportService(db).fee_collection_summary(
            school_data.school_id, from_date=date(2025, 7, 1), to_date=date(2025, 6, 1)
        )
        assert result.error.code == ErrorCode.VALIDATION_ERROR

    def test_empty_school(self, db, school_data):
        summary = ReportService(db).fee_collection_summary(school_data.school_id).data
        assert summary.total_count == 0
        assert summary.total_amount == Decimal("0.00")
        assert summary.by_method == {}

    def test_endpoint(self, client, headers, collections):
        response = client.get(
            f"{API}/reports/fee-collection", headers=headers, params={"from_date": "2025-06-01"}
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["from_date"] == "2025-06-01"
        assert data["total_amount"] == "325.00"
        assert data["by_method"]["online"] == {"count": 1, "amount": "250.00"}


class TestOutstandingDues:
    def test_lists_issued_invoices_with_a_balance(self, db, school_data, issued_invoice):
        PaymentService(db).create_payment(
            school_data.school_id,
            {
                "student_id": school_data.student_id,
                "invoice_id": issued_invoice,
                "amount": Decimal("100.00"),
                "payment_date": date(2025, 5, 2),
            },
        )
        InvoiceService(db).create_invoice(
            school_data.school_id,
            {
                "student_id": school_data.student_id,
                "academic_year_id": school_data.year_id,
                "issue_date": date(2025, 5, 1),
                "due_date": DUE,
                "items": [{"description": "Draft only", "amount": Decimal("10.00")}],
            },
        )

        (due,) = ReportService(db).outstanding_dues(school_data.school_id).data

        assert due.invoice_id == issued_invoice
        assert due.student_code == "GVS-001"
        assert due.student_name == "Asha Rao"
        assert due.academic_year == "2025-26"
        assert due.balance_amount == Decimal("200.00")
        assert due.status == InvoiceStatus.PARTIALLY_PAID

    def test_paid_invoices_drop_out(self, db, school_data, issued_invoice):
        PaymentService(db).create_payment(
            school_data.school_id,
            {
                "student_id": school_data.student_id,
                "invoice_id": issued_invoice,
                "amount": Decimal("300.00"),
                "payment_date": date(2025, 5, 2),
            },
        )

        assert ReportService(db).outstanding_dues(school_data.school_id).data == []

    def test_endpoint_filters_by_year(self, client, headers, school_data, issued_invoice):
        listed = client.get(
            f"{API}/reports/outstanding-dues", headers=headers, params={"academic_year_id": school_data.year_id}
        )
        other_year = client.get(
            f"{API}/reports/outstanding-dues", headers=headers, params={"academic_year_id": school_data.year_id + 1}
        )

        assert listed.status_code == 200
        assert [due["invoice_id"] for due in listed.json()["data"]] == [issued_invoice]
        assert listed.json()["data"][0]["balance_amount"] == "300.00"
        assert listed.json()["meta"]["total"] == 1
        assert other_year.json()["data"] == []
