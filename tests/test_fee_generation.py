from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from school_admin.models.enums import (
    FeeFrequency,
    GenerationStatus,
    GenerationType,
    PaymentMethod,
    RecordStatus,
)
from school_admin.models.fee import FeeGenerationHistory, FeeStructure, StudentFeeStructure
from school_admin.schemas.fee_generation import GenerateFeesRequest
from school_admin.services.base.service_result import ErrorCode
from school_admin.services.fee.fee_generation_service import FeeGenerationService
from school_admin.services.invoice.invoice_service import InvoiceService
from school_admin.services.payment.payment_service import PaymentService
from school_admin.tasks.monthly_fee_generation import run_monthly_fee_generation


def _rows(db, student_id):
    stmt = (
        select(StudentFeeStructure)
        .where(StudentFeeStructure.student_id == student_id)
        .order_by(StudentFeeStructure.fee_structure_id, StudentFeeStructure.due_date)
    )
    return list(db.scalars(stmt))


def _request(data, **overrides):
    payload = {
        "student_ids": [data.student_id],
        "academic_year_id": data.year_id,
        "fee_structure_ids": [data.tuition_id],
        "due_date": date(2025, 4, 30),
    }
    payload.update(overrides)
    return GenerateFeesRequest(**payload)


def test_generates_one_row_per_student_and_structure(db, school_data):
    result = FeeGenerationService(db).generate_fees(
        school_data.school_id,
        _request(school_data, fee_structure_ids=[school_data.tuition_id, school_data.library_id]),
    )

    assert result.is_success
    summary = result.data
    assert summary.status == GenerationStatus.COMPLETED
    assert summary.fees_generated == 1
    assert summary.rows_created == 2
    assert summary.total_amount_generated == Decimal("1300.00")

    rows = _rows(db, school_data.student_id)
    assert [row.amount for row in rows] == [Decimal("1000.00"), Decimal("300.00")]
    assert all(row.due_date == date(2025, 4, 30) for row in rows)
    assert all(row.academic_record_id == school_data.record_id for row in rows)


def test_percentage_discount(db, school_data):
    request = _request(school_data, discount={"percentage": "10"})
    assert FeeGenerationService(db).generate_fees(school_data.school_id, request).is_success

    (row,) = _rows(db, school_data.student_id)
    assert row.original_amount == Decimal("1000.00")
    assert row.discount_amount == Decimal("100.00")
    assert row.amount == Decimal("900.00")
    assert row.amount + row.discount_amount == row.original_amount


def test_installments_split_amount_and_due_dates(db, school_data):
    request = _request(
        school_data,
        discount={"percentage": "10"},
        installment={"enabled": True, "count": 3, "start_date": date(2025, 5, 10)},
    )
    assert FeeGenerationService(db).generate_fees(school_data.school_id, request).is_success

    rows = _rows(db, school_data.student_id)
    assert [row.amount for row in rows] == [Decimal("300.00")] * 3
    assert [row.installment_number for row in rows] == [1, 2, 3]
    assert [row.due_date for row in rows] == [date(2025, 5, 10), date(2025, 6, 10), date(2025, 7, 10)]
    for row in rows:
        assert row.amount + row.discount_amount == row.original_amount
    assert sum(row.original_amount for row in rows) == Decimal("1000.00")


def test_installments_start_on_the_due_date_by_default(db, school_data):
    request = _request(
        school_data,
        fee_structure_ids=[school_data.library_id],
        installment={"enabled": True, "count": 3},
        due_date=date(2025, 6, 1),
    )
    assert FeeGenerationService(db).generate_fees(school_data.school_id, request).is_success

    rows = _rows(db, school_data.student_id)
    assert [row.amount for row in rows] == [Decimal("100.00")] * 3
    assert rows[0].due_date == date(2025, 6, 1)


def test_second_run_reports_already_generated(db, school_data):
    service = FeeGenerationService(db)
    assert service.generate_fees(school_data.school_id, _request(school_data)).is_success

    result = service.generate_fees(school_data.school_id, _request(school_data))

    assert result.is_success
    assert result.data.status == GenerationStatus.FAILED
    assert result.data.fees_failed == 1
    assert result.data.failed_students[0].reason == "Fees already generated"
    assert len(_rows(db, school_data.student_id)) == 1

    history = db.get(FeeGenerationHistory, result.data.history_id)
    assert history.error_message == "1 of 1 students failed"


def test_regenerate_replaces_unpaid_rows(db, school_data):
    service = FeeGenerationService(db)
    assert service.generate_fees(school_data.school_id, _request(school_data)).is_success

    result = service.generate_fees(
        school_data.school_id,
        _request(school_data, regenerate_existing=True, discount={"fixed_amount": "250"}),
    )

    assert result.data.fees_generated == 1
    (row,) = _rows(db, school_data.student_id)
    assert row.amount == Decimal("750.00")
    assert row.discount_amount == Decimal("250.00")


def test_regenerate_keeps_rows_with_payments(db, school_data):
    service = FeeGenerationService(db)
    assert service.generate_fees(school_data.school_id, _request(school_data)).is_success
    (row,) = _rows(db, school_data.student_id)

    payment = PaymentService(db).create_payment(
        school_data.school_id,
        {
            "student_id": school_data.student_id,
            "student_fee_structure_id": row.id,
            "amount": Decimal("100.00"),
            "payment_date": date(2025, 4, 20),
            "payment_method": PaymentMethod.CASH,
        },
    )
    assert payment.is_success

    result = service.generate_fees(school_data.school_id, _request(school_data, regenerate_existing=True))

    assert result.data.fees_failed == 1
    assert "payments have already been recorded" in result.data.failed_students[0].reason
    assert [r.id for r in _rows(db, school_data.student_id)] == [row.id]


@pytest.mark.parametrize("amount", ["100.00", "300.00"])
def test_regenerate_keeps_rows_paid_through_an_invoice(db, school_data, amount):
    service = FeeGenerationService(db)
    request = _request(
        school_data, fee_structure_ids=[school_data.library_id], due_date=date.today() + timedelta(days=30)
    )
    assert service.generate_fees(school_data.school_id, request).is_success
    (row,) = _rows(db, school_data.student_id)
    row_id = row.id

    invoices = InvoiceService(db)
    invoice_id = invoices.generate_from_fee_structures(
        school_data.school_id,
        {"student_id": school_data.student_id, "academic_year_id": school_data.year_id},
    ).data.id
    assert invoices.finalize(school_data.school_id, invoice_id).is_success
    payment = PaymentService(db).create_payment(
        school_data.school_id,
        {
            "student_id": school_data.student_id,
            "invoice_id": invoice_id,
            "amount": Decimal(amount),
            "payment_date": date(2025, 6, 1),
            "payment_method": PaymentMethod.CASH,
        },
    )
    assert payment.is_success

    result = service.generate_fees(
        school_data.school_id, request.model_copy(update={"regenerate_existing": True})
    )

    assert result.data.fees_failed == 1
    assert "payments have already been recorded" in result.data.failed_students[0].reason
    assert [r.id for r in _rows(db, school_data.student_id)] == [row_id]


def test_failed_run_leaves_the_session_usable(db, school_data, monkeypatch):
    def broken_start(self, *args, **kwargs):
        # Missing student and fee structure ids fail the flush
        self.db.add(StudentFeeStructure(amount=Decimal("1.00"), original_amount=Decimal("1.00")))
        self.db.flush()

    monkeypatch.setattr(FeeGenerationService, "_start_history", broken_start)

    result = FeeGenerationService(db).generate_fees(school_data.school_id, _request(school_data))

    assert not result.is_success
    assert db.scalars(select(FeeStructure).order_by(FeeStructure.id)).first().id == school_data.tuition_id
    assert _rows(db, school_data.student_id) == []


def test_class_selection_and_partial_failure(db, school_data, add_student):
    second = add_student()
    other_class = add_student(class_id=school_data.class_two_id)
    service = FeeGenerationService(db)
    # Pre-bill the second student so that student fails on the class run
    assert service.generate_fees(school_data.school_id, _request(school_data, student_ids=[second])).is_success

    result = service.generate_fees(
        school_data.school_id,
        _request(school_data, student_ids=None, class_ids=[school_data.class_one_id]),
    )

    summary = result.data
    assert summary.total_students == 2
    assert summary.fees_generated == 1
    assert summary.fees_failed == 1
    assert summary.status == GenerationStatus.COMPLETED
    assert _rows(db, other_class) == []


def test_unknown_fee_structure_is_rejected_before_any_write(db, school_data):
    result = FeeGenerationService(db).generate_fees(
        school_data.school_id, _request(school_data, fee_structure_ids=[school_data.tuition_id, 9999])
    )

    assert not result.is_success
    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.details["missing_ids"] == [9999]
    assert db.scalars(select(FeeGenerationHistory)).all() == []


def test_unknown_academic_year(db, school_data):
    result = FeeGenerationService(db).generate_fees(
        school_data.school_id, _request(school_data, academic_year_id=9999)
    )
    assert result.error.code == ErrorCode.NOT_FOUND


def test_history_is_listed_newest_first(db, school_data):
    service = FeeGenerationService(db)
    first = service.generate_fees(school_data.school_id, _request(school_data)).data
    second = service.generate_fees(school_data.school_id, _request(school_data)).data

    listed = service.list_history(school_data.school_id)

    assert [h.id for h in listed.data] == [second.history_id, first.history_id]
    assert listed.metadata["total"] == 2
    assert service.get_history(school_data.school_id, first.history_id).data.type == GenerationType.MANUAL


class TestMonthlyGeneration:
    def test_bills_each_enrolled_student_once_per_month(self, db, school_data, monthly_fee):
        service = FeeGenerationService(db)
        run_date = date(2025, 7, 1)

        first = service.generate_monthly_fees(school_data.school_id, school_data.year_id, run_date=run_date)
        again = service.generate_monthly_fees(school_data.school_id, school_data.year_id, run_date=run_date)

        assert first.data.rows_created == 1
        (row,) = _rows(db, school_data.student_id)
        assert row.fee_structure_id == monthly_fee
        assert row.due_date == date(2025, 7, 10)
        assert again.data.fees_failed == 1
        assert again.data.failed_students[0].reason == "Fees already generated"

        history = db.get(FeeGenerationHistory, first.data.history_id)
        assert history.type == GenerationType.AUTOMATIC
        assert history.generated_by == "system"

    def test_next_month_gets_a_new_row(self, db, school_data, monthly_fee):
        service = FeeGenerationService(db)
        service.generate_monthly_fees(school_data.school_id, school_data.year_id, run_date=date(2025, 7, 1))
        service.generate_monthly_fees(school_data.school_id, school_data.year_id, run_date=date(2025, 8, 1))

        assert [row.due_date for row in _rows(db, school_data.student_id)] == [date(2025, 7, 10), date(2025, 8, 10)]

    def test_student_without_monthly_fees_fails(self, db, school_data, monthly_fee, add_student):
        add_student(class_id=school_data.class_two_id)

        result = FeeGenerationService(db).generate_monthly_fees(
            school_data.school_id, school_data.year_id, run_date=date(2025, 7, 1)
        )

        assert result.data.fees_generated == 1
        assert result.data.failed_students[0].reason == "No applicable monthly fee structures"

    def test_scheduled_job_runs_every_active_school(self, db, school_data, monthly_fee):
        outcomes = run_monthly_fee_generation(db, run_date=date(2025, 7, 1))

        assert outcomes[school_data.school_id]["fees_generated"] == 1
        assert len(_rows(db, school_data.student_id)) == 1

    def test_inactive_structures_are_not_recorded_in_history(self, db, school_data, monthly_fee):
        db.add(
            FeeStructure(
                school_id=school_data.school_id,
                name="Old Activity Fee",
                class_id=school_data.class_one_id,
                amount=Decimal("120.00"),
                frequency=FeeFrequency.MONTHLY,
                status=RecordStatus.INACTIVE,
            )
        )
        db.commit()

        result = FeeGenerationService(db).generate_monthly_fees(
            school_data.school_id, school_data.year_id, run_date=date(2025, 7, 1)
        )

        history = db.get(FeeGenerationHistory, result.data.history_id)
        assert history.fee_structure_ids == [monthly_fee]
        assert [row.fee_structure_id for row in _rows(db, school_data.student_id)] == [monthly_fee]
