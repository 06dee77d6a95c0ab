from datetime import date
from decimal import Decimal

import pytest

from school_admin.models.school import AcademicYear
from school_admin.schemas.fee_forecast import ForecastRequest
from school_admin.schemas.fee_generation import GenerateFeesRequest
from school_admin.schemas.payment import TRANSPORT_FEE_HEAD_ID, PaymentAllocationRequest
from school_admin.services.base.service_result import ErrorCode
from school_admin.services.fee.fee_forecast_service import FeeForecastService
from school_admin.services.fee.fee_generation_service import FeeGenerationService
from school_admin.services.payment.payment_allocation_service import PaymentAllocationService


@pytest.fixture
def tuition_generated(db, school_data):
    result = FeeGenerationService(db).generate_fees(
        school_data.school_id,
        GenerateFeesRequest(
            student_ids=[school_data.student_id],
            academic_year_id=school_data.year_id,
            fee_structure_ids=[school_data.tuition_id],
            due_date=date(2025, 4, 30),
        ),
    )
    assert result.is_success


def _forecast(db, data, **overrides):
    params = {
        "student_id": data.student_id,
        "academic_year_id": data.year_id,
        "forecast_up_to": date(2025, 6, 30),
        "as_of": date(2025, 5, 15),
    }
    params.update(overrides)
    return FeeForecastService(db).forecast(data.school_id, ForecastRequest(**params))


def test_forecast_lists_every_fee_group(db, school_data, tuition_generated):
    result = _forecast(db, school_data)

    assert result.is_success
    forecast = result.data
    breakdown = forecast.breakdown
    assert forecast.class_name == "Class 1"
    assert forecast.forecast_up_to == date(2025, 6, 30)

    (tuition,) = breakdown.class_fees.fees
    assert tuition.amount == Decimal("1000.00")
    assert tuition.status == "overdue"
    assert tuition.student_fee_structure_id is not None

    (library,) = breakdown.other_fees.fees
    assert library.name == "Library Fee"
    assert library.status == "not_generated"
    assert library.student_fee_structure_id is None

    bus = breakdown.bus_fees
    assert bus.months == 3
    assert bus.monthly_amount == Decimal("500.00")
    assert [entry.month for entry in bus.fees] == ["2025-04", "2025-05", "2025-06"]
    assert [entry.status for entry in bus.fees] == ["overdue", "overdue", "pending"]

    assert breakdown.previous_balance.amount == Decimal("200.00")
    assert forecast.total_amount == Decimal("3000.00")

    summary = forecast.summary
    assert summary.total_due == Decimal("3000.00")
    assert summary.total_paid == Decimal("0.00")
    assert summary.total_overdue == Decimal("2000.00")
    assert summary.total_pending == Decimal("3000.00")


def test_allocated_payments_are_credited_in_due_date_order(db, school_data, tuition_generated):
    allocation = PaymentAllocationService(db).allocate_payment(
        school_data.school_id,
        PaymentAllocationRequest(
            student_id=school_data.student_id,
            academic_year_id=school_data.year_id,
            amount_received=Decimal("1000.00"),
            allocation={school_data.tuition_id: Decimal("400.00"), TRANSPORT_FEE_HEAD_ID: Decimal("600.00")},
            payment_date=date(2025, 5, 1),
        ),
    )
    assert allocation.is_success

    breakdown = _forecast(db, school_data).data.breakdown

    (tuition,) = breakdown.class_fees.fees
    assert tuition.paid_amount == Decimal("400.00")
    assert tuition.status == "overdue"
    assert [entry.paid_amount for entry in breakdown.bus_fees.fees] == [
        Decimal("500.00"),
        Decimal("100.00"),
        Decimal("0.00"),
    ]
    assert [entry.status for entry in breakdown.bus_fees.fees] == ["paid", "overdue", "pending"]


def test_forecast_is_capped_at_the_academic_year_end(db, school_data):
    forecast = _forecast(db, school_data, forecast_up_to=date(2027, 1, 1)).data

    assert forecast.forecast_up_to == date(2026, 3, 31)
    assert forecast.breakdown.bus_fees.months == 12


def test_optional_sections_can_be_left_out(db, school_data):
    forecast = _forecast(db, school_data, include_bus_fees=False, include_previous_balance=False).data

    assert forecast.breakdown.bus_fees.total == Decimal("0.00")
    assert forecast.breakdown.bus_fees.fees == []
    assert forecast.breakdown.previous_balance.amount == Decimal("0.00")


def test_not_generated_fee_due_after_the_horizon_is_left_out(db, school_data):
    forecast = _forecast(db, school_data, forecast_up_to=date(2025, 5, 31)).data

    assert [entry.name for entry in forecast.breakdown.class_fees.fees] == ["Tuition Fee"]
    assert forecast.breakdown.other_fees.fees == []


def test_unknown_academic_year(db, school_data):
    result = _forecast(db, school_data, academic_year_id=9999)
    assert result.error.code == ErrorCode.NOT_FOUND


def test_student_without_enrolment_in_the_year(db, school_data):
    next_year = AcademicYear(
        school_id=school_data.school_id,
        name="2026-27",
        start_date=date(2026, 4, 1),
        end_date=date(2027, 3, 31),
    )
    db.add(next_year)
    db.flush()
    year_id = next_year.id
    db.commit()

    result = _forecast(db, school_data, academic_year_id=year_id)

    assert result.error.code == ErrorCode.VALIDATION_ERROR
    assert result.error.details["academic_year_id"] == year_id
