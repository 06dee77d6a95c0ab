import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "testing")

from datetime import date  # noqa: E402
from decimal import Decimal  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from school_admin.db.base import Base, import_models  # noqa: E402
from school_admin.db.session import configure_sqlite, get_db  # noqa: E402
from school_admin.main import create_app  # noqa: E402
from school_admin.models.enums import FeeFrequency  # noqa: E402
from school_admin.models.fee import FeeStructure  # noqa: E402
from school_admin.models.route_price import RoutePrice  # noqa: E402
from school_admin.models.school import (  # noqa: E402
    AcademicYear,
    CategoryHead,
    Route,
    School,
    SchoolClass,
)
from school_admin.models.student import Student, StudentAcademicRecord  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)
    import_models()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(engine):
    app = create_app()
    testing_session = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    def override_get_db():
        session = testing_session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def school_data(db):
    """
    One school with a current 2025-26 year, two classes, a category
    head, a route priced at 500/month for class 1 and one enrolled
    student in class 1.
    """
    school = School(name="Green Valley School", code="GVS")
    db.add(school)
    db.flush()

    year = AcademicYear(
        school_id=school.id,
        name="2025-26",
        start_date=date(2025, 4, 1),
        end_date=date(2026, 3, 31),
        is_current=True,
    )
    class_one = SchoolClass(school_id=school.id, name="Class 1", ordinal=1)
    class_two = SchoolClass(school_id=school.id, name="Class 2", ordinal=2)
    general = CategoryHead(school_id=school.id, name="General")
    route = Route(school_id=school.id, name="Route A")
    db.add_all([year, class_one, class_two, general, route])
    db.flush()

    route_price = RoutePrice(
        school_id=school.id,
        route_id=route.id,
        class_id=class_one.id,
        category_head_id=general.id,
        amount=Decimal("500.00"),
    )
    tuition = FeeStructure(
        school_id=school.id,
        name="Tuition Fee",
        class_id=class_one.id,
        amount=Decimal("1000.00"),
        due_date=date(2025, 4, 15),
    )
    library = FeeStructure(
        school_id=school.id,
        name="Library Fee",
        amount=Decimal("300.00"),
        due_date=date(2025, 6, 15),
    )
    student = Student(
        school_id=school.id,
        student_code="GVS-001",
        first_name="Asha",
        last_name="Rao",
        category_head_id=general.id,
        route_id=route.id,
        opening_balance=Decimal("200.00"),
    )
    db.add_all([route_price, tuition, library, student])
    db.flush()

    record = StudentAcademicRecord(student_id=student.id, academic_year_id=year.id, class_id=class_one.id)
    db.add(record)
    db.flush()

    # Plain ids: touching expired instances after commit would reopen a
    # transaction on the shared connection
    ids = SimpleNamespace(
        school_id=school.id,
        year_id=year.id,
        class_one_id=class_one.id,
        class_two_id=class_two.id,
        general_id=general.id,
        route_id=route.id,
        route_price_id=route_price.id,
        tuition_id=tuition.id,
        library_id=library.id,
        student_id=student.id,
        record_id=record.id,
    )
    db.commit()
    return ids


@pytest.fixture
def add_student(db, school_data):
    """Factory enrolling another student in the seeded school."""
    counter = {"n": 1}

    def _add(class_id=None, category_head_id=None, route_id=None, opening_balance="0.00"):
        counter["n"] += 1
        student = Student(
            school_id=school_data.school_id,
            student_code=f"GVS-{counter['n']:03d}",
            first_name="Student",
            last_name=str(counter["n"]),
            category_head_id=category_head_id or school_data.general_id,
            route_id=route_id,
            opening_balance=Decimal(opening_balance),
        )
        db.add(student)
        db.flush()
        student_id = student.id
        db.add(
            StudentAcademicRecord(
                student_id=student_id,
                academic_year_id=school_data.year_id,
                class_id=class_id or school_data.class_one_id,
            )
        )
        db.commit()
        return student_id

    return _add


@pytest.fixture
def monthly_fee(db, school_data):
    fee = FeeStructure(
        school_id=school_data.school_id,
        name="Activity Fee",
        class_id=school_data.class_one_id,
        amount=Decimal("150.00"),
        frequency=FeeFrequency.MONTHLY,
    )
    db.add(fee)
    db.flush()
    fee_id = fee.id
    db.commit()
    return fee_id


@pytest.fixture
def headers(school_data):
    return {"X-School-ID": str(school_data.school_id)}
