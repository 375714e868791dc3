import os
from datetime import datetime, timezone

# Point the module-level engine at SQLite before the app is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from timetable_engine.api.deps import get_db  # noqa: E402
from timetable_engine.core.security import create_access_token  # noqa: E402
from timetable_engine.db.base import Base  # noqa: E402
from timetable_engine.main import app  # noqa: E402
from timetable_engine.models.academic_unit import AcademicUnit, AcademicUnitType  # noqa: E402
from timetable_engine.models.academic_year import AcademicYear  # noqa: E402
from timetable_engine.models.class_teacher import ClassTeacher  # noqa: E402
from timetable_engine.models.subject import Subject  # noqa: E402
from timetable_engine.models.teacher import Teacher, TeacherSubject  # noqa: E402
from timetable_engine.models.teacher_class_assignment import TeacherClassAssignment  # noqa: E402
from timetable_engine.models.timetable import (  # noqa: E402
    DayOfWeek,
    SlotType,
    Timetable,
    TimetableSlot,
    TimetableStatus,
    TimetableTemplate,
)

SCHOOL_ID = "school-1"
ADMIN_ID = "admin-1"


class Seeder:
    """Inserts committed rows for one school."""

    def __init__(self, session):
        self.session = session
        self._employee_seq = 0

    def _save(self, row):
        self.session.add(row)
        self.session.commit()
        self.session.refresh(row)
        return row

    def year(self, name="2026-27"):
        return self._save(AcademicYear(school_id=SCHOOL_ID, name=name, is_current=True))

    def unit(self, name, parent=None, is_active=True):
        return self._save(
            AcademicUnit(
                school_id=SCHOOL_ID,
                name=name,
                type=AcademicUnitType.SECTION if parent is not None else AcademicUnitType.CLASS,
                parent_id=parent.id if parent is not None else None,
                is_active=is_active,
            )
        )

    def subject(self, name, code=None, credits_per_week=0, display_order=0, is_active=True, school_id=SCHOOL_ID):
        return self._save(
            Subject(
                school_id=school_id,
                name=name,
                code=code or name[:4].upper(),
                credits_per_week=credits_per_week,
                display_order=display_order,
                is_active=is_active,
            )
        )

    def teacher(
        self,
        full_name,
        max_per_day=6,
        max_per_week=30,
        current=0,
        is_active=True,
        subjects=(),
        school_id=SCHOOL_ID,
    ):
        self._employee_seq += 1
        teacher = self._save(
            Teacher(
                school_id=school_id,
                full_name=full_name,
                employee_id=f"EMP{self._employee_seq:03d}",
                max_periods_per_day=max_per_day,
                max_periods_per_week=max_per_week,
                current_periods_per_week=current,
                is_active=is_active,
            )
        )
        for subject in subjects:
            self._save(TeacherSubject(school_id=school_id, teacher_id=teacher.id, subject_id=subject.id))
        return teacher

    def template(self, name="Weekday", periods_per_day=8):
        return self._save(
            TimetableTemplate(
                school_id=SCHOOL_ID,
                name=name,
                periods_per_day=periods_per_day,
                working_days=[day.value for day in list(DayOfWeek)[:5]],
            )
        )

    def timetable(self, unit, year, template, status=TimetableStatus.DRAFT, name=None):
        return self._save(
            Timetable(
                school_id=SCHOOL_ID,
                academic_unit_id=unit.id,
                academic_year_id=year.id,
                template_id=template.id,
                name=name or f"{unit.name} timetable",
                status=status,
            )
        )

    def slot(self, timetable, day, period, subject=None, teacher=None, slot_type=SlotType.REGULAR):
        return self._save(
            TimetableSlot(
                school_id=SCHOOL_ID,
                timetable_id=timetable.id,
                academic_unit_id=timetable.academic_unit_id,
                day_of_week=day,
                period_number=period,
                subject_id=subject.id if subject is not None else None,
                teacher_id=teacher.id if teacher is not None else None,
                slot_type=slot_type,
            )
        )

    def subject_assignment(self, unit, subject, teacher, year, periods=None, is_active=True):
        return self._save(
            TeacherClassAssignment(
                school_id=SCHOOL_ID,
                academic_year_id=year.id,
                academic_unit_id=unit.id,
                subject_id=subject.id,
                teacher_id=teacher.id,
                periods_per_week=periods,
                effective_from=datetime.now(timezone.utc),
                assigned_by=ADMIN_ID,
                is_active=is_active,
            )
        )

    def class_teacher(self, unit, teacher, year, is_primary=True, is_active=True):
        return self._save(
            ClassTeacher(
                school_id=SCHOOL_ID,
                academic_year_id=year.id,
                academic_unit_id=unit.id,
                teacher_id=teacher.id,
                is_primary=is_primary,
                effective_from=datetime.now(timezone.utc),
                assigned_by=ADMIN_ID,
                is_active=is_active,
            )
        )


@pytest.fixture()
def engine():
    test_engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def seed(db):
    return Seeder(db)


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def auth_headers(role="school_admin", user_id=ADMIN_ID, school_id=SCHOOL_ID, teacher_id=None):
    token = create_access_token(user_id, school_id=school_id, role=role, teacher_id=teacher_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers():
    return auth_headers()


@pytest.fixture()
def make_headers():
    return auth_headers
