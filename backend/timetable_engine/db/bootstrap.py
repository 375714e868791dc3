from __future__ import annotations

import logging

from sqlalchemy import inspect

from timetable_engine.db.base import Base
from timetable_engine.db.session import engine
import timetable_engine.models  # noqa: F401

logger = logging.getLogger(__name__)

REQUIRED_TABLES: set[str] = {
    "teachers",
    "subjects",
    "teacher_subjects",
    "academic_units",
    "academic_years",
    "timetable_templates",
    "timetables",
    "timetable_slots",
    "teacher_class_assignments",
    "class_teachers",
    "teacher_assignment_history",
}


def missing_tables() -> list[str]:
    with engine.connect() as connection:
        existing = set(inspect(connection).get_table_names())
    return sorted(REQUIRED_TABLES - existing)


def ensure_schema() -> None:
    """Create missing tables when auto_create_schema is on.

    Production deployments run Alembic migrations instead.
    """
    missing = missing_tables()
    if not missing:
        return
    logger.info("Creating missing tables: %s", ", ".join(missing))
    Base.metadata.create_all(bind=engine)
