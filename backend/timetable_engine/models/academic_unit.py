import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from timetable_engine.db.base import Base


class AcademicUnitType(str, Enum):
    CLASS = "CLASS"
    SECTION = "SECTION"
    SEMESTER = "SEMESTER"
    BATCH = "BATCH"
    DEPARTMENT = "DEPARTMENT"


class AcademicUnit(Base):
    __tablename__ = "academic_units"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    school_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    academic_year_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[AcademicUnitType] = mapped_column(
        SAEnum(AcademicUnitType, name="academic_unit_type"), nullable=False, default=AcademicUnitType.CLASS
    )
    # Sections point at their class; only one level of nesting is modelled.
    parent_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_students: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())
