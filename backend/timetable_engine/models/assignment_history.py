import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, DateTime, Enum as SAEnum, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from timetable_engine.db.base import Base


class AssignmentCategory(str, Enum):
    CLASS_TEACHER = "CLASS_TEACHER"
    SUBJECT_TEACHER = "SUBJECT_TEACHER"


class HistoryAction(str, Enum):
    CREATED = "CREATED"
    MODIFIED = "MODIFIED"
    DEACTIVATED = "DEACTIVATED"
    REACTIVATED = "REACTIVATED"


class AssignmentHistory(Base):
    __tablename__ = "teacher_assignment_history"
    __table_args__ = (
        Index("ix_teacher_assignment_history_assignment", "assignment_id", "assignment_category"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    school_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    assignment_category: Mapped[AssignmentCategory] = mapped_column(
        SAEnum(AssignmentCategory, name="assignment_category"), nullable=False
    )
    assignment_id: Mapped[str] = mapped_column(String(36), nullable=False)
    action: Mapped[HistoryAction] = mapped_column(SAEnum(HistoryAction, name="history_action"), nullable=False)
    previous_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    new_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    changed_by: Mapped[str] = mapped_column(String(36), nullable=False)
    change_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True
    )
