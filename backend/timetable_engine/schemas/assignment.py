from datetime import datetime

from pydantic import BaseModel, Field

from timetable_engine.models.assignment_history import AssignmentCategory, HistoryAction
from timetable_engine.models.teacher_class_assignment import AssignmentType


class ClassTeacherCreate(BaseModel):
    academic_year_id: str = Field(alias="academicYearId", min_length=1, max_length=36)
    academic_unit_id: str = Field(alias="academicUnitId", min_length=1, max_length=36)
    teacher_id: str = Field(alias="teacherId", min_length=1, max_length=36)
    is_primary: bool = Field(default=True, alias="isPrimary")
    effective_from: datetime | None = Field(default=None, alias="effectiveFrom")
    notes: str | None = Field(default=None, max_length=2000)
    override_warnings: bool = Field(default=False, alias="overrideWarnings")

    model_config = {
        "populate_by_name": True,
    }


class ClassTeacherUpdate(BaseModel):
    teacher_id: str | None = Field(default=None, alias="teacherId", max_length=36)
    is_primary: bool | None = Field(default=None, alias="isPrimary")
    effective_from: datetime | None = Field(default=None, alias="effectiveFrom")
    effective_to: datetime | None = Field(default=None, alias="effectiveTo")
    notes: str | None = Field(default=None, max_length=2000)
    is_active: bool | None = Field(default=None, alias="isActive")
    change_reason: str | None = Field(default=None, alias="changeReason", max_length=1000)
    override_warnings: bool = Field(default=False, alias="overrideWarnings")

    model_config = {
        "populate_by_name": True,
    }


class ClassTeacherOut(BaseModel):
    id: str
    academic_year_id: str = Field(alias="academicYearId")
    academic_unit_id: str = Field(alias="academicUnitId")
    teacher_id: str = Field(alias="teacherId")
    is_primary: bool = Field(alias="isPrimary")
    effective_from: datetime = Field(alias="effectiveFrom")
    effective_to: datetime | None = Field(default=None, alias="effectiveTo")
    notes: str | None = None
    assigned_by: str | None = Field(default=None, alias="assignedBy")
    is_active: bool = Field(alias="isActive")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }


class SubjectAssignmentCreate(BaseModel):
    academic_year_id: str = Field(alias="academicYearId", min_length=1, max_length=36)
    academic_unit_id: str = Field(alias="academicUnitId", min_length=1, max_length=36)
    subject_id: str = Field(alias="subjectId", min_length=1, max_length=36)
    teacher_id: str = Field(alias="teacherId", min_length=1, max_length=36)
    assignment_type: AssignmentType = Field(default=AssignmentType.REGULAR, alias="assignmentType")
    is_primary: bool = Field(default=True, alias="isPrimary")
    periods_per_week: int | None = Field(default=None, alias="periodsPerWeek", ge=0, le=60)
    effective_from: datetime | None = Field(default=None, alias="effectiveFrom")
    notes: str | None = Field(default=None, max_length=2000)
    override_warnings: bool = Field(default=False, alias="overrideWarnings")

    model_config = {
        "populate_by_name": True,
    }


class SubjectAssignmentUpdate(BaseModel):
    teacher_id: str | None = Field(default=None, alias="teacherId", max_length=36)
    subject_id: str | None = Field(default=None, alias="subjectId", max_length=36)
    academic_unit_id: str | None = Field(default=None, alias="academicUnitId", max_length=36)
    assignment_type: AssignmentType | None = Field(default=None, alias="assignmentType")
    is_primary: bool | None = Field(default=None, alias="isPrimary")
    periods_per_week: int | None = Field(default=None, alias="periodsPerWeek", ge=0, le=60)
    effective_from: datetime | None = Field(default=None, alias="effectiveFrom")
    effective_to: datetime | None = Field(default=None, alias="effectiveTo")
    notes: str | None = Field(default=None, max_length=2000)
    is_active: bool | None = Field(default=None, alias="isActive")
    change_reason: str | None = Field(default=None, alias="changeReason", max_length=1000)
    override_warnings: bool = Field(default=False, alias="overrideWarnings")

    model_config = {
        "populate_by_name": True,
    }


class SubjectAssignmentOut(BaseModel):
    id: str
    academic_year_id: str = Field(alias="academicYearId")
    academic_unit_id: str = Field(alias="academicUnitId")
    subject_id: str = Field(alias="subjectId")
    teacher_id: str = Field(alias="teacherId")
    assignment_type: AssignmentType = Field(alias="assignmentType")
    is_primary: bool = Field(alias="isPrimary")
    periods_per_week: int | None = Field(default=None, alias="periodsPerWeek")
    effective_from: datetime = Field(alias="effectiveFrom")
    effective_to: datetime | None = Field(default=None, alias="effectiveTo")
    notes: str | None = None
    assigned_by: str | None = Field(default=None, alias="assignedBy")
    is_active: bool = Field(alias="isActive")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }


class HistoryEntryOut(BaseModel):
    id: str
    assignment_category: AssignmentCategory = Field(alias="assignmentCategory")
    assignment_id: str = Field(alias="assignmentId")
    action: HistoryAction
    previous_data: dict | None = Field(default=None, alias="previousData")
    new_data: dict | None = Field(default=None, alias="newData")
    changed_by: str = Field(alias="changedBy")
    change_reason: str | None = Field(default=None, alias="changeReason")
    changed_at: datetime = Field(alias="changedAt")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }


class RecentChangeOut(BaseModel):
    id: str
    assignment_category: AssignmentCategory = Field(alias="assignmentCategory")
    action: HistoryAction
    changed_at: datetime = Field(alias="changedAt")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }


class AuditReportOut(BaseModel):
    total_changes: int = Field(alias="totalChanges")
    changes_by_action: dict[str, int] = Field(default_factory=dict, alias="changesByAction")
    changes_by_category: dict[str, int] = Field(default_factory=dict, alias="changesByCategory")
    recent_changes: list[RecentChangeOut] = Field(default_factory=list, alias="recentChanges")

    model_config = {
        "populate_by_name": True,
    }
