from typing import Literal

from pydantic import BaseModel, Field

WorkloadStatus = Literal["underutilized", "optimal", "high", "overloaded"]


class WorkloadAssignmentItem(BaseModel):
    id: str
    class_name: str = Field(alias="className")
    subject_name: str = Field(alias="subjectName")
    periods_per_week: int | None = Field(default=None, alias="periodsPerWeek")
    assignment_type: str = Field(alias="assignmentType")

    model_config = {
        "populate_by_name": True,
    }


class ClassTeacherRole(BaseModel):
    id: str
    class_name: str = Field(alias="className")
    is_primary: bool = Field(alias="isPrimary")

    model_config = {
        "populate_by_name": True,
    }


class SlotTotals(BaseModel):
    total: int
    by_day: dict[str, int] = Field(default_factory=dict, alias="byDay")

    model_config = {
        "populate_by_name": True,
    }


class WorkloadSummary(BaseModel):
    teacher_id: str = Field(alias="teacherId")
    teacher_name: str = Field(alias="teacherName")
    max_periods_per_day: int = Field(alias="maxPeriodsPerDay")
    max_periods_per_week: int = Field(alias="maxPeriodsPerWeek")
    current_periods_per_week: int = Field(alias="currentPeriodsPerWeek")
    utilization_percent: int = Field(alias="utilizationPercent")
    assignment_count: int = Field(alias="assignmentCount")
    class_teacher_count: int = Field(alias="classTeacherCount")
    assignments: list[WorkloadAssignmentItem] = Field(default_factory=list)
    class_teacher_for: list[ClassTeacherRole] = Field(default_factory=list, alias="classTeacherFor")
    timetable_slots: SlotTotals = Field(alias="timetableSlots")
    warnings: list[str] = Field(default_factory=list)

    model_config = {
        "populate_by_name": True,
    }


class TeacherWorkloadRow(BaseModel):
    teacher_id: str = Field(alias="teacherId")
    teacher_name: str = Field(alias="teacherName")
    employee_id: str = Field(alias="employeeId")
    assignment_count: int = Field(alias="assignmentCount")
    class_teacher_count: int = Field(alias="classTeacherCount")
    timetable_slots: int = Field(alias="timetableSlots")
    max_periods_per_week: int = Field(alias="maxPeriodsPerWeek")
    utilization_percent: int = Field(alias="utilizationPercent")
    status: WorkloadStatus

    model_config = {
        "populate_by_name": True,
    }


class ProjectedWorkload(BaseModel):
    current: int
    projected: int
    max: int
    exceeds_limit: bool = Field(alias="exceedsLimit")
    exceeds_hard_limit: bool = Field(alias="exceedsHardLimit")

    model_config = {
        "populate_by_name": True,
    }


class RecalculateOut(BaseModel):
    teacher_id: str = Field(alias="teacherId")
    academic_year_id: str = Field(alias="academicYearId")
    current_periods_per_week: int = Field(alias="currentPeriodsPerWeek")

    model_config = {
        "populate_by_name": True,
    }
