from typing import Literal

from pydantic import BaseModel, Field

from timetable_engine.models.timetable import DayOfWeek

ConflictType = Literal["TEACHER_BUSY", "CLASS_OCCUPIED", "WORKLOAD_EXCEEDED", "TIME_OVERLAP", "NONE"]
DistributionStatus = Literal["UNDER", "OK", "OVER"]


class ConflictingSlot(BaseModel):
    id: str
    class_name: str = Field(alias="className")
    subject_name: str = Field(alias="subjectName")
    teacher_name: str | None = Field(default=None, alias="teacherName")

    model_config = {
        "populate_by_name": True,
    }


class WorkloadLevel(BaseModel):
    current: int
    max: int


class ConflictDetails(BaseModel):
    conflicting_slot: ConflictingSlot | None = Field(default=None, alias="conflictingSlot")
    workload: WorkloadLevel | None = None

    model_config = {
        "populate_by_name": True,
    }


class ConflictResult(BaseModel):
    has_conflict: bool = Field(alias="hasConflict")
    type: ConflictType
    message: str
    details: ConflictDetails | None = None

    model_config = {
        "populate_by_name": True,
    }

    @classmethod
    def clear(cls) -> "ConflictResult":
        return cls(has_conflict=False, type="NONE", message="")


class SlotProposal(BaseModel):
    timetable_id: str = Field(alias="timetableId", min_length=1, max_length=36)
    day_of_week: DayOfWeek = Field(alias="dayOfWeek")
    period_number: int = Field(alias="periodNumber", ge=1, le=24)
    subject_id: str | None = Field(default=None, alias="subjectId", max_length=36)
    teacher_id: str | None = Field(default=None, alias="teacherId", max_length=36)
    academic_unit_id: str | None = Field(default=None, alias="academicUnitId", max_length=36)
    # Set when editing an existing slot so it does not collide with itself.
    slot_id: str | None = Field(default=None, alias="slotId", max_length=36)

    model_config = {
        "populate_by_name": True,
    }


class SlotCheckOut(BaseModel):
    has_conflicts: bool = Field(alias="hasConflicts")
    conflicts: list[ConflictResult] = Field(default_factory=list)

    model_config = {
        "populate_by_name": True,
    }


class TeacherLoad(BaseModel):
    daily: int
    weekly: int


class TeacherAvailability(BaseModel):
    id: str
    full_name: str = Field(alias="fullName")
    employee_id: str = Field(alias="employeeId")
    current_load: TeacherLoad = Field(alias="currentLoad")
    max_load: TeacherLoad = Field(alias="maxLoad")

    model_config = {
        "populate_by_name": True,
    }


class SubjectDistributionItem(BaseModel):
    subject_id: str = Field(alias="subjectId")
    subject_name: str = Field(alias="subjectName")
    subject_code: str = Field(alias="subjectCode")
    count: int
    required_per_week: int = Field(alias="requiredPerWeek")
    status: DistributionStatus

    model_config = {
        "populate_by_name": True,
    }
