from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from timetable_engine.models.timetable import DayOfWeek, SlotType, TimetableStatus


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


class SlotSave(BaseModel):
    timetableId: str = Field(min_length=1, max_length=36)
    dayOfWeek: DayOfWeek
    periodNumber: int = Field(ge=1, le=24)
    subjectId: str | None = Field(default=None, max_length=36)
    teacherId: str | None = Field(default=None, max_length=36)
    room: str | None = Field(default=None, max_length=100)
    slotType: SlotType = SlotType.REGULAR
    notes: str | None = Field(default=None, max_length=2000)
    skipConflictCheck: bool = False

    @field_validator("subjectId", "teacherId", "room")
    @classmethod
    def normalize_optional(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class SubjectBrief(BaseModel):
    id: str
    name: str
    code: str

    model_config = {
        "from_attributes": True,
    }


class TeacherBrief(BaseModel):
    id: str
    full_name: str = Field(alias="fullName")
    employee_id: str = Field(alias="employeeId")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }


class SlotOut(BaseModel):
    id: str
    timetable_id: str = Field(alias="timetableId")
    academic_unit_id: str = Field(alias="academicUnitId")
    day_of_week: DayOfWeek = Field(alias="dayOfWeek")
    period_number: int = Field(alias="periodNumber")
    subject_id: str | None = Field(default=None, alias="subjectId")
    teacher_id: str | None = Field(default=None, alias="teacherId")
    room: str | None = None
    slot_type: SlotType = Field(alias="slotType")
    notes: str | None = None
    is_active: bool = Field(alias="isActive")
    subject: SubjectBrief | None = None
    teacher: TeacherBrief | None = None

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }


class TimetableCreate(BaseModel):
    academic_unit_id: str = Field(alias="academicUnitId", min_length=1, max_length=36)
    academic_year_id: str = Field(alias="academicYearId", min_length=1, max_length=36)
    template_id: str = Field(alias="templateId", min_length=1, max_length=36)
    name: str | None = Field(default=None, max_length=200)
    effective_from: date | None = Field(default=None, alias="effectiveFrom")
    notes: str | None = Field(default=None, max_length=2000)

    model_config = {
        "populate_by_name": True,
    }

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str | None) -> str | None:
        return _blank_to_none(value)


class TimetableUpdate(BaseModel):
    status: TimetableStatus | None = None
    notes: str | None = Field(default=None, max_length=2000)
    effective_from: date | None = Field(default=None, alias="effectiveFrom")
    effective_to: date | None = Field(default=None, alias="effectiveTo")
    # Runs the all-subjects-have-teachers gate before publishing.
    require_all_subjects: bool = Field(default=False, alias="requireAllSubjects")

    model_config = {
        "populate_by_name": True,
    }


class TimetableOut(BaseModel):
    id: str
    academic_unit_id: str = Field(alias="academicUnitId")
    academic_year_id: str = Field(alias="academicYearId")
    template_id: str = Field(alias="templateId")
    name: str
    status: TimetableStatus
    effective_from: date | None = Field(default=None, alias="effectiveFrom")
    effective_to: date | None = Field(default=None, alias="effectiveTo")
    notes: str | None = None
    published_at: datetime | None = Field(default=None, alias="publishedAt")
    published_by: str | None = Field(default=None, alias="publishedBy")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }


class TimetableDetailOut(TimetableOut):
    slots: list[SlotOut] = Field(default_factory=list)


class MissingSubject(BaseModel):
    id: str
    name: str


class PublishCheckOut(BaseModel):
    is_valid: bool = Field(alias="isValid")
    missing_subjects: list[MissingSubject] = Field(default_factory=list, alias="missingSubjects")

    model_config = {
        "populate_by_name": True,
    }
