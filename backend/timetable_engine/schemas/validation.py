from typing import Literal

from pydantic import BaseModel, Field, model_validator


class ValidationResult(BaseModel):
    is_valid: bool = Field(alias="isValid")
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    model_config = {
        "populate_by_name": True,
    }

    @classmethod
    def from_findings(cls, errors: list[str], warnings: list[str]) -> "ValidationResult":
        return cls(is_valid=not errors, errors=errors, warnings=warnings)


class BulkAssignmentItem(BaseModel):
    academic_unit_id: str = Field(alias="academicUnitId", min_length=1, max_length=36)
    subject_id: str = Field(alias="subjectId", min_length=1, max_length=36)
    teacher_id: str = Field(alias="teacherId", min_length=1, max_length=36)
    periods_per_week: int | None = Field(default=None, alias="periodsPerWeek", ge=0, le=60)

    model_config = {
        "populate_by_name": True,
    }


class BulkInvalidItem(BaseModel):
    assignment: BulkAssignmentItem
    errors: list[str]


class BulkValidationResult(BaseModel):
    valid: list[BulkAssignmentItem] = Field(default_factory=list)
    invalid: list[BulkInvalidItem] = Field(default_factory=list)


class BulkValidationOut(BulkValidationResult):
    total_count: int = Field(alias="totalCount")
    valid_count: int = Field(alias="validCount")
    invalid_count: int = Field(alias="invalidCount")

    model_config = {
        "populate_by_name": True,
    }


class ValidateAssignmentRequest(BaseModel):
    type: Literal["class-teacher", "subject-teacher", "bulk"]
    academic_year_id: str = Field(alias="academicYearId", min_length=1, max_length=36)
    academic_unit_id: str | None = Field(default=None, alias="academicUnitId", max_length=36)
    teacher_id: str | None = Field(default=None, alias="teacherId", max_length=36)
    subject_id: str | None = Field(default=None, alias="subjectId", max_length=36)
    is_primary: bool = Field(default=True, alias="isPrimary")
    periods_per_week: int | None = Field(default=None, alias="periodsPerWeek", ge=0, le=60)
    exclude_id: str | None = Field(default=None, alias="excludeId", max_length=36)
    max_classes_as_class_teacher: int | None = Field(default=None, alias="maxClassesAsClassTeacher", ge=1, le=50)
    assignments: list[BulkAssignmentItem] = Field(default_factory=list)

    model_config = {
        "populate_by_name": True,
    }

    @model_validator(mode="after")
    def validate_required_fields(self) -> "ValidateAssignmentRequest":
        if self.type == "class-teacher" and not (self.academic_unit_id and self.teacher_id):
            raise ValueError("Academic year, class/section, and teacher are required")
        if self.type == "subject-teacher" and not (self.academic_unit_id and self.subject_id and self.teacher_id):
            raise ValueError("Academic year, class/section, subject, and teacher are required")
        return self
