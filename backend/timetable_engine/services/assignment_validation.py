from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from timetable_engine.core.config import get_settings
from timetable_engine.models.academic_unit import AcademicUnit
from timetable_engine.models.class_teacher import ClassTeacher
from timetable_engine.models.subject import Subject
from timetable_engine.models.teacher import Teacher
from timetable_engine.models.teacher_class_assignment import TeacherClassAssignment
from timetable_engine.schemas.validation import (
    BulkAssignmentItem,
    BulkInvalidItem,
    BulkValidationResult,
    ValidationResult,
)


def _is_active(db: Session, model, entity_id: str, school_id: str | None = None) -> bool:
    # Unknown ids, and ids owned by another school, count as inactive.
    entity = db.get(model, entity_id)
    if entity is None or (school_id is not None and entity.school_id != school_id):
        return False
    return bool(entity.is_active)


def find_active_class_teacher(
    db: Session,
    academic_unit_id: str,
    academic_year_id: str,
    is_primary: bool,
    exclude_id: str | None = None,
) -> ClassTeacher | None:
    query = select(ClassTeacher).where(
        ClassTeacher.academic_unit_id == academic_unit_id,
        ClassTeacher.academic_year_id == academic_year_id,
        ClassTeacher.is_primary.is_(is_primary),
        ClassTeacher.is_active.is_(True),
    )
    if exclude_id:
        query = query.where(ClassTeacher.id != exclude_id)
    return db.execute(query.limit(1)).scalars().first()


def _has_class_teacher_row(
    db: Session,
    academic_unit_id: str,
    teacher_id: str,
    academic_year_id: str,
    exclude_id: str | None,
) -> bool:
    query = select(ClassTeacher.id).where(
        ClassTeacher.academic_unit_id == academic_unit_id,
        ClassTeacher.teacher_id == teacher_id,
        ClassTeacher.academic_year_id == academic_year_id,
        ClassTeacher.is_active.is_(True),
    )
    if exclude_id:
        query = query.where(ClassTeacher.id != exclude_id)
    return db.execute(query.limit(1)).first() is not None


def _class_teacher_count(db: Session, teacher_id: str, academic_year_id: str, exclude_id: str | None) -> int:
    query = select(func.count(ClassTeacher.id)).where(
        ClassTeacher.teacher_id == teacher_id,
        ClassTeacher.academic_year_id == academic_year_id,
        ClassTeacher.is_active.is_(True),
    )
    if exclude_id:
        query = query.where(ClassTeacher.id != exclude_id)
    return int(db.execute(query).scalar_one())


def has_duplicate_subject_assignment(
    db: Session,
    academic_unit_id: str,
    subject_id: str,
    teacher_id: str,
    academic_year_id: str,
    exclude_id: str | None = None,
) -> bool:
    query = select(TeacherClassAssignment.id).where(
        TeacherClassAssignment.academic_unit_id == academic_unit_id,
        TeacherClassAssignment.subject_id == subject_id,
        TeacherClassAssignment.teacher_id == teacher_id,
        TeacherClassAssignment.academic_year_id == academic_year_id,
        TeacherClassAssignment.is_active.is_(True),
    )
    if exclude_id:
        query = query.where(TeacherClassAssignment.id != exclude_id)
    return db.execute(query.limit(1)).first() is not None


def validate_class_teacher_assignment(
    db: Session,
    *,
    academic_year_id: str,
    academic_unit_id: str,
    teacher_id: str,
    is_primary: bool = True,
    exclude_id: str | None = None,
    max_classes_as_class_teacher: int | None = None,
    school_id: str | None = None,
) -> ValidationResult:
    cap = max_classes_as_class_teacher
    if cap is None:
        cap = get_settings().max_classes_as_class_teacher
    errors: list[str] = []
    warnings: list[str] = []

    if not _is_active(db, Teacher, teacher_id, school_id):
        errors.append("Cannot assign an inactive teacher as class teacher")
    if not _is_active(db, AcademicUnit, academic_unit_id, school_id):
        errors.append("Cannot assign class teacher to an inactive class/section")

    if _has_class_teacher_row(db, academic_unit_id, teacher_id, academic_year_id, exclude_id):
        errors.append("This teacher is already assigned as a class teacher or co-class teacher for this class")

    incumbent_row = find_active_class_teacher(db, academic_unit_id, academic_year_id, is_primary, exclude_id)
    if incumbent_row is not None:
        incumbent = db.get(Teacher, incumbent_row.teacher_id)
        incumbent_name = incumbent.full_name if incumbent is not None else "Unknown"
        if is_primary:
            errors.append(f"This class already has a primary class teacher: {incumbent_name}")
        else:
            warnings.append(f"This class already has a co-class teacher: {incumbent_name}. This will replace them.")

    current_count = _class_teacher_count(db, teacher_id, academic_year_id, exclude_id)
    if current_count >= cap:
        warnings.append(f"This teacher is already class teacher for {current_count} classes (limit: {cap})")

    return ValidationResult.from_findings(errors, warnings)


def validate_subject_teacher_assignment(
    db: Session,
    *,
    academic_year_id: str,
    academic_unit_id: str,
    subject_id: str,
    teacher_id: str,
    periods_per_week: int | None = None,
    exclude_id: str | None = None,
    school_id: str | None = None,
) -> ValidationResult:
    """Check a proposed teacher/subject/unit binding.

    Weekly overflow above the teacher's cap is a warning; above the hard
    limit ratio (150% by default) it is an error that no override bypasses.
    """
    hard_ratio = get_settings().workload_hard_limit_ratio
    errors: list[str] = []
    warnings: list[str] = []

    if not _is_active(db, Teacher, teacher_id, school_id):
        errors.append("Cannot assign an inactive teacher")
    if not _is_active(db, AcademicUnit, academic_unit_id, school_id):
        errors.append("Cannot assign teacher to an inactive class/section")
    if not _is_active(db, Subject, subject_id, school_id):
        errors.append("Cannot assign teacher to an inactive subject")

    if has_duplicate_subject_assignment(db, academic_unit_id, subject_id, teacher_id, academic_year_id, exclude_id):
        errors.append("This teacher is already assigned to this subject for this class")

    if periods_per_week:
        teacher = db.get(Teacher, teacher_id)
        if teacher is not None:
            current = teacher.current_periods_per_week
            maximum = teacher.max_periods_per_week
            new_total = current + periods_per_week
            if new_total > maximum:
                warnings.append(
                    f"Adding {periods_per_week} periods will exceed teacher's weekly limit "
                    f"(current: {current}, max: {maximum})"
                )
            if new_total > maximum * hard_ratio:
                errors.append(
                    f"Cannot assign - teacher would exceed {hard_ratio * 100:g}% of weekly period limit "
                    f"(current: {current}, adding: {periods_per_week}, max: {maximum})"
                )

    return ValidationResult.from_findings(errors, warnings)


def validate_bulk_assignments(
    db: Session,
    academic_year_id: str,
    items: list[BulkAssignmentItem],
    school_id: str | None = None,
) -> BulkValidationResult:
    result = BulkValidationResult()
    for item in items:
        outcome = validate_subject_teacher_assignment(
            db,
            academic_year_id=academic_year_id,
            academic_unit_id=item.academic_unit_id,
            subject_id=item.subject_id,
            teacher_id=item.teacher_id,
            periods_per_week=item.periods_per_week,
            school_id=school_id,
        )
        if outcome.is_valid:
            result.valid.append(item)
        else:
            result.invalid.append(BulkInvalidItem(assignment=item, errors=outcome.errors))
    return result
