from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from timetable_engine.core.exceptions import (
    AssignmentValidationError,
    ConfirmationRequiredError,
    DuplicateAssignmentError,
    ResourceNotFoundError,
)
from timetable_engine.models.academic_unit import AcademicUnit
from timetable_engine.models.academic_year import AcademicYear
from timetable_engine.models.assignment_history import AssignmentCategory
from timetable_engine.models.class_teacher import ClassTeacher
from timetable_engine.models.subject import Subject
from timetable_engine.models.teacher import Teacher
from timetable_engine.models.teacher_class_assignment import TeacherClassAssignment
from timetable_engine.schemas.assignment import (
    ClassTeacherCreate,
    ClassTeacherUpdate,
    SubjectAssignmentCreate,
    SubjectAssignmentUpdate,
)
from timetable_engine.schemas.validation import ValidationResult
from timetable_engine.services import assignment_history
from timetable_engine.services.assignment_validation import (
    find_active_class_teacher,
    has_duplicate_subject_assignment,
    validate_class_teacher_assignment,
    validate_subject_teacher_assignment,
)
from timetable_engine.services.workload import update_teacher_current_periods

logger = logging.getLogger(__name__)

CLASS_TEACHER_DUPLICATE_MESSAGE = "This teacher is already assigned as a class teacher or co-class teacher for this class"
SUBJECT_TEACHER_DUPLICATE_MESSAGE = "This teacher is already assigned to this subject for this class"

# Non-nullable columns; an explicit null in a PATCH leaves them unchanged.
CLASS_TEACHER_REQUIRED_FIELDS = {"teacher_id", "is_primary", "effective_from"}
SUBJECT_ASSIGNMENT_REQUIRED_FIELDS = {
    "teacher_id",
    "subject_id",
    "academic_unit_id",
    "assignment_type",
    "is_primary",
    "effective_from",
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def enforce_validation(result: ValidationResult, override_warnings: bool) -> None:
    """Errors always block; warnings block until the caller confirms them."""
    if not result.is_valid:
        raise AssignmentValidationError(result.errors)
    if result.warnings and not override_warnings:
        raise ConfirmationRequiredError(result.warnings)


@contextmanager
def _write_transaction(db: Session, duplicate_message: str) -> Iterator[None]:
    """Commit the enclosed writes; a uniqueness violation becomes a 409."""
    try:
        yield
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Assignment write rejected by a uniqueness constraint: %s", exc.orig)
        raise DuplicateAssignmentError(duplicate_message) from exc


def _name_of(db: Session, model, entity_id: str, attribute: str = "name") -> str:
    entity = db.get(model, entity_id)
    return getattr(entity, attribute) if entity is not None else "Unknown"


def _ensure_same_school(db: Session, school_id: str, *refs: tuple[type, str | None, str]) -> None:
    """404 for ids owned by another school; unknown ids are left to the validators."""
    for model, entity_id, label in refs:
        if not entity_id:
            continue
        entity = db.get(model, entity_id)
        if entity is not None and entity.school_id != school_id:
            raise ResourceNotFoundError(label, entity_id)


# Class teachers


def get_class_teacher(db: Session, school_id: str, class_teacher_id: str) -> ClassTeacher:
    row = db.get(ClassTeacher, class_teacher_id)
    if row is None or row.school_id != school_id:
        raise ResourceNotFoundError("Class teacher assignment", class_teacher_id)
    return row


def list_class_teachers(
    db: Session,
    school_id: str,
    *,
    academic_year_id: str | None = None,
    academic_unit_id: str | None = None,
    teacher_id: str | None = None,
    include_inactive: bool = False,
) -> list[ClassTeacher]:
    query = select(ClassTeacher).where(ClassTeacher.school_id == school_id)
    if academic_year_id:
        query = query.where(ClassTeacher.academic_year_id == academic_year_id)
    if academic_unit_id:
        query = query.where(ClassTeacher.academic_unit_id == academic_unit_id)
    if teacher_id:
        query = query.where(ClassTeacher.teacher_id == teacher_id)
    if not include_inactive:
        query = query.where(ClassTeacher.is_active.is_(True))
    query = query.order_by(ClassTeacher.academic_unit_id, ClassTeacher.is_primary.desc())
    return list(db.execute(query).scalars())


def _retire_co_class_teacher(
    db: Session, academic_unit_id: str, academic_year_id: str, exclude_id: str | None = None
) -> tuple[ClassTeacher, dict] | None:
    current = find_active_class_teacher(db, academic_unit_id, academic_year_id, False, exclude_id)
    if current is None:
        return None
    snapshot = assignment_history.create_assignment_snapshot(current)
    current.is_active = False
    current.effective_to = _now()
    # The partial unique index must see the old row retired before the new co-class teacher is written.
    db.flush()
    return current, snapshot


def _log_co_class_replacement(
    db: Session, school_id: str, actor_id: str, replaced: tuple[ClassTeacher, dict] | None
) -> None:
    if replaced is None:
        return
    row, snapshot = replaced
    assignment_history.log_deactivation(
        db,
        AssignmentCategory.CLASS_TEACHER,
        school_id=school_id,
        assignment_id=row.id,
        previous_data=snapshot,
        changed_by=actor_id,
        change_reason="Replaced by a new co-class teacher",
    )


def create_class_teacher(
    db: Session, *, school_id: str, actor_id: str, payload: ClassTeacherCreate
) -> tuple[ClassTeacher, str]:
    _ensure_same_school(
        db,
        school_id,
        (AcademicYear, payload.academic_year_id, "Academic year"),
        (AcademicUnit, payload.academic_unit_id, "Academic unit"),
        (Teacher, payload.teacher_id, "Teacher"),
    )
    validation = validate_class_teacher_assignment(
        db,
        academic_year_id=payload.academic_year_id,
        academic_unit_id=payload.academic_unit_id,
        teacher_id=payload.teacher_id,
        is_primary=payload.is_primary,
        school_id=school_id,
    )
    enforce_validation(validation, payload.override_warnings)

    row = ClassTeacher(
        school_id=school_id,
        academic_year_id=payload.academic_year_id,
        academic_unit_id=payload.academic_unit_id,
        teacher_id=payload.teacher_id,
        is_primary=payload.is_primary,
        effective_from=payload.effective_from or _now(),
        notes=payload.notes,
        assigned_by=actor_id,
        is_active=True,
    )
    replaced: tuple[ClassTeacher, dict] | None = None
    with _write_transaction(db, CLASS_TEACHER_DUPLICATE_MESSAGE):
        if not payload.is_primary:
            replaced = _retire_co_class_teacher(db, payload.academic_unit_id, payload.academic_year_id)
        db.add(row)
    db.refresh(row)

    _log_co_class_replacement(db, school_id, actor_id, replaced)
    assignment_history.log_creation(
        db,
        AssignmentCategory.CLASS_TEACHER,
        school_id=school_id,
        assignment_id=row.id,
        data=assignment_history.create_assignment_snapshot(row),
        changed_by=actor_id,
    )

    teacher_name = _name_of(db, Teacher, row.teacher_id, "full_name")
    unit_name = _name_of(db, AcademicUnit, row.academic_unit_id)
    role = "class teacher" if row.is_primary else "co-class teacher"
    return row, f"{teacher_name} assigned as {role} for {unit_name}"


def _check_class_teacher_reactivation(db: Session, row: ClassTeacher) -> None:
    errors: list[str] = []
    duplicate = db.execute(
        select(ClassTeacher.id).where(
            ClassTeacher.teacher_id == row.teacher_id,
            ClassTeacher.academic_unit_id == row.academic_unit_id,
            ClassTeacher.academic_year_id == row.academic_year_id,
            ClassTeacher.is_active.is_(True),
            ClassTeacher.id != row.id,
        )
    ).first()
    if duplicate is not None:
        errors.append(CLASS_TEACHER_DUPLICATE_MESSAGE)
    incumbent = find_active_class_teacher(db, row.academic_unit_id, row.academic_year_id, row.is_primary, row.id)
    if incumbent is not None:
        incumbent_name = _name_of(db, Teacher, incumbent.teacher_id, "full_name")
        role = "primary class teacher" if row.is_primary else "co-class teacher"
        errors.append(f"This class already has a {role}: {incumbent_name}")
    if errors:
        raise AssignmentValidationError(errors)


def update_class_teacher(
    db: Session, *, school_id: str, actor_id: str, class_teacher_id: str, payload: ClassTeacherUpdate
) -> tuple[ClassTeacher, str]:
    row = get_class_teacher(db, school_id, class_teacher_id)
    previous = assignment_history.create_assignment_snapshot(row)
    unit_name = _name_of(db, AcademicUnit, row.academic_unit_id)

    _ensure_same_school(db, school_id, (Teacher, payload.teacher_id, "Teacher"))
    teacher_changed = bool(payload.teacher_id) and payload.teacher_id != row.teacher_id
    role_changed = payload.is_primary is not None and payload.is_primary != row.is_primary
    if teacher_changed or role_changed:
        validation = validate_class_teacher_assignment(
            db,
            academic_year_id=row.academic_year_id,
            academic_unit_id=row.academic_unit_id,
            teacher_id=payload.teacher_id or row.teacher_id,
            is_primary=row.is_primary if payload.is_primary is None else payload.is_primary,
            exclude_id=row.id,
            school_id=school_id,
        )
        enforce_validation(validation, payload.override_warnings)

    if payload.is_active is False and row.is_active:
        with _write_transaction(db, CLASS_TEACHER_DUPLICATE_MESSAGE):
            row.is_active = False
            row.effective_to = _now()
        db.refresh(row)
        assignment_history.log_deactivation(
            db,
            AssignmentCategory.CLASS_TEACHER,
            school_id=school_id,
            assignment_id=row.id,
            previous_data=previous,
            changed_by=actor_id,
            change_reason=payload.change_reason,
        )
        return row, f"Class teacher assignment deactivated for {unit_name}"

    if payload.is_active is True and not row.is_active:
        _check_class_teacher_reactivation(db, row)
        with _write_transaction(db, CLASS_TEACHER_DUPLICATE_MESSAGE):
            row.is_active = True
            row.effective_to = None
        db.refresh(row)
        assignment_history.log_reactivation(
            db,
            AssignmentCategory.CLASS_TEACHER,
            school_id=school_id,
            assignment_id=row.id,
            new_data=assignment_history.create_assignment_snapshot(row),
            changed_by=actor_id,
            change_reason=payload.change_reason,
        )
        return row, f"Class teacher assignment reactivated for {unit_name}"

    data = payload.model_dump(exclude_unset=True, exclude={"is_active", "change_reason", "override_warnings"})
    becomes_co_class_teacher = row.is_active and row.is_primary and payload.is_primary is False
    replaced: tuple[ClassTeacher, dict] | None = None
    with _write_transaction(db, CLASS_TEACHER_DUPLICATE_MESSAGE):
        if becomes_co_class_teacher:
            replaced = _retire_co_class_teacher(db, row.academic_unit_id, row.academic_year_id, exclude_id=row.id)
        for key, value in data.items():
            if value is None and key in CLASS_TEACHER_REQUIRED_FIELDS:
                continue
            setattr(row, key, value)
    db.refresh(row)
    _log_co_class_replacement(db, school_id, actor_id, replaced)
    assignment_history.log_modification(
        db,
        AssignmentCategory.CLASS_TEACHER,
        school_id=school_id,
        assignment_id=row.id,
        previous_data=previous,
        new_data=assignment_history.create_assignment_snapshot(row),
        changed_by=actor_id,
        change_reason=payload.change_reason,
    )
    return row, "Class teacher assignment updated"


def deactivate_class_teacher(
    db: Session, *, school_id: str, actor_id: str, class_teacher_id: str, reason: str | None = None
) -> tuple[ClassTeacher, str]:
    row = get_class_teacher(db, school_id, class_teacher_id)
    if not row.is_active:
        return row, "Class teacher assignment is already inactive"
    return update_class_teacher(
        db,
        school_id=school_id,
        actor_id=actor_id,
        class_teacher_id=class_teacher_id,
        payload=ClassTeacherUpdate(is_active=False, change_reason=reason),
    )


# Subject teachers


def get_subject_assignment(db: Session, school_id: str, assignment_id: str) -> TeacherClassAssignment:
    row = db.get(TeacherClassAssignment, assignment_id)
    if row is None or row.school_id != school_id:
        raise ResourceNotFoundError("Teacher assignment", assignment_id)
    return row


def list_subject_assignments(
    db: Session,
    school_id: str,
    *,
    academic_year_id: str | None = None,
    academic_unit_id: str | None = None,
    subject_id: str | None = None,
    teacher_id: str | None = None,
    include_inactive: bool = False,
) -> list[TeacherClassAssignment]:
    query = select(TeacherClassAssignment).where(TeacherClassAssignment.school_id == school_id)
    if academic_year_id:
        query = query.where(TeacherClassAssignment.academic_year_id == academic_year_id)
    if academic_unit_id:
        query = query.where(TeacherClassAssignment.academic_unit_id == academic_unit_id)
    if subject_id:
        query = query.where(TeacherClassAssignment.subject_id == subject_id)
    if teacher_id:
        query = query.where(TeacherClassAssignment.teacher_id == teacher_id)
    if not include_inactive:
        query = query.where(TeacherClassAssignment.is_active.is_(True))
    query = query.order_by(TeacherClassAssignment.academic_unit_id, TeacherClassAssignment.subject_id)
    return list(db.execute(query).scalars())


def _describe_subject_assignment(db: Session, row: TeacherClassAssignment) -> tuple[str, str, str]:
    return (
        _name_of(db, Teacher, row.teacher_id, "full_name"),
        _name_of(db, Subject, row.subject_id),
        _name_of(db, AcademicUnit, row.academic_unit_id),
    )


def create_subject_assignment(
    db: Session, *, school_id: str, actor_id: str, payload: SubjectAssignmentCreate
) -> tuple[TeacherClassAssignment, str]:
    _ensure_same_school(
        db,
        school_id,
        (AcademicYear, payload.academic_year_id, "Academic year"),
        (AcademicUnit, payload.academic_unit_id, "Academic unit"),
        (Subject, payload.subject_id, "Subject"),
        (Teacher, payload.teacher_id, "Teacher"),
    )
    validation = validate_subject_teacher_assignment(
        db,
        academic_year_id=payload.academic_year_id,
        academic_unit_id=payload.academic_unit_id,
        subject_id=payload.subject_id,
        teacher_id=payload.teacher_id,
        periods_per_week=payload.periods_per_week,
        school_id=school_id,
    )
    enforce_validation(validation, payload.override_warnings)

    row = TeacherClassAssignment(
        school_id=school_id,
        academic_year_id=payload.academic_year_id,
        academic_unit_id=payload.academic_unit_id,
        subject_id=payload.subject_id,
        teacher_id=payload.teacher_id,
        assignment_type=payload.assignment_type,
        is_primary=payload.is_primary,
        periods_per_week=payload.periods_per_week,
        effective_from=payload.effective_from or _now(),
        notes=payload.notes,
        assigned_by=actor_id,
        is_active=True,
    )
    with _write_transaction(db, SUBJECT_TEACHER_DUPLICATE_MESSAGE):
        db.add(row)
        db.flush()
        update_teacher_current_periods(db, row.teacher_id, row.academic_year_id)
    db.refresh(row)

    assignment_history.log_creation(
        db,
        AssignmentCategory.SUBJECT_TEACHER,
        school_id=school_id,
        assignment_id=row.id,
        data=assignment_history.create_assignment_snapshot(row),
        changed_by=actor_id,
    )
    teacher_name, subject_name, unit_name = _describe_subject_assignment(db, row)
    return row, f"{teacher_name} assigned to teach {subject_name} in {unit_name}"


def _check_subject_assignment_reactivation(db: Session, row: TeacherClassAssignment) -> None:
    if has_duplicate_subject_assignment(
        db, row.academic_unit_id, row.subject_id, row.teacher_id, row.academic_year_id, exclude_id=row.id
    ):
        raise AssignmentValidationError([SUBJECT_TEACHER_DUPLICATE_MESSAGE])


def _recompute_workloads(db: Session, pairs: set[tuple[str, str]]) -> None:
    for teacher_id, academic_year_id in sorted(pairs):
        update_teacher_current_periods(db, teacher_id, academic_year_id)


def update_subject_assignment(
    db: Session, *, school_id: str, actor_id: str, assignment_id: str, payload: SubjectAssignmentUpdate
) -> tuple[TeacherClassAssignment, str]:
    row = get_subject_assignment(db, school_id, assignment_id)
    previous = assignment_history.create_assignment_snapshot(row)
    previous_teacher_id = row.teacher_id

    _ensure_same_school(
        db,
        school_id,
        (AcademicUnit, payload.academic_unit_id, "Academic unit"),
        (Subject, payload.subject_id, "Subject"),
        (Teacher, payload.teacher_id, "Teacher"),
    )
    teacher_changed = bool(payload.teacher_id) and payload.teacher_id != row.teacher_id
    subject_changed = bool(payload.subject_id) and payload.subject_id != row.subject_id
    unit_changed = bool(payload.academic_unit_id) and payload.academic_unit_id != row.academic_unit_id

    new_periods = payload.periods_per_week if payload.periods_per_week is not None else row.periods_per_week
    # The row's own periods already sit in the cached total of an unchanged, active teacher.
    additional = new_periods
    if not teacher_changed and row.is_active and new_periods is not None:
        additional = new_periods - (row.periods_per_week or 0)
    periods_raised = (
        payload.periods_per_week is not None
        and row.is_active
        and payload.is_active is not False
        and additional is not None
        and additional > 0
    )

    if teacher_changed or subject_changed or unit_changed or periods_raised:
        validation = validate_subject_teacher_assignment(
            db,
            academic_year_id=row.academic_year_id,
            academic_unit_id=payload.academic_unit_id or row.academic_unit_id,
            subject_id=payload.subject_id or row.subject_id,
            teacher_id=payload.teacher_id or row.teacher_id,
            periods_per_week=additional if additional and additional > 0 else None,
            exclude_id=row.id,
            school_id=school_id,
        )
        enforce_validation(validation, payload.override_warnings)

    if payload.is_active is False and row.is_active:
        with _write_transaction(db, SUBJECT_TEACHER_DUPLICATE_MESSAGE):
            row.is_active = False
            row.effective_to = _now()
            db.flush()
            update_teacher_current_periods(db, row.teacher_id, row.academic_year_id)
        db.refresh(row)
        assignment_history.log_deactivation(
            db,
            AssignmentCategory.SUBJECT_TEACHER,
            school_id=school_id,
            assignment_id=row.id,
            previous_data=previous,
            changed_by=actor_id,
            change_reason=payload.change_reason,
        )
        teacher_name, subject_name, unit_name = _describe_subject_assignment(db, row)
        return row, f"Assignment deactivated: {teacher_name} - {subject_name} - {unit_name}"

    if payload.is_active is True and not row.is_active:
        _check_subject_assignment_reactivation(db, row)
        with _write_transaction(db, SUBJECT_TEACHER_DUPLICATE_MESSAGE):
            row.is_active = True
            row.effective_to = None
            db.flush()
            update_teacher_current_periods(db, row.teacher_id, row.academic_year_id)
        db.refresh(row)
        assignment_history.log_reactivation(
            db,
            AssignmentCategory.SUBJECT_TEACHER,
            school_id=school_id,
            assignment_id=row.id,
            new_data=assignment_history.create_assignment_snapshot(row),
            changed_by=actor_id,
            change_reason=payload.change_reason,
        )
        teacher_name, subject_name, _ = _describe_subject_assignment(db, row)
        return row, f"Assignment reactivated: {teacher_name} - {subject_name}"

    data = payload.model_dump(exclude_unset=True, exclude={"is_active", "change_reason", "override_warnings"})
    with _write_transaction(db, SUBJECT_TEACHER_DUPLICATE_MESSAGE):
        for key, value in data.items():
            if value is None and key in SUBJECT_ASSIGNMENT_REQUIRED_FIELDS:
                continue
            setattr(row, key, value)
        db.flush()
        # Both the previous and the new teacher lose or gain these periods.
        _recompute_workloads(
            db, {(previous_teacher_id, row.academic_year_id), (row.teacher_id, row.academic_year_id)}
        )
    db.refresh(row)
    assignment_history.log_modification(
        db,
        AssignmentCategory.SUBJECT_TEACHER,
        school_id=school_id,
        assignment_id=row.id,
        previous_data=previous,
        new_data=assignment_history.create_assignment_snapshot(row),
        changed_by=actor_id,
        change_reason=payload.change_reason,
    )
    return row, "Teacher assignment updated"


def deactivate_subject_assignment(
    db: Session, *, school_id: str, actor_id: str, assignment_id: str, reason: str | None = None
) -> tuple[TeacherClassAssignment, str]:
    row = get_subject_assignment(db, school_id, assignment_id)
    if not row.is_active:
        return row, "Teacher assignment is already inactive"
    return update_subject_assignment(
        db,
        school_id=school_id,
        actor_id=actor_id,
        assignment_id=assignment_id,
        payload=SubjectAssignmentUpdate(is_active=False, change_reason=reason),
    )
