from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from timetable_engine.models.academic_unit import AcademicUnit
from timetable_engine.models.subject import Subject
from timetable_engine.models.teacher_class_assignment import TeacherClassAssignment
from timetable_engine.schemas.timetable import MissingSubject, PublishCheckOut


def _active_unit_assignments(
    db: Session, academic_unit_id: str, subject_id: str, academic_year_id: str
) -> list[TeacherClassAssignment]:
    return list(
        db.execute(
            select(TeacherClassAssignment)
            .where(
                TeacherClassAssignment.academic_unit_id == academic_unit_id,
                TeacherClassAssignment.subject_id == subject_id,
                TeacherClassAssignment.academic_year_id == academic_year_id,
                TeacherClassAssignment.is_active.is_(True),
            )
            .order_by(TeacherClassAssignment.is_primary.desc(), TeacherClassAssignment.effective_from)
        ).scalars()
    )


def get_subject_teachers_with_inheritance(
    db: Session, academic_unit_id: str, subject_id: str, academic_year_id: str
) -> list[TeacherClassAssignment]:
    """Direct assignments on the unit win; otherwise fall back to the parent unit.

    Only one hop is taken (section -> class). A grandparent is never consulted.
    """
    direct = _active_unit_assignments(db, academic_unit_id, subject_id, academic_year_id)
    if direct:
        return direct

    unit = db.get(AcademicUnit, academic_unit_id)
    if unit is None or not unit.parent_id:
        return []
    return _active_unit_assignments(db, unit.parent_id, subject_id, academic_year_id)


def validate_all_subjects_have_teachers(db: Session, academic_unit_id: str, academic_year_id: str) -> PublishCheckOut:
    unit = db.get(AcademicUnit, academic_unit_id)
    if unit is None:
        return PublishCheckOut(is_valid=False, missing_subjects=[])

    subjects = db.execute(
        select(Subject)
        .where(Subject.school_id == unit.school_id, Subject.is_active.is_(True))
        .order_by(Subject.display_order, Subject.name)
    ).scalars()

    missing = [
        MissingSubject(id=subject.id, name=subject.name)
        for subject in subjects
        if not get_subject_teachers_with_inheritance(db, academic_unit_id, subject.id, academic_year_id)
    ]
    return PublishCheckOut(is_valid=not missing, missing_subjects=missing)
