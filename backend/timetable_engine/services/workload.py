from __future__ import annotations

import logging
from collections import Counter

from sqlalchemy import select
from sqlalchemy.orm import Session

from timetable_engine.core.config import get_settings
from timetable_engine.core.exceptions import ResourceNotFoundError
from timetable_engine.models.academic_unit import AcademicUnit
from timetable_engine.models.class_teacher import ClassTeacher
from timetable_engine.models.subject import Subject
from timetable_engine.models.teacher import Teacher
from timetable_engine.models.teacher_class_assignment import TeacherClassAssignment
from timetable_engine.models.timetable import DayOfWeek, Timetable, TimetableSlot, TimetableStatus
from timetable_engine.schemas.workload import (
    ClassTeacherRole,
    ProjectedWorkload,
    SlotTotals,
    TeacherWorkloadRow,
    WorkloadAssignmentItem,
    WorkloadSummary,
)

logger = logging.getLogger(__name__)


def update_teacher_current_periods(db: Session, teacher_id: str, academic_year_id: str) -> int:
    """Recompute the cached weekly period total from active assignments.

    Flushes only; the caller owns the transaction. Safe to call repeatedly.
    """
    periods = db.execute(
        select(TeacherClassAssignment.periods_per_week).where(
            TeacherClassAssignment.teacher_id == teacher_id,
            TeacherClassAssignment.academic_year_id == academic_year_id,
            TeacherClassAssignment.is_active.is_(True),
            TeacherClassAssignment.periods_per_week.is_not(None),
        )
    ).scalars()
    total = sum(value or 0 for value in periods)

    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        logger.warning("Skipping workload recompute for unknown teacher %s", teacher_id)
        return total
    if teacher.current_periods_per_week != total:
        logger.debug(
            "Teacher %s weekly periods %s -> %s (year %s)",
            teacher_id,
            teacher.current_periods_per_week,
            total,
            academic_year_id,
        )
        teacher.current_periods_per_week = total
    db.flush()
    return total


def _published_slots(db: Session, teacher_ids: list[str], academic_year_id: str) -> list[TimetableSlot]:
    if not teacher_ids:
        return []
    return list(
        db.execute(
            select(TimetableSlot)
            .join(Timetable, Timetable.id == TimetableSlot.timetable_id)
            .where(
                TimetableSlot.teacher_id.in_(teacher_ids),
                TimetableSlot.is_active.is_(True),
                Timetable.status == TimetableStatus.PUBLISHED,
                Timetable.academic_year_id == academic_year_id,
            )
        ).scalars()
    )


def _utilization(slot_count: int, max_periods_per_week: int) -> int:
    if max_periods_per_week <= 0:
        return 0
    return round(slot_count / max_periods_per_week * 100)


def get_teacher_workload_summary(db: Session, teacher_id: str, academic_year_id: str) -> WorkloadSummary | None:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        return None

    assignments = list(
        db.execute(
            select(TeacherClassAssignment).where(
                TeacherClassAssignment.teacher_id == teacher_id,
                TeacherClassAssignment.academic_year_id == academic_year_id,
                TeacherClassAssignment.is_active.is_(True),
            )
        ).scalars()
    )
    class_roles = list(
        db.execute(
            select(ClassTeacher).where(
                ClassTeacher.teacher_id == teacher_id,
                ClassTeacher.academic_year_id == academic_year_id,
                ClassTeacher.is_active.is_(True),
            )
        ).scalars()
    )
    unit_ids = {item.academic_unit_id for item in assignments} | {item.academic_unit_id for item in class_roles}
    units = {
        unit.id: unit.name
        for unit in db.execute(select(AcademicUnit).where(AcademicUnit.id.in_(unit_ids))).scalars()
    } if unit_ids else {}
    subject_ids = {item.subject_id for item in assignments}
    subjects = {
        subject.id: subject.name
        for subject in db.execute(select(Subject).where(Subject.id.in_(subject_ids))).scalars()
    } if subject_ids else {}

    slots = _published_slots(db, [teacher_id], academic_year_id)
    by_day = Counter(slot.day_of_week.value for slot in slots)
    total_slots = len(slots)

    warnings: list[str] = []
    near_limit = teacher.max_periods_per_week * get_settings().workload_near_limit_ratio
    if total_slots > teacher.max_periods_per_week:
        warnings.append(f"Exceeds weekly period limit ({total_slots}/{teacher.max_periods_per_week})")
    elif total_slots >= near_limit:
        warnings.append(f"Near weekly period limit ({total_slots}/{teacher.max_periods_per_week})")
    for day in DayOfWeek:
        count = by_day.get(day.value, 0)
        if count > teacher.max_periods_per_day:
            warnings.append(f"Exceeds daily limit on {day.value} ({count}/{teacher.max_periods_per_day})")

    return WorkloadSummary(
        teacher_id=teacher.id,
        teacher_name=teacher.full_name,
        max_periods_per_day=teacher.max_periods_per_day,
        max_periods_per_week=teacher.max_periods_per_week,
        current_periods_per_week=teacher.current_periods_per_week,
        utilization_percent=_utilization(total_slots, teacher.max_periods_per_week),
        assignment_count=len(assignments),
        class_teacher_count=len(class_roles),
        assignments=[
            WorkloadAssignmentItem(
                id=item.id,
                class_name=units.get(item.academic_unit_id, ""),
                subject_name=subjects.get(item.subject_id, ""),
                periods_per_week=item.periods_per_week,
                assignment_type=item.assignment_type.value,
            )
            for item in assignments
        ],
        class_teacher_for=[
            ClassTeacherRole(id=item.id, class_name=units.get(item.academic_unit_id, ""), is_primary=item.is_primary)
            for item in class_roles
        ],
        timetable_slots=SlotTotals(total=total_slots, by_day=dict(by_day)),
        warnings=warnings,
    )


def _workload_status(utilization_percent: int) -> str:
    if utilization_percent < 50:
        return "underutilized"
    if utilization_percent <= 85:
        return "optimal"
    if utilization_percent <= 100:
        return "high"
    return "overloaded"


def get_school_teacher_workloads(db: Session, school_id: str, academic_year_id: str) -> list[TeacherWorkloadRow]:
    teachers = list(
        db.execute(
            select(Teacher)
            .where(Teacher.school_id == school_id, Teacher.is_active.is_(True))
            .order_by(Teacher.full_name)
        ).scalars()
    )
    teacher_ids = [teacher.id for teacher in teachers]
    if not teacher_ids:
        return []

    assignment_counts = Counter(
        db.execute(
            select(TeacherClassAssignment.teacher_id).where(
                TeacherClassAssignment.teacher_id.in_(teacher_ids),
                TeacherClassAssignment.academic_year_id == academic_year_id,
                TeacherClassAssignment.is_active.is_(True),
            )
        ).scalars()
    )
    class_teacher_counts = Counter(
        db.execute(
            select(ClassTeacher.teacher_id).where(
                ClassTeacher.teacher_id.in_(teacher_ids),
                ClassTeacher.academic_year_id == academic_year_id,
                ClassTeacher.is_active.is_(True),
            )
        ).scalars()
    )
    slot_counts = Counter(slot.teacher_id for slot in _published_slots(db, teacher_ids, academic_year_id))

    rows: list[TeacherWorkloadRow] = []
    for teacher in teachers:
        slots = slot_counts.get(teacher.id, 0)
        utilization = _utilization(slots, teacher.max_periods_per_week)
        rows.append(
            TeacherWorkloadRow(
                teacher_id=teacher.id,
                teacher_name=teacher.full_name,
                employee_id=teacher.employee_id,
                assignment_count=assignment_counts.get(teacher.id, 0),
                class_teacher_count=class_teacher_counts.get(teacher.id, 0),
                timetable_slots=slots,
                max_periods_per_week=teacher.max_periods_per_week,
                utilization_percent=utilization,
                status=_workload_status(utilization),
            )
        )
    return rows


def calculate_projected_workload(db: Session, teacher_id: str, additional_periods: int) -> ProjectedWorkload:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise ResourceNotFoundError("Teacher", teacher_id)

    current = teacher.current_periods_per_week
    projected = current + additional_periods
    maximum = teacher.max_periods_per_week
    return ProjectedWorkload(
        current=current,
        projected=projected,
        max=maximum,
        exceeds_limit=projected > maximum,
        exceeds_hard_limit=projected > maximum * get_settings().workload_hard_limit_ratio,
    )
