from __future__ import annotations

import logging
from collections import Counter

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from timetable_engine.models.academic_unit import AcademicUnit
from timetable_engine.models.subject import Subject
from timetable_engine.models.teacher import Teacher, TeacherSubject
from timetable_engine.models.teacher_class_assignment import TeacherClassAssignment
from timetable_engine.models.timetable import (
    LIVE_TIMETABLE_STATUSES,
    DayOfWeek,
    SlotType,
    Timetable,
    TimetableSlot,
)
from timetable_engine.schemas.conflict import (
    ConflictDetails,
    ConflictingSlot,
    ConflictResult,
    SlotProposal,
    SubjectDistributionItem,
    TeacherAvailability,
    TeacherLoad,
    WorkloadLevel,
)

logger = logging.getLogger(__name__)


def _live_teacher_slot_count(
    db: Session,
    school_id: str,
    teacher_id: str,
    day: DayOfWeek | None = None,
    exclude_slot_id: str | None = None,
) -> int:
    query = (
        select(func.count(TimetableSlot.id))
        .join(Timetable, Timetable.id == TimetableSlot.timetable_id)
        .where(
            TimetableSlot.school_id == school_id,
            TimetableSlot.teacher_id == teacher_id,
            TimetableSlot.is_active.is_(True),
            Timetable.status.in_(LIVE_TIMETABLE_STATUSES),
        )
    )
    if day is not None:
        query = query.where(TimetableSlot.day_of_week == day)
    if exclude_slot_id:
        query = query.where(TimetableSlot.id != exclude_slot_id)
    return int(db.execute(query).scalar_one())


def _describe_slot(db: Session, slot: TimetableSlot) -> ConflictingSlot:
    unit = db.get(AcademicUnit, slot.academic_unit_id)
    subject = db.get(Subject, slot.subject_id) if slot.subject_id else None
    teacher = db.get(Teacher, slot.teacher_id) if slot.teacher_id else None
    return ConflictingSlot(
        id=slot.id,
        class_name=unit.name if unit is not None else "",
        subject_name=subject.name if subject is not None else "Unknown",
        teacher_name=teacher.full_name if teacher is not None else None,
    )


def check_class_conflict(
    db: Session,
    timetable_id: str,
    day: DayOfWeek | str,
    period: int,
    exclude_slot_id: str | None = None,
) -> ConflictResult:
    query = select(TimetableSlot).where(
        TimetableSlot.timetable_id == timetable_id,
        TimetableSlot.day_of_week == DayOfWeek(day),
        TimetableSlot.period_number == period,
        TimetableSlot.is_active.is_(True),
    )
    if exclude_slot_id:
        query = query.where(TimetableSlot.id != exclude_slot_id)
    slot = db.execute(query.limit(1)).scalars().first()
    if slot is None:
        return ConflictResult.clear()

    described = _describe_slot(db, slot)
    subject_label = described.subject_name if slot.subject_id else "a subject"
    return ConflictResult(
        has_conflict=True,
        type="CLASS_OCCUPIED",
        message=f"This period already has {subject_label} assigned",
        details=ConflictDetails(conflicting_slot=described),
    )


def check_teacher_conflict(
    db: Session,
    school_id: str,
    teacher_id: str,
    day: DayOfWeek | str,
    period: int,
    exclude_slot_id: str | None = None,
) -> ConflictResult:
    """A teacher is one resource per (day, period) across every live timetable of the school."""
    query = (
        select(TimetableSlot)
        .join(Timetable, Timetable.id == TimetableSlot.timetable_id)
        .where(
            TimetableSlot.school_id == school_id,
            TimetableSlot.teacher_id == teacher_id,
            TimetableSlot.day_of_week == DayOfWeek(day),
            TimetableSlot.period_number == period,
            TimetableSlot.is_active.is_(True),
            Timetable.status.in_(LIVE_TIMETABLE_STATUSES),
        )
    )
    if exclude_slot_id:
        query = query.where(TimetableSlot.id != exclude_slot_id)
    slot = db.execute(query.limit(1)).scalars().first()
    if slot is None:
        return ConflictResult.clear()

    described = _describe_slot(db, slot)
    subject_label = described.subject_name if slot.subject_id else "a period"
    return ConflictResult(
        has_conflict=True,
        type="TEACHER_BUSY",
        message=f"Teacher is already assigned to {described.class_name} for {subject_label} at this time",
        details=ConflictDetails(conflicting_slot=described),
    )


def check_teacher_workload(
    db: Session,
    school_id: str,
    teacher_id: str,
    day: DayOfWeek | str | None = None,
    exclude_slot_id: str | None = None,
) -> ConflictResult:
    """Pre-insert check: a count already at the cap means the next slot would overrun it."""
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        return ConflictResult.clear()

    if day is not None:
        daily = _live_teacher_slot_count(db, school_id, teacher_id, DayOfWeek(day), exclude_slot_id)
        if daily >= teacher.max_periods_per_day:
            return ConflictResult(
                has_conflict=True,
                type="WORKLOAD_EXCEEDED",
                message=f"{teacher.full_name} has reached daily limit of {teacher.max_periods_per_day} periods",
                details=ConflictDetails(workload=WorkloadLevel(current=daily, max=teacher.max_periods_per_day)),
            )

    weekly = _live_teacher_slot_count(db, school_id, teacher_id, None, exclude_slot_id)
    if weekly >= teacher.max_periods_per_week:
        return ConflictResult(
            has_conflict=True,
            type="WORKLOAD_EXCEEDED",
            message=f"{teacher.full_name} has reached weekly limit of {teacher.max_periods_per_week} periods",
            details=ConflictDetails(workload=WorkloadLevel(current=weekly, max=teacher.max_periods_per_week)),
        )
    return ConflictResult.clear()


def validate_slot_assignment(db: Session, school_id: str, proposal: SlotProposal) -> list[ConflictResult]:
    conflicts: list[ConflictResult] = []

    class_conflict = check_class_conflict(
        db,
        proposal.timetable_id,
        proposal.day_of_week,
        proposal.period_number,
        proposal.slot_id,
    )
    if class_conflict.has_conflict:
        conflicts.append(class_conflict)

    if proposal.teacher_id:
        teacher_conflict = check_teacher_conflict(
            db,
            school_id,
            proposal.teacher_id,
            proposal.day_of_week,
            proposal.period_number,
            proposal.slot_id,
        )
        if teacher_conflict.has_conflict:
            conflicts.append(teacher_conflict)

        workload_conflict = check_teacher_workload(
            db,
            school_id,
            proposal.teacher_id,
            proposal.day_of_week,
            proposal.slot_id,
        )
        if workload_conflict.has_conflict:
            conflicts.append(workload_conflict)

    if conflicts:
        logger.info(
            "Slot proposal %s %s P%s has %d conflict(s): %s",
            proposal.timetable_id,
            proposal.day_of_week.value,
            proposal.period_number,
            len(conflicts),
            ", ".join(item.type for item in conflicts),
        )
    return conflicts


def get_available_teachers(
    db: Session,
    school_id: str,
    day: DayOfWeek | str,
    period: int,
    subject_id: str | None = None,
) -> list[TeacherAvailability]:
    day = DayOfWeek(day)
    query = select(Teacher).where(Teacher.school_id == school_id, Teacher.is_active.is_(True))
    if subject_id:
        qualified = select(TeacherSubject.teacher_id).where(TeacherSubject.subject_id == subject_id)
        assigned = select(TeacherClassAssignment.teacher_id).where(
            TeacherClassAssignment.subject_id == subject_id,
            TeacherClassAssignment.is_active.is_(True),
        )
        query = query.where(or_(Teacher.id.in_(qualified), Teacher.id.in_(assigned)))
    teachers = list(db.execute(query.order_by(Teacher.full_name)).scalars())

    live_slots = list(
        db.execute(
            select(TimetableSlot.teacher_id, TimetableSlot.day_of_week, TimetableSlot.period_number)
            .join(Timetable, Timetable.id == TimetableSlot.timetable_id)
            .where(
                TimetableSlot.school_id == school_id,
                TimetableSlot.teacher_id.is_not(None),
                TimetableSlot.is_active.is_(True),
                Timetable.status.in_(LIVE_TIMETABLE_STATUSES),
            )
        ).all()
    )
    busy_ids = {row.teacher_id for row in live_slots if row.day_of_week == day and row.period_number == period}
    weekly_counts = Counter(row.teacher_id for row in live_slots)
    daily_counts = Counter(row.teacher_id for row in live_slots if row.day_of_week == day)

    available: list[TeacherAvailability] = []
    for teacher in teachers:
        if teacher.id in busy_ids:
            continue
        current = TeacherLoad(daily=daily_counts[teacher.id], weekly=weekly_counts[teacher.id])
        maximum = TeacherLoad(daily=teacher.max_periods_per_day, weekly=teacher.max_periods_per_week)
        if current.daily >= maximum.daily or current.weekly >= maximum.weekly:
            continue
        available.append(
            TeacherAvailability(
                id=teacher.id,
                full_name=teacher.full_name,
                employee_id=teacher.employee_id,
                current_load=current,
                max_load=maximum,
            )
        )
    return available


def get_subject_distribution(db: Session, timetable_id: str) -> list[SubjectDistributionItem]:
    timetable = db.get(Timetable, timetable_id)
    if timetable is None:
        return []

    counts = Counter(
        db.execute(
            select(TimetableSlot.subject_id).where(
                TimetableSlot.timetable_id == timetable_id,
                TimetableSlot.is_active.is_(True),
                TimetableSlot.slot_type == SlotType.REGULAR,
                TimetableSlot.subject_id.is_not(None),
            )
        ).scalars()
    )
    subjects = db.execute(
        select(Subject)
        .where(Subject.school_id == timetable.school_id, Subject.is_active.is_(True))
        .order_by(Subject.display_order, Subject.name)
    ).scalars()

    distribution: list[SubjectDistributionItem] = []
    for subject in subjects:
        count = counts.get(subject.id, 0)
        status = "OK"
        if count < subject.credits_per_week:
            status = "UNDER"
        elif count > subject.credits_per_week:
            status = "OVER"
        distribution.append(
            SubjectDistributionItem(
                subject_id=subject.id,
                subject_name=subject.name,
                subject_code=subject.code,
                count=count,
                required_per_week=subject.credits_per_week,
                status=status,
            )
        )
    return distribution
