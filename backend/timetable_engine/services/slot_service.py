from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from timetable_engine.core.exceptions import AppError, InvalidOperationError, ResourceNotFoundError, SlotConflictError
from timetable_engine.models.academic_unit import AcademicUnit
from timetable_engine.models.subject import Subject
from timetable_engine.models.teacher import Teacher
from timetable_engine.models.timetable import (
    DayOfWeek,
    Timetable,
    TimetableSlot,
    TimetableStatus,
    TimetableTemplate,
)
from timetable_engine.schemas.conflict import SlotCheckOut, SlotProposal
from timetable_engine.schemas.timetable import (
    SlotOut,
    SlotSave,
    SubjectBrief,
    TeacherBrief,
    TimetableCreate,
    TimetableDetailOut,
    TimetableOut,
    TimetableUpdate,
)
from timetable_engine.services.conflict_service import validate_slot_assignment
from timetable_engine.services.inheritance import validate_all_subjects_have_teachers

logger = logging.getLogger(__name__)

DAY_ORDER = {day: index for index, day in enumerate(DayOfWeek)}


def get_timetable(db: Session, school_id: str, timetable_id: str) -> Timetable:
    timetable = db.get(Timetable, timetable_id)
    if timetable is None or timetable.school_id != school_id:
        raise ResourceNotFoundError("Timetable", timetable_id)
    return timetable


def list_timetables(
    db: Session,
    school_id: str,
    *,
    status: TimetableStatus | None = None,
    academic_unit_id: str | None = None,
    academic_year_id: str | None = None,
) -> list[Timetable]:
    query = select(Timetable).where(Timetable.school_id == school_id)
    if status is not None:
        query = query.where(Timetable.status == status)
    if academic_unit_id:
        query = query.where(Timetable.academic_unit_id == academic_unit_id)
    if academic_year_id:
        query = query.where(Timetable.academic_year_id == academic_year_id)
    return list(db.execute(query.order_by(Timetable.created_at.desc())).scalars())


def build_slot_out(db: Session, slot: TimetableSlot) -> SlotOut:
    subject = db.get(Subject, slot.subject_id) if slot.subject_id else None
    teacher = db.get(Teacher, slot.teacher_id) if slot.teacher_id else None
    out = SlotOut.model_validate(slot)
    out.subject = SubjectBrief.model_validate(subject) if subject is not None else None
    out.teacher = TeacherBrief.model_validate(teacher) if teacher is not None else None
    return out


def get_timetable_detail(db: Session, school_id: str, timetable_id: str) -> TimetableDetailOut:
    timetable = get_timetable(db, school_id, timetable_id)
    slots = db.execute(
        select(TimetableSlot).where(
            TimetableSlot.timetable_id == timetable.id,
            TimetableSlot.is_active.is_(True),
        )
    ).scalars()
    ordered = sorted(slots, key=lambda slot: (DAY_ORDER[slot.day_of_week], slot.period_number))
    detail = TimetableDetailOut.model_validate(timetable)
    detail.slots = [build_slot_out(db, slot) for slot in ordered]
    return detail


def create_timetable(
    db: Session, *, school_id: str, actor_id: str, payload: TimetableCreate
) -> tuple[Timetable, bool]:
    """Create a DRAFT timetable, or return the DRAFT that already exists for the unit, year and template."""
    unit = db.get(AcademicUnit, payload.academic_unit_id)
    if unit is None or unit.school_id != school_id:
        raise ResourceNotFoundError("Academic unit", payload.academic_unit_id)
    template = db.get(TimetableTemplate, payload.template_id)
    if template is None or template.school_id != school_id:
        raise ResourceNotFoundError("Timetable template", payload.template_id)

    existing = db.execute(
        select(Timetable).where(
            Timetable.school_id == school_id,
            Timetable.academic_unit_id == payload.academic_unit_id,
            Timetable.academic_year_id == payload.academic_year_id,
            Timetable.template_id == payload.template_id,
            Timetable.status == TimetableStatus.DRAFT,
        )
    ).scalars().first()
    if existing is not None:
        return existing, False

    timetable = Timetable(
        school_id=school_id,
        academic_unit_id=payload.academic_unit_id,
        academic_year_id=payload.academic_year_id,
        template_id=payload.template_id,
        name=payload.name or f"{unit.name} - {template.name}",
        status=TimetableStatus.DRAFT,
        effective_from=payload.effective_from,
        notes=payload.notes,
        created_by=actor_id,
    )
    db.add(timetable)
    db.commit()
    db.refresh(timetable)
    logger.info("Created draft timetable %s for unit %s", timetable.id, unit.id)
    return timetable, True


def update_timetable(
    db: Session, *, school_id: str, actor_id: str, timetable_id: str, payload: TimetableUpdate
) -> tuple[Timetable, str]:
    timetable = get_timetable(db, school_id, timetable_id)
    data = payload.model_dump(exclude_unset=True, exclude={"require_all_subjects"})
    message = "Timetable updated successfully"

    new_status = data.pop("status", None)
    if new_status == TimetableStatus.PUBLISHED and timetable.status != TimetableStatus.PUBLISHED:
        if payload.require_all_subjects:
            check = validate_all_subjects_have_teachers(db, timetable.academic_unit_id, timetable.academic_year_id)
            if not check.is_valid:
                raise InvalidOperationError(
                    "Cannot publish - some subjects have no assigned teacher",
                    details={"missingSubjects": [item.model_dump() for item in check.missing_subjects]},
                )
        archived = db.execute(
            update(Timetable)
            .where(
                Timetable.school_id == school_id,
                Timetable.academic_unit_id == timetable.academic_unit_id,
                Timetable.template_id == timetable.template_id,
                Timetable.status == TimetableStatus.PUBLISHED,
                Timetable.id != timetable.id,
            )
            .values(status=TimetableStatus.ARCHIVED)
            .execution_options(synchronize_session="fetch")
        )
        timetable.status = TimetableStatus.PUBLISHED
        timetable.published_at = datetime.now(timezone.utc)
        timetable.published_by = actor_id
        message = "Timetable published successfully"
        logger.info("Published timetable %s; archived %d previous version(s)", timetable.id, archived.rowcount)
    elif new_status is not None:
        timetable.status = new_status

    for key, value in data.items():
        setattr(timetable, key, value)
    db.commit()
    db.refresh(timetable)
    return timetable, message


def delete_timetable(db: Session, school_id: str, timetable_id: str) -> None:
    timetable = get_timetable(db, school_id, timetable_id)
    if timetable.status == TimetableStatus.PUBLISHED:
        raise InvalidOperationError("Cannot delete a published timetable. Archive it instead.")
    db.execute(delete(TimetableSlot).where(TimetableSlot.timetable_id == timetable.id))
    db.delete(timetable)
    db.commit()


def _ensure_slot_refs(db: Session, school_id: str, teacher_id: str | None, subject_id: str | None) -> None:
    if teacher_id:
        teacher = db.get(Teacher, teacher_id)
        if teacher is None or teacher.school_id != school_id:
            raise ResourceNotFoundError("Teacher", teacher_id)
    if subject_id:
        subject = db.get(Subject, subject_id)
        if subject is None or subject.school_id != school_id:
            raise ResourceNotFoundError("Subject", subject_id)


def _find_slot_at(db: Session, timetable_id: str, day: DayOfWeek, period: int) -> TimetableSlot | None:
    return db.execute(
        select(TimetableSlot).where(
            TimetableSlot.timetable_id == timetable_id,
            TimetableSlot.day_of_week == day,
            TimetableSlot.period_number == period,
        )
    ).scalars().first()


def save_slot(db: Session, school_id: str, payload: SlotSave) -> SlotOut:
    """Upsert the slot at (timetable, day, period) after running the conflict detector.

    The row already stored at that key is edited in place and is excluded from
    the class and teacher checks.
    """
    timetable = get_timetable(db, school_id, payload.timetableId)
    if timetable.status == TimetableStatus.ARCHIVED:
        raise InvalidOperationError("Cannot edit an archived timetable")
    template = db.get(TimetableTemplate, timetable.template_id)
    if template is not None and payload.periodNumber > template.periods_per_day:
        raise InvalidOperationError(
            f"Period {payload.periodNumber} is outside the template's {template.periods_per_day} periods per day"
        )
    _ensure_slot_refs(db, school_id, payload.teacherId, payload.subjectId)

    existing = _find_slot_at(db, timetable.id, payload.dayOfWeek, payload.periodNumber)

    if not payload.skipConflictCheck:
        proposal = SlotProposal(
            timetable_id=timetable.id,
            day_of_week=payload.dayOfWeek,
            period_number=payload.periodNumber,
            subject_id=payload.subjectId,
            teacher_id=payload.teacherId,
            academic_unit_id=timetable.academic_unit_id,
            slot_id=existing.id if existing is not None else None,
        )
        conflicts = validate_slot_assignment(db, school_id, proposal)
        if conflicts:
            raise SlotConflictError([item.model_dump(mode="json", by_alias=True) for item in conflicts])

    slot = existing
    if slot is None:
        slot = TimetableSlot(
            school_id=school_id,
            timetable_id=timetable.id,
            academic_unit_id=timetable.academic_unit_id,
            day_of_week=payload.dayOfWeek,
            period_number=payload.periodNumber,
        )
        db.add(slot)
    slot.subject_id = payload.subjectId
    slot.teacher_id = payload.teacherId
    slot.room = payload.room
    slot.slot_type = payload.slotType
    slot.notes = payload.notes
    slot.is_active = True
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Concurrent write on slot %s %s P%s", timetable.id, payload.dayOfWeek.value, payload.periodNumber)
        raise AppError("This period was changed by another request. Please retry.", status_code=409) from exc
    db.refresh(slot)
    return build_slot_out(db, slot)


def check_slot(db: Session, school_id: str, proposal: SlotProposal) -> SlotCheckOut:
    """Dry run of save_slot: the slot already stored at the key is treated as the one being edited."""
    timetable = get_timetable(db, school_id, proposal.timetable_id)
    _ensure_slot_refs(db, school_id, proposal.teacher_id, proposal.subject_id)
    if proposal.slot_id is None:
        existing = _find_slot_at(db, timetable.id, proposal.day_of_week, proposal.period_number)
        if existing is not None:
            proposal = proposal.model_copy(update={"slot_id": existing.id})
    conflicts = validate_slot_assignment(db, school_id, proposal)
    return SlotCheckOut(has_conflicts=bool(conflicts), conflicts=conflicts)


def delete_slot(db: Session, school_id: str, slot_id: str) -> None:
    slot = db.get(TimetableSlot, slot_id)
    if slot is None or slot.school_id != school_id:
        raise ResourceNotFoundError("Slot", slot_id)
    db.delete(slot)
    db.commit()
