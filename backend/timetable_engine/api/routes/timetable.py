from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from timetable_engine.api.deps import get_current_user, get_db, require_admin
from timetable_engine.models.timetable import DayOfWeek, TimetableStatus
from timetable_engine.schemas.conflict import SlotProposal
from timetable_engine.schemas.timetable import SlotSave, TimetableCreate, TimetableOut, TimetableUpdate
from timetable_engine.schemas.user import CurrentUser
from timetable_engine.services import slot_service
from timetable_engine.services.conflict_service import get_available_teachers, get_subject_distribution
from timetable_engine.services.inheritance import validate_all_subjects_have_teachers

router = APIRouter()


@router.get("")
def list_timetables(
    status_filter: TimetableStatus | None = Query(default=None, alias="status"),
    academic_unit_id: str | None = Query(default=None, alias="academicUnitId"),
    academic_year_id: str | None = Query(default=None, alias="academicYearId"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    timetables = slot_service.list_timetables(
        db,
        current_user.school_id,
        status=status_filter,
        academic_unit_id=academic_unit_id,
        academic_year_id=academic_year_id,
    )
    return {"success": True, "data": [TimetableOut.model_validate(item) for item in timetables]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_timetable(
    payload: TimetableCreate,
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    timetable, created = slot_service.create_timetable(
        db, school_id=current_user.school_id, actor_id=current_user.id, payload=payload
    )
    message = "Timetable created successfully" if created else "A draft timetable already exists"
    return {"success": True, "message": message, "data": TimetableOut.model_validate(timetable)}


@router.post("/slots")
def save_slot(
    payload: SlotSave,
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    slot = slot_service.save_slot(db, current_user.school_id, payload)
    return {"success": True, "message": "Timetable slot saved successfully", "data": slot}


@router.post("/slots/check")
def check_slot(
    payload: SlotProposal,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return {"success": True, "data": slot_service.check_slot(db, current_user.school_id, payload)}


@router.delete("/slots/{slot_id}")
def delete_slot(
    slot_id: str,
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    slot_service.delete_slot(db, current_user.school_id, slot_id)
    return {"success": True, "message": "Slot removed successfully"}


@router.get("/available-teachers")
def available_teachers(
    day_of_week: DayOfWeek = Query(alias="dayOfWeek"),
    period_number: int = Query(alias="periodNumber", ge=1, le=24),
    subject_id: str | None = Query(default=None, alias="subjectId"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    teachers = get_available_teachers(db, current_user.school_id, day_of_week, period_number, subject_id)
    return {"success": True, "data": teachers}


@router.get("/{timetable_id}")
def get_timetable(
    timetable_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    return {"success": True, "data": slot_service.get_timetable_detail(db, current_user.school_id, timetable_id)}


@router.patch("/{timetable_id}")
def update_timetable(
    timetable_id: str,
    payload: TimetableUpdate,
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    timetable, message = slot_service.update_timetable(
        db,
        school_id=current_user.school_id,
        actor_id=current_user.id,
        timetable_id=timetable_id,
        payload=payload,
    )
    return {"success": True, "message": message, "data": TimetableOut.model_validate(timetable)}


@router.delete("/{timetable_id}")
def delete_timetable(
    timetable_id: str,
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    slot_service.delete_timetable(db, current_user.school_id, timetable_id)
    return {"success": True, "message": "Timetable deleted successfully"}


@router.get("/{timetable_id}/distribution")
def subject_distribution(
    timetable_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    slot_service.get_timetable(db, current_user.school_id, timetable_id)
    return {"success": True, "data": get_subject_distribution(db, timetable_id)}


@router.get("/{timetable_id}/publish-check")
def publish_check(
    timetable_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    timetable = slot_service.get_timetable(db, current_user.school_id, timetable_id)
    result = validate_all_subjects_have_teachers(db, timetable.academic_unit_id, timetable.academic_year_id)
    return {"success": True, "data": result}
