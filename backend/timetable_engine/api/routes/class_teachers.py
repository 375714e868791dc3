from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from timetable_engine.api.deps import get_current_user, get_db, require_admin
from timetable_engine.models.assignment_history import AssignmentCategory
from timetable_engine.schemas.assignment import (
    ClassTeacherCreate,
    ClassTeacherOut,
    ClassTeacherUpdate,
    HistoryEntryOut,
)
from timetable_engine.schemas.user import CurrentUser, UserRole
from timetable_engine.services import assignment_service
from timetable_engine.services.assignment_history import get_assignment_history

router = APIRouter()


@router.get("")
def list_class_teachers(
    academic_year_id: str | None = Query(default=None, alias="academicYearId"),
    academic_unit_id: str | None = Query(default=None, alias="academicUnitId"),
    teacher_id: str | None = Query(default=None, alias="teacherId"),
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    if current_user.role == UserRole.teacher:
        teacher_id = current_user.teacher_id or current_user.id
    rows = assignment_service.list_class_teachers(
        db,
        current_user.school_id,
        academic_year_id=academic_year_id,
        academic_unit_id=academic_unit_id,
        teacher_id=teacher_id,
        include_inactive=include_inactive,
    )
    return {"success": True, "data": [ClassTeacherOut.model_validate(row) for row in rows]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_class_teacher(
    payload: ClassTeacherCreate,
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    row, message = assignment_service.create_class_teacher(
        db, school_id=current_user.school_id, actor_id=current_user.id, payload=payload
    )
    return {"success": True, "message": message, "data": ClassTeacherOut.model_validate(row)}


@router.get("/{class_teacher_id}")
def get_class_teacher(
    class_teacher_id: str,
    include_history: bool = Query(default=False, alias="includeHistory"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    row = assignment_service.get_class_teacher(db, current_user.school_id, class_teacher_id)
    data = ClassTeacherOut.model_validate(row).model_dump(mode="json", by_alias=True)
    data["history"] = []
    if include_history:
        history = get_assignment_history(db, row.id, AssignmentCategory.CLASS_TEACHER)
        data["history"] = [HistoryEntryOut.model_validate(item).model_dump(mode="json", by_alias=True) for item in history]
    return {"success": True, "data": data}


@router.patch("/{class_teacher_id}")
def update_class_teacher(
    class_teacher_id: str,
    payload: ClassTeacherUpdate,
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    row, message = assignment_service.update_class_teacher(
        db,
        school_id=current_user.school_id,
        actor_id=current_user.id,
        class_teacher_id=class_teacher_id,
        payload=payload,
    )
    return {"success": True, "message": message, "data": ClassTeacherOut.model_validate(row)}


@router.delete("/{class_teacher_id}")
def deactivate_class_teacher(
    class_teacher_id: str,
    reason: str | None = Query(default=None, max_length=1000),
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    row, message = assignment_service.deactivate_class_teacher(
        db,
        school_id=current_user.school_id,
        actor_id=current_user.id,
        class_teacher_id=class_teacher_id,
        reason=reason,
    )
    return {"success": True, "message": message, "data": ClassTeacherOut.model_validate(row)}
