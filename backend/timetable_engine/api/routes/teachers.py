from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from timetable_engine.api.deps import get_current_user, get_db, require_admin
from timetable_engine.core.exceptions import ResourceNotFoundError
from timetable_engine.models.teacher import Teacher
from timetable_engine.schemas.user import CurrentUser, UserRole
from timetable_engine.schemas.workload import RecalculateOut
from timetable_engine.services.workload import (
    calculate_projected_workload,
    get_school_teacher_workloads,
    get_teacher_workload_summary,
    update_teacher_current_periods,
)

router = APIRouter()


def _school_teacher(db: Session, school_id: str, teacher_id: str) -> Teacher:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None or teacher.school_id != school_id:
        raise ResourceNotFoundError("Teacher", teacher_id)
    return teacher


def _ensure_own_record(current_user: CurrentUser, teacher_id: str) -> None:
    if current_user.role != UserRole.teacher:
        return
    if teacher_id not in {current_user.teacher_id, current_user.id}:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Teachers can only view their own workload")


@router.get("/workloads")
def school_workloads(
    academic_year_id: str = Query(alias="academicYearId"),
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    rows = get_school_teacher_workloads(db, current_user.school_id, academic_year_id)
    return {"success": True, "data": rows}


@router.get("/{teacher_id}/workload")
def teacher_workload(
    teacher_id: str,
    academic_year_id: str = Query(alias="academicYearId"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    _ensure_own_record(current_user, teacher_id)
    _school_teacher(db, current_user.school_id, teacher_id)
    summary = get_teacher_workload_summary(db, teacher_id, academic_year_id)
    if summary is None:
        raise ResourceNotFoundError("Teacher", teacher_id)
    return {"success": True, "data": summary}


@router.get("/{teacher_id}/workload/projected")
def projected_workload(
    teacher_id: str,
    additional_periods: int = Query(alias="additionalPeriods", ge=0, le=60),
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    _school_teacher(db, current_user.school_id, teacher_id)
    return {"success": True, "data": calculate_projected_workload(db, teacher_id, additional_periods)}


@router.post("/{teacher_id}/workload/recalculate")
def recalculate_workload(
    teacher_id: str,
    academic_year_id: str = Query(alias="academicYearId"),
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    _school_teacher(db, current_user.school_id, teacher_id)
    total = update_teacher_current_periods(db, teacher_id, academic_year_id)
    db.commit()
    data = RecalculateOut(teacher_id=teacher_id, academic_year_id=academic_year_id, current_periods_per_week=total)
    return {"success": True, "message": "Workload recalculated", "data": data}
