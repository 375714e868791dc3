from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from timetable_engine.api.deps import get_current_user, get_db, require_admin
from timetable_engine.models.assignment_history import AssignmentCategory
from timetable_engine.schemas.assignment import (
    HistoryEntryOut,
    SubjectAssignmentCreate,
    SubjectAssignmentOut,
    SubjectAssignmentUpdate,
)
from timetable_engine.schemas.user import CurrentUser, UserRole
from timetable_engine.schemas.validation import BulkValidationOut, ValidateAssignmentRequest
from timetable_engine.services import assignment_service
from timetable_engine.services.assignment_history import get_assignment_history
from timetable_engine.services.assignment_validation import (
    validate_bulk_assignments,
    validate_class_teacher_assignment,
    validate_subject_teacher_assignment,
)
from timetable_engine.services.inheritance import get_subject_teachers_with_inheritance

router = APIRouter()


@router.get("")
def list_assignments(
    academic_year_id: str | None = Query(default=None, alias="academicYearId"),
    academic_unit_id: str | None = Query(default=None, alias="academicUnitId"),
    subject_id: str | None = Query(default=None, alias="subjectId"),
    teacher_id: str | None = Query(default=None, alias="teacherId"),
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    # Teachers only see their own assignments.
    if current_user.role == UserRole.teacher:
        teacher_id = current_user.teacher_id or current_user.id
    rows = assignment_service.list_subject_assignments(
        db,
        current_user.school_id,
        academic_year_id=academic_year_id,
        academic_unit_id=academic_unit_id,
        subject_id=subject_id,
        teacher_id=teacher_id,
        include_inactive=include_inactive,
    )
    return {"success": True, "data": [SubjectAssignmentOut.model_validate(row) for row in rows]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_assignment(
    payload: SubjectAssignmentCreate,
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    row, message = assignment_service.create_subject_assignment(
        db, school_id=current_user.school_id, actor_id=current_user.id, payload=payload
    )
    return {"success": True, "message": message, "data": SubjectAssignmentOut.model_validate(row)}


@router.post("/validate")
def validate_assignment(
    payload: ValidateAssignmentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    if payload.type == "bulk":
        result = validate_bulk_assignments(
            db, payload.academic_year_id, payload.assignments, school_id=current_user.school_id
        )
        data = BulkValidationOut(
            total_count=len(payload.assignments),
            valid_count=len(result.valid),
            invalid_count=len(result.invalid),
            valid=result.valid,
            invalid=result.invalid,
        )
        return {"success": True, "data": data}

    if payload.type == "class-teacher":
        result = validate_class_teacher_assignment(
            db,
            academic_year_id=payload.academic_year_id,
            academic_unit_id=payload.academic_unit_id,
            teacher_id=payload.teacher_id,
            is_primary=payload.is_primary,
            exclude_id=payload.exclude_id,
            max_classes_as_class_teacher=payload.max_classes_as_class_teacher,
            school_id=current_user.school_id,
        )
        return {"success": True, "data": result}

    result = validate_subject_teacher_assignment(
        db,
        academic_year_id=payload.academic_year_id,
        academic_unit_id=payload.academic_unit_id,
        subject_id=payload.subject_id,
        teacher_id=payload.teacher_id,
        periods_per_week=payload.periods_per_week,
        exclude_id=payload.exclude_id,
        school_id=current_user.school_id,
    )
    return {"success": True, "data": result}


@router.get("/inherited")
def inherited_teachers(
    academic_unit_id: str = Query(alias="academicUnitId"),
    subject_id: str = Query(alias="subjectId"),
    academic_year_id: str = Query(alias="academicYearId"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    rows = get_subject_teachers_with_inheritance(db, academic_unit_id, subject_id, academic_year_id)
    rows = [row for row in rows if row.school_id == current_user.school_id]
    inherited = any(row.academic_unit_id != academic_unit_id for row in rows)
    return {
        "success": True,
        "data": [SubjectAssignmentOut.model_validate(row) for row in rows],
        "inherited": inherited,
    }


@router.get("/{assignment_id}")
def get_assignment(
    assignment_id: str,
    include_history: bool = Query(default=False, alias="includeHistory"),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> dict:
    row = assignment_service.get_subject_assignment(db, current_user.school_id, assignment_id)
    data = SubjectAssignmentOut.model_validate(row).model_dump(mode="json", by_alias=True)
    data["history"] = []
    if include_history:
        history = get_assignment_history(db, row.id, AssignmentCategory.SUBJECT_TEACHER)
        data["history"] = [HistoryEntryOut.model_validate(item).model_dump(mode="json", by_alias=True) for item in history]
    return {"success": True, "data": data}


@router.patch("/{assignment_id}")
def update_assignment(
    assignment_id: str,
    payload: SubjectAssignmentUpdate,
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    row, message = assignment_service.update_subject_assignment(
        db,
        school_id=current_user.school_id,
        actor_id=current_user.id,
        assignment_id=assignment_id,
        payload=payload,
    )
    return {"success": True, "message": message, "data": SubjectAssignmentOut.model_validate(row)}


@router.delete("/{assignment_id}")
def deactivate_assignment(
    assignment_id: str,
    reason: str | None = Query(default=None, max_length=1000),
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    row, message = assignment_service.deactivate_subject_assignment(
        db,
        school_id=current_user.school_id,
        actor_id=current_user.id,
        assignment_id=assignment_id,
        reason=reason,
    )
    return {"success": True, "message": message, "data": SubjectAssignmentOut.model_validate(row)}
