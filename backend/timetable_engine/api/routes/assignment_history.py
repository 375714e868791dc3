from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from timetable_engine.api.deps import get_db, require_admin
from timetable_engine.models.assignment_history import AssignmentCategory
from timetable_engine.schemas.assignment import RecentChangeOut
from timetable_engine.schemas.user import CurrentUser
from timetable_engine.services.assignment_history import get_audit_report, get_recent_assignment_changes

router = APIRouter()


@router.get("")
def recent_changes(
    limit: int = Query(default=50, ge=1, le=500),
    category: AssignmentCategory | None = Query(default=None),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    changes = get_recent_assignment_changes(
        db,
        current_user.school_id,
        limit=limit,
        category=category,
        start=start,
        end=end,
    )
    return {"success": True, "data": [RecentChangeOut.model_validate(item) for item in changes]}


@router.get("/report")
def audit_report(
    category: AssignmentCategory | None = Query(default=None),
    current_user: CurrentUser = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    return {"success": True, "data": get_audit_report(db, current_user.school_id, category)}
