from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime
from enum import Enum
from typing import Any

from sqlalchemy import inspect as sa_inspect, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from timetable_engine.models.assignment_history import AssignmentCategory, AssignmentHistory, HistoryAction
from timetable_engine.schemas.assignment import AuditReportOut, RecentChangeOut

logger = logging.getLogger(__name__)

SNAPSHOT_EXCLUDED_COLUMNS = {"created_at", "updated_at"}


def _json_safe(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def create_assignment_snapshot(row: Any) -> dict[str, Any]:
    """Column values of an assignment row, minus timestamps, ready for a JSON column."""
    mapper = sa_inspect(row).mapper
    return {
        column.key: _json_safe(getattr(row, column.key))
        for column in mapper.column_attrs
        if column.key not in SNAPSHOT_EXCLUDED_COLUMNS
    }


def _append_entry(
    db: Session,
    category: AssignmentCategory,
    action: HistoryAction,
    *,
    school_id: str,
    assignment_id: str,
    changed_by: str,
    previous_data: dict[str, Any] | None = None,
    new_data: dict[str, Any] | None = None,
    change_reason: str | None = None,
) -> AssignmentHistory | None:
    # Runs after the primary mutation has committed; a failure here is logged, never raised.
    entry = AssignmentHistory(
        school_id=school_id,
        assignment_category=category,
        assignment_id=assignment_id,
        action=action,
        previous_data=previous_data,
        new_data=new_data,
        changed_by=changed_by,
        change_reason=change_reason,
    )
    try:
        db.add(entry)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception(
            "Failed to record %s %s history for assignment %s",
            category.value,
            action.value,
            assignment_id,
        )
        return None
    return entry


def log_creation(
    db: Session,
    category: AssignmentCategory,
    *,
    school_id: str,
    assignment_id: str,
    data: dict[str, Any],
    changed_by: str,
) -> AssignmentHistory | None:
    return _append_entry(
        db,
        category,
        HistoryAction.CREATED,
        school_id=school_id,
        assignment_id=assignment_id,
        changed_by=changed_by,
        new_data=data,
    )


def log_modification(
    db: Session,
    category: AssignmentCategory,
    *,
    school_id: str,
    assignment_id: str,
    previous_data: dict[str, Any],
    new_data: dict[str, Any],
    changed_by: str,
    change_reason: str | None = None,
) -> AssignmentHistory | None:
    return _append_entry(
        db,
        category,
        HistoryAction.MODIFIED,
        school_id=school_id,
        assignment_id=assignment_id,
        changed_by=changed_by,
        previous_data=previous_data,
        new_data=new_data,
        change_reason=change_reason,
    )


def log_deactivation(
    db: Session,
    category: AssignmentCategory,
    *,
    school_id: str,
    assignment_id: str,
    previous_data: dict[str, Any],
    changed_by: str,
    change_reason: str | None = None,
) -> AssignmentHistory | None:
    return _append_entry(
        db,
        category,
        HistoryAction.DEACTIVATED,
        school_id=school_id,
        assignment_id=assignment_id,
        changed_by=changed_by,
        previous_data=previous_data,
        change_reason=change_reason,
    )


def log_reactivation(
    db: Session,
    category: AssignmentCategory,
    *,
    school_id: str,
    assignment_id: str,
    new_data: dict[str, Any],
    changed_by: str,
    change_reason: str | None = None,
) -> AssignmentHistory | None:
    return _append_entry(
        db,
        category,
        HistoryAction.REACTIVATED,
        school_id=school_id,
        assignment_id=assignment_id,
        changed_by=changed_by,
        new_data=new_data,
        change_reason=change_reason,
    )


def get_assignment_history(db: Session, assignment_id: str, category: AssignmentCategory) -> list[AssignmentHistory]:
    return list(
        db.execute(
            select(AssignmentHistory)
            .where(
                AssignmentHistory.assignment_id == assignment_id,
                AssignmentHistory.assignment_category == category,
            )
            .order_by(AssignmentHistory.changed_at.desc())
        ).scalars()
    )


def get_recent_assignment_changes(
    db: Session,
    school_id: str,
    *,
    limit: int = 50,
    category: AssignmentCategory | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[AssignmentHistory]:
    query = select(AssignmentHistory).where(AssignmentHistory.school_id == school_id)
    if category is not None:
        query = query.where(AssignmentHistory.assignment_category == category)
    if start is not None:
        query = query.where(AssignmentHistory.changed_at >= start)
    if end is not None:
        query = query.where(AssignmentHistory.changed_at <= end)
    query = query.order_by(AssignmentHistory.changed_at.desc()).limit(limit)
    return list(db.execute(query).scalars())


def get_audit_report(db: Session, school_id: str, category: AssignmentCategory | None = None) -> AuditReportOut:
    query = select(AssignmentHistory).where(AssignmentHistory.school_id == school_id)
    if category is not None:
        query = query.where(AssignmentHistory.assignment_category == category)
    changes = list(db.execute(query.order_by(AssignmentHistory.changed_at.desc())).scalars())

    return AuditReportOut(
        total_changes=len(changes),
        changes_by_action=dict(Counter(change.action.value for change in changes)),
        changes_by_category=dict(Counter(change.assignment_category.value for change in changes)),
        recent_changes=[RecentChangeOut.model_validate(change) for change in changes[:20]],
    )
