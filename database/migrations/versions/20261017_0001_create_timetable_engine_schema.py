"""create timetable engine schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


ENUMS = {
    "academic_unit_type": ("CLASS", "SECTION", "SEMESTER", "BATCH", "DEPARTMENT"),
    "timetable_status": ("DRAFT", "PUBLISHED", "ARCHIVED"),
    "day_of_week": ("MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY", "SATURDAY", "SUNDAY"),
    "slot_type": ("REGULAR", "BREAK", "LUNCH", "ASSEMBLY", "FREE", "ACTIVITY"),
    "assignment_type": ("REGULAR", "SUBSTITUTE", "ADDITIONAL"),
    "assignment_category": ("CLASS_TEACHER", "SUBJECT_TEACHER"),
    "history_action": ("CREATED", "MODIFIED", "DEACTIVATED", "REACTIVATED"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name in ENUMS:
        _enum(name).create(bind, checkfirst=True)

    op.create_table(
        "teachers",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("employee_id", sa.String(length=50), nullable=False),
        sa.Column("specialization", sa.String(length=200), nullable=True),
        sa.Column("max_periods_per_day", sa.Integer(), nullable=False, server_default="6"),
        sa.Column("max_periods_per_week", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("current_periods_per_week", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("school_id", "employee_id", name="uq_teachers_school_employee"),
    )
    op.create_index("ix_teachers_school_id", "teachers", ["school_id"])

    op.create_table(
        "subjects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("credits_per_week", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint("school_id", "code", name="uq_subjects_school_code"),
    )
    op.create_index("ix_subjects_school_id", "subjects", ["school_id"])

    op.create_table(
        "teacher_subjects",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("teacher_id", "subject_id", name="uq_teacher_subjects_teacher_subject"),
    )
    op.create_index("ix_teacher_subjects_school_id", "teacher_subjects", ["school_id"])
    op.create_index("ix_teacher_subjects_teacher_id", "teacher_subjects", ["teacher_id"])
    op.create_index("ix_teacher_subjects_subject_id", "teacher_subjects", ["subject_id"])

    op.create_table(
        "academic_years",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_current", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_academic_years_school_id", "academic_years", ["school_id"])

    op.create_table(
        "academic_units",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("academic_year_id", sa.String(length=36), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("type", _enum("academic_unit_type"), nullable=False, server_default="CLASS"),
        sa.Column("parent_id", sa.String(length=36), nullable=True),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("current_students", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_academic_units_school_id", "academic_units", ["school_id"])
    op.create_index("ix_academic_units_parent_id", "academic_units", ["parent_id"])

    op.create_table(
        "timetable_templates",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("periods_per_day", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("working_days", sa.JSON(), nullable=False, server_default=sa.text("'[]'::json")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_timetable_templates_school_id", "timetable_templates", ["school_id"])

    op.create_table(
        "timetables",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("academic_unit_id", sa.String(length=36), nullable=False),
        sa.Column("academic_year_id", sa.String(length=36), nullable=False),
        sa.Column("template_id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("status", _enum("timetable_status"), nullable=False, server_default="DRAFT"),
        sa.Column("effective_from", sa.Date(), nullable=True),
        sa.Column("effective_to", sa.Date(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_by", sa.String(length=36), nullable=True),
        sa.Column("created_by", sa.String(length=36), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_timetables_school_id", "timetables", ["school_id"])
    op.create_index("ix_timetables_academic_unit_id", "timetables", ["academic_unit_id"])
    op.create_index("ix_timetables_academic_year_id", "timetables", ["academic_year_id"])

    op.create_table(
        "timetable_slots",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("timetable_id", sa.String(length=36), nullable=False),
        sa.Column("academic_unit_id", sa.String(length=36), nullable=False),
        sa.Column("day_of_week", _enum("day_of_week"), nullable=False),
        sa.Column("period_number", sa.Integer(), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("teacher_id", sa.String(length=36), nullable=True),
        sa.Column("room", sa.String(length=100), nullable=True),
        sa.Column("slot_type", _enum("slot_type"), nullable=False, server_default="REGULAR"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.UniqueConstraint(
            "timetable_id",
            "day_of_week",
            "period_number",
            name="uq_timetable_slots_timetable_day_period",
        ),
    )
    op.create_index("ix_timetable_slots_timetable_id", "timetable_slots", ["timetable_id"])
    op.create_index(
        "ix_timetable_slots_teacher_lookup",
        "timetable_slots",
        ["school_id", "teacher_id", "day_of_week", "period_number", "is_active"],
    )

    op.create_table(
        "teacher_class_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("academic_year_id", sa.String(length=36), nullable=False),
        sa.Column("academic_unit_id", sa.String(length=36), nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("assignment_type", _enum("assignment_type"), nullable=False, server_default="REGULAR"),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("periods_per_week", sa.Integer(), nullable=True),
        sa.Column("effective_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("effective_to", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("assigned_by", sa.String(length=36), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_teacher_class_assignments_school_id", "teacher_class_assignments", ["school_id"])
    op.create_index("ix_teacher_class_assignments_teacher_id", "teacher_class_assignments", ["teacher_id"])
    op.create_index(
        "ix_teacher_class_assignments_unit_subject",
        "teacher_class_assignments",
        ["academic_unit_id", "subject_id", "academic_year_id"],
    )
    op.create_index(
        "uq_teacher_class_assignments_active",
        "teacher_class_assignments",
        ["teacher_id", "subject_id", "academic_unit_id", "academic_year_id"],
        unique=True,
        postgresql_where=sa.text("is_active = true"),
    )

    op.create_table(
        "class_teachers",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("academic_year_id", sa.String(length=36), nullable=False),
        sa.Column("academic_unit_id", sa.String(length=36), nullable=False),
        sa.Column("teacher_id", sa.String(length=36), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("effective_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("effective_to", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("assigned_by", sa.String(length=36), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_class_teachers_school_id", "class_teachers", ["school_id"])
    op.create_index("ix_class_teachers_teacher_id", "class_teachers", ["teacher_id"])
    op.create_index(
        "uq_class_teachers_active_role",
        "class_teachers",
        ["academic_unit_id", "academic_year_id", "is_primary"],
        unique=True,
        postgresql_where=sa.text("is_active = true"),
    )
    op.create_index(
        "uq_class_teachers_active_teacher",
        "class_teachers",
        ["teacher_id", "academic_unit_id", "academic_year_id"],
        unique=True,
        postgresql_where=sa.text("is_active = true"),
    )

    op.create_table(
        "teacher_assignment_history",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("school_id", sa.String(length=36), nullable=False),
        sa.Column("assignment_category", _enum("assignment_category"), nullable=False),
        sa.Column("assignment_id", sa.String(length=36), nullable=False),
        sa.Column("action", _enum("history_action"), nullable=False),
        sa.Column("previous_data", sa.JSON(), nullable=True),
        sa.Column("new_data", sa.JSON(), nullable=True),
        sa.Column("changed_by", sa.String(length=36), nullable=False),
        sa.Column("change_reason", sa.Text(), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_teacher_assignment_history_school_id", "teacher_assignment_history", ["school_id"])
    op.create_index("ix_teacher_assignment_history_changed_at", "teacher_assignment_history", ["changed_at"])
    op.create_index(
        "ix_teacher_assignment_history_assignment",
        "teacher_assignment_history",
        ["assignment_id", "assignment_category"],
    )


def downgrade() -> None:
    for table_name in (
        "teacher_assignment_history",
        "class_teachers",
        "teacher_class_assignments",
        "timetable_slots",
        "timetables",
        "timetable_templates",
        "academic_units",
        "academic_years",
        "teacher_subjects",
        "subjects",
        "teachers",
    ):
        op.drop_table(table_name)
    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        _enum(name).drop(bind, checkfirst=True)
