"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

users, terms, courses and assignments mirror the planner store.
user_class_metrics holds every snapshot classmetrics writes; the partial
unique index on (user_id, coalesce(course_id, 0), period_type,
period_start, period_end) is the period-summary upsert key.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # --- ENUM types ---
    term_status_enum = sa.Enum("past", "current", "future", name="term_status_enum")
    term_status_enum.create(op.get_bind(), checkfirst=True)

    assignment_status_enum = sa.Enum("todo", "done", name="assignment_status_enum")
    assignment_status_enum.create(op.get_bind(), checkfirst=True)

    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("auth_subject", sa.String(255), nullable=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("first_name", sa.String(128), nullable=True),
        sa.Column("last_name", sa.String(128), nullable=True),
        sa.Column("transfer_gpa", sa.Float(), nullable=True),
        sa.Column("transfer_credits", sa.Integer(), nullable=True),
        sa.Column("current_gpa", sa.Float(), nullable=True),
        sa.Column("institution_gpa", sa.Float(), nullable=True),
        sa.Column("predicted_term_gpa", sa.Float(), nullable=True),
        sa.Column("total_credits_earned", sa.Integer(), nullable=True),
        sa.Column("total_credits_attempted", sa.Integer(), nullable=True),
        sa.Column("total_assignments", sa.Integer(), nullable=True),
        sa.Column("total_classes_enrolled", sa.Integer(), nullable=True),
        sa.Column("total_submissions", sa.Integer(), nullable=True),
        sa.Column("total_terms_created", sa.Integer(), nullable=True),
        sa.Column("soft_deleted_at", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_auth_subject", "users", ["auth_subject"], unique=True)

    # --- terms ---
    op.create_table(
        "terms",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("status", sa.Enum(
            "past", "current", "future", name="term_status_enum", create_type=False
        ), nullable=False),
        sa.Column("soft_deleted_at", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_terms_id", "terms", ["id"])
    op.create_index("ix_terms_user_id", "terms", ["user_id"])

    # --- courses ---
    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("term_id", sa.Integer(), sa.ForeignKey("terms.id"), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("credit_hours", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("instructor", sa.String(256), nullable=True),
        sa.Column("soft_deleted_at", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_courses_id", "courses", ["id"])
    op.create_index("ix_courses_user_id", "courses", ["user_id"])
    op.create_index("ix_courses_term_id", "courses", ["term_id"])

    # --- assignments ---
    op.create_table(
        "assignments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("due_at", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.Enum(
            "todo", "done", name="assignment_status_enum", create_type=False
        ), nullable=False),
        sa.Column("grade", sa.Float(), nullable=True),
        sa.Column("points_earned", sa.Float(), nullable=True),
        sa.Column("points_possible", sa.Float(), nullable=True),
        sa.Column("grade_percentage", sa.Float(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("soft_deleted_at", sa.BigInteger(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_assignments_id", "assignments", ["id"])
    op.create_index("ix_assignments_user_id", "assignments", ["user_id"])
    op.create_index("ix_assignments_course_id", "assignments", ["course_id"])
    op.create_index("ix_assignments_user_due", "assignments", ["user_id", "due_at"])

    # --- user_class_metrics ---
    op.create_table(
        "user_class_metrics",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("courses.id"), nullable=True),
        sa.Column("term_id", sa.Integer(), sa.ForeignKey("terms.id"), nullable=True),
        sa.Column("metric_type", sa.String(32), nullable=False),
        sa.Column("period_type", sa.String(16), nullable=True),
        sa.Column("period_start", sa.BigInteger(), nullable=True),
        sa.Column("period_end", sa.BigInteger(), nullable=True),
        sa.Column("period_label", sa.String(128), nullable=True),
        sa.Column("total_assignments", sa.Integer(), nullable=True),
        sa.Column("completed_assignments", sa.Integer(), nullable=True),
        sa.Column("pending_assignments", sa.Integer(), nullable=True),
        sa.Column("overdue_assignments", sa.Integer(), nullable=True),
        sa.Column("graded_assignments", sa.Integer(), nullable=True),
        sa.Column("total_points_earned", sa.Float(), nullable=True),
        sa.Column("total_points_possible", sa.Float(), nullable=True),
        sa.Column("average_grade", sa.Float(), nullable=True),
        sa.Column("highest_grade", sa.Float(), nullable=True),
        sa.Column("lowest_grade", sa.Float(), nullable=True),
        sa.Column("grades_a", sa.Integer(), nullable=True),
        sa.Column("grades_b", sa.Integer(), nullable=True),
        sa.Column("grades_c", sa.Integer(), nullable=True),
        sa.Column("grades_d", sa.Integer(), nullable=True),
        sa.Column("grades_f", sa.Integer(), nullable=True),
        sa.Column("assignments_per_day", sa.Text(), nullable=True),
        sa.Column("grade_improvement", sa.Float(), nullable=True),
        sa.Column("completion_rate_improvement", sa.Float(), nullable=True),
        sa.Column("change_type", sa.String(64), nullable=True),
        sa.Column("previous_value", sa.Text(), nullable=True),
        sa.Column("new_value", sa.Text(), nullable=True),
        sa.Column("change_reason", sa.String(256), nullable=True),
        sa.Column("gpa_data", sa.Text(), nullable=True),
        sa.Column("calculated_at", sa.BigInteger(), nullable=False),
        sa.Column("is_complete", sa.Boolean(), nullable=True),
        sa.Column("soft_deleted_at", sa.BigInteger(), nullable=True),
        sa.Column("purge_at", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_class_metrics_id", "user_class_metrics", ["id"])
    op.create_index("ix_user_class_metrics_user_id", "user_class_metrics", ["user_id"])
    op.create_index("ix_user_class_metrics_change_type", "user_class_metrics", ["change_type"])
    op.create_index("ix_ucm_user_metric_type", "user_class_metrics", ["user_id", "metric_type"])
    op.create_index("ix_ucm_user_period", "user_class_metrics", ["user_id", "period_type"])
    op.create_index(
        "ix_ucm_period_range", "user_class_metrics", ["user_id", "period_start", "period_end"]
    )

    live_period_summary = sa.text(
        "metric_type = 'period_summary' AND soft_deleted_at IS NULL"
    )
    op.create_index(
        "uq_ucm_period_summary_window",
        "user_class_metrics",
        [
            "user_id",
            sa.text("coalesce(course_id, 0)"),
            "period_type",
            "period_start",
            "period_end",
        ],
        unique=True,
        postgresql_where=live_period_summary,
        sqlite_where=live_period_summary,
    )


def downgrade() -> None:
    op.drop_index("uq_ucm_period_summary_window", table_name="user_class_metrics")
    op.drop_index("ix_ucm_period_range", table_name="user_class_metrics")
    op.drop_index("ix_ucm_user_period", table_name="user_class_metrics")
    op.drop_index("ix_ucm_user_metric_type", table_name="user_class_metrics")
    op.drop_index("ix_user_class_metrics_change_type", table_name="user_class_metrics")
    op.drop_index("ix_user_class_metrics_user_id", table_name="user_class_metrics")
    op.drop_index("ix_user_class_metrics_id", table_name="user_class_metrics")
    op.drop_table("user_class_metrics")

    op.drop_index("ix_assignments_user_due", table_name="assignments")
    op.drop_index("ix_assignments_course_id", table_name="assignments")
    op.drop_index("ix_assignments_user_id", table_name="assignments")
    op.drop_index("ix_assignments_id", table_name="assignments")
    op.drop_table("assignments")

    op.drop_index("ix_courses_term_id", table_name="courses")
    op.drop_index("ix_courses_user_id", table_name="courses")
    op.drop_index("ix_courses_id", table_name="courses")
    op.drop_table("courses")

    op.drop_index("ix_terms_user_id", table_name="terms")
    op.drop_index("ix_terms_id", table_name="terms")
    op.drop_table("terms")

    op.drop_index("ix_users_auth_subject", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")

    sa.Enum(name="assignment_status_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="term_status_enum").drop(op.get_bind(), checkfirst=True)
