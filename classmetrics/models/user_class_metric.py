"""
UserClassMetric: every snapshot classmetrics writes, tagged by metric_type.

metric_type values:
  "period_summary"   - assignment counts / grade stats for one window.
                       Upserted: one live row per
                       (user, course, period_type, period_start, period_end).
  "gpa_calculation"  - GPA breakdown; appended on every recompute (history).
  "user_change_log"  - audit entry for a user aggregate field; append-only.

JSON-shaped columns (assignments_per_day, gpa_data, previous_value,
new_value) are JSON-encoded Text.
"""
from datetime import datetime
from sqlalchemy import (
    BigInteger, Boolean, Float, Integer, String, Text, DateTime, ForeignKey, Index, func,
)
from sqlalchemy.orm import Mapped, mapped_column
import enum

from classmetrics.db.base import Base


class MetricType(str, enum.Enum):
    period_summary = "period_summary"
    gpa_calculation = "gpa_calculation"
    user_change_log = "user_change_log"


class UserClassMetric(Base):
    __tablename__ = "user_class_metrics"
    __table_args__ = (
        Index("ix_ucm_user_metric_type", "user_id", "metric_type"),
        Index("ix_ucm_user_period", "user_id", "period_type"),
        Index("ix_ucm_period_range", "user_id", "period_start", "period_end"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    course_id: Mapped[int | None] = mapped_column(
        ForeignKey("courses.id"), nullable=True,
        comment="NULL for cross-course aggregations",
    )
    term_id: Mapped[int | None] = mapped_column(ForeignKey("terms.id"), nullable=True)
    metric_type: Mapped[str] = mapped_column(String(32), nullable=False)

    # Period definition (period_summary)
    period_type: Mapped[str | None] = mapped_column(String(16), nullable=True)
    period_start: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    period_end: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    period_label: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Assignment counts
    total_assignments: Mapped[int | None] = mapped_column(Integer, nullable=True)
    completed_assignments: Mapped[int | None] = mapped_column(Integer, nullable=True)
    pending_assignments: Mapped[int | None] = mapped_column(Integer, nullable=True)
    overdue_assignments: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Grade statistics
    graded_assignments: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_points_earned: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_points_possible: Mapped[float | None] = mapped_column(Float, nullable=True)
    average_grade: Mapped[float | None] = mapped_column(Float, nullable=True)
    highest_grade: Mapped[float | None] = mapped_column(Float, nullable=True)
    lowest_grade: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Letter buckets
    grades_a: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grades_b: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grades_c: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grades_d: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grades_f: Mapped[int | None] = mapped_column(Integer, nullable=True)

    assignments_per_day: Mapped[str | None] = mapped_column(
        Text, nullable=True,
        comment="JSON object monday..sunday; weekend keys null outside 7day_week",
    )

    # Trends against the previous stored window
    grade_improvement: Mapped[float | None] = mapped_column(Float, nullable=True)
    completion_rate_improvement: Mapped[float | None] = mapped_column(Float, nullable=True)

    # Audit trail (user_change_log)
    change_type: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    previous_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    change_reason: Mapped[str | None] = mapped_column(String(256), nullable=True)

    # GPA breakdown (gpa_calculation)
    gpa_data: Mapped[str | None] = mapped_column(Text, nullable=True)

    calculated_at: Mapped[int] = mapped_column(BigInteger, nullable=False, comment="epoch ms")
    is_complete: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    soft_deleted_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    purge_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


_live_period_summary = (
    (UserClassMetric.metric_type == MetricType.period_summary.value)
    & UserClassMetric.soft_deleted_at.is_(None)
)

# Composite key of the period-summary upsert. coalesce() makes the
# cross-course rows (course_id NULL) collide like any other.
Index(
    "uq_ucm_period_summary_window",
    UserClassMetric.user_id,
    func.coalesce(UserClassMetric.course_id, 0),
    UserClassMetric.period_type,
    UserClassMetric.period_start,
    UserClassMetric.period_end,
    unique=True,
    postgresql_where=_live_period_summary,
    sqlite_where=_live_period_summary,
)
