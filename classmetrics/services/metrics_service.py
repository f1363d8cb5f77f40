"""
Period metrics: compute, upsert and read `period_summary` snapshots.

Upsert key: (user, course, period_type, period_start, period_end), backed by
the unique index uq_ucm_period_summary_window. Recomputing a window always
overwrites the live row in place, so N calls with unchanged assignments
leave exactly one row holding the Nth result.

Public API
----------
calculate_metrics(db, identity, period_type, ...)   -> UserClassMetric
get_metrics(db, identity, period_type, ...)         -> list[UserClassMetric]
calculate_all_metrics(db, identity, ...)            -> list[BatchMetricResult]
get_summary_stats(db, identity, course_id, term_id) -> SummaryStats | None

Internal
--------
_calculate_one(db, user_id, ...)  -> UserClassMetric  (flush only, no commit)
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from sqlalchemy.orm import Session

from classmetrics.core.auth import Identity, require_term, require_user, resolve_reader
from classmetrics.core.config import settings
from classmetrics.core.errors import CourseNotFoundError
from classmetrics.models.course import Course
from classmetrics.models.user_class_metric import UserClassMetric, MetricType
from classmetrics.services.aggregator import (
    PeriodSummary,
    apply_trends,
    fetch_assignments,
    summarize,
)
from classmetrics.services.periods import (
    PeriodType,
    PeriodWindow,
    local_zone,
    now_ms,
    resolve_period,
)

logger = logging.getLogger(__name__)

# Fields copied verbatim from a PeriodSummary onto the snapshot row
_SUMMARY_FIELDS = (
    "total_assignments",
    "completed_assignments",
    "pending_assignments",
    "overdue_assignments",
    "graded_assignments",
    "total_points_earned",
    "total_points_possible",
    "average_grade",
    "highest_grade",
    "lowest_grade",
    "grades_a",
    "grades_b",
    "grades_c",
    "grades_d",
    "grades_f",
    "grade_improvement",
    "completion_rate_improvement",
)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class BatchMetricResult:
    """Outcome of one (course, period type) iteration of a full recompute."""
    scope: str                      # "overall" | "course"
    period_type: str
    course_id: Optional[int] = None
    ok: bool = True
    snapshot_id: Optional[int] = None
    error: Optional[str] = None


@dataclass
class SummaryStats:
    total_periods: int = 0
    total_assignments: int = 0
    total_completed_assignments: int = 0
    total_graded_assignments: int = 0
    overall_average_grade: Optional[float] = None
    best_period_grade: Optional[float] = None
    worst_period_grade: Optional[float] = None
    grade_distribution: dict[str, int] = field(
        default_factory=lambda: {"grades_a": 0, "grades_b": 0, "grades_c": 0, "grades_d": 0, "grades_f": 0}
    )
    period_type_breakdown: dict[str, int] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Upsert
# ---------------------------------------------------------------------------

def _find_period_summary(
    db: Session,
    user_id: int,
    course_id: Optional[int],
    window: PeriodWindow,
) -> Optional[UserClassMetric]:
    q = db.query(UserClassMetric).filter(
        UserClassMetric.user_id == user_id,
        UserClassMetric.metric_type == MetricType.period_summary.value,
        UserClassMetric.period_type == window.period_type.value,
        UserClassMetric.period_start == window.start,
        UserClassMetric.period_end == window.end,
        UserClassMetric.soft_deleted_at.is_(None),
    )
    if course_id is None:
        q = q.filter(UserClassMetric.course_id.is_(None))
    else:
        q = q.filter(UserClassMetric.course_id == course_id)
    return q.first()


def upsert_period_summary(
    db: Session,
    user_id: int,
    course_id: Optional[int],
    term_id: Optional[int],
    window: PeriodWindow,
    summary: PeriodSummary,
    now: int,
) -> UserClassMetric:
    """Overwrite the live snapshot for this window, or insert one. Flush only."""
    row = _find_period_summary(db, user_id, course_id, window)
    if row is None:
        row = UserClassMetric(
            user_id=user_id,
            course_id=course_id,
            metric_type=MetricType.period_summary.value,
            period_type=window.period_type.value,
            period_start=window.start,
            period_end=window.end,
        )
        db.add(row)
        action = "inserted"
    else:
        action = "updated"

    row.term_id = term_id
    row.period_label = window.label
    for name in _SUMMARY_FIELDS:
        setattr(row, name, getattr(summary, name))
    row.assignments_per_day = json.dumps(summary.assignments_per_day)
    row.calculated_at = now
    row.is_complete = window.end < now
    db.flush()

    logger.info(
        "period_summary %s: user=%s course=%s %s [%s, %s] id=%s",
        action, user_id, course_id, window.period_type.value, window.start, window.end, row.id,
    )
    return row


# ---------------------------------------------------------------------------
# Core: flush only (used by both single and batch paths)
# ---------------------------------------------------------------------------

def _calculate_one(
    db: Session,
    user_id: int,
    period_type: Union[PeriodType, str],
    course_id: Optional[int],
    term_id: Optional[int],
    reference: Optional[int],
    week_start_day: str,
    now: int,
) -> UserClassMetric:
    zone = local_zone()
    window = resolve_period(
        period_type,
        reference if reference is not None else now,
        week_start_day,
        zone,
    )
    assignments = fetch_assignments(db, user_id, window, course_id)
    summary = summarize(assignments, window.period_type, now, zone)
    apply_trends(db, summary, user_id, course_id, window)
    return upsert_period_summary(db, user_id, course_id, term_id, window, summary, now)


def _owned_course(db: Session, user_id: int, course_id: int) -> Course:
    course = (
        db.query(Course)
        .filter(
            Course.id == course_id,
            Course.user_id == user_id,
            Course.soft_deleted_at.is_(None),
        )
        .first()
    )
    if course is None:
        raise CourseNotFoundError(course_id)
    return course


# ---------------------------------------------------------------------------
# Public: single window
# ---------------------------------------------------------------------------

def calculate_metrics(
    db: Session,
    identity: Optional[Identity],
    period_type: Union[PeriodType, str],
    user_id: Optional[int] = None,
    course_id: Optional[int] = None,
    term_id: Optional[int] = None,
    reference_date: Optional[int] = None,
    week_start_day: Optional[str] = None,
    now: Optional[int] = None,
) -> UserClassMetric:
    """Compute one window and upsert its snapshot. Commits."""
    user = require_user(db, identity, user_id)
    if course_id is not None:
        _owned_course(db, user.id, course_id)
    if term_id is not None:
        require_term(db, user, term_id)

    row = _calculate_one(
        db,
        user.id,
        period_type,
        course_id,
        term_id,
        reference_date,
        week_start_day or settings.DEFAULT_WEEK_START_DAY,
        now if now is not None else now_ms(),
    )
    db.commit()
    db.refresh(row)
    return row


# ---------------------------------------------------------------------------
# Public: batch
# ---------------------------------------------------------------------------

def calculate_all_metrics(
    db: Session,
    identity: Optional[Identity],
    user_id: Optional[int] = None,
    week_start_day: Optional[str] = None,
    now: Optional[int] = None,
) -> list[BatchMetricResult]:
    """
    Recompute every period type overall and for each live course.
    One savepoint per iteration: a failure is logged and skipped, the
    rest of the batch still commits.
    """
    user = require_user(db, identity, user_id)
    now = now if now is not None else now_ms()
    week_start_day = week_start_day or settings.DEFAULT_WEEK_START_DAY

    courses = (
        db.query(Course)
        .filter(Course.user_id == user.id, Course.soft_deleted_at.is_(None))
        .order_by(Course.id)
        .all()
    )
    jobs: list[tuple[Optional[Course], PeriodType]] = [(None, p) for p in PeriodType]
    jobs += [(c, p) for c in courses for p in PeriodType]

    results: list[BatchMetricResult] = []
    for course, ptype in jobs:
        result = BatchMetricResult(
            scope="overall" if course is None else "course",
            period_type=ptype.value,
            course_id=course.id if course is not None else None,
        )
        savepoint = db.begin_nested()
        try:
            row = _calculate_one(
                db,
                user.id,
                ptype,
                result.course_id,
                course.term_id if course is not None else None,
                now,
                week_start_day,
                now,
            )
            savepoint.commit()
            result.snapshot_id = row.id
        except Exception as exc:
            savepoint.rollback()
            logger.exception(
                "recompute failed: user=%s course=%s period=%s",
                user.id, result.course_id, ptype.value,
            )
            result.ok = False
            result.error = str(exc)
        results.append(result)

    db.commit()
    failed = sum(1 for r in results if not r.ok)
    logger.info("recomputed %d windows for user %s (%d failed)", len(results), user.id, failed)
    return results


# ---------------------------------------------------------------------------
# Public: queries
# ---------------------------------------------------------------------------

def _live_summaries(db: Session, user_id: int):
    return db.query(UserClassMetric).filter(
        UserClassMetric.user_id == user_id,
        UserClassMetric.metric_type == MetricType.period_summary.value,
        UserClassMetric.soft_deleted_at.is_(None),
    )


def get_metrics(
    db: Session,
    identity: Optional[Identity],
    period_type: Union[PeriodType, str],
    course_id: Optional[int] = None,
    term_id: Optional[int] = None,
    period_start: Optional[int] = None,
    period_end: Optional[int] = None,
    limit: Optional[int] = None,
) -> list[UserClassMetric]:
    """Stored snapshots of one period type, most recent window first."""
    user = resolve_reader(db, identity)
    if user is None:
        return []

    q = _live_summaries(db, user.id).filter(
        UserClassMetric.period_type == PeriodType(period_type).value
    )
    if course_id is not None:
        q = q.filter(UserClassMetric.course_id == course_id)
    if term_id is not None:
        q = q.filter(UserClassMetric.term_id == term_id)
    if period_start is not None and period_end is not None:
        q = q.filter(
            UserClassMetric.period_start >= period_start,
            UserClassMetric.period_end <= period_end,
        )
    q = q.order_by(UserClassMetric.period_start.desc(), UserClassMetric.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


def get_summary_stats(
    db: Session,
    identity: Optional[Identity],
    course_id: Optional[int] = None,
    term_id: Optional[int] = None,
) -> Optional[SummaryStats]:
    """Roll every stored period summary into running totals. None if there are none."""
    user = resolve_reader(db, identity)
    if user is None:
        return None

    q = _live_summaries(db, user.id)
    if course_id is not None:
        q = q.filter(UserClassMetric.course_id == course_id)
    if term_id is not None:
        q = q.filter(UserClassMetric.term_id == term_id)
    rows = q.all()
    if not rows:
        return None

    stats = SummaryStats(total_periods=len(rows))
    averages: list[float] = []
    for m in rows:
        stats.total_assignments += m.total_assignments or 0
        stats.total_completed_assignments += m.completed_assignments or 0
        stats.total_graded_assignments += m.graded_assignments or 0
        for bucket in stats.grade_distribution:
            stats.grade_distribution[bucket] += getattr(m, bucket) or 0
        if m.period_type:
            stats.period_type_breakdown[m.period_type] = (
                stats.period_type_breakdown.get(m.period_type, 0) + 1
            )
        if m.average_grade is not None:
            averages.append(m.average_grade)

    if averages:
        stats.overall_average_grade = sum(averages) / len(averages)
        stats.best_period_grade = max(averages)
        stats.worst_period_grade = min(averages)
    return stats
