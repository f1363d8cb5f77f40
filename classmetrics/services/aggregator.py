"""
Assignment Aggregator: folds the assignments due in one window into a
period summary.

Grade precedence (first match wins):
  1. points_earned / points_possible   (points_possible > 0)
  2. grade_percentage                  (precomputed)
  3. grade                             (legacy, already 0-100)
Assignments with none of the three only count towards the status totals.

Public API
----------
resolve_grade_percentage(assignment)                  -> float | None
letter_bucket(percentage)                             -> "a" .. "f"
summarize(assignments, period_type, now)              -> PeriodSummary
fetch_assignments(db, user_id, window, course_id)     -> list[Assignment]
apply_trends(db, summary, user_id, course_id, window) -> None
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timezone
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from classmetrics.models.assignment import Assignment, AssignmentStatus
from classmetrics.models.user_class_metric import UserClassMetric, MetricType
from classmetrics.services.periods import PeriodType, PeriodWindow, from_ms


WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

# (floor, bucket) - percentage must be >= floor
LETTER_CUTOFFS = [(90, "a"), (80, "b"), (70, "c"), (60, "d")]


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class PeriodSummary:
    total_assignments: int = 0
    completed_assignments: int = 0
    pending_assignments: int = 0
    overdue_assignments: int = 0

    graded_assignments: int = 0
    total_points_earned: float = 0.0
    total_points_possible: float = 0.0
    average_grade: Optional[float] = None
    highest_grade: Optional[float] = None
    lowest_grade: Optional[float] = None

    grades_a: int = 0
    grades_b: int = 0
    grades_c: int = 0
    grades_d: int = 0
    grades_f: int = 0

    assignments_per_day: dict[str, Optional[int]] = field(default_factory=dict)

    grade_improvement: Optional[float] = None
    completion_rate_improvement: Optional[float] = None

    @property
    def completion_rate(self) -> Optional[float]:
        if self.total_assignments == 0:
            return None
        return self.completed_assignments / self.total_assignments * 100


# ---------------------------------------------------------------------------
# Grade helpers
# ---------------------------------------------------------------------------

def _has_points(a: Assignment) -> bool:
    return (
        a.points_earned is not None
        and a.points_possible is not None
        and a.points_possible > 0
    )


def resolve_grade_percentage(a: Assignment) -> Optional[float]:
    if _has_points(a):
        return a.points_earned / a.points_possible * 100
    if a.grade_percentage is not None:
        return a.grade_percentage
    if a.grade is not None:
        return a.grade
    return None


def _raw_points(a: Assignment, percentage: float) -> tuple[float, float]:
    if _has_points(a):
        return a.points_earned, a.points_possible
    return percentage, 100.0


def letter_bucket(percentage: float) -> str:
    for floor, bucket in LETTER_CUTOFFS:
        if percentage >= floor:
            return bucket
    return "f"


def _empty_per_day(period_type: PeriodType) -> dict[str, Optional[int]]:
    per_day: dict[str, Optional[int]] = {d: 0 for d in WEEKDAYS[:5]}
    weekend = 0 if period_type is PeriodType.seven_day_week else None
    per_day["saturday"] = weekend
    per_day["sunday"] = weekend
    return per_day


# ---------------------------------------------------------------------------
# Core: pure fold
# ---------------------------------------------------------------------------

def summarize(
    assignments: Iterable[Assignment],
    period_type: PeriodType,
    now: int,
    tz=timezone.utc,
) -> PeriodSummary:
    """Fold assignments into counts, grade stats, buckets and the weekday tally."""
    s = PeriodSummary(assignments_per_day=_empty_per_day(PeriodType(period_type)))
    grade_sum = 0.0

    for a in assignments:
        s.total_assignments += 1

        if a.status == AssignmentStatus.done:
            s.completed_assignments += 1
        else:
            s.pending_assignments += 1
            if a.due_at < now:
                s.overdue_assignments += 1

        weekday = WEEKDAYS[from_ms(a.due_at, tz).weekday()]
        if s.assignments_per_day.get(weekday) is not None:
            s.assignments_per_day[weekday] += 1

        pct = resolve_grade_percentage(a)
        if pct is None:
            continue

        s.graded_assignments += 1
        grade_sum += pct
        earned, possible = _raw_points(a, pct)
        s.total_points_earned += earned
        s.total_points_possible += possible
        if s.highest_grade is None or pct > s.highest_grade:
            s.highest_grade = pct
        if s.lowest_grade is None or pct < s.lowest_grade:
            s.lowest_grade = pct

        bucket = f"grades_{letter_bucket(pct)}"
        setattr(s, bucket, getattr(s, bucket) + 1)

    if s.graded_assignments:
        s.average_grade = grade_sum / s.graded_assignments

    return s


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def fetch_assignments(
    db: Session,
    user_id: int,
    window: PeriodWindow,
    course_id: Optional[int] = None,
) -> list[Assignment]:
    """Live assignments of the user due inside the window, optionally for one course."""
    q = db.query(Assignment).filter(
        Assignment.user_id == user_id,
        Assignment.due_at >= window.start,
        Assignment.due_at <= window.end,
        Assignment.soft_deleted_at.is_(None),
    )
    if course_id is not None:
        q = q.filter(Assignment.course_id == course_id)
    return q.order_by(Assignment.due_at, Assignment.id).all()


def _previous_summary(
    db: Session,
    user_id: int,
    course_id: Optional[int],
    window: PeriodWindow,
) -> Optional[UserClassMetric]:
    q = db.query(UserClassMetric).filter(
        UserClassMetric.user_id == user_id,
        UserClassMetric.metric_type == MetricType.period_summary.value,
        UserClassMetric.period_type == window.period_type.value,
        UserClassMetric.period_end < window.start,
        UserClassMetric.soft_deleted_at.is_(None),
    )
    if course_id is None:
        q = q.filter(UserClassMetric.course_id.is_(None))
    else:
        q = q.filter(UserClassMetric.course_id == course_id)
    return q.order_by(UserClassMetric.period_end.desc()).first()


def apply_trends(
    db: Session,
    summary: PeriodSummary,
    user_id: int,
    course_id: Optional[int],
    window: PeriodWindow,
) -> None:
    """Fill the improvement fields from the closest earlier stored window."""
    prev = _previous_summary(db, user_id, course_id, window)
    if prev is None:
        return

    if summary.average_grade is not None and prev.average_grade is not None:
        summary.grade_improvement = summary.average_grade - prev.average_grade

    rate = summary.completion_rate
    if rate is not None and prev.total_assignments:
        prev_rate = (prev.completed_assignments or 0) / prev.total_assignments * 100
        summary.completion_rate_improvement = rate - prev_rate
