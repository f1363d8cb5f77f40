"""
GPA Calculator and Term Completion Rollup.

GPA pipeline
------------
  1. Completed (status "done"), live assignments of the user, optionally
     narrowed to the courses of one term.
  2. Each resolved percentage → 4.0-scale points via GPA_BREAKPOINTS.
  3. Per course: simple mean of its points. Across courses: weighted by
     credit hours → predicted term GPA. Courses with no graded assignment
     are left out of both sides of the ratio.
  4. Overall GPA = credit-weighted blend of the stored transfer GPA with
     the institution GPA.
  5. A gpa_calculation snapshot is appended on every call (history).
  6. Cached GPA fields on the user move only past the change epsilon,
     each move logged to the audit trail.

Public API
----------
percentage_to_gpa(percentage)                                   -> float
calculate_weighted_gpa(transfer_gpa, transfer_credits,
                       institution_gpa, institution_credits)    -> float
calculate_user_gpa(db, identity, user_id, term_id)              -> GPAResult
complete_term(db, identity, term_id, user_id)                   -> TermCompletion
get_current_semester_credits(db, identity, user_id, term_id)    -> dict
get_gpa_history(db, identity, user_id, term_id, limit)          -> list[UserClassMetric]
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict
from typing import Optional

from sqlalchemy.orm import Session

from classmetrics.core.auth import Identity, require_term, require_user, resolve_reader
from classmetrics.core.errors import TermAlreadyCompletedError
from classmetrics.models.assignment import Assignment, AssignmentStatus
from classmetrics.models.course import Course
from classmetrics.models.term import Term, TermStatus
from classmetrics.models.user import User
from classmetrics.models.user_class_metric import UserClassMetric, MetricType
from classmetrics.services.aggregator import resolve_grade_percentage
from classmetrics.services.periods import now_ms
from classmetrics.services.user_metrics import (
    ChangeType,
    apply_user_changes,
    log_user_metric_change,
)

logger = logging.getLogger(__name__)

# (floor, points) - highest floor first; percentage must be >= floor
GPA_BREAKPOINTS = [
    (97, 4.0),
    (93, 3.7),
    (90, 3.3),
    (87, 3.0),
    (83, 2.7),
    (80, 2.3),
    (77, 2.0),
    (73, 1.7),
    (70, 1.3),
    (67, 1.0),
    (65, 0.7),
]

CALCULATION_METHOD = "assignment_based"
GPA_CHANGE_REASON = "assignment_grades_updated"


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class GPAResult:
    transfer_gpa: float
    transfer_credits: int
    current_gpa: float
    institution_gpa: float
    predicted_term_gpa: float
    total_credits_earned: int
    total_credits_attempted: int
    term_credits_earned: int
    term_points_earned: float
    calculation_method: str = CALCULATION_METHOD
    snapshot_id: Optional[int] = None


@dataclass
class TermCompletion:
    term_id: int
    term_credits: int
    new_total_credits_earned: int
    new_total_credits_attempted: int
    term_gpa: float
    overall_gpa: float


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def percentage_to_gpa(percentage: float) -> float:
    for floor, points in GPA_BREAKPOINTS:
        if percentage >= floor:
            return points
    return 0.0


def calculate_weighted_gpa(
    transfer_gpa: float = 0,
    transfer_credits: float = 0,
    institution_gpa: float = 0,
    institution_credits: float = 0,
) -> float:
    total_credits = transfer_credits + institution_credits
    if total_credits == 0:
        return 0.0
    points = transfer_gpa * transfer_credits + institution_gpa * institution_credits
    return points / total_credits


def _term_points(
    assignments: list[Assignment],
    courses: dict[int, Course],
) -> tuple[float, int]:
    """Credit-weighted grade points and the credits behind them."""
    per_course: dict[int, list[float]] = {}
    for a in assignments:
        if a.course_id not in courses:
            continue
        pct = resolve_grade_percentage(a)
        if pct is None:
            continue
        per_course.setdefault(a.course_id, []).append(percentage_to_gpa(pct))

    total_points = 0.0
    total_credits = 0
    for course_id, points in per_course.items():
        credits = courses[course_id].credit_hours
        total_points += sum(points) / len(points) * credits
        total_credits += credits
    return total_points, total_credits


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def _live_courses(db: Session, user_id: int, term_id: Optional[int] = None) -> list[Course]:
    q = db.query(Course).filter(Course.user_id == user_id, Course.soft_deleted_at.is_(None))
    if term_id is not None:
        q = q.filter(Course.term_id == term_id)
    return q.all()


def _completed_assignments(db: Session, user_id: int) -> list[Assignment]:
    return (
        db.query(Assignment)
        .filter(
            Assignment.user_id == user_id,
            Assignment.status == AssignmentStatus.done,
            Assignment.soft_deleted_at.is_(None),
        )
        .all()
    )


# ---------------------------------------------------------------------------
# Core: flush only
# ---------------------------------------------------------------------------

def _calculate_gpa(db: Session, user: User, term_id: Optional[int]) -> GPAResult:
    courses = {c.id: c for c in _live_courses(db, user.id, term_id)}
    term_points, term_credits = _term_points(_completed_assignments(db, user.id), courses)

    predicted = term_points / term_credits if term_credits > 0 else 0.0
    transfer_gpa = user.transfer_gpa or 0.0
    transfer_credits = user.transfer_credits or 0
    # Without graded credits the stored institution GPA stands.
    institution_gpa = predicted if term_credits > 0 else (user.institution_gpa or 0.0)
    overall = calculate_weighted_gpa(transfer_gpa, transfer_credits, institution_gpa, term_credits)

    result = GPAResult(
        transfer_gpa=transfer_gpa,
        transfer_credits=transfer_credits,
        current_gpa=overall,
        institution_gpa=institution_gpa,
        predicted_term_gpa=predicted,
        total_credits_earned=transfer_credits + term_credits,
        total_credits_attempted=transfer_credits + term_credits,
        term_credits_earned=term_credits,
        term_points_earned=term_points,
    )

    snapshot_data = asdict(result)
    snapshot_data.pop("snapshot_id")
    snapshot = UserClassMetric(
        user_id=user.id,
        term_id=term_id,
        metric_type=MetricType.gpa_calculation.value,
        gpa_data=json.dumps(snapshot_data),
        calculated_at=now_ms(),
    )
    db.add(snapshot)
    db.flush()
    result.snapshot_id = snapshot.id

    apply_user_changes(
        db,
        user,
        {
            "predicted_term_gpa": predicted,
            "institution_gpa": institution_gpa,
            "current_gpa": overall,
        },
        GPA_CHANGE_REASON,
    )
    return result


# ---------------------------------------------------------------------------
# Public: mutations
# ---------------------------------------------------------------------------

def calculate_user_gpa(
    db: Session,
    identity: Optional[Identity],
    user_id: Optional[int] = None,
    term_id: Optional[int] = None,
) -> GPAResult:
    """Recompute GPA, append a snapshot and refresh the cached fields. Commits."""
    user = require_user(db, identity, user_id)
    if term_id is not None:
        require_term(db, user, term_id)
    result = _calculate_gpa(db, user, term_id)
    db.commit()
    logger.info(
        "gpa for user %s (term=%s): current=%.3f institution=%.3f predicted=%.3f",
        user.id, term_id, result.current_gpa, result.institution_gpa, result.predicted_term_gpa,
    )
    return result


def complete_term(
    db: Session,
    identity: Optional[Identity],
    term_id: int,
    user_id: Optional[int] = None,
) -> TermCompletion:
    """
    Close a term: recompute its GPA, add its credit hours to the running
    totals, write the GPA onto the user, mark the term past and log it.
    A term already marked past is rejected so credits are never counted twice.
    """
    user = require_user(db, identity, user_id)
    term = require_term(db, user, term_id)
    if term.status is TermStatus.past:
        raise TermAlreadyCompletedError(term_id)

    gpa = _calculate_gpa(db, user, term_id)
    term_credits = sum(c.credit_hours or 0 for c in _live_courses(db, user.id, term_id))

    new_earned = (user.total_credits_earned or 0) + term_credits
    new_attempted = (user.total_credits_attempted or 0) + term_credits
    user.total_credits_earned = new_earned
    user.total_credits_attempted = new_attempted
    user.institution_gpa = gpa.institution_gpa
    user.current_gpa = gpa.current_gpa

    previous_status = term.status.value
    term.status = TermStatus.past
    log_user_metric_change(
        db,
        user.id,
        ChangeType.term_completed,
        previous_status,
        "completed",
        f"Completed term {term.name} with {term_credits} credits",
    )
    db.commit()
    logger.info("term %s completed for user %s: +%d credits", term_id, user.id, term_credits)

    return TermCompletion(
        term_id=term_id,
        term_credits=term_credits,
        new_total_credits_earned=new_earned,
        new_total_credits_attempted=new_attempted,
        term_gpa=gpa.institution_gpa,
        overall_gpa=gpa.current_gpa,
    )


# ---------------------------------------------------------------------------
# Public: queries
# ---------------------------------------------------------------------------

def get_current_semester_credits(
    db: Session,
    identity: Optional[Identity],
    user_id: Optional[int] = None,
    term_id: Optional[int] = None,
) -> dict:
    """Credit hours of the current (or given) term on top of earned credits."""
    user = resolve_reader(db, identity, user_id)
    if user is None:
        return {"current_semester_credits": 0, "total_credits_earned": 0}

    previous = user.total_credits_earned or 0
    if term_id is None:
        current = (
            db.query(Term)
            .filter(
                Term.user_id == user.id,
                Term.status == TermStatus.current,
                Term.soft_deleted_at.is_(None),
            )
            .order_by(Term.id)
            .first()
        )
        term_id = current.id if current is not None else None

    if term_id is None:
        return {"current_semester_credits": 0, "total_credits_earned": previous}

    credits = sum(c.credit_hours or 0 for c in _live_courses(db, user.id, term_id))
    return {
        "term_id": term_id,
        "current_semester_credits": credits,
        "total_credits_earned": previous + credits,
        "previous_credits_earned": previous,
        "transfer_credits": user.transfer_credits or 0,
    }


def get_gpa_history(
    db: Session,
    identity: Optional[Identity],
    user_id: Optional[int] = None,
    term_id: Optional[int] = None,
    limit: Optional[int] = None,
) -> list[UserClassMetric]:
    """gpa_calculation snapshots, newest first."""
    user = resolve_reader(db, identity, user_id)
    if user is None:
        return []

    q = db.query(UserClassMetric).filter(
        UserClassMetric.user_id == user.id,
        UserClassMetric.metric_type == MetricType.gpa_calculation.value,
        UserClassMetric.soft_deleted_at.is_(None),
    )
    if term_id is not None:
        q = q.filter(UserClassMetric.term_id == term_id)
    q = q.order_by(UserClassMetric.calculated_at.desc(), UserClassMetric.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()
