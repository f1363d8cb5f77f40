"""
Metrics router: period summaries.

POST /metrics/calculate       - compute + upsert one window
POST /metrics/calculate-all   - every period type × (overall + each course)
GET  /metrics                 - stored snapshots of one period type
GET  /metrics/summary         - running totals over every stored snapshot
"""
from __future__ import annotations

import json
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from classmetrics.core.auth import Identity, get_identity
from classmetrics.db.base import get_db
from classmetrics.models.user_class_metric import UserClassMetric
from classmetrics.schemas.common import error_responses
from classmetrics.schemas.metrics import (
    AssignmentsPerDay,
    BatchMetricItem,
    BatchMetricsResponse,
    CalculateAllMetricsRequest,
    CalculateMetricsRequest,
    GradeDistribution,
    PeriodSummaryResponse,
    SummaryStatsResponse,
)
from classmetrics.services.metrics_service import (
    SummaryStats,
    calculate_all_metrics,
    calculate_metrics,
    get_metrics,
    get_summary_stats,
)
from classmetrics.services.periods import PeriodType

router = APIRouter(prefix="/metrics", tags=["metrics"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _parse_per_day(raw: Optional[str]) -> AssignmentsPerDay:
    if not raw:
        return AssignmentsPerDay()
    try:
        return AssignmentsPerDay(**json.loads(raw))
    except (ValueError, TypeError):
        return AssignmentsPerDay()


def _snapshot_to_response(m: UserClassMetric) -> PeriodSummaryResponse:
    return PeriodSummaryResponse(
        id=m.id,
        user_id=m.user_id,
        course_id=m.course_id,
        term_id=m.term_id,
        period_type=m.period_type,
        period_start=m.period_start,
        period_end=m.period_end,
        period_label=m.period_label,
        total_assignments=m.total_assignments or 0,
        completed_assignments=m.completed_assignments or 0,
        pending_assignments=m.pending_assignments or 0,
        overdue_assignments=m.overdue_assignments or 0,
        graded_assignments=m.graded_assignments or 0,
        total_points_earned=m.total_points_earned or 0.0,
        total_points_possible=m.total_points_possible or 0.0,
        average_grade=m.average_grade,
        highest_grade=m.highest_grade,
        lowest_grade=m.lowest_grade,
        grades_a=m.grades_a or 0,
        grades_b=m.grades_b or 0,
        grades_c=m.grades_c or 0,
        grades_d=m.grades_d or 0,
        grades_f=m.grades_f or 0,
        assignments_per_day=_parse_per_day(m.assignments_per_day),
        grade_improvement=m.grade_improvement,
        completion_rate_improvement=m.completion_rate_improvement,
        calculated_at=m.calculated_at,
        is_complete=bool(m.is_complete),
    )


def _stats_to_response(s: SummaryStats) -> SummaryStatsResponse:
    return SummaryStatsResponse(
        total_periods=s.total_periods,
        total_assignments=s.total_assignments,
        total_completed_assignments=s.total_completed_assignments,
        total_graded_assignments=s.total_graded_assignments,
        overall_average_grade=s.overall_average_grade,
        best_period_grade=s.best_period_grade,
        worst_period_grade=s.worst_period_grade,
        grade_distribution=GradeDistribution(**s.grade_distribution),
        period_type_breakdown=s.period_type_breakdown,
    )


# ---------------------------------------------------------------------------
# POST /metrics/calculate
# ---------------------------------------------------------------------------

@router.post(
    "/calculate",
    response_model=PeriodSummaryResponse,
    summary="Compute and store metrics for one period window",
    responses=error_responses(401, 404),
)
def calculate(
    payload: CalculateMetricsRequest,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    """
    Resolve the window of `period_type` that contains `reference_date`,
    fold the assignments due inside it and upsert the `period_summary`.

    Calling this repeatedly for the same window overwrites the same row.
    """
    row = calculate_metrics(
        db=db,
        identity=identity,
        period_type=payload.period_type,
        user_id=payload.user_id,
        course_id=payload.course_id,
        term_id=payload.term_id,
        reference_date=payload.reference_date,
        week_start_day=payload.week_start_day,
    )
    return _snapshot_to_response(row)


# ---------------------------------------------------------------------------
# POST /metrics/calculate-all
# ---------------------------------------------------------------------------

@router.post(
    "/calculate-all",
    response_model=BatchMetricsResponse,
    summary="Recompute every period type, overall and per course",
    responses=error_responses(401, 404),
)
def calculate_all(
    payload: Optional[CalculateAllMetricsRequest] = None,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    """
    Recompute all 7 period types once across all courses and once per live
    course. Each window is independent: a failing one is reported with
    `ok=false` and the others are still stored.
    """
    payload = payload or CalculateAllMetricsRequest()
    results = calculate_all_metrics(
        db=db,
        identity=identity,
        user_id=payload.user_id,
        week_start_day=payload.week_start_day,
    )
    items = [
        BatchMetricItem(
            scope=r.scope,
            period_type=r.period_type,
            course_id=r.course_id,
            ok=r.ok,
            snapshot_id=r.snapshot_id,
            error=r.error,
        )
        for r in results
    ]
    succeeded = sum(1 for i in items if i.ok)
    return BatchMetricsResponse(
        total=len(items),
        succeeded=succeeded,
        failed=len(items) - succeeded,
        items=items,
    )


# ---------------------------------------------------------------------------
# GET /metrics
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[PeriodSummaryResponse],
    summary="Stored period summaries, most recent first",
)
def list_metrics(
    period_type: PeriodType = Query(description="Period type to list.", examples=["monthly"]),
    course_id: Optional[int] = Query(default=None),
    term_id: Optional[int] = Query(default=None),
    period_start: Optional[int] = Query(
        default=None, description="Epoch ms; only windows starting at or after it."
    ),
    period_end: Optional[int] = Query(
        default=None, description="Epoch ms; only windows ending at or before it."
    ),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    """`period_start` and `period_end` only filter when both are given."""
    rows = get_metrics(
        db=db,
        identity=identity,
        period_type=period_type,
        course_id=course_id,
        term_id=term_id,
        period_start=period_start,
        period_end=period_end,
        limit=limit,
    )
    return [_snapshot_to_response(m) for m in rows]


# ---------------------------------------------------------------------------
# GET /metrics/summary
# ---------------------------------------------------------------------------

@router.get(
    "/summary",
    response_model=Optional[SummaryStatsResponse],
    summary="Totals and grade distribution across stored summaries",
)
def summary_stats(
    course_id: Optional[int] = Query(default=None),
    term_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    """Returns `null` when no period summary has been stored yet."""
    stats = get_summary_stats(db=db, identity=identity, course_id=course_id, term_id=term_id)
    if stats is None:
        return None
    return _stats_to_response(stats)
