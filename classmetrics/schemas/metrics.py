"""
Period metrics request / response schemas.

POST /metrics/calculate      → CalculateMetricsRequest    → PeriodSummaryResponse
POST /metrics/calculate-all  → CalculateAllMetricsRequest → BatchMetricsResponse
GET  /metrics                → list[PeriodSummaryResponse]
GET  /metrics/summary        → SummaryStatsResponse | null
"""
from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from classmetrics.services.periods import PeriodType

WeekStartDay = Literal[
    "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"
]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class CalculateMetricsRequest(BaseModel):
    """Compute and upsert one window."""
    model_config = ConfigDict(extra="forbid")

    period_type: PeriodType = Field(examples=["5day_week"])
    user_id: Optional[int] = Field(
        default=None, description="Defaults to the caller; must be the caller if given."
    )
    course_id: Optional[int] = Field(
        default=None, description="Restrict to one course. Omit for all courses."
    )
    term_id: Optional[int] = Field(
        default=None, description="Stored on the snapshot for lookup; does not filter."
    )
    reference_date: Optional[int] = Field(
        default=None,
        description="Epoch ms inside the wanted window. Defaults to now.",
        examples=[1710460800000],
    )
    week_start_day: Optional[WeekStartDay] = Field(
        default=None, description="Anchor of 7day_week windows. Defaults to the server setting."
    )


class CalculateAllMetricsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: Optional[int] = None
    week_start_day: Optional[WeekStartDay] = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class AssignmentsPerDay(BaseModel):
    monday: int = 0
    tuesday: int = 0
    wednesday: int = 0
    thursday: int = 0
    friday: int = 0
    saturday: Optional[int] = Field(default=None, description="Only tallied for 7day_week.")
    sunday: Optional[int] = Field(default=None, description="Only tallied for 7day_week.")


class PeriodSummaryResponse(BaseModel):
    """A stored period_summary snapshot."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: Optional[int] = None
    term_id: Optional[int] = None
    metric_type: Literal["period_summary"] = "period_summary"
    period_type: str
    period_start: int = Field(description="Epoch ms, inclusive.")
    period_end: int = Field(description="Epoch ms, inclusive.")
    period_label: Optional[str] = None

    total_assignments: int
    completed_assignments: int
    pending_assignments: int
    overdue_assignments: int = Field(description="Subset of pending that is past due.")

    graded_assignments: int
    total_points_earned: float
    total_points_possible: float
    average_grade: Optional[float] = Field(
        default=None, description="Absent when nothing in the window is graded."
    )
    highest_grade: Optional[float] = None
    lowest_grade: Optional[float] = None

    grades_a: int
    grades_b: int
    grades_c: int
    grades_d: int
    grades_f: int

    assignments_per_day: AssignmentsPerDay

    grade_improvement: Optional[float] = Field(
        default=None, description="Average grade minus the previous stored window's."
    )
    completion_rate_improvement: Optional[float] = Field(
        default=None, description="Completion % minus the previous stored window's."
    )

    calculated_at: int
    is_complete: bool = Field(description="True once the window has fully elapsed.")


class BatchMetricItem(BaseModel):
    scope: Literal["overall", "course"]
    period_type: str
    course_id: Optional[int] = None
    ok: bool
    snapshot_id: Optional[int] = None
    error: Optional[str] = None


class BatchMetricsResponse(BaseModel):
    """Result of a full recompute. Inspect each item's `ok`."""
    total: int
    succeeded: int
    failed: int
    items: list[BatchMetricItem]


class GradeDistribution(BaseModel):
    grades_a: int = 0
    grades_b: int = 0
    grades_c: int = 0
    grades_d: int = 0
    grades_f: int = 0


class SummaryStatsResponse(BaseModel):
    """Running totals over every stored period summary."""
    model_config = ConfigDict(from_attributes=True)

    total_periods: int
    total_assignments: int
    total_completed_assignments: int
    total_graded_assignments: int
    overall_average_grade: Optional[float] = Field(
        default=None, description="Mean of the per-period averages."
    )
    best_period_grade: Optional[float] = None
    worst_period_grade: Optional[float] = None
    grade_distribution: GradeDistribution
    period_type_breakdown: dict[str, int]
