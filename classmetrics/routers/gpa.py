"""
GPA router.

POST /gpa/calculate           - recompute GPA, append a snapshot
GET  /gpa/history             - stored gpa_calculation snapshots
GET  /gpa/credits/current     - credit hours of the current term
POST /terms/{term_id}/complete - close a term and roll its credits up
"""
from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from classmetrics.core.auth import Identity, get_identity
from classmetrics.db.base import get_db
from classmetrics.models.user_class_metric import UserClassMetric
from classmetrics.schemas.common import error_responses
from classmetrics.schemas.gpa import (
    CalculateGPARequest,
    CompleteTermRequest,
    GPAData,
    GPAResultResponse,
    GPASnapshotResponse,
    SemesterCreditsResponse,
    TermCompletionResponse,
)
from classmetrics.services.gpa_service import (
    calculate_user_gpa,
    complete_term,
    get_current_semester_credits,
    get_gpa_history,
)

router = APIRouter(prefix="/gpa", tags=["gpa"])
terms_router = APIRouter(prefix="/terms", tags=["terms"])


# ---------------------------------------------------------------------------
# Serialization helper
# ---------------------------------------------------------------------------

def _parse_gpa_data(raw: Optional[str]) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except (ValueError, TypeError):
        return {}


def _snapshot_to_response(m: UserClassMetric) -> GPASnapshotResponse:
    return GPASnapshotResponse(
        id=m.id,
        user_id=m.user_id,
        term_id=m.term_id,
        gpa_data=GPAData(**_parse_gpa_data(m.gpa_data)),
        calculated_at=m.calculated_at,
    )


# ---------------------------------------------------------------------------
# POST /gpa/calculate
# ---------------------------------------------------------------------------

@router.post(
    "/calculate",
    response_model=GPAResultResponse,
    summary="Recompute the user's GPA from graded assignments",
    responses=error_responses(401, 404),
)
def calculate_gpa(
    payload: Optional[CalculateGPARequest] = None,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    """
    Convert every completed, graded assignment to 4.0-scale points, average
    per course, weight by credit hours and blend with transfer credits.

    Every call stores a new `gpa_calculation` snapshot. The cached GPA
    fields on the user only change when they move by more than 0.01.
    """
    payload = payload or CalculateGPARequest()
    result = calculate_user_gpa(
        db=db, identity=identity, user_id=payload.user_id, term_id=payload.term_id
    )
    return GPAResultResponse(**vars(result))


# ---------------------------------------------------------------------------
# GET /gpa/history
# ---------------------------------------------------------------------------

@router.get(
    "/history",
    response_model=list[GPASnapshotResponse],
    summary="GPA calculation history, newest first",
)
def gpa_history(
    user_id: Optional[int] = Query(default=None),
    term_id: Optional[int] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    rows = get_gpa_history(
        db=db, identity=identity, user_id=user_id, term_id=term_id, limit=limit
    )
    return [_snapshot_to_response(m) for m in rows]


# ---------------------------------------------------------------------------
# GET /gpa/credits/current
# ---------------------------------------------------------------------------

@router.get(
    "/credits/current",
    response_model=SemesterCreditsResponse,
    summary="Credit hours of the in-progress term",
)
def current_semester_credits(
    user_id: Optional[int] = Query(default=None),
    term_id: Optional[int] = Query(
        default=None, description='Defaults to the user\'s term with status "current".'
    ),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    return get_current_semester_credits(
        db=db, identity=identity, user_id=user_id, term_id=term_id
    )


# ---------------------------------------------------------------------------
# POST /terms/{term_id}/complete
# ---------------------------------------------------------------------------

@terms_router.post(
    "/{term_id}/complete",
    response_model=TermCompletionResponse,
    summary="Complete a term and add its credits to the running totals",
    responses=error_responses(401, 404, 409),
)
def complete(
    term_id: int = Path(description="Term to close."),
    payload: Optional[CompleteTermRequest] = None,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    """
    - Recompute the GPA scoped to this term.
    - Add the term's credit hours to `total_credits_earned` / `total_credits_attempted`.
    - Mark the term `past` and append one `term_completed` audit entry.

    Raises **409** if the term is already `past`.
    """
    payload = payload or CompleteTermRequest()
    result = complete_term(db=db, identity=identity, term_id=term_id, user_id=payload.user_id)
    return TermCompletionResponse(**vars(result))
