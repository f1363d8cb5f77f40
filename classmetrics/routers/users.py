"""
User aggregates router.

PATCH /users/metrics          - patch allow-listed aggregate fields
GET   /users/change-history   - audit trail of those fields
"""
from __future__ import annotations

import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from classmetrics.core.auth import Identity, get_identity
from classmetrics.db.base import get_db
from classmetrics.models.user_class_metric import UserClassMetric
from classmetrics.schemas.common import error_responses
from classmetrics.schemas.user_metrics import (
    ChangeLogResponse,
    UpdateUserMetricsRequest,
    UpdateUserMetricsResponse,
)
from classmetrics.services.user_metrics import (
    ChangeType,
    get_user_change_history,
    update_user_metrics,
)

router = APIRouter(prefix="/users", tags=["users"])


def _loads(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (ValueError, TypeError):
        return raw


def _entry_to_response(m: UserClassMetric) -> ChangeLogResponse:
    return ChangeLogResponse(
        id=m.id,
        user_id=m.user_id,
        change_type=m.change_type,
        previous_value=_loads(m.previous_value),
        new_value=_loads(m.new_value),
        change_reason=m.change_reason,
        calculated_at=m.calculated_at,
    )


@router.patch(
    "/metrics",
    response_model=UpdateUserMetricsResponse,
    summary="Patch user aggregate fields with an audit entry per change",
    responses=error_responses(401, 404),
)
def patch_user_metrics(
    payload: UpdateUserMetricsRequest,
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    """
    Only fields whose value actually changes are written; each one appends
    a `user_change_log` entry. GPA fields ignore moves of 0.01 or less.
    """
    patched = update_user_metrics(
        db=db,
        identity=identity,
        updates=payload.updates.model_dump(exclude_none=True),
        change_reason=payload.change_reason,
        user_id=payload.user_id,
    )
    return UpdateUserMetricsResponse(patched=patched)


@router.get(
    "/change-history",
    response_model=list[ChangeLogResponse],
    summary="Audit trail of user aggregate changes, newest first",
)
def change_history(
    user_id: Optional[int] = Query(default=None),
    change_type: Optional[ChangeType] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
    identity: Optional[Identity] = Depends(get_identity),
):
    rows = get_user_change_history(
        db=db,
        identity=identity,
        user_id=user_id,
        change_type=change_type.value if change_type else None,
        limit=limit,
    )
    return [_entry_to_response(m) for m in rows]
