"""
User aggregate fields and their audit trail.

Every change to a tracked field on `users` is mirrored by one append-only
`user_change_log` row carrying the old value, the new value and a reason.

GPA fields move only when |new - old| > settings.GPA_CHANGE_EPSILON so that
floating-point jitter never produces a write or an audit entry. Integer
fields move on any difference.

Public API
----------
log_user_metric_change(db, user_id, change_type, old, new, reason) -> UserClassMetric
gpa_changed(old, new)                                              -> bool
update_user_metrics(db, identity, updates, change_reason, user_id) -> dict
apply_user_changes(db, user, changes, change_reason)                -> dict
get_user_change_history(db, identity, user_id, change_type, limit) -> list[UserClassMetric]
"""
from __future__ import annotations

import enum
import json
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from classmetrics.core.auth import Identity, require_user, resolve_reader
from classmetrics.core.config import settings
from classmetrics.core.errors import FieldNotPatchableError
from classmetrics.models.user import User
from classmetrics.models.user_class_metric import UserClassMetric, MetricType
from classmetrics.services.periods import now_ms

logger = logging.getLogger(__name__)


class ChangeType(str, enum.Enum):
    total_assignments = "total_assignments"
    total_classes_enrolled = "total_classes_enrolled"
    total_submissions = "total_submissions"
    total_terms_created = "total_terms_created"
    transfer_gpa = "transfer_gpa"
    transfer_credits = "transfer_credits"
    current_gpa = "current_gpa"
    institution_gpa = "institution_gpa"
    predicted_term_gpa = "predicted_term_gpa"
    total_credits_earned = "total_credits_earned"
    total_credits_attempted = "total_credits_attempted"
    term_completed = "term_completed"


# Tracked user column → change type.
FIELD_CHANGE_TYPES: dict[str, ChangeType] = {
    "total_assignments": ChangeType.total_assignments,
    "total_classes_enrolled": ChangeType.total_classes_enrolled,
    "total_submissions": ChangeType.total_submissions,
    "total_terms_created": ChangeType.total_terms_created,
    "transfer_gpa": ChangeType.transfer_gpa,
    "transfer_credits": ChangeType.transfer_credits,
    "current_gpa": ChangeType.current_gpa,
    "institution_gpa": ChangeType.institution_gpa,
    "predicted_term_gpa": ChangeType.predicted_term_gpa,
    "total_credits_earned": ChangeType.total_credits_earned,
    "total_credits_attempted": ChangeType.total_credits_attempted,
}

# Fields callers may patch directly; predicted_term_gpa is derived only.
PATCHABLE_FIELDS = frozenset(FIELD_CHANGE_TYPES) - {"predicted_term_gpa"}

GPA_FIELDS = frozenset({"transfer_gpa", "current_gpa", "institution_gpa", "predicted_term_gpa"})

DEFAULT_CHANGE_REASON = "manual_update"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def gpa_changed(old: Optional[float], new: float) -> bool:
    return abs((old or 0) - new) > settings.GPA_CHANGE_EPSILON


def _field_changed(name: str, old: Any, new: Any) -> bool:
    if name in GPA_FIELDS:
        return gpa_changed(old, new)
    return old != new


def log_user_metric_change(
    db: Session,
    user_id: int,
    change_type: ChangeType,
    previous_value: Any,
    new_value: Any,
    change_reason: str,
) -> UserClassMetric:
    """Append one audit entry. Flushes only; the caller commits."""
    row = UserClassMetric(
        user_id=user_id,
        metric_type=MetricType.user_change_log.value,
        change_type=ChangeType(change_type).value,
        previous_value=json.dumps(previous_value),
        new_value=json.dumps(new_value),
        change_reason=change_reason,
        calculated_at=now_ms(),
    )
    db.add(row)
    db.flush()
    return row


def apply_user_changes(
    db: Session,
    user: User,
    changes: dict[str, Any],
    change_reason: str,
) -> dict[str, Any]:
    """
    Write every field of `changes` that actually moved and log each one.
    Returns the fields that were written. Does not commit.
    """
    patched: dict[str, Any] = {}
    for name, new_value in changes.items():
        if new_value is None:
            continue
        old_value = getattr(user, name)
        if not _field_changed(name, old_value, new_value):
            continue
        setattr(user, name, new_value)
        patched[name] = new_value
        log_user_metric_change(
            db, user.id, FIELD_CHANGE_TYPES[name], old_value, new_value, change_reason
        )
    if patched:
        logger.info("user %s: patched %s (%s)", user.id, sorted(patched), change_reason)
    return patched


# ---------------------------------------------------------------------------
# Public: mutation
# ---------------------------------------------------------------------------

def update_user_metrics(
    db: Session,
    identity: Optional[Identity],
    updates: dict[str, Any],
    change_reason: Optional[str] = None,
    user_id: Optional[int] = None,
) -> dict[str, Any]:
    """Patch the allow-listed aggregate fields; returns only what changed."""
    unknown = set(updates) - PATCHABLE_FIELDS
    if unknown:
        raise FieldNotPatchableError(sorted(unknown))

    user = require_user(db, identity, user_id)
    patched = apply_user_changes(
        db,
        user,
        updates,
        change_reason or DEFAULT_CHANGE_REASON,
    )
    db.commit()
    return patched


# ---------------------------------------------------------------------------
# Public: query
# ---------------------------------------------------------------------------

def get_user_change_history(
    db: Session,
    identity: Optional[Identity],
    user_id: Optional[int] = None,
    change_type: Optional[str] = None,
    limit: Optional[int] = None,
) -> list[UserClassMetric]:
    """Audit entries for the user, newest first."""
    user = resolve_reader(db, identity, user_id)
    if user is None:
        return []

    q = db.query(UserClassMetric).filter(
        UserClassMetric.user_id == user.id,
        UserClassMetric.metric_type == MetricType.user_change_log.value,
        UserClassMetric.soft_deleted_at.is_(None),
    )
    if change_type:
        q = q.filter(UserClassMetric.change_type == change_type)
    q = q.order_by(UserClassMetric.calculated_at.desc(), UserClassMetric.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()
