"""
User aggregate schemas.

PATCH /users/metrics         → UpdateUserMetricsRequest → UpdateUserMetricsResponse
GET   /users/change-history  → list[ChangeLogResponse]
"""
from __future__ import annotations

from typing import Any, Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Count = Annotated[int, Field(ge=0)]
GPA = Annotated[float, Field(ge=0, le=5)]


class UserMetricsUpdate(BaseModel):
    """The only user fields a caller may patch. Unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid")

    total_assignments: Optional[Count] = None
    total_classes_enrolled: Optional[Count] = None
    total_submissions: Optional[Count] = None
    total_terms_created: Optional[Count] = None
    transfer_gpa: Optional[GPA] = None
    transfer_credits: Optional[Count] = None
    current_gpa: Optional[GPA] = None
    institution_gpa: Optional[GPA] = None
    total_credits_earned: Optional[Count] = None
    total_credits_attempted: Optional[Count] = None


class UpdateUserMetricsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: Optional[int] = None
    updates: UserMetricsUpdate
    change_reason: Optional[str] = Field(
        default=None,
        max_length=256,
        description='Stored on each audit entry. Defaults to "manual_update".',
        examples=["transcript_imported"],
    )


class UpdateUserMetricsResponse(BaseModel):
    patched: dict[str, Any] = Field(description="Fields that actually changed.")


class ChangeLogResponse(BaseModel):
    """One append-only audit entry."""
    id: int
    user_id: int
    metric_type: Literal["user_change_log"] = "user_change_log"
    change_type: str
    previous_value: Any = None
    new_value: Any = None
    change_reason: Optional[str] = None
    calculated_at: int
