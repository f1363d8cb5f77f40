"""
GPA and term schemas.

POST /gpa/calculate          → CalculateGPARequest → GPAResultResponse
GET  /gpa/history            → list[GPASnapshotResponse]
GET  /gpa/credits/current    → SemesterCreditsResponse
POST /terms/{id}/complete    → CompleteTermRequest → TermCompletionResponse
"""
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class CalculateGPARequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: Optional[int] = None
    term_id: Optional[int] = Field(
        default=None, description="Only count courses of this term. Omit for all-time."
    )


class GPAResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transfer_gpa: float
    transfer_credits: int
    current_gpa: float = Field(description="Transfer and institution GPA blended by credits.")
    institution_gpa: float
    predicted_term_gpa: float
    total_credits_earned: int
    total_credits_attempted: int
    term_credits_earned: int
    term_points_earned: float
    calculation_method: str
    snapshot_id: int


class GPAData(BaseModel):
    transfer_gpa: Optional[float] = None
    transfer_credits: Optional[int] = None
    current_gpa: Optional[float] = None
    institution_gpa: Optional[float] = None
    predicted_term_gpa: Optional[float] = None
    total_credits_earned: Optional[int] = None
    total_credits_attempted: Optional[int] = None
    term_credits_earned: Optional[int] = None
    term_points_earned: Optional[float] = None
    calculation_method: Optional[str] = None


class GPASnapshotResponse(BaseModel):
    """A stored gpa_calculation snapshot."""
    id: int
    user_id: int
    term_id: Optional[int] = None
    metric_type: Literal["gpa_calculation"] = "gpa_calculation"
    gpa_data: GPAData
    calculated_at: int


class SemesterCreditsResponse(BaseModel):
    term_id: Optional[int] = None
    current_semester_credits: int
    total_credits_earned: int = Field(
        description="Previously earned credits plus the current term's credit hours."
    )
    previous_credits_earned: Optional[int] = None
    transfer_credits: Optional[int] = None


class CompleteTermRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    user_id: Optional[int] = None


class TermCompletionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    term_id: int
    term_credits: int
    new_total_credits_earned: int
    new_total_credits_attempted: int
    term_gpa: float
    overall_gpa: float
