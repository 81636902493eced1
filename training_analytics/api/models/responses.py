"""
API Response Models

Pydantic models for API responses.
"""

from typing import List

from pydantic import BaseModel, Field

from training_analytics.schemas import (
    AnalyticsSnapshot,
    FatiguePrediction,
    RecoveryProfile,
    SFRInsight,
)


class AnalyticsResponse(BaseModel):
    """Response for POST /api/analytics."""

    snapshot: AnalyticsSnapshot = Field(..., description="Requested analytics views")
    warnings: List[str] = Field(default_factory=list, description="Data sufficiency warnings")


class RecoveryResponse(BaseModel):
    """Response for POST /api/analytics/recovery."""

    profiles: List[RecoveryProfile] = Field(..., description="Muscle groups, least recovered first")
    overall_readiness: float = Field(..., ge=0.0, le=10.0, description="Minimum readiness across groups")


class EfficiencyResponse(BaseModel):
    """Response for POST /api/analytics/efficiency."""

    insights: List[SFRInsight] = Field(..., description="Exercises ranked by average SFR")
    count: int = Field(..., description="Number of ranked exercises")


class FatiguePredictionResponse(BaseModel):
    """Response for POST /api/analytics/predict."""

    prediction: FatiguePrediction
    fitted_sessions: int = Field(..., description="Sessions the fatigue model was fitted on")
