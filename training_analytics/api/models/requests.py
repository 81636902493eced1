"""
API Request Models

Pydantic models for API request validation.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from training_analytics.schemas import AnalyticsView, WorkoutSession


class SessionHistoryRequest(BaseModel):
    """Session history from one or both sources, plus request context."""

    user_id: Optional[str] = Field(
        None, description="User id; enables model caching when provided"
    )
    local_records: List[Dict[str, Any]] = Field(
        default_factory=list, description="Raw offline-cache records (camelCase)"
    )
    remote_records: List[Dict[str, Any]] = Field(
        default_factory=list, description="Raw remote store rows (snake_case, nested set_logs)"
    )
    sessions: List[WorkoutSession] = Field(
        default_factory=list, description="Sessions already in canonical form (treated as remote)"
    )
    as_of: Optional[datetime] = Field(
        None, description="Reference time for recovery; defaults to now"
    )

    @model_validator(mode="after")
    def require_history(self):
        """At least one history source must be present."""
        if not (self.local_records or self.remote_records or self.sessions):
            raise ValueError("Provide local_records, remote_records or sessions")
        return self


class AnalyticsRequest(SessionHistoryRequest):
    """Request model for a full or partial analytics snapshot."""

    views: Optional[List[AnalyticsView]] = Field(
        None, description="Views to compute (acwr, fitness_fatigue, hierarchical, recovery, efficiency); all when omitted"
    )


class EfficiencyRequest(SessionHistoryRequest):
    """Request model for the SFR leaderboard."""

    limit: int = Field(20, ge=1, le=100, description="Leaderboard size")


class FatiguePredictionRequest(SessionHistoryRequest):
    """Request model for next-set fatigue prediction."""

    exercise_id: str = Field(..., description="Exercise about to be performed")
    sets_completed_today: int = Field(0, ge=0, description="Sets of this exercise already done")
