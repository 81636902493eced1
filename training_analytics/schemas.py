"""
Pydantic models for the training analytics engine.

This module defines the canonical data structures for:
- Session input: WorkoutSession and SetRecord, the single shape every source
  adapter maps into
- Load analytics: TrainingLoadSample and LoadMetrics (ACWR, monotony, strain)
- Fatigue modelling: FitnessFatigueState and HierarchicalFatigueModel
- Derived insights: RecoveryProfile, SFRInsight, SmartInsight
- The AnalyticsSnapshot aggregate returned to callers
"""

from datetime import date as CalendarDate, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert aware datetimes to naive UTC so all timestamps compare cleanly."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utc_now() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ============================================================================
# Enumerations
# ============================================================================

class SetType(str, Enum):
    """How a set was performed. Warmups never count toward load."""
    STRAIGHT = "straight"
    WARMUP = "warmup"
    DROP = "drop"
    BACKOFF = "backoff"
    AMRAP = "amrap"
    CLUSTER = "cluster"


class LoadStatus(str, Enum):
    """ACWR band."""
    LOW = "low"
    MAINTENANCE = "maintenance"
    OPTIMAL = "optimal"
    BUILDING = "building"
    OVERREACHING = "overreaching"
    DANGER = "danger"


class Readiness(str, Enum):
    """Fitness-fatigue readiness bucket on the 0-100 performance scale."""
    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    POOR = "poor"


class RecoveryStatus(str, Enum):
    """Muscle-group recovery tier from the 0-10 readiness score."""
    FRESH = "fresh"
    RECOVERING = "recovering"
    FATIGUED = "fatigued"


class SFRInterpretation(str, Enum):
    """Stimulus-to-fatigue efficiency band."""
    EXCELLENT = "excellent"
    GOOD = "good"
    MODERATE = "moderate"
    POOR = "poor"
    EXCESSIVE = "excessive"


class InsightType(str, Enum):
    """Tone of a coaching insight."""
    GOOD = "good"
    WARNING = "warning"
    DANGER = "danger"
    INFO = "info"


class AnalyticsView(str, Enum):
    """Independently computable parts of an AnalyticsSnapshot."""
    ACWR = "acwr"
    FITNESS_FATIGUE = "fitness_fatigue"
    HIERARCHICAL = "hierarchical"
    RECOVERY = "recovery"
    EFFICIENCY = "efficiency"


# ============================================================================
# Session Input
# ============================================================================

class SetRecord(BaseModel):
    """A single logged set, in the canonical weight unit."""

    exercise_id: str = Field(..., description="Exercise identifier (catalog id or slug)")
    exercise_name: Optional[str] = Field(None, description="Cached display name")
    actual_weight: Optional[float] = Field(None, description="Weight lifted (may be malformed)")
    actual_reps: Optional[float] = Field(None, description="Reps completed (may be malformed)")
    actual_rpe: Optional[float] = Field(None, description="Logged RPE (1-10)")
    prescribed_rpe: Optional[float] = Field(None, description="Target RPE from the program")
    completed: bool = Field(True, description="False when the set was skipped")
    set_type: SetType = Field(SetType.STRAIGHT, description="Straight, warmup, drop, ...")
    reached_failure: bool = Field(False, description="Whether the set ended at muscular failure")


class WorkoutSession(BaseModel):
    """One training session as seen by the engine."""

    id: str = Field(..., description="Session id; may carry a source-specific prefix")
    date: Optional[CalendarDate] = Field(None, description="Calendar date of the session")
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    total_volume_load: Optional[float] = Field(
        None, description="Pre-computed volume, used only when no set is valid"
    )
    average_rpe: Optional[float] = None
    session_rpe: Optional[float] = None
    sets: List[SetRecord] = Field(default_factory=list)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_timezone(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Store timestamps as naive UTC."""
        return as_naive_utc(value)


class TrainingLoadSample(BaseModel):
    """Volume load of one session at its timestamp."""

    date: datetime
    load: float = Field(..., ge=0.0)


class ExerciseHistory(BaseModel):
    """Valid working sets of one exercise within one session."""

    exercise_id: str
    sets: List[SetRecord] = Field(default_factory=list)


class FatigueHistoryEntry(BaseModel):
    """One session reshaped for the hierarchical estimator."""

    date: datetime
    exercises: List[ExerciseHistory] = Field(default_factory=list)


# ============================================================================
# Load & Fatigue Outputs
# ============================================================================

class LoadMetrics(BaseModel):
    """Acute:chronic workload summary (all values clamped)."""

    ratio: float = Field(..., ge=0.0, le=5.0, description="Acute load / weekly chronic load")
    status: LoadStatus
    acute_load: float = Field(..., ge=0.0, le=1_000_000.0, description="7-day load sum")
    chronic_load: float = Field(
        ..., ge=0.0, le=1_000_000.0, description="28-day load sum averaged per week"
    )
    monotony: float = Field(..., ge=0.0, le=10.0, description="Foster monotony over the acute window")
    strain: float = Field(..., ge=0.0, le=10_000_000.0, description="Acute load x monotony")
    has_chronic_baseline: bool = Field(
        ..., description="False when the ratio fell back to the neutral value"
    )
    recommendation: str = ""


class FitnessFatigueState(BaseModel):
    """State of the two-compartment impulse-response model after a fold."""

    model_config = ConfigDict(frozen=True)

    current_fitness: float = Field(..., ge=0.0, le=200.0)
    current_fatigue: float = Field(..., ge=0.0, le=150.0)
    net_performance: float = Field(..., ge=0.0, le=100.0)
    readiness: Readiness
    last_session_at: datetime
    sessions_modeled: int = Field(..., ge=1)


class ExerciseFatigueFactor(BaseModel):
    """Shrunk per-exercise fatigue parameters."""

    baseline_fatigue_rate: float = Field(..., ge=0.0, description="Fraction of capability lost per set")
    variance: float = Field(..., ge=0.0, description="Sampling variance of the raw estimate")
    sample_size: int = Field(..., ge=0, description="Valid sets observed for the exercise")


class HierarchicalFatigueModel(BaseModel):
    """User-level traits plus exercise-level fatigue factors."""

    user_fatigue_resistance: float = Field(..., ge=0.0, le=100.0)
    user_recovery_rate: float = Field(..., ge=0.0, le=3.0)
    user_confidence: float = Field(..., ge=0.0, le=1.0)
    exercise_specific_factors: Dict[str, ExerciseFatigueFactor] = Field(default_factory=dict)
    total_samples: int = Field(0, ge=0, description="Valid sets across the whole history")
    session_count: int = Field(0, ge=0)
    convergence: bool = False


class FatiguePrediction(BaseModel):
    """Expected fatigue for the next set of an exercise."""

    expected_fatigue: float = Field(..., ge=0.0, le=100.0)
    lower: float = Field(..., ge=0.0, le=100.0)
    upper: float = Field(..., ge=0.0, le=100.0)
    confidence: float = Field(..., ge=0.0, le=1.0)
    recommendation: str
    user_factor: float
    exercise_factor: float
    session_factor: float


# ============================================================================
# Derived Insights
# ============================================================================

class RecoveryProfile(BaseModel):
    """Readiness of a single muscle group."""

    muscle_group: str
    days_since_last_trained: int = Field(..., ge=0, description="999 when never trained")
    readiness_score: float = Field(..., ge=0.0, le=10.0)
    status: RecoveryStatus
    recovery_percentage: float = Field(..., ge=0.0, le=100.0)
    last_trained_at: Optional[datetime] = None
    estimated_full_recovery_at: Optional[datetime] = None


class SFRInsight(BaseModel):
    """Stimulus-to-fatigue summary for one exercise."""

    exercise_id: str
    exercise_name: str
    avg_sfr: float = Field(..., ge=0.0)
    best_sfr: float = Field(..., ge=0.0)
    worst_sfr: float = Field(..., ge=0.0)
    times_performed: int = Field(..., ge=1)
    interpretation: SFRInterpretation


class ExerciseRate(BaseModel):
    """Display row for an exercise's fitted fatigue rate."""

    exercise_id: str
    exercise_name: str
    fatigue_rate: float
    variance: float
    sample_size: int


class PersonalStats(BaseModel):
    """User-level headline numbers."""

    fatigue_resistance: float = Field(..., ge=0.0, le=100.0)
    recovery_rate: float = Field(..., ge=0.0, le=3.0)
    total_workouts: int = Field(..., ge=0)
    total_sets: int = Field(..., ge=0)


class SmartInsight(BaseModel):
    """Short coaching message derived from a snapshot."""

    type: InsightType
    message: str
    action: Optional[str] = None


class AnalyticsSnapshot(BaseModel):
    """Independently populated analytics views for one request."""

    acwr: Optional[LoadMetrics] = None
    fitness_fatigue: Optional[FitnessFatigueState] = None
    hierarchical_model: Optional[HierarchicalFatigueModel] = None
    personal_stats: Optional[PersonalStats] = None
    exercise_rates: Optional[List[ExerciseRate]] = None
    recovery_profiles: Optional[List[RecoveryProfile]] = None
    sfr_insights: Optional[List[SFRInsight]] = None
    insights: List[SmartInsight] = Field(default_factory=list)
    session_count: int = Field(0, ge=0)
    generated_at: datetime = Field(default_factory=utc_now)
