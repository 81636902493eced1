"""
Engine configuration and execution context.

Every tunable used by the analytics components lives on EngineConfig so
callers can calibrate without touching module code. AnalyticsContext is the
explicit per-request object (user namespace, reference time, cache handle)
passed into engine entry points in place of process-wide state.
"""

import logging
import os
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from training_analytics.schemas import as_naive_utc, utc_now


LOG_LEVEL_ENV_VAR = "TRAINING_ANALYTICS_LOG_LEVEL"
DATABASE_URL_ENV_VAR = "TRAINING_ANALYTICS_DATABASE_URL"
CORS_ORIGINS_ENV_VAR = "TRAINING_ANALYTICS_CORS_ORIGINS"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


# Baseline hours to ~95% recovery at moderate fatigue (Schoenfeld & Grgic 2018)
RECOVERY_BASELINE_HOURS: Dict[str, float] = {
    "chest": 48,
    "back": 48,
    "shoulders": 36,
    "triceps": 36,
    "biceps": 36,
    "quads": 72,
    "hamstrings": 72,
    "glutes": 72,
    "calves": 24,
    "core": 24,
}


class EngineConfig(BaseModel):
    """Calibration constants for every analytics component."""

    # Data sufficiency
    min_sessions: int = Field(
        3, ge=1, description="Valid sessions required before load/fatigue models report"
    )

    # Set sanity bounds (canonical weight unit)
    max_set_weight: float = Field(2000.0, gt=0, description="Exclusive upper bound for set weight")
    max_set_reps: float = Field(200.0, gt=0, description="Exclusive upper bound for set reps")
    weight_unit: str = Field("kg", pattern="^(kg|lbs)$", description="Canonical weight unit")

    # Load aggregation
    acute_window_days: int = Field(7, ge=1)
    chronic_window_days: int = Field(28, ge=7)
    neutral_ratio: float = Field(1.0, ge=0.0, description="Ratio reported when chronic load is undefined")
    max_ratio: float = 5.0
    max_load: float = 1_000_000.0
    max_monotony: float = 10.0
    max_strain: float = 10_000_000.0
    high_monotony_threshold: float = 2.5

    # Fitness-fatigue (Banister) model
    fitness_window_sessions: int = Field(14, ge=1)
    fitness_decay_days: float = Field(7.0, gt=0, description="tau_fit")
    fatigue_decay_days: float = Field(2.0, gt=0, description="tau_fat")
    fitness_gain: float = Field(1.0, gt=0, description="k_fit")
    fatigue_gain: float = Field(2.0, gt=0, description="k_fat")
    default_intensity: float = Field(0.7, gt=0, le=1.0, description="RPE/10 used when no RPE is logged")
    failure_effort_multiplier: float = 1.5
    impulse_scale: float = Field(1000.0, gt=0, description="Divisor turning effort volume into impulse units")
    max_fitness: float = 200.0
    max_fatigue: float = 150.0

    # Hierarchical estimator
    prior_strength: float = Field(10.0, gt=0, description="How many sets the prior is worth")
    population_fatigue_rate: float = Field(0.15, ge=0.0, description="Fatigue per set with no personal data")
    population_rate_variance: float = Field(0.01, ge=0.0)
    max_fatigue_rate: float = 0.5
    confidence_threshold_sets: float = Field(50.0, gt=0)
    recovery_reference_gap_days: float = Field(2.0, gt=0)
    recovery_min_gap_days: float = 1.0
    recovery_max_gap_days: float = 14.0
    convergence_min_sets: int = 30
    max_recovery_rate: float = 3.0

    # Efficiency ranking
    sfr_leaderboard_size: int = Field(20, ge=1)
    sfr_scale: float = 100.0
    max_sfr: float = 1000.0

    # Recovery profiles
    recovery_baseline_hours: Dict[str, float] = Field(
        default_factory=lambda: dict(RECOVERY_BASELINE_HOURS)
    )
    reference_hard_sets: float = Field(6.0, gt=0, description="Hard sets considered a typical session dose")
    secondary_set_credit: float = Field(
        0.5, ge=0, le=1, description="Fraction of a set credited to the secondary muscle group"
    )
    never_trained_days: int = 999
    min_effective_recovery_rate: float = Field(0.25, gt=0)


DEFAULT_CONFIG = EngineConfig()


class AnalyticsContext(BaseModel):
    """
    Per-request execution context for the analytics engine.

    Attributes:
        user_id: User namespace (None for anonymous/offline use; disables caching)
        as_of: Reference "now" for time-since-trained computations
        model_cache: Optional ModelCache backend for the hierarchical fit
        config: Engine calibration
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, protected_namespaces=())

    user_id: Optional[str] = None
    as_of: datetime = Field(default_factory=utc_now)
    model_cache: Optional[Any] = None
    config: EngineConfig = Field(default_factory=EngineConfig)

    @field_validator("as_of")
    @classmethod
    def normalize_timezone(cls, value: datetime) -> datetime:
        """Compare against session timestamps in naive UTC."""
        return as_naive_utc(value)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure stdlib logging for CLI and API entry points.

    Args:
        level: Log level name; defaults to $TRAINING_ANALYTICS_LOG_LEVEL or WARNING
    """
    resolved = (level or os.environ.get(LOG_LEVEL_ENV_VAR) or "WARNING").upper()
    logging.basicConfig(level=getattr(logging, resolved, logging.WARNING), format=LOG_FORMAT)
