"""
Per-muscle-group recovery profiles.

Recovery follows an exponential approach to full readiness calibrated so that
a muscle group reaches 95% after its baseline recovery time:

    recovery = 1 - exp(-ln(20) * hours * recovery_rate / baseline_hours)

The baseline is scaled by how hard the last session hit the group (working
sets relative to a typical six-set dose, with sets of exercises that only
recruit the group as a secondary mover credited at a fraction), and by the
user's recovery rate from the hierarchical model when one is available.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from training_analytics.config import DEFAULT_CONFIG, EngineConfig
from training_analytics.reconciler import session_timestamp, valid_sets
from training_analytics.schemas import (
    HierarchicalFatigueModel,
    RecoveryProfile,
    RecoveryStatus,
    WorkoutSession,
)
from training_analytics.stats import clamp
from training_analytics.taxonomy import MUSCLE_GROUPS, muscle_profile

logger = logging.getLogger(__name__)

LN_20 = math.log(20.0)
DEFAULT_BASELINE_HOURS = 48.0


def classify_recovery(readiness_score: float) -> RecoveryStatus:
    if readiness_score >= 8:
        return RecoveryStatus.FRESH
    if readiness_score >= 6:
        return RecoveryStatus.RECOVERING
    return RecoveryStatus.FATIGUED


def severity_multiplier(hard_sets: float, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """Scale baseline recovery time by session dose: clamp(1 + (sets - 6) / 12, 0.8, 1.5)."""
    reference = config.reference_hard_sets
    return clamp(1.0 + (hard_sets - reference) / (2.0 * reference), 0.8, 1.5)


def recovery_fraction(hours: float, baseline_hours: float, recovery_rate: float) -> float:
    """Fraction of full recovery after `hours`, in [0, 1]."""
    if baseline_hours <= 0:
        return 1.0
    return clamp(1.0 - math.exp(-LN_20 * max(0.0, hours) * recovery_rate / baseline_hours), 0.0, 1.0)


def last_trained(
    sessions: List[WorkoutSession], config: EngineConfig = DEFAULT_CONFIG
) -> Dict[str, Tuple[datetime, float]]:
    """
    Most recent session timestamp and its credited working sets per muscle group.

    Each valid set counts fully toward its primary group and by
    config.secondary_set_credit toward its secondary group.
    """
    latest: Dict[str, Tuple[datetime, float]] = {}
    for session in sessions:
        timestamp = session_timestamp(session)
        if timestamp is None:
            continue
        credited: Dict[str, float] = {}
        for set_record in valid_sets(session, config):
            profile = muscle_profile(set_record.exercise_id, set_record.exercise_name)
            if profile is None:
                continue
            primary, secondary = profile
            credited[primary] = credited.get(primary, 0.0) + 1.0
            if secondary is not None and secondary != primary and config.secondary_set_credit > 0:
                credited[secondary] = credited.get(secondary, 0.0) + config.secondary_set_credit
        for group, hard_sets in credited.items():
            if group not in latest or timestamp >= latest[group][0]:
                latest[group] = (timestamp, hard_sets)
    return latest


def _never_trained_profile(group: str, config: EngineConfig) -> RecoveryProfile:
    return RecoveryProfile(
        muscle_group=group,
        days_since_last_trained=config.never_trained_days,
        readiness_score=10.0,
        status=RecoveryStatus.FRESH,
        recovery_percentage=100.0,
    )


def estimate(
    sessions: List[WorkoutSession],
    fatigue_model: Optional[HierarchicalFatigueModel] = None,
    as_of: Optional[datetime] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[RecoveryProfile]:
    """
    Build one recovery profile per tracked muscle group, worst first.

    Args:
        sessions: Reconciled session history
        fatigue_model: Supplies user_recovery_rate (1.0 when None)
        as_of: Reference time (naive UTC); defaults to the latest session
        config: Baseline hours, dose reference and sentinel values

    Returns:
        Profiles sorted by readiness ascending
    """
    latest = last_trained(sessions, config)
    if as_of is None:
        as_of = max((ts for ts, _ in latest.values()), default=datetime.min)

    rate = fatigue_model.user_recovery_rate if fatigue_model is not None else 1.0
    rate = max(rate, config.min_effective_recovery_rate)

    profiles = []
    for group in MUSCLE_GROUPS:
        if group not in latest:
            profiles.append(_never_trained_profile(group, config))
            continue

        trained_at, hard_sets = latest[group]
        hours = max(0.0, (as_of - trained_at).total_seconds() / 3600.0)
        base = config.recovery_baseline_hours.get(group, DEFAULT_BASELINE_HOURS)
        baseline = base * severity_multiplier(hard_sets, config)
        fraction = recovery_fraction(hours, baseline, rate)
        readiness = 10.0 * fraction

        profiles.append(
            RecoveryProfile(
                muscle_group=group,
                days_since_last_trained=int(hours // 24),
                readiness_score=readiness,
                status=classify_recovery(readiness),
                recovery_percentage=100.0 * fraction,
                last_trained_at=trained_at,
                estimated_full_recovery_at=trained_at + timedelta(hours=baseline / rate),
            )
        )

    profiles.sort(key=lambda p: p.readiness_score)
    logger.debug("Estimated recovery for %d muscle groups (%d trained)", len(profiles), len(latest))
    return profiles


def overall_readiness(profiles: List[RecoveryProfile]) -> float:
    """Readiness of the least recovered muscle group; 10 with no profiles."""
    return min((p.readiness_score for p in profiles), default=10.0)
