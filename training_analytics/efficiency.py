"""
Stimulus-to-fatigue ratio (SFR) leaderboard.

Per valid set:
    stimulus     = volume x proximity-to-failure factor
    fatigue cost = volume x intensity x (1 + fatigue_rate x set_position)
    SFR          = 100 x stimulus / fatigue cost

Exercises that deliver hard, close-to-failure sets without compounding
fatigue within the session score highest.
"""

from collections import defaultdict
from typing import Dict, List, Optional

import numpy as np

from training_analytics.config import DEFAULT_CONFIG, EngineConfig
from training_analytics.hierarchical import build_fatigue_history, raw_exercise_rates
from training_analytics.reconciler import valid_sets
from training_analytics.schemas import (
    HierarchicalFatigueModel,
    SetRecord,
    SFRInsight,
    SFRInterpretation,
    WorkoutSession,
)
from training_analytics.stats import clamp, is_finite_number
from training_analytics.taxonomy import display_name


def _effective_rpe(set_record: SetRecord) -> Optional[float]:
    for rpe in (set_record.actual_rpe, set_record.prescribed_rpe):
        if is_finite_number(rpe) and 0 < rpe <= 10:
            return rpe
    return None


def proximity_factor(set_record: SetRecord) -> float:
    """Stimulus multiplier for how close the set was taken to failure."""
    if set_record.reached_failure:
        return 1.5
    rpe = _effective_rpe(set_record)
    if rpe is None:
        return 1.0
    if rpe >= 8:
        return 1.25
    if rpe < 6:
        return 0.8
    return 1.0


def set_intensity(set_record: SetRecord, config: EngineConfig = DEFAULT_CONFIG) -> float:
    rpe = _effective_rpe(set_record)
    return rpe / 10.0 if rpe is not None else config.default_intensity


def set_sfr(
    set_record: SetRecord,
    set_position: int,
    fatigue_rate: float,
    config: EngineConfig = DEFAULT_CONFIG,
) -> float:
    """SFR of one set at its 0-based position within the exercise."""
    volume = set_record.actual_weight * set_record.actual_reps
    stimulus = volume * proximity_factor(set_record)
    cost = volume * set_intensity(set_record, config) * (1.0 + fatigue_rate * set_position)
    if cost <= 0:
        return 0.0
    return clamp(config.sfr_scale * stimulus / cost, 0.0, config.max_sfr)


def interpret_sfr(avg_sfr: float) -> SFRInterpretation:
    if avg_sfr > 200:
        return SFRInterpretation.EXCELLENT
    if avg_sfr > 150:
        return SFRInterpretation.GOOD
    if avg_sfr > 100:
        return SFRInterpretation.MODERATE
    if avg_sfr > 50:
        return SFRInterpretation.POOR
    return SFRInterpretation.EXCESSIVE


def _fatigue_rates(
    sessions: List[WorkoutSession],
    fatigue_model: Optional[HierarchicalFatigueModel],
    config: EngineConfig,
) -> Dict[str, float]:
    if fatigue_model is not None:
        return {
            exercise_id: factor.baseline_fatigue_rate
            for exercise_id, factor in fatigue_model.exercise_specific_factors.items()
        }
    return raw_exercise_rates(build_fatigue_history(sessions, config), config)


def rank(
    sessions: List[WorkoutSession],
    fatigue_model: Optional[HierarchicalFatigueModel] = None,
    limit: Optional[int] = None,
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[SFRInsight]:
    """
    Rank exercises by average stimulus-to-fatigue ratio.

    Args:
        sessions: Reconciled session history
        fatigue_model: Fitted model supplying per-exercise fatigue rates; when
            None, unshrunk rates are estimated from the sessions themselves
        limit: Leaderboard size (defaults to config.sfr_leaderboard_size)
        config: Scale and clamp bounds

    Returns:
        SFRInsight list sorted by avg_sfr descending
    """
    rates = _fatigue_rates(sessions, fatigue_model, config)
    per_set: Dict[str, List[float]] = defaultdict(list)
    sessions_with: Dict[str, int] = defaultdict(int)
    names: Dict[str, Optional[str]] = {}

    for session in sessions:
        positions: Dict[str, int] = defaultdict(int)
        for set_record in valid_sets(session, config):
            exercise_id = set_record.exercise_id
            rate = rates.get(exercise_id, config.population_fatigue_rate)
            per_set[exercise_id].append(set_sfr(set_record, positions[exercise_id], rate, config))
            positions[exercise_id] += 1
            if not names.get(exercise_id):
                names[exercise_id] = set_record.exercise_name
        for exercise_id in positions:
            sessions_with[exercise_id] += 1

    insights = []
    for exercise_id, values in per_set.items():
        avg_sfr = float(np.mean(values))
        insights.append(
            SFRInsight(
                exercise_id=exercise_id,
                exercise_name=display_name(exercise_id, names.get(exercise_id)),
                avg_sfr=avg_sfr,
                best_sfr=max(values),
                worst_sfr=min(values),
                times_performed=sessions_with[exercise_id],
                interpretation=interpret_sfr(avg_sfr),
            )
        )

    insights.sort(key=lambda insight: (-insight.avg_sfr, insight.exercise_id))
    size = config.sfr_leaderboard_size if limit is None else max(0, limit)
    return insights[:size]
