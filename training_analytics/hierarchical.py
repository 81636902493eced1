"""
Hierarchical (partial-pooling) fatigue estimator.

Three levels:
- Population: default fatigue rate and variance used before any data exists
- User: fatigue resistance, recovery rate and confidence derived from the
  whole history
- Exercise: per-exercise fatigue rate, shrunk toward the user's own prior

Empirical Bayes shrinkage: an exercise with n observed sets keeps weight
w = n / (n + prior_strength) on its own estimate, so thin data is pulled
toward the prior and rich data stands on its own.

Per-exercise rates come from within-session capability decline. Each set's
capability is its estimated 1RM (Epley with reps in reserve); the decline
relative to the first set is regressed through the origin on the set index.
"""

import logging
import math
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

import numpy as np

from training_analytics.config import DEFAULT_CONFIG, EngineConfig
from training_analytics.reconciler import is_valid_session, session_timestamp, valid_sets
from training_analytics.schemas import (
    ExerciseFatigueFactor,
    ExerciseHistory,
    FatigueHistoryEntry,
    FatiguePrediction,
    HierarchicalFatigueModel,
    SetRecord,
    WorkoutSession,
)
from training_analytics.stats import clamp, is_finite_number, slope_through_origin, weighted_mean_variance

logger = logging.getLogger(__name__)

NEUTRAL_RESISTANCE = 50.0
NEUTRAL_RECOVERY_RATE = 1.0


# ============================================================================
# History Construction
# ============================================================================

def build_fatigue_history(
    sessions: List[WorkoutSession], config: EngineConfig = DEFAULT_CONFIG
) -> List[FatigueHistoryEntry]:
    """
    Reshape sessions into per-exercise set groups, oldest first.

    Exercises keep the order in which they first appear in the session; sets
    keep their logged order within each exercise.
    """
    history: List[FatigueHistoryEntry] = []
    for session in sessions:
        if not is_valid_session(session, config):
            continue
        grouped: Dict[str, List[SetRecord]] = {}
        for set_record in valid_sets(session, config):
            grouped.setdefault(set_record.exercise_id, []).append(set_record)
        history.append(
            FatigueHistoryEntry(
                date=session_timestamp(session),
                exercises=[
                    ExerciseHistory(exercise_id=exercise_id, sets=sets)
                    for exercise_id, sets in grouped.items()
                ],
            )
        )
    history.sort(key=lambda entry: entry.date)
    return history


def reps_in_reserve(set_record: SetRecord) -> float:
    """10 - RPE, or 0 when no usable RPE was logged."""
    rpe = set_record.actual_rpe
    if is_finite_number(rpe) and 0 < rpe <= 10:
        return 10.0 - rpe
    return 0.0


def estimated_one_rep_max(set_record: SetRecord) -> float:
    """Epley e1RM with reps in reserve: weight x (1 + (reps + RIR) / 30)."""
    weight = set_record.actual_weight
    reps = set_record.actual_reps
    if not (is_finite_number(weight) and is_finite_number(reps)) or weight <= 0 or reps <= 0:
        return 0.0
    return weight * (1.0 + (reps + reps_in_reserve(set_record)) / 30.0)


# ============================================================================
# Level 2: Exercise Estimates
# ============================================================================

def _occurrences_by_exercise(
    history: List[FatigueHistoryEntry],
) -> Dict[str, List[List[SetRecord]]]:
    occurrences: Dict[str, List[List[SetRecord]]] = defaultdict(list)
    for entry in history:
        for exercise in entry.exercises:
            if exercise.sets:
                occurrences[exercise.exercise_id].append(exercise.sets)
    return occurrences


def estimate_exercise_rate(
    occurrences: List[List[SetRecord]], config: EngineConfig = DEFAULT_CONFIG
) -> Optional[Tuple[float, float]]:
    """
    Raw fatigue rate of one exercise pooled across its session occurrences.

    Args:
        occurrences: Set lists, one per session in which the exercise appears
        config: Supplies the upper clamp for the rate

    Returns:
        (rate, sampling variance) with rate clamped to [0, max_fatigue_rate],
        or None when no occurrence has two or more sets to compare
    """
    set_indices: List[float] = []
    declines: List[float] = []
    for sets in occurrences:
        if len(sets) < 2:
            continue
        first = estimated_one_rep_max(sets[0])
        if first <= 0:
            continue
        for index, set_record in enumerate(sets[1:], start=1):
            set_indices.append(float(index))
            declines.append(1.0 - estimated_one_rep_max(set_record) / first)

    estimate = slope_through_origin(set_indices, declines)
    if estimate is None:
        return None
    slope, variance = estimate
    if not (math.isfinite(slope) and math.isfinite(variance)):
        return None
    return clamp(slope, 0.0, config.max_fatigue_rate), max(0.0, variance)


def raw_exercise_rates(
    history: List[FatigueHistoryEntry], config: EngineConfig = DEFAULT_CONFIG
) -> Dict[str, float]:
    """Unshrunk rate per exercise; population default where no estimate exists."""
    rates: Dict[str, float] = {}
    for exercise_id, occurrences in _occurrences_by_exercise(history).items():
        estimate = estimate_exercise_rate(occurrences, config)
        rates[exercise_id] = estimate[0] if estimate else config.population_fatigue_rate
    return rates


def shrinkage_weight(sample_size: float, prior_strength: float) -> float:
    """w = n / (n + k): 0 with no data, approaching 1 as data accumulates."""
    if sample_size <= 0:
        return 0.0
    return sample_size / (sample_size + prior_strength)


def exercise_prior(
    estimates: Dict[str, Tuple[float, float, int]], config: EngineConfig = DEFAULT_CONFIG
) -> Tuple[float, float]:
    """
    Sample-size-weighted mean and variance of the raw exercise rates.

    Falls back to the population defaults when there are no raw estimates.
    """
    if estimates:
        rates = [rate for rate, _, _ in estimates.values()]
        weights = [n for _, _, n in estimates.values()]
        result = weighted_mean_variance(rates, weights)
        if result is not None:
            return result
    return config.population_fatigue_rate, config.population_rate_variance


# ============================================================================
# Level 3: User Traits
# ============================================================================

def fatigue_resistance(
    factors: Dict[str, ExerciseFatigueFactor], config: EngineConfig = DEFAULT_CONFIG
) -> float:
    """100 / (1 + avg_rate / population_rate); 50 when there are no exercises."""
    if not factors:
        return NEUTRAL_RESISTANCE
    rates = [f.baseline_fatigue_rate for f in factors.values()]
    weights = [max(f.sample_size, 1) for f in factors.values()]
    avg_rate = float(np.average(rates, weights=weights))
    return clamp(100.0 / (1.0 + avg_rate / config.population_fatigue_rate), 0.0, 100.0)


def recovery_scores(
    history: List[FatigueHistoryEntry], config: EngineConfig = DEFAULT_CONFIG
) -> List[float]:
    """
    Gap-normalized first-set e1RM ratios between consecutive sessions.

    A ratio r observed over d days becomes r ** (reference_gap / d), the ratio
    that would have been seen at the reference gap.
    """
    scores: List[float] = []
    for previous, current in zip(history, history[1:]):
        gap_days = (current.date - previous.date).total_seconds() / 86400.0
        if gap_days < config.recovery_min_gap_days or gap_days > config.recovery_max_gap_days:
            continue
        current_sets = {e.exercise_id: e.sets for e in current.exercises if e.sets}
        for exercise in previous.exercises:
            if not exercise.sets or exercise.exercise_id not in current_sets:
                continue
            before = estimated_one_rep_max(exercise.sets[0])
            after = estimated_one_rep_max(current_sets[exercise.exercise_id][0])
            if before <= 0 or after <= 0:
                continue
            score = (after / before) ** (config.recovery_reference_gap_days / gap_days)
            if math.isfinite(score):
                scores.append(score)
    return scores


def recovery_rate(
    history: List[FatigueHistoryEntry], config: EngineConfig = DEFAULT_CONFIG
) -> float:
    """Mean recovery score shrunk toward 1.0 with the exercise prior strength."""
    scores = recovery_scores(history, config)
    if not scores:
        return NEUTRAL_RECOVERY_RATE
    w = shrinkage_weight(len(scores), config.prior_strength)
    rate = float(np.mean(scores)) * w + NEUTRAL_RECOVERY_RATE * (1.0 - w)
    return clamp(rate, 0.0, config.max_recovery_rate)


def user_confidence(total_sets: int, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """1 - 1 / (1 + sets / threshold): monotone in the number of sets."""
    return clamp(1.0 - 1.0 / (1.0 + total_sets / config.confidence_threshold_sets), 0.0, 1.0)


# ============================================================================
# Model Fitting
# ============================================================================

def fit(
    history: List[FatigueHistoryEntry], config: EngineConfig = DEFAULT_CONFIG
) -> Optional[HierarchicalFatigueModel]:
    """
    Fit the hierarchical fatigue model to a session history.

    Args:
        history: Entries from build_fatigue_history (any order)
        config: Prior strength, population defaults and clamp bounds

    Returns:
        A freshly built model, or None below `min_sessions` entries
    """
    if len(history) < config.min_sessions:
        return None
    history = sorted(history, key=lambda entry: entry.date)

    occurrences = _occurrences_by_exercise(history)
    sample_sizes = {
        exercise_id: sum(len(sets) for sets in sets_per_session)
        for exercise_id, sets_per_session in occurrences.items()
    }

    # Step 1: raw per-exercise estimates
    raw: Dict[str, Tuple[float, float, int]] = {}
    for exercise_id, sets_per_session in occurrences.items():
        estimate = estimate_exercise_rate(sets_per_session, config)
        if estimate is not None:
            raw[exercise_id] = (estimate[0], estimate[1], sample_sizes[exercise_id])

    # Step 2: prior from the user's own exercises
    prior_mean, prior_variance = exercise_prior(raw, config)

    # Step 3: shrink
    factors: Dict[str, ExerciseFatigueFactor] = {}
    for exercise_id, n in sample_sizes.items():
        if exercise_id in raw:
            rate, variance, _ = raw[exercise_id]
            w = shrinkage_weight(n, config.prior_strength)
            shrunk = rate * w + prior_mean * (1.0 - w)
        else:
            shrunk, variance = prior_mean, prior_variance
        factors[exercise_id] = ExerciseFatigueFactor(
            baseline_fatigue_rate=clamp(shrunk, 0.0, config.max_fatigue_rate),
            variance=clamp(variance, 0.0, math.inf),
            sample_size=n,
        )

    # Steps 4-5: user traits
    total_sets = sum(sample_sizes.values())
    model = HierarchicalFatigueModel(
        user_fatigue_resistance=fatigue_resistance(factors, config),
        user_recovery_rate=recovery_rate(history, config),
        user_confidence=user_confidence(total_sets, config),
        exercise_specific_factors=factors,
        total_samples=total_sets,
        session_count=len(history),
        convergence=total_sets >= config.convergence_min_sets,
    )
    logger.debug(
        "Fitted fatigue model: %d sessions, %d exercises, %d sets",
        len(history), len(factors), total_sets,
    )
    return model


# ============================================================================
# Prediction
# ============================================================================

def predict_fatigue_next_set(
    model: HierarchicalFatigueModel,
    exercise_id: str,
    sets_completed_today: int,
    config: EngineConfig = DEFAULT_CONFIG,
) -> FatiguePrediction:
    """
    Expected fatigue (0-100) after the next set of an exercise.

    User resistance damps the combined exercise and session contributions.
    The 95% interval widens with the number of sets already done and with
    low model confidence.

    Args:
        model: Fitted hierarchical model
        exercise_id: Exercise about to be performed
        sets_completed_today: Sets of this exercise already completed
        config: Supplies the population rate for unseen exercises

    Returns:
        FatiguePrediction with interval, confidence and a recommendation
    """
    sets_done = max(0, sets_completed_today)
    factor = model.exercise_specific_factors.get(exercise_id)

    user_factor = model.user_fatigue_resistance / 100.0
    exercise_factor = factor.baseline_fatigue_rate if factor else config.population_fatigue_rate
    session_factor = sets_done * 0.05

    base_fatigue = (exercise_factor * sets_done + session_factor) * 100.0
    expected = clamp(base_fatigue * (1.0 - user_factor * 0.3), 0.0, 100.0)

    # Per-set spread in percentage points
    spread = math.sqrt(factor.variance) * 100.0 if factor and factor.variance > 0 else 2.0
    uncertainty_from_sets = math.sqrt(sets_done) * spread
    uncertainty_from_model = (1.0 - model.user_confidence) * 20.0
    uncertainty = math.hypot(uncertainty_from_sets, uncertainty_from_model)

    lower = clamp(expected - 1.96 * uncertainty, 0.0, 100.0)
    upper = clamp(expected + 1.96 * uncertainty, 0.0, 100.0)
    confidence = max(0.3, 1.0 - (upper - lower) / 100.0)

    if expected > 70:
        recommendation = "High fatigue expected. Consider ending the exercise after this set."
    elif expected > 50:
        recommendation = "Moderate fatigue building. Reduce reps or extend rest if needed."
    else:
        recommendation = "Fatigue manageable. Continue as planned."

    return FatiguePrediction(
        expected_fatigue=expected,
        lower=lower,
        upper=upper,
        confidence=clamp(confidence, 0.0, 1.0),
        recommendation=recommendation,
        user_factor=user_factor * 100.0,
        exercise_factor=exercise_factor * 100.0,
        session_factor=session_factor * 100.0,
    )
