"""
Banister fitness-fatigue simulation.

Model (Banister et al. 1975, refined by Busso 2003):

    fitness' = fitness * exp(-dt / tau_fit) + k_fit * impulse
    fatigue' = fatigue * exp(-dt / tau_fat) + k_fat * impulse
    performance = fitness - fatigue

Fatigue responds more strongly to each impulse (k_fat > k_fit) but decays
faster (tau_fat < tau_fit), which is what makes tapering work.

The simulation is a pure left fold: `step` maps an optional previous state and
one session observation to the next state, and `fold_observations` reduces a
sequence with it.
"""

import math
from datetime import datetime
from functools import partial, reduce
from typing import List, NamedTuple, Optional

from training_analytics.config import DEFAULT_CONFIG, EngineConfig
from training_analytics.reconciler import (
    fallback_volume_load,
    is_valid_session,
    session_timestamp,
    valid_sets,
)
from training_analytics.schemas import FitnessFatigueState, Readiness, SetRecord, WorkoutSession
from training_analytics.stats import clamp, is_finite_number


class SessionObservation(NamedTuple):
    """Timestamp and training impulse of one session."""

    timestamp: datetime
    impulse: float


def _rpe_intensity(rpe: Optional[float]) -> Optional[float]:
    if is_finite_number(rpe) and 0 < rpe <= 10:
        return rpe / 10.0
    return None


def set_effort_load(set_record: SetRecord, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """Volume x intensity x effort for a single valid set."""
    volume = set_record.actual_weight * set_record.actual_reps
    intensity = (
        _rpe_intensity(set_record.actual_rpe)
        or _rpe_intensity(set_record.prescribed_rpe)
        or config.default_intensity
    )
    effort = config.failure_effort_multiplier if set_record.reached_failure else 1.0
    return volume * intensity * effort


def session_impulse(session: WorkoutSession, config: EngineConfig = DEFAULT_CONFIG) -> float:
    """
    Training impulse of a session in model units.

    Sessions without valid sets fall back to their pre-computed volume scaled
    by the session's average (or overall) RPE.
    """
    effort_load = sum(set_effort_load(s, config) for s in valid_sets(session, config))
    if effort_load <= 0:
        intensity = (
            _rpe_intensity(session.average_rpe)
            or _rpe_intensity(session.session_rpe)
            or config.default_intensity
        )
        effort_load = fallback_volume_load(session) * intensity
    return effort_load / config.impulse_scale


def classify_readiness(net_performance: float) -> Readiness:
    """Bucket net performance on the clamped 0-100 scale."""
    if net_performance >= 70:
        return Readiness.EXCELLENT
    if net_performance >= 60:
        return Readiness.GOOD
    if net_performance >= 40:
        return Readiness.MODERATE
    return Readiness.POOR


def scale_performance(fitness: float, fatigue: float) -> float:
    """Map raw performance from [-100, 200] onto [0, 100]; 33.3 is neutral."""
    return clamp((fitness - fatigue + 100.0) / 300.0 * 100.0, 0.0, 100.0)


def step(
    state: Optional[FitnessFatigueState],
    observation: SessionObservation,
    config: EngineConfig = DEFAULT_CONFIG,
) -> FitnessFatigueState:
    """
    Advance the model by one session.

    Args:
        state: State after the previous session, or None before the first
        observation: The session's timestamp and impulse
        config: Decay constants, gains and clamp bounds

    Returns:
        New state; the input state is never modified
    """
    if state is None:
        fitness, fatigue, elapsed_days, modeled = 0.0, 0.0, 0.0, 0
    else:
        fitness, fatigue = state.current_fitness, state.current_fatigue
        elapsed = observation.timestamp - state.last_session_at
        elapsed_days = max(0.0, elapsed.total_seconds() / 86400.0)
        modeled = state.sessions_modeled

    impulse = clamp(observation.impulse, 0.0, math.inf)
    fitness = fitness * math.exp(-elapsed_days / config.fitness_decay_days) + config.fitness_gain * impulse
    fatigue = fatigue * math.exp(-elapsed_days / config.fatigue_decay_days) + config.fatigue_gain * impulse

    fitness = clamp(fitness, 0.0, config.max_fitness)
    fatigue = clamp(fatigue, 0.0, config.max_fatigue)
    net_performance = scale_performance(fitness, fatigue)

    return FitnessFatigueState(
        current_fitness=fitness,
        current_fatigue=fatigue,
        net_performance=net_performance,
        readiness=classify_readiness(net_performance),
        last_session_at=observation.timestamp,
        sessions_modeled=modeled + 1,
    )


def fold_observations(
    observations: List[SessionObservation], config: EngineConfig = DEFAULT_CONFIG
) -> Optional[FitnessFatigueState]:
    """Reduce observations (oldest first) into a state; None when empty."""
    return reduce(partial(step, config=config), observations, None)


def build_observations(
    sessions: List[WorkoutSession], config: EngineConfig = DEFAULT_CONFIG
) -> List[SessionObservation]:
    """Chronological observations for qualifying sessions."""
    observations = [
        SessionObservation(session_timestamp(s), session_impulse(s, config))
        for s in sessions
        if is_valid_session(s, config)
    ]
    observations.sort(key=lambda o: o.timestamp)
    return observations


def simulate(
    sessions: List[WorkoutSession], config: EngineConfig = DEFAULT_CONFIG
) -> Optional[FitnessFatigueState]:
    """
    Run the fitness-fatigue model over the most recent sessions.

    Args:
        sessions: Reconciled session history
        config: Window size, minimum session count and model constants

    Returns:
        State after the last of the most recent `fitness_window_sessions`
        sessions, or None when fewer than `min_sessions` sessions qualify
        (insufficient data)
    """
    observations = build_observations(sessions, config)
    if len(observations) < config.min_sessions:
        return None
    return fold_observations(observations[-config.fitness_window_sessions:], config)
