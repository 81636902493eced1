"""
Session reconciliation.

Merges session lists from the local offline cache and the remote store into
the single deduplicated, validity-filtered, time-ordered history that every
analytics component consumes.

Rules:
- Ids are compared after stripping the local "session_" prefix
- On collision the remote record wins; local-only sessions are kept
- A session survives only if it has a timestamp and carries load (a valid
  set, or a positive pre-computed total volume)
- Invalid sets (skipped, warmup, non-finite or out-of-bounds) are dropped
"""

import logging
from datetime import datetime, time
from typing import Dict, Iterable, List, Optional

from training_analytics.config import DEFAULT_CONFIG, EngineConfig
from training_analytics.schemas import SetRecord, SetType, WorkoutSession
from training_analytics.stats import is_finite_number

logger = logging.getLogger(__name__)

SESSION_ID_PREFIX = "session_"


def normalize_session_id(session_id: str) -> str:
    """Strip the local-cache prefix so both sources share one id space."""
    if session_id.startswith(SESSION_ID_PREFIX):
        return session_id[len(SESSION_ID_PREFIX):]
    return session_id


def is_valid_set(set_record: SetRecord, config: EngineConfig = DEFAULT_CONFIG) -> bool:
    """
    Whether a set may contribute to load and fatigue computations.

    Args:
        set_record: Set to check
        config: Supplies the weight/reps sanity bounds

    Returns:
        True for completed, non-warmup sets with finite, positive, in-bound
        weight and reps
    """
    if not set_record.completed or set_record.set_type == SetType.WARMUP:
        return False
    weight = set_record.actual_weight
    reps = set_record.actual_reps
    if not (is_finite_number(weight) and is_finite_number(reps)):
        return False
    return 0 < weight < config.max_set_weight and 0 < reps < config.max_set_reps


def valid_sets(
    session: WorkoutSession, config: EngineConfig = DEFAULT_CONFIG
) -> List[SetRecord]:
    """Valid sets of a session, in logged order."""
    return [s for s in session.sets if is_valid_set(s, config)]


def session_timestamp(session: WorkoutSession) -> Optional[datetime]:
    """End time, else start time, else midnight of the session date."""
    if session.end_time is not None:
        return session.end_time
    if session.start_time is not None:
        return session.start_time
    if session.date is not None:
        return datetime.combine(session.date, time.min)
    return None


def fallback_volume_load(session: WorkoutSession) -> float:
    """Pre-computed total volume, or 0 when missing or malformed."""
    value = session.total_volume_load
    if is_finite_number(value) and value > 0:
        return float(value)
    return 0.0


def is_valid_session(session: WorkoutSession, config: EngineConfig = DEFAULT_CONFIG) -> bool:
    """A session counts as completed if it is timestamped and carries load."""
    if session_timestamp(session) is None:
        return False
    if any(is_valid_set(s, config) for s in session.sets):
        return True
    return fallback_volume_load(session) > 0


def _index_by_normalized_id(sessions: Iterable[WorkoutSession]) -> Dict[str, WorkoutSession]:
    indexed: Dict[str, WorkoutSession] = {}
    for session in sessions:
        indexed[normalize_session_id(session.id)] = session
    return indexed


def reconcile(
    local: List[WorkoutSession],
    remote: List[WorkoutSession],
    config: EngineConfig = DEFAULT_CONFIG,
) -> List[WorkoutSession]:
    """
    Merge local and remote sessions into the canonical history.

    Args:
        local: Sessions from the offline cache (ids may be "session_"-prefixed)
        remote: Sessions from the remote store (source of truth)
        config: Supplies set sanity bounds

    Returns:
        Deduplicated valid sessions sorted oldest first. Reconciling the
        output again with an empty second list yields the same list.
    """
    merged = _index_by_normalized_id(remote)
    local_only = 0
    for session_id, session in _index_by_normalized_id(local).items():
        if session_id not in merged:
            merged[session_id] = session
            local_only += 1

    kept: List[WorkoutSession] = []
    for session in merged.values():
        if not is_valid_session(session, config):
            continue
        cleaned = valid_sets(session, config)
        if len(cleaned) != len(session.sets):
            session = session.model_copy(update={"sets": cleaned})
        kept.append(session)

    kept.sort(key=lambda s: (session_timestamp(s), normalize_session_id(s.id)))

    logger.debug(
        "Reconciled %d local + %d remote sessions: %d local-only, %d valid",
        len(local), len(remote), local_only, len(kept),
    )
    return kept
