"""
Memoization of the hierarchical fatigue fit.

A fitted model is stored per user together with a fingerprint of the session
history it was built from. Any change to the history changes the fingerprint,
so a stale model is never served. Cache backends are best-effort: a failing
read or write is logged and the model is rebuilt synchronously.
"""

import hashlib
import logging
from typing import Dict, List, Optional, Tuple

from training_analytics.config import DEFAULT_CONFIG, EngineConfig
from training_analytics.hierarchical import build_fatigue_history, fit
from training_analytics.reconciler import normalize_session_id, session_timestamp, valid_sets
from training_analytics.schemas import HierarchicalFatigueModel, WorkoutSession

logger = logging.getLogger(__name__)


def history_fingerprint(
    sessions: List[WorkoutSession], config: EngineConfig = DEFAULT_CONFIG
) -> str:
    """
    Identify a session history: count, latest timestamp and a content digest.

    The digest covers each session's normalized id and timestamp plus the
    exercise, weight, reps and RPE of every valid set, so adding, removing
    or editing sets invalidates the cached model.
    """
    digest = hashlib.sha256()
    latest = None
    for session in sessions:
        timestamp = session_timestamp(session)
        if timestamp is not None and (latest is None or timestamp > latest):
            latest = timestamp
        stamp = timestamp.isoformat() if timestamp is not None else "-"
        digest.update(f"{normalize_session_id(session.id)}|{stamp}\n".encode("utf-8"))
        for s in valid_sets(session, config):
            line = f" {s.exercise_id}|{s.actual_weight!r}|{s.actual_reps!r}|{s.actual_rpe!r}\n"
            digest.update(line.encode("utf-8"))
    latest_part = latest.isoformat() if latest is not None else "none"
    return f"{len(sessions)}:{latest_part}:{digest.hexdigest()[:16]}"


class ModelCache:
    """
    Interface for hierarchical model caches.

    Implementations store at most one model per user. `get` returns None
    unless the stored fingerprint matches.
    """

    def get(self, user_id: str, fingerprint: str) -> Optional[HierarchicalFatigueModel]:
        raise NotImplementedError

    def put(self, user_id: str, fingerprint: str, model: HierarchicalFatigueModel) -> None:
        raise NotImplementedError


class InMemoryModelCache(ModelCache):
    """Process-local cache, suitable for the API server and tests."""

    def __init__(self):
        self._entries: Dict[str, Tuple[str, HierarchicalFatigueModel]] = {}

    def get(self, user_id: str, fingerprint: str) -> Optional[HierarchicalFatigueModel]:
        entry = self._entries.get(user_id)
        if entry is None or entry[0] != fingerprint:
            return None
        return entry[1].model_copy(deep=True)

    def put(self, user_id: str, fingerprint: str, model: HierarchicalFatigueModel) -> None:
        self._entries[user_id] = (fingerprint, model.model_copy(deep=True))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def get_or_build_model(
    cache: Optional[ModelCache],
    user_id: Optional[str],
    sessions: List[WorkoutSession],
    config: EngineConfig = DEFAULT_CONFIG,
) -> Optional[HierarchicalFatigueModel]:
    """
    Serve the hierarchical model from cache, or fit and store it.

    Args:
        cache: Cache backend, or None to always fit
        user_id: Cache namespace; anonymous requests are never cached
        sessions: Reconciled session history
        config: Engine calibration

    Returns:
        The fitted model, or None when the history is too short
    """
    if cache is None or user_id is None:
        return fit(build_fatigue_history(sessions, config), config)

    fingerprint = history_fingerprint(sessions, config)
    try:
        cached = cache.get(user_id, fingerprint)
    except Exception as e:
        logger.warning("Model cache read failed for user %s: %s", user_id, e)
        cached = None

    if cached is not None:
        logger.debug("Model cache hit for user %s (%s)", user_id, fingerprint)
        return cached

    model = fit(build_fatigue_history(sessions, config), config)
    if model is None:
        return None

    logger.debug("Built fatigue model for user %s (%s)", user_id, fingerprint)
    try:
        cache.put(user_id, fingerprint, model)
    except Exception as e:
        logger.warning("Model cache write failed for user %s: %s", user_id, e)
    return model
