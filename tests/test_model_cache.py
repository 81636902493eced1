"""
Tests for hierarchical model caching.

Ensures fingerprints track history changes, hits are served from the cache,
and a failing cache backend never breaks model construction.
"""

from datetime import datetime, timedelta

import pytest

from training_analytics.config import EngineConfig
from training_analytics.model_cache import (
    InMemoryModelCache,
    ModelCache,
    get_or_build_model,
    history_fingerprint,
)
from training_analytics.schemas import SetRecord, WorkoutSession


# Fixtures

T0 = datetime(2024, 3, 4, 18, 0)


def bench_session(session_id, day, sets=3):
    return WorkoutSession(
        id=session_id,
        end_time=T0 + timedelta(days=day),
        sets=[
            SetRecord(exercise_id="bench_press", actual_weight=100, actual_reps=10 - i, actual_rpe=7 + i)
            for i in range(sets)
        ],
    )


class BrokenCache(ModelCache):
    """Backend whose every call fails."""

    def __init__(self):
        self.reads = 0
        self.writes = 0

    def get(self, user_id, fingerprint):
        self.reads += 1
        raise ConnectionError("cache unavailable")

    def put(self, user_id, fingerprint, model):
        self.writes += 1
        raise ConnectionError("cache unavailable")


class CountingCache(InMemoryModelCache):
    """In-memory cache that records how often it is written."""

    def __init__(self):
        super().__init__()
        self.writes = 0

    def put(self, user_id, fingerprint, model):
        self.writes += 1
        super().put(user_id, fingerprint, model)


@pytest.fixture
def config():
    """Default engine configuration."""
    return EngineConfig()


@pytest.fixture
def history():
    """Three bench sessions, enough to fit a model."""
    return [bench_session("a", 0), bench_session("b", 2), bench_session("c", 4)]


# Test Cases


def test_fingerprint_is_stable(history, config):
    """Test that the same history always yields the same fingerprint."""
    assert history_fingerprint(history, config) == history_fingerprint(list(history), config)


def test_fingerprint_format(history, config):
    """Test the count:latest:digest layout."""
    fingerprint = history_fingerprint(history, config)
    head, digest = fingerprint.rsplit(":", 1)

    assert head == f"3:{(T0 + timedelta(days=4)).isoformat()}"
    assert len(digest) == 16


def test_fingerprint_changes_with_history(history, config):
    """Test that adding a session or editing sets changes the fingerprint."""
    original = history_fingerprint(history, config)

    appended = history + [bench_session("d", 6)]
    edited = history[:2] + [bench_session("c", 4, sets=2)]

    assert history_fingerprint(appended, config) != original
    assert history_fingerprint(edited, config) != original


def test_fingerprint_of_empty_history(config):
    """Test the fingerprint of an empty history."""
    assert history_fingerprint([], config).startswith("0:none:")


def test_cache_miss_then_hit(history, config):
    """Test that the second request for the same history is served from cache."""
    cache = CountingCache()

    first = get_or_build_model(cache, "user-1", history, config)
    second = get_or_build_model(cache, "user-1", history, config)

    assert first is not None
    assert second == first
    assert cache.writes == 1
    assert len(cache) == 1


def test_changed_history_rebuilds(history, config):
    """Test that a stale fingerprint forces a refit."""
    cache = CountingCache()
    get_or_build_model(cache, "user-1", history, config)

    rebuilt = get_or_build_model(cache, "user-1", history + [bench_session("d", 6)], config)

    assert cache.writes == 2
    assert rebuilt.session_count == 4


def test_fingerprint_tracks_set_edits(history, config):
    """Test that editing a set's weight, reps, RPE or exercise changes the fingerprint."""
    original = history_fingerprint(history, config)

    for field, value in [
        ("actual_weight", 102.5),
        ("actual_reps", 4),
        ("actual_rpe", 9.5),
        ("exercise_id", "incline_bench_press"),
    ]:
        edited = [s.model_copy(deep=True) for s in history]
        setattr(edited[1].sets[0], field, value)

        assert history_fingerprint(edited, config) != original, field


def test_edited_weight_rebuilds(history, config):
    """Test that correcting a logged weight forces a refit."""
    cache = CountingCache()
    get_or_build_model(cache, "user-1", history, config)

    edited = [s.model_copy(deep=True) for s in history]
    edited[-1].sets[0].actual_weight = 110
    get_or_build_model(cache, "user-1", edited, config)

    assert cache.writes == 2


def test_users_are_isolated(history, config):
    """Test that cached models are namespaced per user."""
    cache = InMemoryModelCache()
    get_or_build_model(cache, "user-1", history, config)

    assert cache.get("user-2", history_fingerprint(history, config)) is None


def test_cached_model_is_a_copy(history, config):
    """Test that callers cannot mutate the stored model."""
    cache = InMemoryModelCache()
    model = get_or_build_model(cache, "user-1", history, config)
    model.user_confidence = 0.0

    again = get_or_build_model(cache, "user-1", history, config)

    assert again.user_confidence > 0.0


def test_anonymous_requests_skip_cache(history, config):
    """Test that no user id means no caching."""
    cache = CountingCache()

    assert get_or_build_model(cache, None, history, config) is not None
    assert cache.writes == 0


def test_broken_cache_falls_back_to_fit(history, config):
    """Test that cache read and write failures are tolerated."""
    cache = BrokenCache()

    model = get_or_build_model(cache, "user-1", history, config)

    assert model is not None
    assert model.session_count == 3
    assert cache.reads == 1
    assert cache.writes == 1


def test_insufficient_history_is_not_cached(config):
    """Test that a None fit is never stored."""
    cache = CountingCache()

    assert get_or_build_model(cache, "user-1", [bench_session("a", 0)], config) is None
    assert cache.writes == 0


def test_base_cache_is_abstract():
    """Test that the interface itself cannot be used."""
    with pytest.raises(NotImplementedError):
        ModelCache().get("user", "fp")
