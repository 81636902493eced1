"""
Tests for the analytics engine and concurrent session loading.

Ensures snapshots contain exactly the requested views, a failing view does
not take down the rest of the snapshot, and source loading tolerates a
failing fetch.
"""

import json
import logging
from datetime import datetime
from pathlib import Path

import pytest

from training_analytics import engine as engine_module
from training_analytics.config import AnalyticsContext, EngineConfig
from training_analytics.engine import AnalyticsEngine, exercise_rates, load_sessions, personal_stats
from training_analytics.model_cache import InMemoryModelCache
from training_analytics.reconciler import normalize_session_id
from training_analytics.schemas import AnalyticsView


FIXTURES = Path(__file__).parent / "fixtures"
AS_OF = datetime(2024, 3, 16, 12, 0)


# Fixtures

def read_fixture(name):
    return json.loads((FIXTURES / name).read_text())


@pytest.fixture
def config():
    """Default engine configuration."""
    return EngineConfig()


@pytest.fixture
def sessions(config):
    """Reconciled history from both fixture sources."""
    return load_sessions(
        lambda: read_fixture("local_sessions.json"),
        lambda: read_fixture("remote_sessions.json"),
        config,
    )


@pytest.fixture
def engine():
    """Engine pinned to a reference time shortly after the fixture history."""
    return AnalyticsEngine(AnalyticsContext(as_of=AS_OF))


# Session loading


def test_load_sessions_merges_sources(sessions):
    """Test that both sources merge, deleted rows drop and duplicates collapse."""
    ids = [normalize_session_id(s.id) for s in sessions]

    assert ids == ["a1", "a2", "a3", "a4", "a5", "l1"]


def test_remote_wins_on_collision(sessions):
    """Test that the remote copy of a5 replaces the local one."""
    a5 = next(s for s in sessions if normalize_session_id(s.id) == "a5")

    assert a5.sets[0].actual_weight == 105
    assert len(a5.sets) == 6


def test_invalid_sets_removed_after_loading(sessions):
    """Test that warmups and skipped sets do not survive loading."""
    a3 = next(s for s in sessions if s.id == "a3")
    l1 = next(s for s in sessions if normalize_session_id(s.id) == "l1")

    assert len(a3.sets) == 6
    assert len(l1.sets) == 2


def test_failing_source_is_tolerated(config, caplog):
    """Test that a remote outage still yields the local history."""
    def broken():
        raise ConnectionError("remote store unreachable")

    with caplog.at_level(logging.WARNING):
        sessions = load_sessions(lambda: read_fixture("local_sessions.json"), broken, config)

    assert [normalize_session_id(s.id) for s in sessions] == ["a5", "l1"]
    assert "remote" in caplog.text


def test_malformed_records_do_not_abort_loading(config):
    """Test that malformed records are skipped and the rest of both sources still loads."""
    local = read_fixture("local_sessions.json") + [
        {"id": "session_x1", "sets": 7},
        {"id": "session_x2", "sets": [{"exerciseId": "squat", "exerciseName": 5}]},
    ]
    remote = read_fixture("remote_sessions.json") + [{"id": "x3", "set_logs": "squat"}]

    sessions = load_sessions(lambda: local, lambda: remote, config)

    assert [normalize_session_id(s.id) for s in sessions] == ["a1", "a2", "a3", "a4", "a5", "l1"]


def test_adapter_failure_is_tolerated(config, monkeypatch, caplog):
    """Test that an unexpected adapter error drops only that source."""
    def explode(self, records):
        raise TypeError("unexpected record shape")

    monkeypatch.setattr(engine_module.LocalSessionAdapter, "adapt_records", explode)

    with caplog.at_level(logging.WARNING):
        sessions = load_sessions(
            lambda: read_fixture("local_sessions.json"), lambda: read_fixture("remote_sessions.json"), config
        )

    assert [normalize_session_id(s.id) for s in sessions] == ["a1", "a2", "a3", "a4", "a5"]
    assert "local" in caplog.text


def test_missing_sources_yield_empty_history(config):
    """Test that no sources means no sessions."""
    assert load_sessions(None, None, config) == []


# Snapshot


def test_full_snapshot(engine, sessions):
    """Test that every view is populated for a sufficient history."""
    snapshot = engine.snapshot(sessions)

    assert snapshot.session_count == 6
    assert snapshot.acwr is not None
    assert snapshot.fitness_fatigue is not None
    assert snapshot.hierarchical_model is not None
    assert snapshot.personal_stats.total_workouts == 6
    assert snapshot.exercise_rates
    assert len(snapshot.recovery_profiles) == 10
    assert snapshot.sfr_insights
    assert len(snapshot.insights) <= 3


def test_requested_views_only(engine, sessions):
    """Test that unrequested views stay empty."""
    snapshot = engine.snapshot(sessions, views=[AnalyticsView.ACWR])

    assert snapshot.acwr is not None
    assert snapshot.fitness_fatigue is None
    assert snapshot.hierarchical_model is None
    assert snapshot.recovery_profiles is None
    assert snapshot.sfr_insights is None


def test_insufficient_history(engine, sessions):
    """Test that models report nothing below the minimum session count."""
    snapshot = engine.snapshot(sessions[:2])

    assert snapshot.session_count == 2
    assert snapshot.acwr is None
    assert snapshot.fitness_fatigue is None
    assert snapshot.hierarchical_model is None
    assert snapshot.personal_stats is None
    # Recovery and efficiency work from any history
    assert snapshot.recovery_profiles is not None
    assert snapshot.sfr_insights is not None


def test_empty_history(engine):
    """Test a snapshot with no sessions at all."""
    snapshot = engine.snapshot([])

    assert snapshot.session_count == 0
    assert snapshot.acwr is None
    assert snapshot.sfr_insights == []
    assert all(p.readiness_score == 10.0 for p in snapshot.recovery_profiles)


def test_failing_view_is_isolated(engine, sessions, monkeypatch, caplog):
    """Test that an exception in one view leaves the others intact."""
    def explode(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr(engine_module.efficiency, "rank", explode)

    with caplog.at_level(logging.ERROR):
        snapshot = engine.snapshot(sessions)

    assert snapshot.sfr_insights is None
    assert snapshot.acwr is not None
    assert snapshot.recovery_profiles is not None
    assert "efficiency" in caplog.text


def test_snapshot_uses_model_cache(sessions):
    """Test that the hierarchical fit is stored for the request's user."""
    cache = InMemoryModelCache()
    engine = AnalyticsEngine(AnalyticsContext(user_id="athlete-1", model_cache=cache, as_of=AS_OF))

    first = engine.snapshot(sessions, views=[AnalyticsView.HIERARCHICAL])
    second = engine.snapshot(sessions, views=[AnalyticsView.HIERARCHICAL])

    assert len(cache) == 1
    assert second.hierarchical_model == first.hierarchical_model


def test_personal_stats_and_rates(engine, sessions):
    """Test derived personal stats and the per-exercise rate table."""
    model = engine.fatigue_model(sessions)
    stats = personal_stats(model, sessions)
    rates = exercise_rates(model, sessions)

    assert stats.total_sets == model.total_samples
    assert stats.fatigue_resistance == model.user_fatigue_resistance
    assert {r.exercise_id for r in rates} == set(model.exercise_specific_factors)
    assert [r.fatigue_rate for r in rates] == sorted((r.fatigue_rate for r in rates), reverse=True)
    assert next(r for r in rates if r.exercise_id == "lateral_raise").exercise_name == "Lateral Raise"
