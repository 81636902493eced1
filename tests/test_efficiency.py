"""
Tests for the stimulus-to-fatigue (SFR) leaderboard.
"""

from datetime import datetime, timedelta

import pytest

from training_analytics.config import EngineConfig
from training_analytics.efficiency import interpret_sfr, proximity_factor, rank, set_sfr
from training_analytics.schemas import (
    ExerciseFatigueFactor,
    HierarchicalFatigueModel,
    SetRecord,
    SFRInterpretation,
    WorkoutSession,
)


# Fixtures

T0 = datetime(2024, 3, 4, 18, 0)


def make_set(exercise_id, rpe=8.0, weight=100.0, reps=8.0, **kwargs):
    return SetRecord(exercise_id=exercise_id, actual_weight=weight, actual_reps=reps, actual_rpe=rpe, **kwargs)


@pytest.fixture
def config():
    """Default engine configuration."""
    return EngineConfig()


@pytest.fixture
def model():
    """Fitted model with known per-exercise fatigue rates."""
    return HierarchicalFatigueModel(
        user_fatigue_resistance=60.0,
        user_recovery_rate=1.0,
        user_confidence=0.4,
        exercise_specific_factors={
            "bench_press": ExerciseFatigueFactor(baseline_fatigue_rate=0.1, variance=0.001, sample_size=12),
            "squat": ExerciseFatigueFactor(baseline_fatigue_rate=0.2, variance=0.001, sample_size=12),
        },
        total_samples=24,
        session_count=3,
    )


@pytest.fixture
def sessions():
    """Two sessions: bench at RPE 8 both times, squat grinding at RPE 9.5 once."""
    return [
        WorkoutSession(
            id="a",
            end_time=T0,
            sets=[make_set("bench_press") for _ in range(3)] + [make_set("squat", rpe=9.5) for _ in range(3)],
        ),
        WorkoutSession(
            id="b",
            end_time=T0 + timedelta(days=2),
            sets=[make_set("bench_press", exercise_name="Bench Press") for _ in range(3)],
        ),
    ]


# Test Cases


@pytest.mark.parametrize(
    "sfr,expected",
    [
        (250.0, SFRInterpretation.EXCELLENT),
        (200.0, SFRInterpretation.GOOD),
        (151.0, SFRInterpretation.GOOD),
        (120.0, SFRInterpretation.MODERATE),
        (60.0, SFRInterpretation.POOR),
        (50.0, SFRInterpretation.EXCESSIVE),
        (40.0, SFRInterpretation.EXCESSIVE),
    ],
)
def test_interpretation_bands(sfr, expected):
    """Test SFR interpretation thresholds."""
    assert interpret_sfr(sfr) == expected


def test_proximity_factor():
    """Test failure, hard, moderate and easy sets."""
    assert proximity_factor(make_set("x", rpe=7, reached_failure=True)) == 1.5
    assert proximity_factor(make_set("x", rpe=8)) == 1.25
    assert proximity_factor(make_set("x", rpe=7)) == 1.0
    assert proximity_factor(make_set("x", rpe=5)) == 0.8
    assert proximity_factor(make_set("x", rpe=None)) == 1.0


def test_first_set_sfr(config):
    """Test SFR = 100 x proximity / intensity for the first set."""
    assert set_sfr(make_set("x", rpe=8), 0, 0.2, config) == pytest.approx(156.25)
    assert set_sfr(make_set("x", rpe=10, reached_failure=True), 0, 0.2, config) == pytest.approx(150.0)


def test_later_sets_cost_more(config):
    """Test that set position compounds the fatigue cost."""
    first = set_sfr(make_set("x"), 0, 0.15, config)
    third = set_sfr(make_set("x"), 2, 0.15, config)

    assert third == pytest.approx(first / 1.3)


def test_sfr_is_clamped(config):
    """Test that near-zero intensity cannot blow up the ratio."""
    assert set_sfr(make_set("x", rpe=0.1), 0, 0.0, config) == 1000.0


def test_rank_orders_by_average(sessions, model, config):
    """Test descending order, summary statistics and session counts."""
    insights = rank(sessions, model, config=config)

    assert [i.exercise_id for i in insights] == ["bench_press", "squat"]
    bench = insights[0]
    assert bench.times_performed == 2
    assert bench.exercise_name == "Bench Press"
    assert bench.best_sfr == pytest.approx(156.25)
    assert bench.worst_sfr == pytest.approx(156.25 / 1.2)
    assert bench.best_sfr >= bench.avg_sfr >= bench.worst_sfr
    assert insights[1].times_performed == 1
    assert insights[0].avg_sfr >= insights[1].avg_sfr


def test_rank_respects_limit(sessions, model, config):
    """Test truncation of the leaderboard."""
    assert len(rank(sessions, model, limit=1, config=config)) == 1


def test_rank_without_model_estimates_rates(sessions, config):
    """Test ranking when no fitted model is supplied."""
    insights = rank(sessions, None, config=config)

    assert {i.exercise_id for i in insights} == {"bench_press", "squat"}
    # Flat sets give a zero raw rate, so every bench set scores like a first set
    bench = next(i for i in insights if i.exercise_id == "bench_press")
    assert bench.worst_sfr == pytest.approx(156.25)


def test_rank_ignores_invalid_sets(config):
    """Test that warmups and skipped sets are not ranked."""
    session = WorkoutSession(
        id="s",
        end_time=T0,
        sets=[
            make_set("bench_press", completed=False),
            make_set("squat", set_type="warmup"),
        ],
    )

    assert rank([session], None, config=config) == []


def test_display_name_derived_from_id(sessions, model, config):
    """Test that exercises without a cached name get one from their id."""
    squat = next(i for i in rank(sessions, model, config=config) if i.exercise_id == "squat")

    assert squat.exercise_name == "Squat"
