"""
Tests for smart insight generation.
"""

from datetime import datetime

import pytest

from training_analytics.insights import MAX_INSIGHTS, generate_insights
from training_analytics.schemas import (
    AnalyticsSnapshot,
    FitnessFatigueState,
    InsightType,
    LoadMetrics,
    LoadStatus,
    Readiness,
    RecoveryProfile,
    RecoveryStatus,
)


# Fixtures

def load_metrics(ratio, monotony=1.0):
    return LoadMetrics(
        ratio=ratio,
        status=LoadStatus.OPTIMAL,
        acute_load=1000.0,
        chronic_load=1000.0,
        monotony=monotony,
        strain=1000.0 * monotony,
        has_chronic_baseline=True,
    )


def ff_state(fitness, fatigue, readiness):
    return FitnessFatigueState(
        current_fitness=fitness,
        current_fatigue=fatigue,
        net_performance=50.0,
        readiness=readiness,
        last_session_at=datetime(2024, 3, 4),
        sessions_modeled=3,
    )


def profile(group, score):
    return RecoveryProfile(
        muscle_group=group,
        days_since_last_trained=1,
        readiness_score=score,
        status=RecoveryStatus.FATIGUED if score < 6 else RecoveryStatus.FRESH,
        recovery_percentage=score * 10,
    )


# Test Cases


def test_empty_snapshot_has_no_insights():
    """Test that missing views produce nothing."""
    assert generate_insights(AnalyticsSnapshot()) == []


@pytest.mark.parametrize(
    "ratio,expected",
    [
        (2.4, InsightType.DANGER),
        (1.7, InsightType.WARNING),
        (1.0, InsightType.GOOD),
        (0.3, InsightType.WARNING),
    ],
)
def test_acwr_insight(ratio, expected):
    """Test the load-band insight types."""
    insights = generate_insights(AnalyticsSnapshot(acwr=load_metrics(ratio)))

    assert insights[0].type == expected


def test_acwr_between_bands_is_silent():
    """Test that a ratio between the target and building bands adds nothing."""
    assert generate_insights(AnalyticsSnapshot(acwr=load_metrics(1.4))) == []


def test_high_monotony_info():
    """Test the monotony insight."""
    insights = generate_insights(AnalyticsSnapshot(acwr=load_metrics(1.4, monotony=3.0)))

    assert [i.type for i in insights] == [InsightType.INFO]


def test_fatigue_outpacing_fitness():
    """Test the fatigue-to-fitness warning."""
    snapshot = AnalyticsSnapshot(fitness_fatigue=ff_state(10.0, 13.0, Readiness.MODERATE))

    insights = generate_insights(snapshot)

    assert len(insights) == 1
    assert insights[0].message == "Fatigue is outpacing fitness."


def test_zero_fitness_does_not_divide():
    """Test the ratio guard when fitness is zero."""
    snapshot = AnalyticsSnapshot(fitness_fatigue=ff_state(0.0, 0.0, Readiness.GOOD))

    assert generate_insights(snapshot) == []


def test_worst_muscle_group_warning():
    """Test that the least recovered group is named."""
    snapshot = AnalyticsSnapshot(recovery_profiles=[profile("chest", 7.0), profile("quads", 3.0)])

    insights = generate_insights(snapshot)

    assert insights[0].message == "Quads still recovering."


def test_insights_are_capped():
    """Test that at most three insights are returned, in priority order."""
    snapshot = AnalyticsSnapshot(
        acwr=load_metrics(2.4, monotony=3.0),
        fitness_fatigue=ff_state(10.0, 20.0, Readiness.POOR),
        recovery_profiles=[profile("chest", 1.0)],
    )

    insights = generate_insights(snapshot)

    assert len(insights) == MAX_INSIGHTS
    assert [i.type for i in insights] == [InsightType.DANGER, InsightType.INFO, InsightType.WARNING]
