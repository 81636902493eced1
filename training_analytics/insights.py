"""
Smart insights: short prioritized coaching messages from a snapshot.

Sources, in priority order: ACWR band, monotony, fitness-fatigue readiness,
fatigue-to-fitness ratio, least-recovered muscle group. At most three are
returned.
"""

from typing import List

from training_analytics.schemas import AnalyticsSnapshot, InsightType, Readiness, SmartInsight

MAX_INSIGHTS = 3


def _load_insights(snapshot: AnalyticsSnapshot) -> List[SmartInsight]:
    acwr = snapshot.acwr
    if acwr is None:
        return []

    insights = []
    if acwr.ratio > 2.0:
        insights.append(SmartInsight(
            type=InsightType.DANGER,
            message=f"High injury risk. ACWR is {acwr.ratio:.1f}x above baseline.",
            action="Reduce volume or take a rest day",
        ))
    elif acwr.ratio > 1.5:
        insights.append(SmartInsight(
            type=InsightType.WARNING,
            message=f"Load elevated (ACWR {acwr.ratio:.2f}). Monitor fatigue.",
            action="Plan recovery within 1-2 weeks",
        ))
    elif 0.8 <= acwr.ratio <= 1.3:
        insights.append(SmartInsight(
            type=InsightType.GOOD,
            message=f"Load is in the target range (ACWR {acwr.ratio:.2f}).",
            action="Maintain current load",
        ))
    elif acwr.ratio < 0.5:
        insights.append(SmartInsight(
            type=InsightType.WARNING,
            message="Training load is below baseline.",
            action="Increase volume gradually",
        ))

    if acwr.monotony > 2.5:
        insights.append(SmartInsight(
            type=InsightType.INFO,
            message="Training monotony is high.",
            action="Add variety in exercises or rep ranges",
        ))
    return insights


def _fitness_fatigue_insights(snapshot: AnalyticsSnapshot) -> List[SmartInsight]:
    state = snapshot.fitness_fatigue
    if state is None:
        return []

    insights = []
    if state.readiness == Readiness.EXCELLENT:
        insights.append(SmartInsight(
            type=InsightType.GOOD, message="Readiness is high.", action="Good day for intensity"
        ))
    elif state.readiness == Readiness.POOR:
        insights.append(SmartInsight(
            type=InsightType.WARNING,
            message="Readiness is low.",
            action="Prioritize recovery or reduce intensity",
        ))

    if state.current_fitness > 0 and state.current_fatigue / state.current_fitness > 1.2:
        insights.append(SmartInsight(
            type=InsightType.WARNING,
            message="Fatigue is outpacing fitness.",
            action="Consider a deload week",
        ))
    return insights


def _recovery_insights(snapshot: AnalyticsSnapshot) -> List[SmartInsight]:
    if not snapshot.recovery_profiles:
        return []
    worst = min(snapshot.recovery_profiles, key=lambda p: p.readiness_score)
    if worst.readiness_score >= 6:
        return []
    return [SmartInsight(
        type=InsightType.WARNING,
        message=f"{worst.muscle_group.capitalize()} still recovering.",
        action="Avoid heavy training for this muscle group",
    )]


def generate_insights(snapshot: AnalyticsSnapshot) -> List[SmartInsight]:
    """Top insights for a snapshot; views that were not computed are skipped."""
    insights = (
        _load_insights(snapshot)
        + _fitness_fatigue_insights(snapshot)
        + _recovery_insights(snapshot)
    )
    return insights[:MAX_INSIGHTS]
